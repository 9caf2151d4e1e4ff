"""
Query layer: similarity retrieval over the ledger snapshot.

Read-only. Nothing here writes to the ledger.
"""

from .mnemosyne import Mnemosyne, MnemosyneConfig, to_percentage
from .vectorization import (
    DEFAULT_STOP_WORDS, TFIDFComputer, VectorizerConfig,
    cosine_similarities, thread_terms, tokenize,
)

__all__ = [
    "Mnemosyne", "MnemosyneConfig", "to_percentage",
    "DEFAULT_STOP_WORDS", "TFIDFComputer", "VectorizerConfig",
    "cosine_similarities", "thread_terms", "tokenize",
]
