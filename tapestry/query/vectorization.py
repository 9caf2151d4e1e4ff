"""
Vectorization Module

Term extraction and TF-IDF weighting for thread similarity.

BOUNDARY ENFORCEMENT:
- Pure functions for thread to vector conversion
- NO learning, NO persistence between calls
- Deterministic: same corpus, same matrix
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Sequence, Tuple
import math
import re

import numpy as np

from ..contracts.events import Thread


DEFAULT_STOP_WORDS: FrozenSet[str] = frozenset([
    'the', 'is', 'at', 'which', 'on', 'and', 'a', 'an', 'in', 'of', 'to', 'for',
    'with', 'by', 'from', 'as', 'but', 'or', 'so', 'it', 'this', 'that', 'are',
    'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does',
    'did', 'will', 'would', 'shall', 'should', 'can', 'could', 'may', 'might',
    'must', 'my', 'your', 'his', 'her', 'its', 'our', 'their'
])

_PUNCTUATION = re.compile(r"[^\w\s]")


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class VectorizerConfig:
    """Configuration for term extraction and weighting."""
    idf_floor: float = 0.1
    min_token_length: int = 3
    stop_words: FrozenSet[str] = field(default_factory=lambda: DEFAULT_STOP_WORDS)

    def __post_init__(self):
        if self.idf_floor <= 0:
            raise ValueError("idf_floor must be positive")


# =============================================================================
# TERM EXTRACTION
# =============================================================================

def tokenize(text: str, config: VectorizerConfig) -> List[str]:
    words = _PUNCTUATION.sub("", text.lower()).split()
    return [
        w for w in words
        if len(w) >= config.min_token_length and w not in config.stop_words
    ]


def thread_terms(thread: Thread, config: VectorizerConfig) -> List[str]:
    """
    Terms for one thread: its enumerated fields plus title tokens.

    UNKNOWN enum values contribute nothing, so two malformed records
    never look alike merely because both are malformed.
    """
    terms = []
    if thread.intention.is_known:
        terms.append(f"intention:{thread.intention.value}")
    if thread.time_of_day.is_known:
        terms.append(f"time:{thread.time_of_day.value}")
    if thread.region.is_known:
        terms.append(f"region:{thread.region.value}")
    if thread.title:
        terms.extend(f"title:{token}" for token in tokenize(thread.title, config))
    return terms


# =============================================================================
# TF-IDF COMPUTATION
# =============================================================================

class TFIDFComputer:
    """
    Compute TF-IDF vectors over a fixed corpus.

    IDF is floored at `idf_floor` so a term present in every document
    keeps a small positive weight instead of vanishing.
    """

    def __init__(self, config: VectorizerConfig):
        self._config = config
        self._document_frequencies: Dict[str, int] = {}
        self._total_documents: int = 0
        self._vocabulary: Tuple[str, ...] = ()

    def fit(self, documents: Sequence[Sequence[str]]) -> None:
        self._document_frequencies = {}
        self._total_documents = len(documents)
        for terms in documents:
            for term in set(terms):
                self._document_frequencies[term] = self._document_frequencies.get(term, 0) + 1
        self._vocabulary = tuple(sorted(self._document_frequencies))

    @property
    def vocabulary(self) -> Tuple[str, ...]:
        return self._vocabulary

    def compute_idf(self, term: str) -> float:
        df = self._document_frequencies.get(term, 0)
        if self._total_documents == 0 or df == 0:
            return self._config.idf_floor
        return max(math.log(self._total_documents / df), self._config.idf_floor)

    def transform(self, documents: Sequence[Sequence[str]]) -> np.ndarray:
        """Return a (documents x vocabulary) matrix of TF-IDF weights."""
        position = {term: i for i, term in enumerate(self._vocabulary)}
        tf = np.zeros((len(documents), len(self._vocabulary)), dtype=np.float64)
        for row, terms in enumerate(documents):
            for term in terms:
                column = position.get(term)
                if column is not None:
                    tf[row, column] += 1.0

        idf = np.array([self.compute_idf(t) for t in self._vocabulary], dtype=np.float64)
        return tf * idf


def cosine_similarities(matrix: np.ndarray, row: int) -> np.ndarray:
    """Cosine similarity of every row against `row`; zero vectors score 0."""
    if matrix.size == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    norms = np.linalg.norm(matrix, axis=1)
    target_norm = norms[row]
    if target_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    dots = matrix @ matrix[row]
    denominators = norms * target_norm
    similarities = np.divide(
        dots, denominators,
        out=np.zeros_like(dots),
        where=denominators > 0
    )
    return np.clip(similarities, 0.0, 1.0)
