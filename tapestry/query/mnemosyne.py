"""
Mnemosyne: Similarity Retrieval
===============================

Ranks ledger threads by content similarity to a target thread.

The TF-IDF corpus is the ledger snapshot at query time, rebuilt on every
call. There is no incremental index to drift out of date.

GUARANTEES:
- Exact semantic duplicates score 100
- Ties are broken by ledger order (earlier first)
- The full ranking is returned; callers truncate
- No exception escapes `query`

A target with no terms (every field UNKNOWN and no title words) has a
zero vector and nothing to be similar to, so its ranking is empty.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence
import logging
import math

import numpy as np

from ..contracts.events import SimilarityMatch, Thread
from .vectorization import (
    TFIDFComputer, VectorizerConfig, cosine_similarities, thread_terms
)


logger = logging.getLogger(__name__)

MAX_COMMON_TERMS = 3


@dataclass
class MnemosyneConfig(VectorizerConfig):
    """Retrieval configuration (vectorizer settings plus defaults for callers)."""
    default_limit: int = 5


def to_percentage(similarity: float) -> int:
    """Round half up to an integer percentage in [0, 100]."""
    return max(0, min(100, int(math.floor(similarity * 100 + 0.5))))


class Mnemosyne:
    """
    Similarity retrieval engine.

    `source` supplies the ledger snapshot; it is read once per query.
    """

    def __init__(
        self,
        source: Optional[Callable[[], Sequence[Thread]]] = None,
        config: Optional[MnemosyneConfig] = None
    ):
        self._source = source
        self._config = config or MnemosyneConfig()

    @property
    def config(self) -> MnemosyneConfig:
        return self._config

    def query(
        self,
        target: Thread,
        exclude_self: bool = True,
        threads: Optional[Sequence[Thread]] = None
    ) -> List[SimilarityMatch]:
        try:
            snapshot = tuple(threads if threads is not None else self._snapshot())
            return self._rank(target, snapshot, exclude_self)
        except Exception:
            logger.exception("Mnemosyne query failed; returning empty ranking")
            return []

    def top(
        self,
        target: Thread,
        k: Optional[int] = None,
        exclude_self: bool = True,
        threads: Optional[Sequence[Thread]] = None
    ) -> List[SimilarityMatch]:
        limit = self._config.default_limit if k is None else k
        return self.query(target, exclude_self=exclude_self, threads=threads)[:max(limit, 0)]

    # -------------------------------------------------------------------------

    def _snapshot(self) -> Sequence[Thread]:
        return self._source() if self._source is not None else ()

    def _rank(
        self,
        target: Thread,
        snapshot: Sequence[Thread],
        exclude_self: bool
    ) -> List[SimilarityMatch]:
        if not snapshot:
            return []

        corpus = list(snapshot)
        target_row = next(
            (i for i, t in enumerate(corpus) if target.id and t.id == target.id),
            None
        )
        if target_row is None:
            # the target joins the IDF corpus for this query only
            corpus.append(target)
            target_row = len(corpus) - 1

        documents = [thread_terms(t, self._config) for t in corpus]
        if not documents[target_row]:
            logger.debug("Target %s has no terms; nothing to rank against", target.id or "<draft>")
            return []

        tfidf = TFIDFComputer(self._config)
        tfidf.fit(documents)
        weights = tfidf.transform(documents)
        similarities = cosine_similarities(weights, target_row)

        candidates = []
        for row, thread in enumerate(snapshot):
            if exclude_self and (row == target_row or (target.id and thread.id == target.id)):
                continue
            candidates.append(row)

        candidates.sort(key=lambda row: (-round(float(similarities[row]), 12), row))

        target_weights = weights[target_row]
        vocabulary = tfidf.vocabulary
        return [
            SimilarityMatch(
                thread=snapshot[row],
                score=to_percentage(float(similarities[row])),
                raw_score=float(similarities[row]),
                common_terms=self._common_terms(target_weights, weights[row], vocabulary)
            )
            for row in candidates
        ]

    @staticmethod
    def _common_terms(target: np.ndarray, other: np.ndarray, vocabulary) -> tuple:
        shared = np.nonzero((target > 0) & (other > 0))[0]
        ranked = sorted(shared, key=lambda column: (-float(target[column]), vocabulary[column]))
        return tuple(vocabulary[column] for column in ranked[:MAX_COMMON_TERMS])
