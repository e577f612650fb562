"""Hybrid score merging: fuse a vector list and a keyword list into one ranking.

Two strategies are available:

- weighted rank normalization: position ``i`` of ``n`` scores
  ``max(0.1, 1 - i/n * 0.9)``, so the top hit of any non-empty list is 1.0
  and nothing drops below 0.1
- Reciprocal Rank Fusion: position ``i`` scores ``1 / (k + i + 1)``

Either contribution is multiplied by the source's weight. Results are fused
by document path, filtered by ``min_score``, sorted best first and cut to
``max_results``. Storage scores are never used, only positions.
"""

from collections.abc import Callable, Iterable, Mapping

from hybridsearch.config.schema import HybridConfig, SearchOptions
from hybridsearch.entities import SearchResult

DEFAULT_RRF_K = 60

RankScore = Callable[[int, int], float]


def normalize_score(rank: int, total: int) -> float:
    """Linear rank normalization from 1.0 (first) down to a 0.1 floor."""
    if total == 0:
        return 0.0
    return max(0.1, 1 - (rank / total) * 0.9)


def rrf_score(rank: int, k: int = DEFAULT_RRF_K) -> float:
    """Reciprocal rank contribution of a 0-based rank."""
    return 1 / (k + rank + 1)


class ScoreMerger:
    """Pure fusion of vector and keyword result lists.

    Example:
        merger = ScoreMerger(HybridConfig(vector_weight=0.7, text_weight=0.3))
        results = merger.merge(vector_hits, keyword_hits, SearchOptions(max_results=5))
    """

    def __init__(self, config: HybridConfig | None = None) -> None:
        self.config = config or HybridConfig()

    @property
    def vector_weight(self) -> float:
        return self.config.vector_weight

    @property
    def text_weight(self) -> float:
        return self.config.text_weight

    def merge(
        self,
        vector_results: list[SearchResult],
        keyword_results: list[SearchResult],
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Fuse by weighted rank normalization."""
        return self._fuse(vector_results, keyword_results, options, normalize_score)

    def merge_with_rrf(
        self,
        vector_results: list[SearchResult],
        keyword_results: list[SearchResult],
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Fuse by Reciprocal Rank Fusion."""
        k = self.config.rrf_k
        return self._fuse(
            vector_results, keyword_results, options, lambda rank, _total: rrf_score(rank, k)
        )

    def _fuse(
        self,
        vector_results: list[SearchResult],
        keyword_results: list[SearchResult],
        options: SearchOptions | None,
        rank_score: RankScore,
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        if options.max_results == 0:
            return []

        fused: dict[str, SearchResult] = {}

        for result, source_score in self._ranked(vector_results, rank_score):
            fused[result.path] = result.model_copy(
                update={
                    "score": source_score * self.vector_weight,
                    "vector_score": source_score,
                    "text_score": None,
                }
            )

        for result, source_score in self._ranked(keyword_results, rank_score):
            contribution = source_score * self.text_weight
            existing = fused.get(result.path)
            if existing is not None:
                existing.score += contribution
                existing.text_score = source_score
            else:
                fused[result.path] = result.model_copy(
                    update={
                        "score": contribution,
                        "vector_score": None,
                        "text_score": source_score,
                    }
                )

        ranked = [result for result in fused.values() if result.score >= options.min_score]
        # sorted() is stable: ties keep first-seen order
        ranked = sorted(ranked, key=lambda result: result.score, reverse=True)
        return ranked[: options.max_results]

    @staticmethod
    def _ranked(
        results: list[SearchResult], rank_score: RankScore
    ) -> Iterable[tuple[SearchResult, float]]:
        """Yield each path's best-ranked occurrence with its rank score."""
        seen: set[str] = set()
        total = len(results)
        for rank, result in enumerate(results):
            if result.path in seen:
                continue
            seen.add(result.path)
            yield result, rank_score(rank, total)

    @staticmethod
    def rrf(
        result_sets: Iterable[Mapping[str, tuple[int, float]]], k: int = DEFAULT_RRF_K
    ) -> dict[str, float]:
        """Multi-list RRF over ``{path: (rank, weight)}`` maps.

        Each entry contributes ``weight / (k + rank)``; contributions for the
        same path are summed across sets.
        """
        scores: dict[str, float] = {}
        for result_set in result_sets:
            for path, (rank, weight) in result_set.items():
                scores[path] = scores.get(path, 0.0) + weight * (1 / (k + rank))
        return scores
