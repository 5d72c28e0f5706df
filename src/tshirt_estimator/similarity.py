"""Word-overlap ranking of previously estimated tasks."""

from __future__ import annotations

from collections.abc import Iterable

from .models import SimilarTask, Task

MIN_SHARED_WORDS = 2
DEFAULT_LIMIT = 3


def word_set(title: str, description: str) -> set[str]:
    """Lower-cased whitespace-delimited words of a task's combined text."""
    return set(f"{title} {description}".lower().split())


class SimilarityRanker:
    """Ranks candidate tasks by how many distinct words they share with a query."""

    def __init__(self, limit: int = DEFAULT_LIMIT) -> None:
        self.limit = limit

    def rank(self, title: str, description: str, candidates: Iterable[Task]) -> list[SimilarTask]:
        """Return up to ``limit`` candidates sharing at least two words with the query.

        Results are ordered by shared-word count, highest first. Candidates with
        equal counts keep their incoming order, so the result depends on the order
        in which the repository returned them.

        Args:
            title: Query title
            description: Query description
            candidates: Tasks to compare against; not modified

        Returns:
            Lightweight references to the most similar tasks
        """
        query_words = word_set(title, description)

        scored: list[tuple[int, Task]] = []
        for candidate in candidates:
            overlap = len(query_words & word_set(candidate.title, candidate.description))
            if overlap >= MIN_SHARED_WORDS:
                scored.append((overlap, candidate))

        # list.sort is stable, so equal overlaps keep candidate order
        scored.sort(key=lambda item: item[0], reverse=True)

        return [
            SimilarTask(id=task.id, title=task.title, size=task.size, points=task.points)
            for _, task in scored[: self.limit]
        ]
