"""Keyword heuristic that turns a task description into a T-shirt size."""

from __future__ import annotations

import random
import re

from .models import Estimate, TShirtSize, points_for

COMPLEXITY_KEYWORDS: tuple[str, ...] = (
    "complex",
    "difficult",
    "challenging",
    "intricate",
    "refactor",
    "architecture",
    "redesign",
    "optimize",
    "security",
    "implement",
    "create",
    "build",
    "develop",
    "integration",
    "database",
    "api",
    "performance",
    "authentication",
    "authorization",
)

WORDS_PER_LENGTH_POINT = 20
MAX_LENGTH_FACTOR = 3

# (inclusive upper score bound, size); anything above the last bound is XXL
SCORE_THRESHOLDS: tuple[tuple[int, TShirtSize], ...] = (
    (1, TShirtSize.XS),
    (3, TShirtSize.S),
    (5, TShirtSize.M),
    (7, TShirtSize.L),
    (9, TShirtSize.XL),
)

# size -> (base, span); confidence is drawn uniformly from [base, base + span)
CONFIDENCE_RANGES: dict[TShirtSize, tuple[int, int]] = {
    TShirtSize.XS: (70, 15),
    TShirtSize.S: (75, 15),
    TShirtSize.M: (80, 15),
    TShirtSize.L: (75, 20),
    TShirtSize.XL: (70, 20),
    TShirtSize.XXL: (65, 25),
}

_WHITESPACE = re.compile(r"\s+")


def size_for_score(total_score: int) -> TShirtSize:
    """Map a combined complexity score to a size."""
    for upper_bound, size in SCORE_THRESHOLDS:
        if total_score <= upper_bound:
            return size
    return TShirtSize.XXL


class SizeEstimator:
    """Deterministic size/points heuristic with a randomized confidence display value."""

    def __init__(self, rng: random.Random | None = None) -> None:
        """Initialize the estimator.

        Args:
            rng: Random source for confidence values; tests pass a seeded instance
        """
        self.rng = rng or random.Random()

    @staticmethod
    def score(title: str, description: str) -> int:
        """Return the combined keyword and length score for a task."""
        text = f"{title} {description}".lower()
        word_count = len(_WHITESPACE.split(text))

        complexity_score = sum(1 for keyword in COMPLEXITY_KEYWORDS if keyword in text)
        length_factor = min(word_count // WORDS_PER_LENGTH_POINT, MAX_LENGTH_FACTOR)

        return complexity_score + length_factor

    def estimate(self, title: str, description: str) -> Estimate:
        """Estimate size, points and confidence for a task.

        Args:
            title: Task title
            description: Task description (may be empty)

        Returns:
            Estimate; size and points depend only on the text
        """
        size = size_for_score(self.score(title, description))
        base, span = CONFIDENCE_RANGES[size]

        return Estimate(
            size=size,
            points=points_for(size),
            confidence=base + self.rng.randrange(span),
        )
