"""Vote tallying for collaborative estimation."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from .models import Task, TShirtSize, Vote, points_for


def consensus_size(votes: Sequence[Vote], fallback: TShirtSize) -> TShirtSize:
    """Return the most voted size.

    Sizes are scanned in declaration order (XS first) and the first size to
    reach a new maximum wins, so ties resolve to the smaller size.

    Args:
        votes: Current votes on a task
        fallback: Size returned when there are no votes

    Returns:
        The modal size of the votes
    """
    if not votes:
        return fallback

    counts = Counter(vote.size for vote in votes)
    winner = fallback
    max_count = 0
    for size in TShirtSize:
        if counts[size] > max_count:
            max_count = counts[size]
            winner = size
    return winner


class VoteTally:
    """Applies votes to tasks, keeping at most one vote per user."""

    def apply_vote(self, task: Task, vote: Vote) -> Task:
        """Record a vote and recompute the task's consensus.

        Any earlier vote by the same user is replaced; the new vote goes to the
        end of the list. Size, points and finalization state are untouched.

        Args:
            task: Task being voted on; not modified
            vote: The incoming vote

        Returns:
            Updated copy of the task
        """
        votes = [existing for existing in task.votes if existing.user_id != vote.user_id]
        votes.append(vote)

        average_size = consensus_size(votes, fallback=task.size)

        return task.model_copy(
            update={
                "votes": votes,
                "average_size": average_size,
                "average_points": points_for(average_size),
            }
        )
