"""Optimistic score tracking for the local player."""

from dataclasses import dataclass


def reconcile_score(optimistic: int, authoritative: int) -> int:
    """Return the own score to display."""
    return max(optimistic, authoritative)


@dataclass
class ScoreReconciler:
    """Merges local taps with scores observed from the store."""

    win_score: int
    optimistic: int = 0
    authoritative: int = 0
    opponent: int = 0

    @property
    def own_score(self) -> int:
        return reconcile_score(self.optimistic, self.authoritative)

    @property
    def reached_win_score(self) -> bool:
        return self.own_score >= self.win_score

    def observe(self, own_score: int, opponent_score: int) -> None:
        """Record authoritative scores from a store notification."""
        self.authoritative = max(self.authoritative, own_score)
        self.opponent = opponent_score

    def tap(self) -> int | None:
        """Apply one local tap; None once the win score is already reached."""
        if self.reached_win_score:
            return None
        self.optimistic = self.own_score + 1
        return self.optimistic
