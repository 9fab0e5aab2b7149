"""Tests for optimistic score reconciliation."""

import random

from tap_duel.services.scores import ScoreReconciler, reconcile_score


def test_reconcile_prefers_higher_value() -> None:
    assert reconcile_score(5, 3) == 5
    assert reconcile_score(2, 9) == 9


def test_stale_notification_does_not_lower_own_score() -> None:
    scores = ScoreReconciler(win_score=100)
    for _ in range(5):
        scores.tap()

    scores.observe(own_score=2, opponent_score=4)

    assert scores.own_score == 5
    assert scores.opponent == 4


def test_own_score_never_decreases_over_mixed_events() -> None:
    rng = random.Random(7)
    scores = ScoreReconciler(win_score=1000)
    displayed = 0
    stored = 0
    for _ in range(500):
        if rng.random() < 0.6:
            scores.tap()
        else:
            stored = min(stored + rng.randint(0, 3), scores.own_score)
            scores.observe(own_score=rng.randint(0, stored), opponent_score=0)
        assert scores.own_score >= displayed
        displayed = scores.own_score


def test_tap_caps_at_win_score() -> None:
    scores = ScoreReconciler(win_score=3)

    assert [scores.tap() for _ in range(4)] == [1, 2, 3, None]
    assert scores.reached_win_score is True


def test_authoritative_score_ahead_is_adopted() -> None:
    scores = ScoreReconciler(win_score=100)
    scores.tap()

    scores.observe(own_score=10, opponent_score=0)

    assert scores.own_score == 10
    assert scores.tap() == 11
