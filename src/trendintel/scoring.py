"""Tier scoring shared by pending and confirmed assets."""

from __future__ import annotations

from enum import Enum

BUY_AND_HOLD_MIN_SCORE = 7
SHORT_TERM_WATCH_MIN_SCORE = 5
ALERT_MIN_SCORE = 6

MAX_MEME_SCORE = 4
MAX_POLITICAL_SCORE = 3
MAX_EARNINGS_SCORE = 2


class Recommendation(Enum):
    BUY_AND_HOLD = "Buy & Hold"
    SHORT_TERM_WATCH = "Short-Term Watch"
    ON_WATCH = "On Watch"


def clamp_scores(meme_score: int, political_score: int, earnings_score: int) -> tuple[int, int, int]:
    return (
        max(0, min(MAX_MEME_SCORE, int(meme_score))),
        max(0, min(MAX_POLITICAL_SCORE, int(political_score))),
        max(0, min(MAX_EARNINGS_SCORE, int(earnings_score))),
    )


def calculate_total_score(meme_score: int, political_score: int, earnings_score: int) -> int:
    return meme_score + political_score + earnings_score


def get_recommendation(total_score: int) -> Recommendation:
    if total_score >= BUY_AND_HOLD_MIN_SCORE:
        return Recommendation.BUY_AND_HOLD
    if total_score >= SHORT_TERM_WATCH_MIN_SCORE:
        return Recommendation.SHORT_TERM_WATCH
    return Recommendation.ON_WATCH


def should_trigger_alert(total_score: int, alert_sent: bool) -> bool:
    return total_score >= ALERT_MIN_SCORE and not alert_sent
