"""Deduplicate candidates before they are persisted."""

from __future__ import annotations

from collections.abc import Iterable

from trendintel.ingest.candidates import CandidateSignal


def _rank_key(candidate: CandidateSignal) -> tuple:
    return (
        -candidate.confidence,
        candidate.symbol,
        candidate.source_name,
        -candidate.observed_at.timestamp(),
        candidate.summary,
    )


def dedupe_candidates(candidates: Iterable[CandidateSignal]) -> list[CandidateSignal]:
    """Keep the highest-confidence candidate per (symbol, source).

    Ordering is fully determined by the candidates themselves, so results do
    not depend on which adapter finished first.
    """
    seen: set[tuple[str, str]] = set()
    kept: list[CandidateSignal] = []

    for candidate in sorted(candidates, key=_rank_key):
        key = (candidate.symbol, candidate.source_name)
        if key in seen:
            continue
        seen.add(key)
        kept.append(candidate)

    return kept
