"""Signal quality filtering before candidates enter the pipeline."""

from __future__ import annotations

from trendintel.ingest.candidates import CandidateSignal
from trendintel.sources import SourceTable


class QualityFilter:
    """Pure accept/reject predicate over derived candidates.

    Rules, in order:
    1. Count signal types present (meme, political, earnings).
    2. With fewer than the required types, accept-through on a single strong
       signal (meme, unusual volume, political trade, earnings-based);
       otherwise reject unless confidence clears the high-confidence exception.
    3. High-noise sources need a per-asset-kind mention floor and cannot pass
       on a weak meme score alone.
    4. Global confidence floor.
    """

    def __init__(self, table: SourceTable) -> None:
        self._table = table
        self._thresholds = table.quality

    def signal_types(self, candidate: CandidateSignal) -> int:
        t = self._thresholds
        return sum(
            (
                candidate.meme_score >= t.meme_type_floor,
                candidate.political_score >= t.political_type_floor,
                candidate.earnings_score >= t.earnings_type_floor,
            )
        )

    def accept(self, candidate: CandidateSignal) -> bool:
        t = self._thresholds

        if self.signal_types(candidate) < t.min_signal_types:
            if candidate.meme_score >= t.meme_type_floor:
                return True
            if candidate.unusual_volume:
                return True
            if candidate.is_political_trade or candidate.is_earnings_based:
                return True
            if candidate.confidence < t.high_confidence_exception:
                return False

        min_mentions = self._table.min_mentions(candidate.source_name, candidate.asset_kind)
        if min_mentions is not None:
            if candidate.mentions < min_mentions:
                return False
            if (
                candidate.meme_score < t.meme_type_floor
                and candidate.political_score == 0
                and candidate.earnings_score == 0
            ):
                return False

        if candidate.confidence < t.global_confidence_floor:
            return False

        return True
