"""
Offset Recalculator - Keep pending suggestion offsets valid across text edits.

Removal of the flat span [from_pos, to_pos) is handled case by case for every
pending suggestion:

| Case                       | Action                                      |
|----------------------------|---------------------------------------------|
| Fully inside removal       | invalidated                                 |
| Spans the entire removal   | invalidated (partial repair is ambiguous)   |
| Tail clipped               | end = from_pos, text keeps its head         |
| Head clipped               | start = from_pos, text keeps its tail       |
| Entirely after             | shifted left by the removed length          |
| Entirely before            | unchanged                                   |

Insertions are not shifted: any insertion invalidates every pending
suggestion and asks for a fresh batch, since deciding whether inserted text
lands inside, outside or on the boundary of a range is where off-by-one
corruption comes from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from .models import Suggestion, SuggestionStatus

logger = logging.getLogger(__name__)


@dataclass
class RecalculationReport:
    """What an edit did to the pending suggestions."""

    shifted: List[str] = field(default_factory=list)
    clipped: List[str] = field(default_factory=list)
    invalidated: List[str] = field(default_factory=list)
    needs_refresh: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.shifted or self.clipped or self.invalidated)

    def to_dict(self):
        return {
            "shifted": list(self.shifted),
            "clipped": list(self.clipped),
            "invalidated": list(self.invalidated),
            "needs_refresh": self.needs_refresh,
        }


def on_text_removed(
    suggestions: Iterable[Suggestion],
    from_pos: int,
    to_pos: int,
) -> RecalculationReport:
    """
    Adjust pending suggestions in place after [from_pos, to_pos) was deleted.

    Invalidated suggestions are only marked; dropping them is the
    registry's job.

    Args:
        suggestions: Suggestions to adjust (terminal ones are left alone)
        from_pos: Flat start of the removed span
        to_pos: Flat end of the removed span (exclusive)

    Returns:
        RecalculationReport listing affected ids
    """
    report = RecalculationReport()
    removed = to_pos - from_pos
    if from_pos < 0 or removed <= 0:
        return report

    for s in suggestions:
        if not s.is_pending:
            continue

        if s.end <= from_pos:
            continue

        if s.start >= to_pos:
            s.start -= removed
            s.end -= removed
            report.shifted.append(s.id)
        elif s.start >= from_pos and s.end <= to_pos:
            s.status = SuggestionStatus.INVALIDATED
            report.invalidated.append(s.id)
        elif s.start < from_pos and s.end > to_pos:
            s.status = SuggestionStatus.INVALIDATED
            report.invalidated.append(s.id)
        elif s.start < from_pos:
            # Tail clipped: from_pos < s.end <= to_pos
            s.text = s.text[: from_pos - s.start]
            s.end = from_pos
            report.clipped.append(s.id)
        else:
            # Head clipped: from_pos <= s.start < to_pos < s.end
            s.text = s.text[to_pos - s.start:]
            s.start = from_pos
            s.end -= removed
            report.clipped.append(s.id)

    if report.changed:
        logger.debug(
            f"Removal {from_pos}-{to_pos}: shifted={len(report.shifted)} "
            f"clipped={len(report.clipped)} invalidated={len(report.invalidated)}"
        )
    return report


def on_text_inserted(
    suggestions: Iterable[Suggestion],
    position: int,
    inserted_text: str,
) -> RecalculationReport:
    """
    Invalidate every pending suggestion after an insertion.

    Returns:
        RecalculationReport with needs_refresh set when anything was inserted
    """
    report = RecalculationReport()
    if not inserted_text:
        return report

    for s in suggestions:
        if s.is_pending:
            s.status = SuggestionStatus.INVALIDATED
            report.invalidated.append(s.id)
    report.needs_refresh = True
    logger.debug(
        f"Insertion of {len(inserted_text)} char(s) at {position} invalidated "
        f"{len(report.invalidated)} pending suggestion(s)"
    )
    return report
