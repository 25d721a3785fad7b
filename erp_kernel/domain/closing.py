"""
Derived closing state.

Only "snapshot exists" (stored COUNTING) and CLOSED are persisted.  Whether a
month is in COUNTING or VARIANCE is computed here from the snapshot lines on
every read, so the stored status and the line data cannot drift apart.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from erp_kernel.domain.dtos import SnapshotLineInfo


class ClosingState(str, Enum):
    """Closing view of a month.

    DRAFT: no snapshot yet.
    COUNTING: snapshot exists and every count matches the system figure.
    VARIANCE: at least one line differs and is being annotated.
    CLOSED: terminal; the snapshot is the ledger baseline.
    """

    DRAFT = "DRAFT"
    COUNTING = "COUNTING"
    VARIANCE = "VARIANCE"
    CLOSED = "CLOSED"


def differing_lines(lines: Sequence[SnapshotLineInfo]) -> list[SnapshotLineInfo]:
    return [line for line in lines if line.difference_qty != 0]


def unexplained_lines(lines: Sequence[SnapshotLineInfo]) -> list[SnapshotLineInfo]:
    """Differing lines without a reason recorded."""
    return [
        line
        for line in differing_lines(lines)
        if not (line.difference_reason and line.difference_reason.strip())
    ]


def derive_closing_state(
    stored_status: str | None,
    lines: Sequence[SnapshotLineInfo],
) -> ClosingState:
    """Map stored status plus line data to the closing view."""
    if stored_status is None:
        return ClosingState.DRAFT
    if stored_status == ClosingState.CLOSED:
        return ClosingState.CLOSED
    if differing_lines(lines):
        return ClosingState.VARIANCE
    return ClosingState.COUNTING


def close_message(month: str, adjustment_line_count: int) -> str:
    if adjustment_line_count:
        return (
            f"{month} closed; adjustment created for "
            f"{adjustment_line_count} item(s)"
        )
    return f"{month} closed; no adjustment needed"
