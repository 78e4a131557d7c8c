"""Invariants every produced `ImportSummary` must satisfy.

A violation means the orchestrator miscounted or forgot a message. It is a
bug, never a user error, and surfaces as `ImportSummaryError`.
"""

from __future__ import annotations

from typing import Iterable

from mindflow.errors import ErrorCode, ImportSummaryError
from mindflow.session import ImportSummary, MessageLevel


def validate_import_summary(
    summary: ImportSummary,
    *,
    cancelled: bool = False,
    failed_map_ids: Iterable[str] = (),
) -> None:
    """Check a summary's counts and messages.

    Raises:
        ImportSummaryError: With `IMPORT_SUMMARY_TOTAL_MISMATCH` if the
            counts do not add up, `IMPORT_SUMMARY_CANCEL_WARNING_MISSING` if
            a cancelled session lacks a cancellation warning, or
            `IMPORT_SUMMARY_FAILED_MESSAGE_MISSING` if a failed map has no
            error message.
    """
    counted = summary.succeeded + summary.skipped + summary.failed
    if summary.total_processed != counted:
        raise ImportSummaryError(
            ErrorCode.IMPORT_SUMMARY_TOTAL_MISMATCH,
            f"Summary total {summary.total_processed} does not equal "
            f"succeeded + skipped + failed ({counted})",
            field="totalProcessed",
        )

    if cancelled and not any(
        message.level == MessageLevel.WARNING and "cancel" in message.detail.lower() for message in summary.messages
    ):
        raise ImportSummaryError(
            ErrorCode.IMPORT_SUMMARY_CANCEL_WARNING_MISSING,
            "Cancelled import summary must include a cancellation warning",
            field="messages",
        )

    error_ids = {message.map_id for message in summary.messages if message.level == MessageLevel.ERROR}
    for map_id in failed_map_ids:
        if map_id not in error_ids:
            raise ImportSummaryError(
                ErrorCode.IMPORT_SUMMARY_FAILED_MESSAGE_MISSING,
                f"Failed map '{map_id}' has no error message in the summary",
                field="messages",
            )
