from __future__ import annotations

import logging
from typing import Dict, Optional

from .store import RecordStore, StoreError
from .taxonomy import DEFAULT_REVIEW_STATUS, REVIEW_STATUS_LABELS, REVIEW_STATUSES

logger = logging.getLogger(__name__)

REVIEW_CYCLE: Dict[str, str] = {
    "unreviewed": "in_progress",
    "in_progress": "done",
    "done": "unreviewed",
}


def normalize_review_status(current: Optional[str]) -> str:
    """Absent or unknown values read as unreviewed."""
    if current in REVIEW_STATUSES:
        return current
    return DEFAULT_REVIEW_STATUS


def next_review_status(current: Optional[str]) -> str:
    return REVIEW_CYCLE[normalize_review_status(current)]


def review_label(current: Optional[str]) -> str:
    return REVIEW_STATUS_LABELS[normalize_review_status(current)]


def apply_review_transition(store: RecordStore, table: str, record_id: str, next_status: str) -> None:
    """Persist ``next_status`` as the record's review status.

    The next status is computed by the caller from the value it displayed, so
    two views clicking at once simply race and the last write wins. Store
    failures are logged and re-raised untouched.
    """
    try:
        store.update(table, record_id, {"review_status": next_status})
    except StoreError:
        logger.warning("Review status update of %s/%s to %s failed", table, record_id, next_status)
        raise
    logger.info("Review status of %s/%s set to %s", table, record_id, next_status)
