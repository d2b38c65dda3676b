"""Conflict resolution between a stored job and a device's copy of it.

Everything here works on wire-format dicts (camelCase keys, display-string
statuses) and touches no storage, so the rules can be exercised without a
database. The gateway loads stored jobs, calls into this module and persists
what comes back.
"""
from __future__ import annotations

import copy
from typing import Iterable

from django.core.exceptions import ValidationError

from fieldsync.models import Job

STATUS_ALIASES = {
    "WorkOrder": Job.WORK_ORDER,
    "NotStarted": Job.NOT_STARTED,
    "InProgress": Job.IN_PROGRESS,
}
JOB_STATUSES = {value for value, _ in Job.STATUS_CHOICES}
EXECUTION_STATUSES = {value for value, _ in Job.EXECUTION_CHOICES}

# generated documents the server owns once they exist
DOCUMENT_KEYS = ("pdfLink", "workOrderSheetUrl")


def normalize_status(value, allowed, field):
    if value is None or value == "":
        return None
    value = STATUS_ALIASES.get(value, value)
    if value not in allowed:
        raise ValidationError({field: f"Unknown value {value!r}."})
    return value


def normalize_job(doc: dict) -> dict:
    """Return a copy of ``doc`` with enum spellings mapped to display strings."""
    if not isinstance(doc, dict):
        raise ValidationError("Job payload must be an object.")
    if not doc.get("id"):
        raise ValidationError({"id": "Job id is required."})
    out = dict(doc)
    out["id"] = str(doc["id"])
    status = normalize_status(doc.get("status"), JOB_STATUSES, "status")
    if status:
        out["status"] = status
    else:
        out.pop("status", None)
    execution = normalize_status(
        doc.get("executionStatus"), EXECUTION_STATUSES, "executionStatus"
    )
    if execution:
        out["executionStatus"] = execution
    else:
        out.pop("executionStatus", None)
    return out


def is_completed(doc) -> bool:
    return bool(doc) and doc.get("executionStatus") == Job.COMPLETED


def is_paid(doc) -> bool:
    return bool(doc) and doc.get("status") == Job.PAID


def resolve(stored: dict | None, incoming: dict) -> dict:
    """Merge one incoming job over its stored twin.

    Server-decided facts win: completion state, payment and its frozen
    financials, generated document links and site photos. Everything else
    comes from the device. The device's ``lastModified`` is dropped; the
    store stamps its own clock on write.
    """
    merged = copy.deepcopy(incoming)
    merged.pop("lastModified", None)
    if stored is None:
        return merged

    if is_completed(stored) and not is_completed(incoming):
        merged["executionStatus"] = stored["executionStatus"]
        merged["actuals"] = copy.deepcopy(stored.get("actuals"))
        merged["inventoryProcessed"] = bool(stored.get("inventoryProcessed"))
    elif is_completed(stored) and not incoming.get("actuals"):
        # a completion without numbers is a stale copy, not a correction to zero
        merged["actuals"] = copy.deepcopy(stored.get("actuals"))

    if is_paid(stored):
        merged["status"] = Job.PAID
        merged["financials"] = copy.deepcopy(stored.get("financials"))

    for key in DOCUMENT_KEYS:
        if stored.get(key) and not incoming.get(key):
            merged[key] = stored[key]

    if stored.get("sitePhotos") and not incoming.get("sitePhotos"):
        merged["sitePhotos"] = list(stored["sitePhotos"])

    if stored.get("inventoryProcessed"):
        merged["inventoryProcessed"] = True

    return merged


def revert_uncompleted(
    stored_by_uid: dict[str, dict], incoming: Iterable[dict]
) -> tuple[list[dict], list[str]]:
    """Replace every incoming job that tries to un-complete a stored job.

    Returns the rewritten batch and the ids that were reverted.
    """
    result, reverted = [], []
    for doc in incoming:
        stored = stored_by_uid.get(doc["id"])
        if stored is not None and is_completed(stored) and not is_completed(doc):
            result.append(copy.deepcopy(stored))
            reverted.append(doc["id"])
        else:
            result.append(doc)
    return result, reverted


def merge_batch(
    stored_by_uid: dict[str, dict], incoming: Iterable[dict]
) -> dict[str, dict]:
    """Merge a batch keyed by job id.

    Stored jobs missing from the batch come back untouched, so a device that
    only pushes some of its jobs never erases the others.
    """
    merged = {uid: copy.deepcopy(doc) for uid, doc in stored_by_uid.items()}
    for doc in incoming:
        uid = doc["id"]
        merged[uid] = resolve(stored_by_uid.get(uid), doc)
    return merged
