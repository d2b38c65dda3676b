"""Material usage log: one row per consumed material per job."""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from fieldsync.models import MaterialUsageLog
from fieldsync.utils.timestamps import parse_since
from fieldsync.utils.quantities import as_quantity, q

logger = logging.getLogger(__name__)

OPEN_CELL_LABEL = "Open Cell Foam"
CLOSED_CELL_LABEL = "Closed Cell Foam"
FOAM_UNIT = "Sets"
LOG_TYPES = (MaterialUsageLog.ESTIMATED, MaterialUsageLog.ACTUAL)


def _log_date(value):
    if not value:
        return timezone.now()
    try:
        return parse_since(value) or timezone.now()
    except ValidationError:
        logger.warning("Unparseable usage date %r; using server time", value)
        return timezone.now()


def usage_lines(materials: dict):
    """Yield ``(material_name, quantity, unit)`` for every positive quantity."""
    materials = materials or {}
    oc = as_quantity(materials.get("openCellSets"), "openCellSets")
    cc = as_quantity(materials.get("closedCellSets"), "closedCellSets")
    if oc > 0:
        yield OPEN_CELL_LABEL, q(oc), FOAM_UNIT
    if cc > 0:
        yield CLOSED_CELL_LABEL, q(cc), FOAM_UNIT
    for item in materials.get("inventory") or []:
        qty = as_quantity(item.get("quantity"), "inventory.quantity")
        if qty > 0:
            yield item.get("name") or "Unnamed item", q(qty), item.get("unit") or "ea"


def log_usage(
    org,
    job_uid: str,
    materials: dict,
    logged_by: str,
    log_type: str,
    customer_name: str = "",
    date=None,
) -> list[MaterialUsageLog]:
    """Append one usage entry per consumed material."""
    if log_type not in LOG_TYPES:
        raise ValidationError({"logType": f"Unknown log type {log_type!r}."})
    when = _log_date(date)
    entries = [
        MaterialUsageLog(
            organization=org,
            job_uid=job_uid,
            date=when,
            customer_name=customer_name or "",
            material_name=name[:200],
            quantity=qty,
            unit=unit[:30],
            logged_by=(logged_by or "")[:150],
            log_type=log_type,
        )
        for name, qty, unit in usage_lines(materials)
    ]
    if entries:
        MaterialUsageLog.objects.bulk_create(entries)
    logger.debug("Logged %d %s usage entries for job %s", len(entries), log_type, job_uid)
    return entries


@transaction.atomic
def replace_with_actuals(
    org,
    job_uid: str,
    actuals: dict,
    logged_by: str,
    customer_name: str = "",
    date=None,
) -> list[MaterialUsageLog]:
    """Swap a job's estimated and earlier actual entries for fresh actual ones."""
    deleted, _ = MaterialUsageLog.objects.filter(
        organization=org,
        job_uid=job_uid,
        log_type__in=LOG_TYPES,
    ).delete()
    if deleted:
        logger.info("Superseded %d usage entries for job %s", deleted, job_uid)
    return log_usage(
        org,
        job_uid,
        actuals,
        logged_by,
        MaterialUsageLog.ACTUAL,
        customer_name=customer_name,
        date=date,
    )


@transaction.atomic
def replace_estimates(org, job_uid, materials, logged_by, customer_name=""):
    MaterialUsageLog.objects.filter(
        organization=org,
        job_uid=job_uid,
        log_type=MaterialUsageLog.ESTIMATED,
    ).delete()
    return log_usage(
        org,
        job_uid,
        materials,
        logged_by,
        MaterialUsageLog.ESTIMATED,
        customer_name=customer_name,
    )
