"""Delta extraction: what changed for an organization since a watermark."""
from __future__ import annotations

import logging

from django.conf import settings
from django.db.models import Q

from fieldsync.models import Customer, Equipment, InventoryItem, Job, MaterialUsageLog
from fieldsync.signals import ensure_org_rows
from fieldsync.utils.timestamps import now_ms, parse_since

logger = logging.getLogger(__name__)


def changed_since(qs, since):
    """Rows never stamped, or stamped strictly after ``since``."""
    if since is None:
        return qs
    return qs.filter(Q(last_modified__isnull=True) | Q(last_modified__gt=since))


def watermark() -> int:
    """Server clock in epoch ms, held back by the commit overlap."""
    return now_ms() - settings.FIELDSYNC_WATERMARK_OVERLAP * 1000


def pull(org, since=None) -> dict:
    """Everything a device needs to catch up from its last watermark.

    ``serverTimestamp`` is read before any query and trails the clock by
    ``FIELDSYNC_WATERMARK_OVERLAP``, so a row stamped by a push that commits
    after this pull still shows up on the next one. Rows inside the overlap
    are sent again; devices upsert them by id.
    """
    server_ts = watermark()
    since_dt = parse_since(since)
    settings_obj, warehouse = ensure_org_rows(org)

    jobs = list(
        changed_since(Job.objects.filter(organization=org), since_dt)
        .select_related("customer")
        .order_by("created_at")
    )
    customers = changed_since(Customer.objects.filter(organization=org), since_dt)
    items = changed_since(InventoryItem.objects.filter(organization=org), since_dt)
    equipment = changed_since(Equipment.objects.filter(organization=org), since_dt)

    logs = MaterialUsageLog.objects.filter(organization=org)
    if since_dt is not None:
        # a changed job's log set may have been replaced wholesale
        logs = logs.filter(
            Q(created_at__gt=since_dt) | Q(job_uid__in=[j.uid for j in jobs])
        )

    payload = {
        "settings": settings_obj.to_wire(),
        "warehouse": warehouse.to_wire(),
        "inventoryItems": [i.to_wire() for i in items],
        "equipment": [e.to_wire() for e in equipment],
        "jobs": [j.to_wire() for j in jobs],
        "customers": [c.to_wire() for c in customers],
        "usageLogs": [entry.to_wire() for entry in logs.order_by("created_at")],
        "serverTimestamp": server_ts,
    }
    logger.debug(
        "Pull for org %s since %s: %d jobs, %d customers, %d items, %d logs",
        org.pk,
        since_dt,
        len(payload["jobs"]),
        len(payload["customers"]),
        len(payload["inventoryItems"]),
        len(payload["usageLogs"]),
    )
    return payload
