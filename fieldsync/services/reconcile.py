"""Inventory reconciliation for completed jobs.

``plan_reconciliation`` decides what a completion does to stock and is pure.
``reconcile`` locks the job, applies the plan to the warehouse counters and
inventory items, and flips ``inventory_processed`` in the same transaction.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models.functions import Lower, Trim
from django.utils import timezone

from fieldsync.models import InventoryItem, Job, WarehouseStock
from fieldsync.utils.quantities import as_quantity, q
from .errors import NotFound

logger = logging.getLogger(__name__)

FOAM_KEYS = ("openCellSets", "closedCellSets")


def normalize_name(name) -> str:
    return (name or "").strip().lower()


def item_key(item: dict):
    key = item.get("warehouseItemId") or item.get("id")
    return str(key) if key else None


def validate_materials(doc, label="actuals") -> dict:
    """Check the numeric parts of a materials/actuals document."""
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ValidationError({label: "Must be an object."})
    for key in FOAM_KEYS:
        as_quantity(doc.get(key), f"{label}.{key}")
    inventory = doc.get("inventory") or []
    if not isinstance(inventory, list):
        raise ValidationError({f"{label}.inventory": "Must be a list."})
    for entry in inventory:
        if not isinstance(entry, dict):
            raise ValidationError({f"{label}.inventory": "Items must be objects."})
        as_quantity(entry.get("quantity"), f"{label}.inventory.quantity")
    return doc


@dataclass
class ItemDelta:
    key: str | None
    name: str
    delta: float
    unit: str = ""


@dataclass
class ReconciliationPlan:
    open_cell_delta: float = 0.0
    closed_cell_delta: float = 0.0
    # change to cumulative usage: new actual minus previously counted actual
    lifetime_open_cell: float = 0.0
    lifetime_closed_cell: float = 0.0
    items: list[ItemDelta] = field(default_factory=list)
    first_completion: bool = True

    @property
    def is_noop(self):
        return (
            not self.open_cell_delta
            and not self.closed_cell_delta
            and not self.lifetime_open_cell
            and not self.lifetime_closed_cell
            and not self.items
        )


def already_reconciled(state: dict) -> bool:
    return (
        state.get("executionStatus") == Job.COMPLETED
        and bool(state.get("inventoryProcessed"))
    )


def _match_items(reference, actual):
    """Pair reference items with actual items: id first, then trimmed name."""
    pairs = []
    used = set()
    for ref in reference:
        ref_key = item_key(ref)
        match = None
        if ref_key:
            for idx, act in enumerate(actual):
                if idx not in used and item_key(act) == ref_key:
                    match = idx
                    break
        if match is None and normalize_name(ref.get("name")):
            for idx, act in enumerate(actual):
                if idx not in used and normalize_name(act.get("name")) == normalize_name(ref.get("name")):
                    match = idx
                    break
        if match is not None:
            used.add(match)
            pairs.append((ref, actual[match]))
        else:
            pairs.append((ref, None))
    extras = [act for idx, act in enumerate(actual) if idx not in used]
    return pairs, extras


def plan_reconciliation(previous_job_state: dict, new_actuals: dict) -> ReconciliationPlan:
    """Compute the stock movement for a job reaching (or re-reaching) Completed.

    First completion measures against the estimated ``materials``; a
    correction measures against the previously reconciled ``actuals``. A
    positive delta returns stock, a negative one consumes it.
    """
    new_actuals = new_actuals or {}
    first = not already_reconciled(previous_job_state)
    if first:
        reference = previous_job_state.get("materials") or {}
        counted = {}
    else:
        reference = previous_job_state.get("actuals") or {}
        counted = reference

    plan = ReconciliationPlan(first_completion=first)
    plan.open_cell_delta = q(as_quantity(reference.get("openCellSets")) - as_quantity(new_actuals.get("openCellSets")))
    plan.closed_cell_delta = q(as_quantity(reference.get("closedCellSets")) - as_quantity(new_actuals.get("closedCellSets")))
    plan.lifetime_open_cell = q(as_quantity(new_actuals.get("openCellSets")) - as_quantity(counted.get("openCellSets")))
    plan.lifetime_closed_cell = q(as_quantity(new_actuals.get("closedCellSets")) - as_quantity(counted.get("closedCellSets")))

    pairs, extras = _match_items(
        list(reference.get("inventory") or []), list(new_actuals.get("inventory") or [])
    )
    for ref, act in pairs:
        diff = q(as_quantity(ref.get("quantity")) - (as_quantity(act.get("quantity")) if act else 0.0))
        if diff:
            plan.items.append(ItemDelta(item_key(ref), ref.get("name") or "", diff, ref.get("unit") or ""))
    for act in extras:
        qty = as_quantity(act.get("quantity"))
        if qty > 0:
            plan.items.append(ItemDelta(item_key(act), act.get("name") or "", q(-qty), act.get("unit") or ""))
    return plan


def plan_deduction(previously_deducted: dict | None, materials: dict) -> ReconciliationPlan:
    """Stock movement for issuing a work order's estimated materials.

    Re-issuing only moves the difference against what the earlier issue
    already took out. Estimates never count toward lifetime usage.
    """
    plan = plan_reconciliation({"materials": previously_deducted or {}}, materials)
    plan.lifetime_open_cell = 0.0
    plan.lifetime_closed_cell = 0.0
    return plan


def _find_item(org, delta: ItemDelta):
    """Resolve an item row within the org by uid, falling back to its name."""
    qs = InventoryItem.objects.select_for_update().filter(organization=org)
    if delta.key:
        item = qs.filter(uid=delta.key).first()
        if item:
            return item
    name = normalize_name(delta.name)
    if not name:
        return None
    item = (
        qs.annotate(norm_name=Lower(Trim("name")))
        .filter(norm_name=name)
        .order_by("pk")
        .first()
    )
    if item:
        logger.warning(
            "Inventory item %r matched by name for org %s (no stable id)",
            delta.name,
            org.pk,
        )
    return item


def apply_plan(org, plan: ReconciliationPlan):
    """Write a plan to the org's warehouse and items. Caller holds the transaction."""
    now = timezone.now()
    warehouse, _ = WarehouseStock.objects.select_for_update().get_or_create(organization=org)
    if plan.open_cell_delta or plan.closed_cell_delta or plan.lifetime_open_cell or plan.lifetime_closed_cell:
        warehouse.open_cell_sets = q(max(0.0, warehouse.open_cell_sets + plan.open_cell_delta))
        warehouse.closed_cell_sets = q(max(0.0, warehouse.closed_cell_sets + plan.closed_cell_delta))
        warehouse.lifetime_open_cell = q(max(0.0, warehouse.lifetime_open_cell + plan.lifetime_open_cell))
        warehouse.lifetime_closed_cell = q(max(0.0, warehouse.lifetime_closed_cell + plan.lifetime_closed_cell))
        warehouse.last_modified = now
        warehouse.save(update_fields=[
            "open_cell_sets",
            "closed_cell_sets",
            "lifetime_open_cell",
            "lifetime_closed_cell",
            "last_modified",
        ])

    for delta in sorted(plan.items, key=lambda d: (d.key or "", normalize_name(d.name))):
        item = _find_item(org, delta)
        if item is None:
            logger.warning(
                "No inventory item for %r (id=%s) in org %s; skipped",
                delta.name,
                delta.key,
                org.pk,
            )
            continue
        item.quantity = q(max(0.0, item.quantity + delta.delta))
        item.last_modified = now
        item.save(update_fields=["quantity", "last_modified"])
    return warehouse


def lock_job(org, job_uid) -> Job:
    try:
        return (
            Job.objects.select_for_update()
            .select_related("customer")
            .get(organization=org, uid=job_uid)
        )
    except Job.DoesNotExist:
        raise NotFound()


@transaction.atomic
def reconcile(org, job_uid: str, actuals: dict, execution_status: str = Job.COMPLETED):
    """Apply a job's field-reported actuals to inventory exactly once.

    Returns ``(job, plan)``; ``plan`` is ``None`` when no stock moved because
    the status is not Completed.
    """
    validate_materials(actuals)
    job = lock_job(org, job_uid)
    now = timezone.now()

    if execution_status != Job.COMPLETED:
        if job.is_completed:
            logger.info("Job %s already completed; %s ignored", job.uid, execution_status)
            return job, None
        job.actuals = copy.deepcopy(actuals)
        job.execution_status = execution_status
        job.last_modified = now
        job.save(update_fields=["actuals", "execution_status", "last_modified"])
        return job, None

    previous = {
        "executionStatus": job.execution_status,
        "inventoryProcessed": job.inventory_processed,
        "materials": job.materials,
        "actuals": job.actuals,
    }
    plan = plan_reconciliation(previous, actuals)
    if plan.is_noop and not plan.first_completion:
        logger.info("Job %s re-completed with unchanged actuals; nothing to apply", job.uid)
    else:
        apply_plan(org, plan)
        logger.info(
            "Reconciled job %s (%s): OC %+.4f CC %+.4f, %d item adjustments",
            job.uid,
            "first completion" if plan.first_completion else "correction",
            plan.open_cell_delta,
            plan.closed_cell_delta,
            len(plan.items),
        )

    job.actuals = copy.deepcopy(actuals)
    job.execution_status = Job.COMPLETED
    job.inventory_processed = True
    job.last_modified = now
    job.save(update_fields=["actuals", "execution_status", "inventory_processed", "last_modified"])
    return job, plan
