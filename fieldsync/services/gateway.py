"""Entry points a device (or the admin app) calls.

Each operation takes an ``AuthContext`` and runs in one transaction. Lock
timeouts surface as a retryable ``SyncConflict``; lookups are always scoped
to the caller's organization.
"""
from __future__ import annotations

import copy
import functools
import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import OperationalError, transaction
from django.utils import timezone

from fieldsync.models import (
    Customer,
    Equipment,
    InventoryItem,
    Job,
    MaterialUsageLog,
    Organization,
    ProfitLossEntry,
    UserProfile,
    WarehouseStock,
)
from fieldsync.signals import ensure_org_rows
from fieldsync.utils.quantities import as_quantity, q
from . import delta, merge, usage
from .errors import Forbidden, NotFound, SyncConflict
from .financials import compute_financials
from .reconcile import (
    apply_plan,
    lock_job,
    normalize_name,
    plan_deduction,
    reconcile,
    validate_materials,
)

logger = logging.getLogger(__name__)

LOCK_ERROR_MARKERS = ("lock wait timeout", "deadlock", "database is locked", "database table is locked")


@dataclass(frozen=True)
class AuthContext:
    organization_id: str
    role: str
    username: str = ""

    @property
    def is_admin(self):
        return self.role == UserProfile.ADMIN


def lock_guard(func):
    """Turn a lock timeout inside ``func``'s transaction into a retryable conflict."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OperationalError as exc:
            text = str(exc).lower()
            if any(marker in text for marker in LOCK_ERROR_MARKERS):
                logger.warning("%s hit a lock timeout: %s", func.__name__, exc)
                raise SyncConflict() from exc
            raise

    return wrapper


def _organization(ctx: AuthContext) -> Organization:
    try:
        return Organization.objects.get(pk=ctx.organization_id)
    except (Organization.DoesNotExist, ValidationError, ValueError):
        raise NotFound()


def _require_admin(ctx: AuthContext):
    if not ctx.is_admin:
        raise Forbidden()


def _job_uid(job_uid) -> str:
    if not job_uid or not isinstance(job_uid, str):
        raise ValidationError({"jobId": "Job id is required."})
    return job_uid


#
# ——————————————————————————————————————
# Pull
# ——————————————————————————————————————
#
def sync_down(ctx: AuthContext, last_sync=None) -> dict:
    org = _organization(ctx)
    return delta.pull(org, last_sync)


#
# ——————————————————————————————————————
# Push
# ——————————————————————————————————————
#
def _settings_payload(state):
    data = dict(state.get("settings") or {})
    for key in ("companyProfile", "costs", "yields", "expenses", "pricingMode",
                "sqFtRates", "jobNotes", "purchaseOrders"):
        if key in state:
            data[key] = state[key]
    profile = data.get("companyProfile")
    if isinstance(profile, dict):
        logo = profile.get("logoUrl")
        if isinstance(logo, str) and len(logo) > settings.FIELDSYNC_MAX_LOGO_URL:
            logger.warning("Logo URL of %d chars dropped on sync", len(logo))
            data["companyProfile"] = dict(profile, logoUrl="")
    return data


def _upsert_settings(org, data):
    if not data:
        return
    settings_obj, _ = ensure_org_rows(org)
    settings_obj.apply_wire(data)
    settings_obj.save()


def _signed(value, label):
    if isinstance(value, bool):
        raise ValidationError({label: "Must be a number."})
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        raise ValidationError({label: "Must be a number."})


def _upsert_warehouse(org, warehouse_data):
    counts = {k: warehouse_data[k] for k in ("openCellSets", "closedCellSets") if k in warehouse_data}
    if not counts:
        return
    _, warehouse = ensure_org_rows(org)
    warehouse = WarehouseStock.objects.select_for_update().get(pk=warehouse.pk)
    for key, attr in (("openCellSets", "open_cell_sets"), ("closedCellSets", "closed_cell_sets")):
        if key in counts:
            # admin edits may go negative; that is a shortage marker
            setattr(warehouse, attr, q(_signed(counts[key], f"warehouse.{key}")))
    warehouse.last_modified = timezone.now()
    warehouse.save(update_fields=["open_cell_sets", "closed_cell_sets", "last_modified"])


def _require_uid(doc, kind):
    if not isinstance(doc, dict) or not doc.get("id"):
        raise ValidationError({kind: "Every record needs an id."})
    return str(doc["id"])


def _upsert_items(org, items):
    for doc in items:
        uid = _require_uid(doc, "inventoryItems")
        item = InventoryItem.objects.filter(organization=org, uid=uid).first()
        if item is None:
            item = InventoryItem(organization=org, uid=uid)
        item.name = doc.get("name") or item.name or "Unnamed item"
        item.quantity = q(_signed(doc.get("quantity"), "inventoryItems.quantity"))
        item.unit = doc.get("unit") or item.unit or "units"
        item.unit_cost = q(as_quantity(doc.get("unitCost"), "unitCost"))
        item.last_modified = timezone.now()
        item.save()


def _upsert_equipment(org, equipment):
    allowed = {value for value, _ in Equipment.STATUS_CHOICES}
    for doc in equipment:
        uid = _require_uid(doc, "equipment")
        status = doc.get("status") or Equipment.AVAILABLE
        if status not in allowed:
            raise ValidationError({"equipment.status": f"Unknown value {status!r}."})
        row = Equipment.objects.filter(organization=org, uid=uid).first()
        if row is None:
            row = Equipment(organization=org, uid=uid)
        row.name = doc.get("name") or row.name or ""
        row.status = status
        row.data = {k: v for k, v in doc.items() if k not in ("id", "name", "status", "lastModified")}
        row.last_modified = timezone.now()
        row.save()


def _upsert_customers(org, customers):
    allowed = {value for value, _ in Customer.STATUS_CHOICES}
    for doc in customers:
        uid = _require_uid(doc, "customers")
        if doc.get("status") and doc["status"] not in allowed:
            raise ValidationError({"customers.status": f"Unknown value {doc['status']!r}."})
        row = Customer.objects.filter(organization=org, uid=uid).first()
        if row is None:
            row = Customer(organization=org, uid=uid)
        row.apply_wire(doc)
        row.last_modified = timezone.now()
        row.save()


def _customer_for(org, doc):
    ref = doc.get("customerId")
    if not ref and isinstance(doc.get("customer"), dict):
        ref = doc["customer"].get("id")
    if not ref:
        return None
    return Customer.objects.filter(organization=org, uid=str(ref)).first()


def _validate_job(doc):
    doc = merge.normalize_job(doc)
    validate_materials(doc.get("materials"), "materials")
    validate_materials(doc.get("actuals"), "actuals")
    return doc


def _freeze_payment(org, job, now):
    settings_obj, _ = ensure_org_rows(org)
    item_costs = {}
    for uid, name, unit_cost in InventoryItem.objects.filter(organization=org).values_list("uid", "name", "unit_cost"):
        item_costs[uid] = unit_cost
        item_costs.setdefault(normalize_name(name), unit_cost)
    financials = compute_financials(job.to_wire(), settings_obj.costs, item_costs)
    job.financials = financials
    job.status = Job.PAID
    job.last_modified = now
    job.save(update_fields=["financials", "status", "last_modified"])
    ProfitLossEntry.objects.get_or_create(
        organization=org,
        job_uid=job.uid,
        defaults=dict(
            customer_name=job.customer_name[:200],
            invoice_number=job.invoice_number,
            revenue=financials["revenue"],
            chemical_cost=financials["chemicalCost"],
            labor_cost=financials["laborCost"],
            inventory_cost=financials["inventoryCost"],
            misc_cost=financials["miscCost"],
            total_cogs=financials["totalCOGS"],
            net_profit=financials["netProfit"],
            margin=financials["margin"],
            paid_at=now,
        ),
    )
    logger.info("Job %s paid: revenue %.2f net %.2f", job.uid, financials["revenue"], financials["netProfit"])
    return job


def _complete(org, ctx, job, actuals):
    job, plan = reconcile(org, job.uid, actuals, Job.COMPLETED)
    if plan is not None and (plan.first_completion or not plan.is_noop):
        actuals = job.actuals or {}
        usage.replace_with_actuals(
            org,
            job.uid,
            actuals,
            logged_by=actuals.get("completedBy") or ctx.username or "Crew",
            customer_name=job.customer_name,
            date=actuals.get("completionDate"),
        )
    return job


def _rededuct(org, ctx, row, deducted):
    """Keep an issued work order's stock deduction in line with edited materials."""
    plan = plan_deduction(deducted, row.materials or {})
    if plan.is_noop:
        return
    apply_plan(org, plan)
    usage.replace_estimates(
        org,
        row.uid,
        row.materials or {},
        logged_by=ctx.username or "Crew",
        customer_name=row.customer_name,
    )
    logger.info("Work order %s materials edited on push; deduction adjusted", row.uid)


def _persist_jobs(org, ctx, incoming):
    uids = sorted({doc["id"] for doc in incoming})
    stored_rows = {
        job.uid: job
        for job in Job.objects.select_for_update()
        .select_related("customer")
        .filter(organization=org, uid__in=uids)
        .order_by("uid")
    }
    stored_docs = {uid: job.to_wire() for uid, job in stored_rows.items()}

    incoming, reverted = merge.revert_uncompleted(stored_docs, incoming)
    if reverted:
        logger.warning("Kept server completion for jobs %s on push from %s", reverted, ctx.username)
    merged = merge.merge_batch(stored_docs, incoming)

    for uid in uids:
        doc = merged[uid]
        row = stored_rows.get(uid)
        stored = stored_docs.get(uid)
        if row is None:
            row = Job(organization=org, uid=uid)
        was = {
            "execution_status": row.execution_status,
            "actuals": row.actuals,
            "materials": copy.deepcopy(row.materials),
            "inventory_processed": row.inventory_processed,
            "materials_deducted": row.materials_deducted,
            "status": row.status,
            "financials": row.financials,
        }
        row.apply_wire(doc)
        row.customer = _customer_for(org, doc)
        # server-owned flags never come from a device
        row.inventory_processed = was["inventory_processed"]
        row.materials_deducted = was["materials_deducted"]

        reconciled = stored is not None and merge.is_completed(stored) and stored.get("inventoryProcessed")
        needs_rededuction = (
            was["materials_deducted"]
            and not reconciled
            and (row.materials or {}) != (was["materials"] or {})
        )
        needs_completion = merge.is_completed(doc) and not (
            reconciled and doc.get("actuals") == stored.get("actuals")
        )
        if needs_completion:
            row.execution_status = was["execution_status"]
            row.actuals = was["actuals"]
        needs_payment = doc.get("status") == Job.PAID and was["status"] != Job.PAID
        if needs_payment:
            row.status = was["status"]
            row.financials = was["financials"]
            if not ctx.is_admin:
                logger.warning("Ignoring payment of job %s pushed by %s role %s", uid, ctx.username, ctx.role)
                needs_payment = False

        row.last_modified = timezone.now()
        row.save()

        if needs_rededuction:
            _rededuct(org, ctx, row, was["materials"])
        if needs_completion:
            _complete(org, ctx, row, doc.get("actuals") or {})
            row = lock_job(org, uid)
        if needs_payment:
            _freeze_payment(org, row, timezone.now())
    return len(uids), reverted


@lock_guard
@transaction.atomic
def sync_up(ctx: AuthContext, state: dict) -> dict:
    """Apply a device's full state.

    Jobs go through the merge rules; a job the device completed (or, for an
    admin, paid) is routed through the same reconciliation and payment paths
    as the direct calls. Edited materials on an issued work order adjust its
    stock deduction. Settings, customers and equipment are last-writer-wins.
    Warehouse counts and inventory items are stock, and only an admin may
    write them.
    """
    if not isinstance(state, dict):
        raise ValidationError("State must be an object.")
    org = _organization(ctx)

    jobs = state.get("jobs")
    if jobs is None:
        jobs = state.get("savedEstimates") or []
    if not isinstance(jobs, list):
        raise ValidationError({"jobs": "Must be a list."})
    incoming = [_validate_job(doc) for doc in jobs]
    if len({doc["id"] for doc in incoming}) != len(incoming):
        raise ValidationError({"jobs": "Duplicate job ids in one push."})

    _upsert_settings(org, _settings_payload(state))

    warehouse_data = state.get("warehouse") or {}
    items = state.get("inventoryItems")
    if items is None:
        items = warehouse_data.get("items")
    if ctx.is_admin:
        _upsert_warehouse(org, warehouse_data)
        if items:
            _upsert_items(org, items)
    elif warehouse_data or items:
        logger.info("Ignoring stock counts pushed by %s role %s", ctx.username, ctx.role)

    _upsert_customers(org, state.get("customers") or [])
    _upsert_equipment(org, state.get("equipment") or [])

    count, reverted = _persist_jobs(org, ctx, incoming)
    logger.info("Push from %s for org %s: %d jobs", ctx.username, org.pk, count)
    return {
        "synced": True,
        "jobs": count,
        "reverted": reverted,
        "serverTimestamp": delta.watermark(),
    }


#
# ——————————————————————————————————————
# Job workflow
# ——————————————————————————————————————
#
@lock_guard
@transaction.atomic
def complete_job(ctx: AuthContext, job_uid: str, actuals: dict) -> Job:
    """Record a crew's completion: stock, idempotency flag and usage log together."""
    org = _organization(ctx)
    job = lock_job(org, _job_uid(job_uid))
    return _complete(org, ctx, job, actuals or {})


@lock_guard
@transaction.atomic
def mark_paid(ctx: AuthContext, job_uid: str) -> Job:
    _require_admin(ctx)
    org = _organization(ctx)
    job = lock_job(org, _job_uid(job_uid))
    if job.is_paid:
        return job
    return _freeze_payment(org, job, timezone.now())


@lock_guard
@transaction.atomic
def start_job(ctx: AuthContext, job_uid: str, started_by: str = "") -> Job:
    org = _organization(ctx)
    job = lock_job(org, _job_uid(job_uid))
    if job.is_completed:
        return job
    now = timezone.now()
    actuals = copy.deepcopy(job.actuals) or {}
    actuals["lastStartedAt"] = now.isoformat()
    actuals["startedBy"] = started_by or ctx.username
    job.actuals = actuals
    job.execution_status = Job.IN_PROGRESS
    job.last_modified = now
    job.save(update_fields=["actuals", "execution_status", "last_modified"])
    return job


@lock_guard
@transaction.atomic
def issue_work_order(ctx: AuthContext, job_uid: str, materials: dict | None = None) -> Job:
    """Turn an estimate into a work order and take its materials out of stock."""
    _require_admin(ctx)
    org = _organization(ctx)
    job = lock_job(org, _job_uid(job_uid))
    if job.is_completed or job.is_paid:
        raise SyncConflict("Job is already completed.", retryable=False)
    if materials is None:
        materials = copy.deepcopy(job.materials) or {}
    validate_materials(materials, "materials")

    plan = plan_deduction(job.materials if job.materials_deducted else None, materials)
    if not plan.is_noop:
        apply_plan(org, plan)

    job.materials = materials
    job.status = Job.WORK_ORDER
    job.materials_deducted = True
    job.last_modified = timezone.now()
    job.save(update_fields=["materials", "status", "materials_deducted", "last_modified"])
    usage.replace_estimates(
        org,
        job.uid,
        materials,
        logged_by=ctx.username or "Admin",
        customer_name=job.customer_name,
    )
    logger.info("Work order issued for job %s", job.uid)
    return job


@lock_guard
@transaction.atomic
def log_material_usage(
    ctx: AuthContext,
    job_uid: str,
    materials: dict,
    logged_by: str = "",
    log_type: str = MaterialUsageLog.ESTIMATED,
):
    org = _organization(ctx)
    job = lock_job(org, _job_uid(job_uid))
    validate_materials(materials, "materials")
    return usage.log_usage(
        org,
        job.uid,
        materials,
        logged_by or ctx.username or "Admin",
        log_type,
        customer_name=job.customer_name,
    )


@lock_guard
@transaction.atomic
def delete_job(ctx: AuthContext, job_uid: str) -> str:
    _require_admin(ctx)
    org = _organization(ctx)
    job = lock_job(org, _job_uid(job_uid))
    if job.is_paid:
        raise SyncConflict("Paid jobs cannot be deleted.", retryable=False)
    uid = job.uid
    job.delete()
    logger.info("Job %s deleted by %s", uid, ctx.username)
    return uid
