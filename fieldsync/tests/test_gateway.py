import pytest
from django.db import OperationalError

from fieldsync.models import (
    Customer,
    Equipment,
    InventoryItem,
    Job,
    MaterialUsageLog,
    OrganizationSettings,
    ProfitLossEntry,
    UserProfile,
)
from fieldsync.services import gateway
from fieldsync.services.errors import Forbidden, NotFound, SyncConflict
from fieldsync.tests.helpers import make_item, make_job, set_stock, stock

pytestmark = pytest.mark.django_db


def job_doc(uid="job-1", **fields):
    doc = {
        "id": uid,
        "status": "Work Order",
        "executionStatus": "Not Started",
        "materials": {"openCellSets": 10, "closedCellSets": 0, "inventory": []},
        "totalValue": 5000,
        "customer": {"id": "cust-1", "name": "Jane Smith"},
    }
    doc.update(fields)
    return doc


# -- sync up -------------------------------------------------------------------

def test_push_upserts_crm_equipment_and_settings(admin_ctx, org):
    result = gateway.sync_up(admin_ctx, {
        "customers": [{"id": "cust-1", "name": "Jane Smith", "zip": "73301", "notes": "gate code 12"}],
        "equipment": [{"id": "rig-1", "name": "Graco E-30", "status": "In Use", "serial": "X1"}],
        "costs": {"openCell": 1900, "closedCell": 2500, "laborRate": 90},
        "pricingMode": "sqft_pricing",
        "themeColor": "red",
        "settings": {"jobNotes": "Wear PPE"},
        "jobs": [job_doc()],
    })
    assert result["synced"] is True
    assert result["jobs"] == 1

    customer = Customer.objects.get(organization=org, uid="cust-1")
    assert customer.zip_code == "73301"
    assert customer.data == {"notes": "gate code 12"}
    rig = Equipment.objects.get(organization=org, uid="rig-1")
    assert rig.status == Equipment.IN_USE
    assert rig.data == {"serial": "X1"}
    config = OrganizationSettings.objects.get(organization=org)
    assert config.costs["openCell"] == 1900
    assert config.pricing_mode == "sqft_pricing"
    assert config.job_notes == "Wear PPE"
    job = Job.objects.get(organization=org, uid="job-1")
    assert job.customer == customer
    assert job.document["customer"]["name"] == "Jane Smith"
    assert job.last_modified is not None


def test_oversized_logo_is_dropped(admin_ctx, org, settings):
    settings.FIELDSYNC_MAX_LOGO_URL = 100
    gateway.sync_up(admin_ctx, {"companyProfile": {"companyName": "Acme", "logoUrl": "x" * 101}})
    profile = OrganizationSettings.objects.get(organization=org).company_profile
    assert profile == {"companyName": "Acme", "logoUrl": ""}


def test_only_admin_writes_stock(admin_ctx, crew_ctx, org):
    make_item(org, "tape", "Tape", 10)
    state = {"warehouse": {"openCellSets": 40, "closedCellSets": -2,
                           "items": [{"id": "tape", "name": "Tape", "quantity": 99}]}}
    gateway.sync_up(crew_ctx, state)
    assert stock(org).open_cell_sets == 0
    assert InventoryItem.objects.get(uid="tape").quantity == 10

    gateway.sync_up(admin_ctx, state)
    assert stock(org).open_cell_sets == 40
    assert stock(org).closed_cell_sets == -2
    assert InventoryItem.objects.get(uid="tape").quantity == 99


def test_push_cannot_uncomplete_a_job(crew_ctx, org):
    make_job(org, execution_status=Job.COMPLETED, inventory_processed=True,
             actuals={"openCellSets": 8})
    result = gateway.sync_up(crew_ctx, {"jobs": [
        job_doc(executionStatus="InProgress", actuals={"openCellSets": 1}),
    ]})
    assert result["reverted"] == ["job-1"]
    job = Job.objects.get(organization=org, uid="job-1")
    assert job.execution_status == Job.COMPLETED
    assert job.actuals == {"openCellSets": 8}
    assert job.inventory_processed


def test_push_that_completes_a_job_reconciles_once(crew_ctx, org):
    set_stock(org, open_cell=5)
    doc = job_doc(executionStatus="Completed",
                  actuals={"openCellSets": 8, "completedBy": "Sam"},
                  inventoryProcessed=True)
    gateway.sync_up(crew_ctx, {"jobs": [doc]})
    gateway.sync_up(crew_ctx, {"jobs": [doc]})

    assert stock(org).open_cell_sets == 7
    job = Job.objects.get(organization=org, uid="job-1")
    assert job.is_completed and job.inventory_processed
    logs = MaterialUsageLog.objects.filter(organization=org, job_uid="job-1")
    assert [(log.log_type, log.quantity, log.logged_by) for log in logs] == [("actual", 8, "Sam")]


def test_stale_completion_without_actuals_moves_nothing(crew_ctx, org):
    set_stock(org, open_cell=5)
    make_job(org, materials={"openCellSets": 10})
    gateway.complete_job(crew_ctx, "job-1", {"openCellSets": 8})
    assert stock(org).open_cell_sets == 7

    gateway.sync_up(crew_ctx, {"jobs": [{"id": "job-1", "executionStatus": "Completed"}]})
    gateway.sync_up(crew_ctx, {"jobs": [{"id": "job-1", "executionStatus": "Completed", "actuals": None}]})
    assert stock(org).open_cell_sets == 7
    job = Job.objects.get(organization=org, uid="job-1")
    assert job.actuals == {"openCellSets": 8}
    assert job.is_completed and job.inventory_processed


def test_edited_work_order_then_completion_nets_to_actual(admin_ctx, crew_ctx, org):
    set_stock(org, open_cell=20)
    make_job(org, materials={"openCellSets": 10})
    gateway.issue_work_order(admin_ctx, "job-1")
    assert stock(org).open_cell_sets == 10

    gateway.sync_up(crew_ctx, {"jobs": [job_doc(
        materials={"openCellSets": 12},
        executionStatus="Completed",
        actuals={"openCellSets": 8},
    )]})
    assert stock(org).open_cell_sets == 12
    assert stock(org).lifetime_open_cell == 8


def test_edited_work_order_materials_adjust_deduction(admin_ctx, crew_ctx, org):
    set_stock(org, open_cell=20)
    make_job(org, materials={"openCellSets": 10})
    gateway.issue_work_order(admin_ctx, "job-1")
    gateway.sync_up(crew_ctx, {"jobs": [job_doc(materials={"openCellSets": 7})]})
    assert stock(org).open_cell_sets == 13
    estimated = MaterialUsageLog.objects.filter(job_uid="job-1", log_type=MaterialUsageLog.ESTIMATED)
    assert list(estimated.values_list("quantity", flat=True)) == [7.0]


def test_crew_push_cannot_mark_paid(crew_ctx, org):
    make_job(org, status=Job.INVOICED)
    gateway.sync_up(crew_ctx, {"jobs": [job_doc(status="Paid")]})
    gateway.sync_up(crew_ctx, {"jobs": [job_doc("job-new", status="Paid")]})
    assert Job.objects.get(organization=org, uid="job-1").status == Job.INVOICED
    assert Job.objects.get(organization=org, uid="job-new").status == Job.DRAFT
    assert not ProfitLossEntry.objects.filter(organization=org).exists()


def test_device_cannot_claim_inventory_processed(crew_ctx, org):
    gateway.sync_up(crew_ctx, {"jobs": [job_doc(inventoryProcessed=True)]})
    assert not Job.objects.get(organization=org, uid="job-1").inventory_processed


def test_partial_push_leaves_other_jobs_alone(crew_ctx, org):
    make_job(org, uid="job-1", total_value=100)
    make_job(org, uid="job-2", total_value=200)
    gateway.sync_up(crew_ctx, {"jobs": [job_doc("job-2", totalValue=250)]})
    assert Job.objects.get(organization=org, uid="job-1").total_value == 100
    assert Job.objects.get(organization=org, uid="job-2").total_value == 250


def test_payment_pushed_from_device_is_frozen_server_side(admin_ctx, org):
    gateway.sync_up(admin_ctx, {"jobs": [job_doc(status="Paid", financials={"revenue": 1})]})
    job = Job.objects.get(organization=org, uid="job-1")
    assert job.is_paid
    assert job.financials["revenue"] == 5000
    assert ProfitLossEntry.objects.filter(organization=org, job_uid="job-1").count() == 1

    gateway.sync_up(admin_ctx, {"jobs": [job_doc(status="Invoiced")]})
    job.refresh_from_db()
    assert job.status == Job.PAID
    assert job.financials["revenue"] == 5000


def test_same_uid_in_two_orgs_stays_separate(crew_ctx, org, other_org):
    theirs = make_job(other_org, uid="job-1", total_value=1)
    gateway.sync_up(crew_ctx, {"jobs": [job_doc(totalValue=999)]})
    theirs.refresh_from_db()
    assert theirs.total_value == 1
    assert Job.objects.get(organization=org, uid="job-1").total_value == 999


def test_duplicate_ids_in_one_push_are_rejected(crew_ctx):
    from django.core.exceptions import ValidationError

    with pytest.raises(ValidationError):
        gateway.sync_up(crew_ctx, {"jobs": [job_doc(), job_doc()]})


# -- workflow ------------------------------------------------------------------

def test_mark_paid_freezes_financials_once(admin_ctx, org):
    make_item(org, "tape", "Tape", 10, unit_cost=5)
    make_job(
        org,
        total_value=10000,
        actuals={"openCellSets": 2, "closedCellSets": 1, "laborHours": 10,
                 "inventory": [{"id": "tape", "name": "Tape", "quantity": 3}]},
        document={"expenses": {"tripCharge": 50}, "customer": {"name": "Jane"}},
    )
    job = gateway.mark_paid(admin_ctx, "job-1")
    assert job.status == Job.PAID
    assert job.financials == {
        "revenue": 10000.0,
        "chemicalCost": 6600.0,
        "laborCost": 850.0,
        "inventoryCost": 15.0,
        "miscCost": 50.0,
        "totalCOGS": 7515.0,
        "netProfit": 2485.0,
        "margin": 0.2485,
    }
    OrganizationSettings.objects.filter(organization=org).update(costs={"openCell": 1})
    again = gateway.mark_paid(admin_ctx, "job-1")
    assert again.financials == job.financials
    entry = ProfitLossEntry.objects.get(organization=org, job_uid="job-1")
    assert entry.customer_name == "Jane"
    assert entry.net_profit == 2485.0


def test_mark_paid_needs_admin(crew_ctx, org):
    make_job(org)
    with pytest.raises(Forbidden):
        gateway.mark_paid(crew_ctx, "job-1")


def test_start_job_stamps_actuals(crew_ctx, org):
    make_job(org)
    job = gateway.start_job(crew_ctx, "job-1", "Sam")
    assert job.execution_status == Job.IN_PROGRESS
    assert job.actuals["startedBy"] == "Sam"
    assert "lastStartedAt" in job.actuals


def test_start_job_leaves_completed_job(crew_ctx, org):
    make_job(org, execution_status=Job.COMPLETED, inventory_processed=True, actuals={"openCellSets": 1})
    job = gateway.start_job(crew_ctx, "job-1")
    assert job.execution_status == Job.COMPLETED
    assert job.actuals == {"openCellSets": 1}


def test_work_order_deducts_estimate_and_reissue_deducts_difference(admin_ctx, org):
    set_stock(org, open_cell=20)
    make_item(org, "tape", "Tape", 10)
    make_job(org, materials={"openCellSets": 4, "inventory": [{"id": "tape", "name": "Tape", "quantity": 2}]})
    gateway.issue_work_order(admin_ctx, "job-1")
    assert stock(org).open_cell_sets == 16
    assert InventoryItem.objects.get(uid="tape").quantity == 8

    job = gateway.issue_work_order(admin_ctx, "job-1", {"openCellSets": 5, "inventory": [
        {"id": "tape", "name": "Tape", "quantity": 2}]})
    assert job.status == Job.WORK_ORDER
    assert job.materials_deducted
    assert stock(org).open_cell_sets == 15
    assert stock(org).lifetime_open_cell == 0
    assert InventoryItem.objects.get(uid="tape").quantity == 8
    estimated = MaterialUsageLog.objects.filter(job_uid="job-1", log_type=MaterialUsageLog.ESTIMATED)
    assert sorted(estimated.values_list("material_name", "quantity")) == [("Open Cell Foam", 5.0), ("Tape", 2.0)]


def test_work_order_refused_after_completion(admin_ctx, org):
    make_job(org, execution_status=Job.COMPLETED, inventory_processed=True)
    with pytest.raises(SyncConflict) as err:
        gateway.issue_work_order(admin_ctx, "job-1")
    assert err.value.retryable is False


def test_log_material_usage(crew_ctx, org, other_org):
    make_job(org)
    created = gateway.log_material_usage(crew_ctx, "job-1", {"closedCellSets": 1.5}, "Sam")
    assert [(e.material_name, e.log_type) for e in created] == [("Closed Cell Foam", "estimated")]
    make_job(other_org, uid="theirs")
    with pytest.raises(NotFound):
        gateway.log_material_usage(crew_ctx, "theirs", {"closedCellSets": 1})


def test_delete_job(admin_ctx, org):
    make_job(org, uid="draft")
    make_job(org, uid="paid", status=Job.PAID)
    assert gateway.delete_job(admin_ctx, "draft") == "draft"
    assert not Job.objects.filter(uid="draft").exists()
    with pytest.raises(SyncConflict):
        gateway.delete_job(admin_ctx, "paid")
    assert Job.objects.filter(uid="paid").exists()


def test_unknown_organization_is_not_found():
    ctx = gateway.AuthContext(organization_id="not-a-uuid", role=UserProfile.ADMIN)
    with pytest.raises(NotFound):
        gateway.sync_down(ctx)


# -- lock handling -------------------------------------------------------------

def test_lock_timeout_becomes_retryable_conflict():
    @gateway.lock_guard
    def busy():
        raise OperationalError("(1205, 'Lock wait timeout exceeded; try restarting transaction')")

    with pytest.raises(SyncConflict) as err:
        busy()
    assert err.value.retryable is True


def test_other_operational_errors_propagate():
    @gateway.lock_guard
    def broken():
        raise OperationalError("no such table: fieldsync_job")

    with pytest.raises(OperationalError):
        broken()
