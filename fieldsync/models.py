# models.py

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

DEFAULT_COSTS = {"openCell": 2000, "closedCell": 2600, "laborRate": 85}
DEFAULT_YIELDS = {
    "openCell": 16000,
    "closedCell": 4000,
    "openCellStrokes": 6600,
    "closedCellStrokes": 6600,
}


def _new_uid():
    return str(uuid.uuid4())


#
# ——————————————————————————————————————
# Tenancy
# ——————————————————————————————————————
#
class Organization(models.Model):
    """A contractor business. Every ledger row belongs to exactly one."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150, unique=True)
    crew_pin = models.CharField(max_length=12, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class UserProfile(models.Model):
    """Attach an organization and a role to Django's User."""
    ADMIN = "admin"
    CREW = "crew"
    ROLE_CHOICES = [
        (ADMIN, "Admin"),
        (CREW, "Crew"),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="members",
    )
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=CREW)

    def __str__(self):
        return f"{self.user} ({self.role} @ {self.organization})"


class OrganizationSettings(models.Model):
    """Typed configuration aggregate; unknown client keys land in ``extra``."""

    # wire key -> model attribute
    KNOWN_KEYS = {
        "companyProfile": "company_profile",
        "costs": "costs",
        "yields": "yields",
        "expenses": "expenses",
        "pricingMode": "pricing_mode",
        "sqFtRates": "sq_ft_rates",
        "jobNotes": "job_notes",
        "purchaseOrders": "purchase_orders",
    }

    organization = models.OneToOneField(
        Organization,
        on_delete=models.CASCADE,
        related_name="config",
    )
    company_profile = models.JSONField(default=dict, blank=True)
    costs = models.JSONField(default=dict, blank=True)
    yields = models.JSONField(default=dict, blank=True)
    expenses = models.JSONField(default=dict, blank=True)
    pricing_mode = models.CharField(max_length=20, default="level_pricing")
    sq_ft_rates = models.JSONField(default=dict, blank=True)
    job_notes = models.TextField(blank=True)
    purchase_orders = models.JSONField(default=list, blank=True)
    extra = models.JSONField(default=dict, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "organization settings"

    def __str__(self):
        return f"Settings for {self.organization}"

    def to_wire(self):
        data = dict(self.extra or {})
        for key, attr in self.KNOWN_KEYS.items():
            data[key] = getattr(self, attr)
        return data

    def apply_wire(self, data):
        """Copy known keys onto typed fields, stash the rest in ``extra``."""
        extra = dict(self.extra or {})
        for key, value in data.items():
            attr = self.KNOWN_KEYS.get(key)
            if attr:
                if attr == "job_notes" and value is None:
                    value = ""
                setattr(self, attr, value)
            else:
                extra[key] = value
        self.extra = extra


#
# ——————————————————————————————————————
# Warehouse & Inventory
# ——————————————————————————————————————
#
class WarehouseStock(models.Model):
    """Chemical-set counters for one organization.

    The reconciler never writes a negative value; an admin may, and the UI
    reads that as a shortage.
    """
    organization = models.OneToOneField(
        Organization,
        on_delete=models.CASCADE,
        related_name="warehouse",
    )
    open_cell_sets = models.FloatField(default=0)
    closed_cell_sets = models.FloatField(default=0)
    lifetime_open_cell = models.FloatField(default=0)
    lifetime_closed_cell = models.FloatField(default=0)
    last_modified = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return (
            f"{self.organization}: OC {self.open_cell_sets:.2f} / "
            f"CC {self.closed_cell_sets:.2f}"
        )

    def to_wire(self):
        return {
            "openCellSets": self.open_cell_sets,
            "closedCellSets": self.closed_cell_sets,
            "lifetimeUsage": {
                "openCell": self.lifetime_open_cell,
                "closedCell": self.lifetime_closed_cell,
            },
            "lastModified": self.last_modified,
        }


class InventoryItem(models.Model):
    """Non-chemical stock (tape, plastic, primers...)."""
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="inventory_items",
    )
    uid = models.CharField(max_length=64, default=_new_uid)
    name = models.CharField(max_length=200)
    quantity = models.FloatField(default=0)
    unit = models.CharField(max_length=30, default="units")
    unit_cost = models.FloatField(default=0)
    last_modified = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["name"]
        unique_together = ("organization", "uid")

    def __str__(self):
        return f"{self.name} ({self.quantity} {self.unit})"

    def to_wire(self):
        return {
            "id": self.uid,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "unitCost": self.unit_cost,
            "lastModified": self.last_modified,
        }


class Equipment(models.Model):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    MAINTENANCE = "Maintenance"
    LOST = "Lost"
    STATUS_CHOICES = [
        (AVAILABLE, "Available"),
        (IN_USE, "In Use"),
        (MAINTENANCE, "Maintenance"),
        (LOST, "Lost"),
    ]

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="equipment",
    )
    uid = models.CharField(max_length=64, default=_new_uid)
    name = models.CharField(max_length=200)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=AVAILABLE)
    data = models.JSONField(default=dict, blank=True)
    last_modified = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["name"]
        unique_together = ("organization", "uid")
        verbose_name_plural = "equipment"

    def __str__(self):
        return f"{self.name} [{self.status}]"

    def to_wire(self):
        data = dict(self.data or {})
        data.update(
            id=self.uid,
            name=self.name,
            status=self.status,
            lastModified=self.last_modified,
        )
        return data


#
# ——————————————————————————————————————
# CRM
# ——————————————————————————————————————
#
class Customer(models.Model):
    ACTIVE = "Active"
    ARCHIVED = "Archived"
    LEAD = "Lead"
    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (ARCHIVED, "Archived"),
        (LEAD, "Lead"),
    ]
    # wire key -> column
    COLUMNS = {
        "name": "name",
        "address": "address",
        "city": "city",
        "state": "state",
        "zip": "zip_code",
        "phone": "phone",
        "email": "email",
        "status": "status",
    }

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="customers",
    )
    uid = models.CharField(max_length=64, default=_new_uid)
    name = models.CharField(max_length=200)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=50, blank=True)
    zip_code = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.CharField(max_length=254, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=ACTIVE)
    data = models.JSONField(default=dict, blank=True)
    last_modified = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["name"]
        unique_together = ("organization", "uid")

    def __str__(self):
        return self.name

    def to_wire(self):
        data = dict(self.data or {})
        for key, attr in self.COLUMNS.items():
            data[key] = getattr(self, attr)
        data["id"] = self.uid
        data["lastModified"] = self.last_modified
        return data

    def apply_wire(self, data):
        rest = {}
        for key, value in data.items():
            attr = self.COLUMNS.get(key)
            if attr:
                setattr(self, attr, value if value is not None else "")
            elif key not in ("id", "lastModified"):
                rest[key] = value
        if not self.status:
            self.status = self.ACTIVE
        self.data = rest


#
# ——————————————————————————————————————
# Jobs (estimate -> work order -> invoice)
# ——————————————————————————————————————
#
class Job(models.Model):
    """One evolving record: estimate, work order and invoice."""
    DRAFT = "Draft"
    WORK_ORDER = "Work Order"
    INVOICED = "Invoiced"
    PAID = "Paid"
    ARCHIVED = "Archived"
    STATUS_CHOICES = [
        (DRAFT, "Draft"),
        (WORK_ORDER, "Work Order"),
        (INVOICED, "Invoiced"),
        (PAID, "Paid"),
        (ARCHIVED, "Archived"),
    ]

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    EXECUTION_CHOICES = [
        (NOT_STARTED, "Not Started"),
        (IN_PROGRESS, "In Progress"),
        (COMPLETED, "Completed"),
    ]

    # wire key -> column; every other client key is kept in ``document``
    COLUMNS = {
        "status": "status",
        "executionStatus": "execution_status",
        "materials": "materials",
        "actuals": "actuals",
        "financials": "financials",
        "inventoryProcessed": "inventory_processed",
        "pdfLink": "pdf_link",
        "workOrderSheetUrl": "work_order_sheet_url",
        "sitePhotos": "site_photos",
        "totalValue": "total_value",
        "invoiceNumber": "invoice_number",
    }
    SERVER_KEYS = ("id", "customerId", "lastModified", "materialsDeducted")

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="jobs",
    )
    uid = models.CharField(max_length=64, default=_new_uid)
    customer = models.ForeignKey(
        Customer,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="jobs",
    )
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=DRAFT)
    execution_status = models.CharField(
        max_length=12, choices=EXECUTION_CHOICES, default=NOT_STARTED
    )
    materials = models.JSONField(default=dict, blank=True)
    actuals = models.JSONField(null=True, blank=True)
    financials = models.JSONField(null=True, blank=True)
    inventory_processed = models.BooleanField(default=False)
    materials_deducted = models.BooleanField(default=False)
    pdf_link = models.CharField(max_length=500, blank=True)
    work_order_sheet_url = models.CharField(max_length=500, blank=True)
    site_photos = models.JSONField(default=list, blank=True)
    total_value = models.FloatField(default=0)
    invoice_number = models.CharField(max_length=50, blank=True)
    document = models.JSONField(default=dict, blank=True)
    last_modified = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        unique_together = ("organization", "uid")
        indexes = [
            models.Index(fields=["organization", "status"], name="fs_job_org_status_idx"),
            models.Index(fields=["organization", "execution_status"], name="fs_job_org_exec_idx"),
        ]

    def __str__(self):
        return f"Job {self.uid} [{self.status} / {self.execution_status}]"

    @property
    def is_completed(self):
        return self.execution_status == self.COMPLETED

    @property
    def is_paid(self):
        return self.status == self.PAID

    @property
    def customer_name(self):
        if self.customer_id:
            return self.customer.name
        snapshot = (self.document or {}).get("customer") or {}
        return snapshot.get("name") or ""

    def to_wire(self):
        data = dict(self.document or {})
        for key, attr in self.COLUMNS.items():
            data[key] = getattr(self, attr)
        data["id"] = self.uid
        data["customerId"] = self.customer.uid if self.customer_id else None
        data["materialsDeducted"] = self.materials_deducted
        data["lastModified"] = self.last_modified
        return data

    def apply_wire(self, data):
        """Write a merged wire document onto the row (customer link excluded)."""
        rest = {}
        for key, value in data.items():
            attr = self.COLUMNS.get(key)
            if attr:
                if value is None and attr in ("pdf_link", "work_order_sheet_url", "invoice_number"):
                    value = ""
                elif value is None and attr == "site_photos":
                    value = []
                elif value is None and attr == "materials":
                    value = {}
                elif value is None and attr == "total_value":
                    value = 0
                elif value is None and attr == "inventory_processed":
                    value = False
                setattr(self, attr, value)
            elif key not in self.SERVER_KEYS:
                rest[key] = value
        self.document = rest


#
# ——————————————————————————————————————
# Ledgers
# ——————————————————————————————————————
#
class MaterialUsageLog(models.Model):
    """Material consumption per job; estimated rows give way to actual ones."""
    ESTIMATED = "estimated"
    ACTUAL = "actual"
    LOG_TYPE_CHOICES = [
        (ESTIMATED, "Estimated"),
        (ACTUAL, "Actual"),
    ]

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="usage_logs",
    )
    uid = models.CharField(max_length=64, default=_new_uid)
    job_uid = models.CharField(max_length=64, db_index=True)
    date = models.DateTimeField(default=timezone.now)
    customer_name = models.CharField(max_length=200, blank=True)
    material_name = models.CharField(max_length=200)
    quantity = models.FloatField()
    unit = models.CharField(max_length=30, blank=True)
    logged_by = models.CharField(max_length=150, blank=True)
    log_type = models.CharField(max_length=10, choices=LOG_TYPE_CHOICES, default=ESTIMATED)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-date"]
        unique_together = ("organization", "uid")
        indexes = [
            models.Index(fields=["organization", "job_uid", "log_type"], name="fs_log_org_job_type_idx"),
        ]

    def __str__(self):
        return f"{self.job_uid}: {self.material_name} {self.quantity} {self.unit} ({self.log_type})"

    def to_wire(self):
        return {
            "id": self.uid,
            "date": self.date,
            "jobId": self.job_uid,
            "customerName": self.customer_name,
            "materialName": self.material_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "loggedBy": self.logged_by,
            "logType": self.log_type,
        }


class ProfitLossEntry(models.Model):
    """Frozen financial snapshot written once when a job is paid."""
    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="profit_loss",
    )
    job_uid = models.CharField(max_length=64, db_index=True)
    customer_name = models.CharField(max_length=200, blank=True)
    invoice_number = models.CharField(max_length=50, blank=True)
    revenue = models.FloatField(default=0)
    chemical_cost = models.FloatField(default=0)
    labor_cost = models.FloatField(default=0)
    inventory_cost = models.FloatField(default=0)
    misc_cost = models.FloatField(default=0)
    total_cogs = models.FloatField(default=0)
    net_profit = models.FloatField(default=0)
    margin = models.FloatField(default=0)
    paid_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-paid_at"]
        verbose_name_plural = "profit & loss entries"
        unique_together = ("organization", "job_uid")

    def __str__(self):
        return f"P&L {self.job_uid}: {self.net_profit:.2f}"
