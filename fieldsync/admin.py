from django.contrib import admin
from django.utils import timezone

from .models import (
    Customer,
    Equipment,
    InventoryItem,
    Job,
    MaterialUsageLog,
    Organization,
    OrganizationSettings,
    ProfitLossEntry,
    UserProfile,
    WarehouseStock,
)


class StampedAdmin(admin.ModelAdmin):
    """Admin edits bump ``last_modified`` so devices pull them on next sync."""

    def save_model(self, request, obj, form, change):
        obj.last_modified = timezone.now()
        super().save_model(request, obj, form, change)


@admin.register(Organization)
class OrganizationAdmin(admin.ModelAdmin):
    list_display = ("name", "id", "created_at")
    search_fields = ("name",)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "organization", "role")
    list_filter = ("role", "organization")


@admin.register(OrganizationSettings)
class OrganizationSettingsAdmin(admin.ModelAdmin):
    list_display = ("organization", "pricing_mode", "updated_at")


@admin.register(WarehouseStock)
class WarehouseStockAdmin(StampedAdmin):
    list_display = (
        "organization",
        "open_cell_sets",
        "closed_cell_sets",
        "lifetime_open_cell",
        "lifetime_closed_cell",
        "last_modified",
    )
    readonly_fields = ("lifetime_open_cell", "lifetime_closed_cell", "last_modified")


@admin.register(InventoryItem)
class InventoryItemAdmin(StampedAdmin):
    list_display = ("name", "organization", "quantity", "unit", "unit_cost", "last_modified")
    list_filter = ("organization",)
    search_fields = ("name", "uid")
    readonly_fields = ("last_modified",)


@admin.register(Equipment)
class EquipmentAdmin(StampedAdmin):
    list_display = ("name", "organization", "status", "last_modified")
    list_filter = ("organization", "status")
    readonly_fields = ("last_modified",)


@admin.register(Customer)
class CustomerAdmin(StampedAdmin):
    list_display = ("name", "organization", "status", "phone", "email")
    list_filter = ("organization", "status")
    search_fields = ("name", "email", "uid")
    readonly_fields = ("last_modified",)


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = (
        "uid",
        "organization",
        "status",
        "execution_status",
        "inventory_processed",
        "materials_deducted",
        "total_value",
        "last_modified",
    )
    list_filter = ("organization", "status", "execution_status", "inventory_processed")
    search_fields = ("uid", "invoice_number")
    # stock-affecting state only changes through the sync services
    readonly_fields = (
        "execution_status",
        "actuals",
        "inventory_processed",
        "materials_deducted",
        "financials",
        "last_modified",
    )


@admin.register(MaterialUsageLog)
class MaterialUsageLogAdmin(admin.ModelAdmin):
    list_display = ("date", "job_uid", "material_name", "quantity", "unit", "log_type", "logged_by")
    list_filter = ("organization", "log_type")
    search_fields = ("job_uid", "material_name")


@admin.register(ProfitLossEntry)
class ProfitLossEntryAdmin(admin.ModelAdmin):
    list_display = ("paid_at", "job_uid", "customer_name", "revenue", "total_cogs", "net_profit", "margin")
    list_filter = ("organization",)
