import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import fieldsync.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=150, unique=True)),
                ("crew_pin", models.CharField(blank=True, max_length=12)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(default=fieldsync.models._new_uid, max_length=64)),
                ("name", models.CharField(max_length=200)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("city", models.CharField(blank=True, max_length=100)),
                ("state", models.CharField(blank=True, max_length=50)),
                ("zip_code", models.CharField(blank=True, max_length=20)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("email", models.CharField(blank=True, max_length=254)),
                ("status", models.CharField(choices=[("Active", "Active"), ("Archived", "Archived"), ("Lead", "Lead")], default="Active", max_length=10)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("last_modified", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="customers", to="fieldsync.organization")),
            ],
            options={
                "ordering": ["name"],
                "unique_together": {("organization", "uid")},
            },
        ),
        migrations.CreateModel(
            name="Equipment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(default=fieldsync.models._new_uid, max_length=64)),
                ("name", models.CharField(max_length=200)),
                ("status", models.CharField(choices=[("Available", "Available"), ("In Use", "In Use"), ("Maintenance", "Maintenance"), ("Lost", "Lost")], default="Available", max_length=20)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("last_modified", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="equipment", to="fieldsync.organization")),
            ],
            options={
                "verbose_name_plural": "equipment",
                "ordering": ["name"],
                "unique_together": {("organization", "uid")},
            },
        ),
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(default=fieldsync.models._new_uid, max_length=64)),
                ("name", models.CharField(max_length=200)),
                ("quantity", models.FloatField(default=0)),
                ("unit", models.CharField(default="units", max_length=30)),
                ("unit_cost", models.FloatField(default=0)),
                ("last_modified", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="inventory_items", to="fieldsync.organization")),
            ],
            options={
                "ordering": ["name"],
                "unique_together": {("organization", "uid")},
            },
        ),
        migrations.CreateModel(
            name="Job",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(default=fieldsync.models._new_uid, max_length=64)),
                ("status", models.CharField(choices=[("Draft", "Draft"), ("Work Order", "Work Order"), ("Invoiced", "Invoiced"), ("Paid", "Paid"), ("Archived", "Archived")], default="Draft", max_length=12)),
                ("execution_status", models.CharField(choices=[("Not Started", "Not Started"), ("In Progress", "In Progress"), ("Completed", "Completed")], default="Not Started", max_length=12)),
                ("materials", models.JSONField(blank=True, default=dict)),
                ("actuals", models.JSONField(blank=True, null=True)),
                ("financials", models.JSONField(blank=True, null=True)),
                ("inventory_processed", models.BooleanField(default=False)),
                ("materials_deducted", models.BooleanField(default=False)),
                ("pdf_link", models.CharField(blank=True, max_length=500)),
                ("work_order_sheet_url", models.CharField(blank=True, max_length=500)),
                ("site_photos", models.JSONField(blank=True, default=list)),
                ("total_value", models.FloatField(default=0)),
                ("invoice_number", models.CharField(blank=True, max_length=50)),
                ("document", models.JSONField(blank=True, default=dict)),
                ("last_modified", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("customer", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="jobs", to="fieldsync.customer")),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="jobs", to="fieldsync.organization")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["organization", "status"], name="fs_job_org_status_idx"),
                    models.Index(fields=["organization", "execution_status"], name="fs_job_org_exec_idx"),
                ],
                "unique_together": {("organization", "uid")},
            },
        ),
        migrations.CreateModel(
            name="MaterialUsageLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uid", models.CharField(default=fieldsync.models._new_uid, max_length=64)),
                ("job_uid", models.CharField(db_index=True, max_length=64)),
                ("date", models.DateTimeField(default=django.utils.timezone.now)),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("material_name", models.CharField(max_length=200)),
                ("quantity", models.FloatField()),
                ("unit", models.CharField(blank=True, max_length=30)),
                ("logged_by", models.CharField(blank=True, max_length=150)),
                ("log_type", models.CharField(choices=[("estimated", "Estimated"), ("actual", "Actual")], default="estimated", max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="usage_logs", to="fieldsync.organization")),
            ],
            options={
                "ordering": ["-date"],
                "indexes": [
                    models.Index(fields=["organization", "job_uid", "log_type"], name="fs_log_org_job_type_idx"),
                ],
                "unique_together": {("organization", "uid")},
            },
        ),
        migrations.CreateModel(
            name="OrganizationSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("company_profile", models.JSONField(blank=True, default=dict)),
                ("costs", models.JSONField(blank=True, default=dict)),
                ("yields", models.JSONField(blank=True, default=dict)),
                ("expenses", models.JSONField(blank=True, default=dict)),
                ("pricing_mode", models.CharField(default="level_pricing", max_length=20)),
                ("sq_ft_rates", models.JSONField(blank=True, default=dict)),
                ("job_notes", models.TextField(blank=True)),
                ("purchase_orders", models.JSONField(blank=True, default=list)),
                ("extra", models.JSONField(blank=True, default=dict)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("organization", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="config", to="fieldsync.organization")),
            ],
            options={
                "verbose_name_plural": "organization settings",
            },
        ),
        migrations.CreateModel(
            name="ProfitLossEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("job_uid", models.CharField(db_index=True, max_length=64)),
                ("customer_name", models.CharField(blank=True, max_length=200)),
                ("invoice_number", models.CharField(blank=True, max_length=50)),
                ("revenue", models.FloatField(default=0)),
                ("chemical_cost", models.FloatField(default=0)),
                ("labor_cost", models.FloatField(default=0)),
                ("inventory_cost", models.FloatField(default=0)),
                ("misc_cost", models.FloatField(default=0)),
                ("total_cogs", models.FloatField(default=0)),
                ("net_profit", models.FloatField(default=0)),
                ("margin", models.FloatField(default=0)),
                ("paid_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="profit_loss", to="fieldsync.organization")),
            ],
            options={
                "verbose_name_plural": "profit & loss entries",
                "ordering": ["-paid_at"],
                "unique_together": {("organization", "job_uid")},
            },
        ),
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("admin", "Admin"), ("crew", "Crew")], default="crew", max_length=10)),
                ("organization", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="members", to="fieldsync.organization")),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="profile", to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name="WarehouseStock",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("open_cell_sets", models.FloatField(default=0)),
                ("closed_cell_sets", models.FloatField(default=0)),
                ("lifetime_open_cell", models.FloatField(default=0)),
                ("lifetime_closed_cell", models.FloatField(default=0)),
                ("last_modified", models.DateTimeField(blank=True, null=True)),
                ("organization", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="warehouse", to="fieldsync.organization")),
            ],
        ),
    ]
