import datetime

import pytest
from django.utils import timezone

from fieldsync.models import Customer, MaterialUsageLog, OrganizationSettings, WarehouseStock
from fieldsync.services.delta import pull
from fieldsync.tests.helpers import make_job
from fieldsync.utils.timestamps import to_epoch_ms

pytestmark = pytest.mark.django_db

WATERMARK = datetime.datetime(2024, 3, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


def stamp(obj, when):
    type(obj).objects.filter(pk=obj.pk).update(last_modified=when)


def ids(rows):
    return sorted(r["id"] for r in rows)


def test_full_sync_returns_everything(org):
    make_job(org, uid="a")
    make_job(org, uid="b")
    data = pull(org, None)
    assert ids(data["jobs"]) == ["a", "b"]
    assert data["settings"]["costs"]["openCell"] == 2000
    assert data["warehouse"]["openCellSets"] == 0


def test_watermark_boundaries(org):
    never = make_job(org, uid="never-stamped")
    equal = make_job(org, uid="equal")
    newer = make_job(org, uid="newer")
    older = make_job(org, uid="older")
    stamp(equal, WATERMARK)
    stamp(newer, WATERMARK + datetime.timedelta(milliseconds=1))
    stamp(older, WATERMARK - datetime.timedelta(days=1))
    assert never.last_modified is None

    data = pull(org, to_epoch_ms(WATERMARK))
    assert ids(data["jobs"]) == ["never-stamped", "newer"]


def test_iso_watermark_is_accepted(org):
    job = make_job(org, uid="newer")
    stamp(job, WATERMARK + datetime.timedelta(seconds=5))
    data = pull(org, "2024-03-01T12:00:00Z")
    assert ids(data["jobs"]) == ["newer"]


def test_other_organizations_never_leak(org, other_org):
    make_job(other_org, uid="theirs")
    Customer.objects.create(organization=other_org, uid="c1", name="Elsewhere")
    data = pull(org, None)
    assert data["jobs"] == []
    assert data["customers"] == []


def test_server_timestamp_is_taken_before_reads(org):
    before = to_epoch_ms(timezone.now())
    data = pull(org, None)
    after = to_epoch_ms(timezone.now())
    assert before <= data["serverTimestamp"] <= after


def test_missing_org_rows_are_recreated(org):
    OrganizationSettings.objects.filter(organization=org).delete()
    WarehouseStock.objects.filter(organization=org).delete()
    data = pull(org, None)
    assert data["settings"]["yields"]["openCell"] == 16000
    assert WarehouseStock.objects.filter(organization=org).exists()


def test_usage_logs_follow_creation_time_and_changed_jobs(org):
    old = MaterialUsageLog.objects.create(organization=org, job_uid="old-job", material_name="Tape", quantity=1)
    MaterialUsageLog.objects.filter(pk=old.pk).update(created_at=WATERMARK - datetime.timedelta(days=1))
    kept = MaterialUsageLog.objects.create(organization=org, job_uid="touched", material_name="Tape", quantity=2)
    MaterialUsageLog.objects.filter(pk=kept.pk).update(created_at=WATERMARK - datetime.timedelta(days=1))
    touched = make_job(org, uid="touched")
    stamp(touched, WATERMARK + datetime.timedelta(seconds=1))
    fresh = MaterialUsageLog.objects.create(organization=org, job_uid="x", material_name="Tape", quantity=3)

    data = pull(org, to_epoch_ms(WATERMARK))
    assert sorted(e["id"] for e in data["usageLogs"]) == sorted([kept.uid, fresh.uid])


def test_settings_always_returned_in_full(org):
    settings_obj = OrganizationSettings.objects.get(organization=org)
    settings_obj.extra = {"theme": "dark"}
    settings_obj.save()
    data = pull(org, to_epoch_ms(timezone.now()) + 60_000)
    assert data["settings"]["theme"] == "dark"
    assert data["warehouse"]["lifetimeUsage"] == {"openCell": 0, "closedCell": 0}


def test_watermark_trails_clock_by_commit_overlap(org, settings):
    settings.FIELDSYNC_WATERMARK_OVERLAP = 60
    before = to_epoch_ms(timezone.now())
    data = pull(org, None)
    after = to_epoch_ms(timezone.now())
    assert before - 60_000 <= data["serverTimestamp"] <= after - 60_000

    # stamped before the pull but committed after it
    late = make_job(org, uid="late-commit")
    stamp(late, timezone.now() - datetime.timedelta(seconds=10))
    again = pull(org, data["serverTimestamp"])
    assert "late-commit" in ids(again["jobs"])
