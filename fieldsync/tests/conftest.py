import pytest

from fieldsync.models import Organization, UserProfile
from fieldsync.services.gateway import AuthContext


@pytest.fixture
def org(db):
    return Organization.objects.create(name="Acme Insulation")


@pytest.fixture
def other_org(db):
    return Organization.objects.create(name="Rival Foam Co")


@pytest.fixture
def admin_ctx(org):
    return AuthContext(organization_id=str(org.pk), role=UserProfile.ADMIN, username="office")


@pytest.fixture
def crew_ctx(org):
    return AuthContext(organization_id=str(org.pk), role=UserProfile.CREW, username="rig1")
