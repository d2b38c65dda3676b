from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from fieldsync.models import (
    DEFAULT_COSTS,
    Organization,
    OrganizationSettings,
    UserProfile,
    WarehouseStock,
)


class CreateOrganizationCommandTests(TestCase):
    def test_command_creates_org_rows_and_admin(self):
        out = StringIO()
        call_command("create_organization", "Acme Insulation", "--admin", "office",
                     "--password", "s3cret-pass", "--crew-pin", "4321", stdout=out)

        org = Organization.objects.get(name="Acme Insulation")
        self.assertEqual(org.crew_pin, "4321")
        self.assertEqual(OrganizationSettings.objects.get(organization=org).costs, DEFAULT_COSTS)
        self.assertTrue(WarehouseStock.objects.filter(organization=org).exists())
        user = get_user_model().objects.get(username="office")
        self.assertTrue(user.check_password("s3cret-pass"))
        self.assertEqual(user.profile.organization, org)
        self.assertEqual(user.profile.role, UserProfile.ADMIN)
        self.assertIn("Created organization", out.getvalue())

    def test_rerun_is_harmless(self):
        call_command("create_organization", "Acme Insulation", stdout=StringIO())
        out = StringIO()
        call_command("create_organization", "Acme Insulation", stdout=out)
        self.assertEqual(Organization.objects.filter(name="Acme Insulation").count(), 1)
        self.assertIn("Updated organization", out.getvalue())

    def test_admin_of_another_org_is_refused(self):
        call_command("create_organization", "First", "--admin", "office",
                     "--password", "s3cret-pass", stdout=StringIO())
        with self.assertRaises(CommandError):
            call_command("create_organization", "Second", "--admin", "office", stdout=StringIO())

    def test_new_admin_needs_password(self):
        with self.assertRaises(CommandError):
            call_command("create_organization", "Acme", "--admin", "nobody", stdout=StringIO())
