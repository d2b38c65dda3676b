from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from fieldsync.models import Organization, UserProfile


class Command(BaseCommand):
    help = (
        "Create a contractor organization (with default settings and an empty "
        "warehouse) and optionally its first admin login."
    )

    def add_arguments(self, parser):
        parser.add_argument("name", help="Organization name (unique).")
        parser.add_argument("--admin", help="Username of the organization's admin.")
        parser.add_argument("--password", help="Password for a newly created admin.")
        parser.add_argument("--crew-pin", default="", help="PIN crew devices sign in with.")

    @transaction.atomic
    def handle(self, *args, **options):
        name = (options["name"] or "").strip()
        if not name:
            raise CommandError("Organization name is required.")
        org, created = Organization.objects.get_or_create(name=name)
        crew_pin = options.get("crew_pin") or ""
        if crew_pin and org.crew_pin != crew_pin:
            org.crew_pin = crew_pin
            org.save(update_fields=["crew_pin"])

        username = options.get("admin")
        if username:
            User = get_user_model()
            user = User.objects.filter(username=username).first()
            if user is None:
                if not options.get("password"):
                    raise CommandError("--password is required for a new admin.")
                user = User.objects.create_user(username=username, password=options["password"])
            profile = UserProfile.objects.filter(user=user).first()
            if profile and profile.organization_id != org.pk:
                raise CommandError(f"User {username} already belongs to another organization.")
            if profile is None:
                UserProfile.objects.create(user=user, organization=org, role=UserProfile.ADMIN)
            elif profile.role != UserProfile.ADMIN:
                profile.role = UserProfile.ADMIN
                profile.save(update_fields=["role"])

        verb = "Created" if created else "Updated"
        self.stdout.write(self.style.SUCCESS(f"{verb} organization {org.name} ({org.pk})"))
