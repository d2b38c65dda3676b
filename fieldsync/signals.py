import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import (
    DEFAULT_COSTS,
    DEFAULT_YIELDS,
    Organization,
    OrganizationSettings,
    WarehouseStock,
)

logger = logging.getLogger(__name__)


def ensure_org_rows(org):
    """Create the settings and warehouse rows an organization needs, if missing."""
    settings_obj, created = OrganizationSettings.objects.get_or_create(
        organization=org,
        defaults={"costs": dict(DEFAULT_COSTS), "yields": dict(DEFAULT_YIELDS)},
    )
    if created:
        logger.info("Bootstrapped settings for organization %s", org.pk)
    warehouse, created = WarehouseStock.objects.get_or_create(organization=org)
    if created:
        logger.info("Bootstrapped warehouse for organization %s", org.pk)
    return settings_obj, warehouse


@receiver(post_save, sender=Organization)
def bootstrap_organization(sender, instance, created, raw=False, **kwargs):
    """Every new organization starts with default settings and an empty warehouse."""
    if created and not raw:
        ensure_org_rows(instance)
