"""Explicitly constructed external collaborators.

The storage adapter, payment gateways and notifier are built once from
settings when the ``core`` app is ready and injected into services by the
views.  ``None`` is a valid value and means "not configured": the service
that needs it answers with a 503 instead of crashing on a half-initialised
client.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import structlog
from django.apps import apps
from django.conf import settings

if TYPE_CHECKING:
    from modules.notifications.services import IOrderNotifier
    from modules.payments.gateways.paypal import PayPalGateway
    from modules.payments.gateways.stripe import StripeGateway
    from modules.storage.interfaces import IObjectStorage

logger = structlog.get_logger(__name__)


@dataclass
class Collaborators:
    storage: Optional[IObjectStorage]
    notifier: IOrderNotifier
    stripe: Optional[StripeGateway] = None
    paypal: Optional[PayPalGateway] = None


def build_collaborators() -> Collaborators:
    """Build every collaborator from Django settings."""
    from modules.notifications.services import EmailOrderNotifier
    from modules.payments.gateways.paypal import build_paypal_gateway
    from modules.payments.gateways.stripe import build_stripe_gateway
    from modules.storage.gcs import build_gcs_storage

    collaborators = Collaborators(
        storage=build_gcs_storage(settings),
        notifier=EmailOrderNotifier(),
        stripe=build_stripe_gateway(settings),
        paypal=build_paypal_gateway(settings),
    )
    logger.info(
        "collaborators.built",
        storage=collaborators.storage is not None,
        stripe=collaborators.stripe is not None,
        paypal=collaborators.paypal is not None,
    )
    return collaborators


def get_collaborators() -> Collaborators:
    """Return the collaborators built at startup."""
    return apps.get_app_config("core").collaborators
