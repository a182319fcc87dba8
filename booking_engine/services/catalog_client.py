"""Read-only client for the catalog service."""

import logging
from decimal import Decimal, InvalidOperation

import httpx
from pydantic import BaseModel, ValidationError

from booking_engine.core import config
from booking_engine.core.errors import CatalogUnavailable, ServiceNotFound

logger = logging.getLogger(__name__)


class CatalogService(BaseModel):
    id: int | None = None
    name: str
    price: Decimal
    currency: str = "MXN"
    duration_minutes: int


class CatalogClient:
    """Fetches service name, price and duration from the catalog."""

    SERVICE_PATH = "/api/catalog/services/{service_id}"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (base_url or config.CATALOG_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.CATALOG_TIMEOUT_SECONDS
        self.transport = transport

    def get_service(self, service_id: int) -> CatalogService:
        url = f"{self.base_url}{self.SERVICE_PATH.format(service_id=service_id)}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            logger.warning(f"Catalog request for service {service_id} failed: {exc}")
            raise CatalogUnavailable() from exc

        if response.status_code == 404:
            raise ServiceNotFound(f"Service {service_id} does not exist.")
        if response.is_error:
            logger.warning(f"Catalog answered {response.status_code} for service {service_id}")
            raise CatalogUnavailable()

        try:
            payload = response.json()
            service = CatalogService(
                id=payload.get("id", service_id),
                name=payload["name"],
                price=Decimal(str(payload["price"])),
                currency=payload.get("currency") or "MXN",
                duration_minutes=payload.get("durationMinutes", payload.get("duration_minutes")),
            )
        except (ValueError, KeyError, TypeError, AttributeError, InvalidOperation, ValidationError) as exc:
            logger.warning(f"Catalog returned an unusable payload for service {service_id}: {exc}")
            raise ServiceNotFound(f"Service {service_id} could not be read from the catalog.") from exc

        if service.duration_minutes <= 0:
            raise ServiceNotFound(f"Service {service_id} has no bookable duration.")
        return service


def get_catalog_client() -> CatalogClient:
    return CatalogClient()
