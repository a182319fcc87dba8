from decimal import Decimal

import httpx
import pytest

from booking_engine.core.errors import CatalogUnavailable, ServiceNotFound
from booking_engine.services.catalog_client import CatalogClient


def _client(handler) -> CatalogClient:
    return CatalogClient(base_url='http://catalog.test/', timeout=1, transport=httpx.MockTransport(handler))


def test_get_service_parses_catalog_payload() -> None:
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, json={'id': 3, 'name': 'Massage', 'price': 750.5, 'durationMinutes': 45})

    service = _client(handler).get_service(3)

    assert requested == ['http://catalog.test/api/catalog/services/3']
    assert service.name == 'Massage'
    assert service.price == Decimal('750.5')
    assert service.currency == 'MXN'
    assert service.duration_minutes == 45


def test_get_service_maps_missing_service_to_service_not_found() -> None:
    with pytest.raises(ServiceNotFound) as exception_info:
        _client(lambda request: httpx.Response(404)).get_service(3)

    assert not isinstance(exception_info.value, CatalogUnavailable)


def test_get_service_maps_server_errors_to_catalog_unavailable() -> None:
    with pytest.raises(CatalogUnavailable):
        _client(lambda request: httpx.Response(500)).get_service(3)


def test_get_service_maps_transport_errors_to_catalog_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(CatalogUnavailable):
        _client(handler).get_service(3)


@pytest.mark.parametrize(
    'payload',
    [
        {'name': 'Massage', 'price': 100},
        {'name': 'Massage', 'price': 'free', 'durationMinutes': 30},
        {'name': 'Massage', 'price': 100, 'durationMinutes': 0},
        ['not', 'an', 'object'],
    ],
)
def test_get_service_rejects_unusable_payloads(payload) -> None:
    with pytest.raises(ServiceNotFound):
        _client(lambda request: httpx.Response(200, json=payload)).get_service(3)
