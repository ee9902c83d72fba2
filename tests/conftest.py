"""
Pytest configuration and fixtures for parcel shipping tests.
"""
import os
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment before importing package modules
os.environ["ENVIRONMENT"] = "development"
os.environ.setdefault("SENDCLOUD_API_KEY", "TEST_KEY")
os.environ.setdefault("SENDCLOUD_API_SECRET", "TEST_SECRET")

from parcel_shipping.core.rate_cache import RateCache
from parcel_shipping.models.carrier import CarrierCode, Credentials, ServiceDescriptor
from parcel_shipping.models.package import Address, Package, StockLocation
from parcel_shipping.models.shipment import Shipment
from parcel_shipping.modules.shipping.carriers.base import (
    BaseCarrier,
    BookingResponse,
    RateQuote,
)
from parcel_shipping.modules.shipping.weight_limits import WeightLimitPolicy


LABEL_URL = (
    "https://panel.sendcloud.nl/api/v2/labels/label_printer/410656"
    "?hash=70286456cab252a543dae6be5037592a4d8c6e40"
)


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create mock async database session."""
    db = AsyncMock()
    db.add = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def stock_location() -> StockLocation:
    return StockLocation(id=1, name="Eindhoven warehouse", country_code="NL", postal_code="5611AB")


@pytest.fixture
def us_address() -> Address:
    return Address(country_code="US", postal_code="10001", city="New York", name="John Doe")


@pytest.fixture
def package(stock_location, us_address) -> Package:
    """Two line items of 2 x 1 kg and 2 x 2 kg, packed together."""
    return Package(weight=Decimal("6"), origin=stock_location, destination=us_address)


@pytest.fixture
def pakket_nederland() -> ServiceDescriptor:
    return ServiceDescriptor(name="Pakket Nederland (PostNL)", code="8", carrier="postnl")


@pytest.fixture
def weight_policy() -> WeightLimitPolicy:
    return WeightLimitPolicy({
        "postnl": {"NL": 23, "BE": 23, "US": 20},
    })


@pytest.fixture
def rate_cache() -> RateCache:
    """A fresh cache per test, no cross-test leakage."""
    return RateCache(ttl_seconds=600, max_size=100)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(api_key="TEST_KEY", api_secret="TEST_SECRET")


@pytest.fixture
def postnl_quote() -> RateQuote:
    return RateQuote(
        service_name="Pakket Nederland (PostNL)",
        service_code="Pakket Nederland (PostNL)",
        price=999,
        carrier="postnl",
    )


@pytest.fixture
def mock_carrier(postnl_quote) -> AsyncMock:
    """Create mock carrier adapter."""
    carrier = AsyncMock(spec=BaseCarrier)
    carrier.carrier_code = CarrierCode.SENDCLOUD
    carrier.carrier_name = "Sendcloud"

    carrier.find_rates = AsyncMock(return_value=[postnl_quote])
    carrier.book_shipment = AsyncMock(return_value=BookingResponse(
        parcel_id=410656,
        tracking_number="3SYZXG114161295",
        label_url=LABEL_URL,
        raw_response={"test": True},
    ))
    carrier.close = AsyncMock()
    return carrier


@pytest.fixture
def shipment() -> Shipment:
    """Unbooked shipment to Eindhoven."""
    return Shipment(
        id=1,
        order_number="R123456789",
        weight=Decimal("6"),
        stock_location_id=1,
        origin_country_code="NL",
        recipient_name="John Doe",
        address_line1="Stationsplein",
        house_number="1",
        city="Eindhoven",
        state_province="Noord-Holland",
        postal_code="5617BC",
        country_code="NL",
        email="john.doe@example.com",
    )


@pytest.fixture
def label_url() -> str:
    return LABEL_URL
