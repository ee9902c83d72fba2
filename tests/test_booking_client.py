"""
Tests for shipment booking.
"""
import asyncio
from decimal import Decimal
from unittest.mock import patch

import pytest

from parcel_shipping.core.exceptions import (
    BookingAuthError,
    BookingError,
    CarrierAuthError,
    CarrierCommunicationError,
    CarrierRejectedError,
    ShippingValidationError,
)
from parcel_shipping.models.carrier import Credentials, ServiceDescriptor
from parcel_shipping.models.shipment import BookingState, Shipment
from parcel_shipping.modules.shipping.carriers.base import BookingResponse
from parcel_shipping.services.booking_client import BookingClient


@pytest.fixture
def booking_client(mock_carrier, pakket_nederland) -> BookingClient:
    return BookingClient(carrier=mock_carrier, service=pakket_nederland, timeout=1.0)


def assert_unbooked(shipment):
    assert shipment.tracking_number is None
    assert shipment.label_url is None
    assert shipment.carrier_parcel_id is None
    assert shipment.booked_at is None
    assert shipment.booking_state == BookingState.UNBOOKED


class TestCreateShipment:
    """Successful bookings."""

    @pytest.mark.asyncio
    async def test_sets_tracking_label_and_parcel_id(self, booking_client, shipment, credentials, label_url):
        confirmation = await booking_client.create_shipment(shipment, credentials)

        assert shipment.tracking_number == "3SYZXG114161295"
        assert shipment.label_url == label_url
        assert shipment.carrier_parcel_id == 410656
        assert shipment.booked_at is not None
        assert shipment.is_booked is True
        assert confirmation.parcel_id == 410656

    @pytest.mark.asyncio
    async def test_sends_destination_weight_and_service(self, booking_client, mock_carrier, shipment, credentials):
        await booking_client.create_shipment(shipment, credentials)

        request, sent_credentials = mock_carrier.book_shipment.await_args.args
        assert sent_credentials == credentials
        assert request.service_code == "8"
        assert request.weight == Decimal("6")
        assert request.postal_code == "5617BC"
        assert request.city == "Eindhoven"
        assert request.country_code == "NL"
        assert request.order_number == "R123456789"

    @pytest.mark.asyncio
    async def test_does_not_deduplicate(self, booking_client, mock_carrier, shipment, credentials):
        await booking_client.create_shipment(shipment, credentials)
        await booking_client.create_shipment(shipment, credentials)

        assert mock_carrier.book_shipment.await_count == 2


class TestValidation:
    """Prerequisites checked before any carrier call."""

    @pytest.mark.asyncio
    async def test_missing_postal_code(self, booking_client, mock_carrier, shipment, credentials):
        shipment.postal_code = None

        with pytest.raises(ShippingValidationError) as exc_info:
            await booking_client.create_shipment(shipment, credentials)

        assert "postal_code" in exc_info.value.missing_fields
        mock_carrier.book_shipment.assert_not_awaited()
        assert_unbooked(shipment)

    @pytest.mark.asyncio
    async def test_lists_every_missing_field(self, booking_client, shipment, credentials):
        shipment.city = " "
        shipment.recipient_name = None

        with pytest.raises(ShippingValidationError) as exc_info:
            await booking_client.create_shipment(shipment, credentials)

        assert exc_info.value.missing_fields == ["city", "recipient_name"]

    @pytest.mark.asyncio
    async def test_validates_the_destination_the_request_uses(self, booking_client, mock_carrier, shipment, credentials):
        values = shipment.destination_values()
        values["postal_code"] = None

        with patch.object(Shipment, "destination_values", return_value=values):
            with pytest.raises(ShippingValidationError) as exc_info:
                await booking_client.create_shipment(shipment, credentials)

        assert exc_info.value.missing_fields == ["postal_code"]
        mock_carrier.book_shipment.assert_not_awaited()

    def test_recipient_name_maps_to_destination_name(self, shipment):
        assert shipment.destination_values()["name"] == shipment.recipient_name
        assert shipment.destination.name == "John Doe"


    @pytest.mark.asyncio
    async def test_blank_credentials(self, booking_client, mock_carrier, shipment):
        with pytest.raises(ShippingValidationError) as exc_info:
            await booking_client.create_shipment(shipment, Credentials(api_key="", api_secret=""))

        assert exc_info.value.missing_fields == ["credentials"]
        mock_carrier.book_shipment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_service_without_code(self, mock_carrier, shipment, credentials):
        client = BookingClient(mock_carrier, ServiceDescriptor("Extra-Super Fast", None, "postnl"), timeout=1.0)

        with pytest.raises(ShippingValidationError) as exc_info:
            await client.create_shipment(shipment, credentials)

        assert exc_info.value.missing_fields == ["service_code"]


class TestBookingFailures:
    """Failures leave the shipment untouched and say whether a retry can help."""

    @pytest.mark.asyncio
    async def test_invalid_credentials(self, booking_client, mock_carrier, shipment):
        mock_carrier.book_shipment.side_effect = CarrierAuthError("Invalid username/password.", status_code=401)

        with pytest.raises(BookingAuthError) as exc_info:
            await booking_client.create_shipment(shipment, Credentials("WRONG_KEY", "WRONG_SECRET"))

        assert isinstance(exc_info.value, CarrierAuthError)
        assert exc_info.value.retryable is False
        assert exc_info.value.status_code == 401
        assert_unbooked(shipment)

    @pytest.mark.asyncio
    async def test_carrier_rejection_is_not_retryable(self, booking_client, mock_carrier, shipment, credentials):
        mock_carrier.book_shipment.side_effect = CarrierRejectedError("postal_code is invalid", status_code=400)

        with pytest.raises(BookingError) as exc_info:
            await booking_client.create_shipment(shipment, credentials)

        assert not isinstance(exc_info.value, BookingAuthError)
        assert exc_info.value.retryable is False
        assert_unbooked(shipment)

    @pytest.mark.asyncio
    async def test_communication_error_is_retryable(self, booking_client, mock_carrier, shipment, credentials):
        mock_carrier.book_shipment.side_effect = CarrierCommunicationError("502 Bad Gateway", status_code=502)

        with pytest.raises(BookingError) as exc_info:
            await booking_client.create_shipment(shipment, credentials)

        assert exc_info.value.retryable is True
        assert_unbooked(shipment)

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, mock_carrier, pakket_nederland, shipment, credentials):
        async def slow_booking(_request, _credentials):
            await asyncio.sleep(1)

        mock_carrier.book_shipment.side_effect = slow_booking
        client = BookingClient(mock_carrier, pakket_nederland, timeout=0.01)

        with pytest.raises(BookingError) as exc_info:
            await client.create_shipment(shipment, credentials)

        assert exc_info.value.retryable is True
        assert_unbooked(shipment)

    @pytest.mark.asyncio
    async def test_incomplete_response_writes_nothing(self, booking_client, mock_carrier, shipment, credentials):
        mock_carrier.book_shipment.return_value = BookingResponse(
            parcel_id=410656,
            tracking_number="3SYZXG114161295",
            label_url=None,
        )

        with pytest.raises(BookingError) as exc_info:
            await booking_client.create_shipment(shipment, credentials)

        assert exc_info.value.details["has_label_url"] is False
        assert_unbooked(shipment)

    @pytest.mark.asyncio
    async def test_retry_after_failure_starts_fresh(self, booking_client, mock_carrier, shipment, credentials):
        success = mock_carrier.book_shipment.return_value
        mock_carrier.book_shipment.side_effect = [CarrierCommunicationError("timeout"), success]

        with pytest.raises(BookingError):
            await booking_client.create_shipment(shipment, credentials)
        assert_unbooked(shipment)

        await booking_client.create_shipment(shipment, credentials)

        assert shipment.booking_state == BookingState.BOOKED
