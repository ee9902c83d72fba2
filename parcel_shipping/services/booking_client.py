"""
Booking Client

Books a paid shipment with the carrier and writes tracking number, label
URL and carrier parcel id onto the Shipment. The three fields are written
together on success and never on failure, so a failed attempt leaves the
shipment unbooked and can simply be retried.

The client does not deduplicate: check shipment.is_booked before calling.
"""
import asyncio
import logging
from typing import List, Optional

from parcel_shipping.core.config import settings
from parcel_shipping.core.exceptions import (
    BookingAuthError,
    BookingError,
    CarrierAuthError,
    CarrierCommunicationError,
    CarrierRejectedError,
    ShippingValidationError,
    log_shipping_error,
)
from parcel_shipping.models.carrier import Credentials, ServiceDescriptor
from parcel_shipping.models.shipment import Shipment
from parcel_shipping.modules.shipping.carriers.base import (
    BaseCarrier,
    BookingConfirmation,
    BookingRequest,
    BookingResponse,
)

logger = logging.getLogger(__name__)

# Destination fields the carrier's booking schema requires:
# (Address field, reported field name, label)
REQUIRED_DESTINATION_FIELDS = (
    ("country_code", "country_code", "country"),
    ("postal_code", "postal_code", "postal code"),
    ("city", "city", "city"),
    ("address_line1", "address_line1", "street address"),
    ("name", "recipient_name", "recipient name"),
)


class BookingClient:
    """
    Creates carrier shipments for one bound service.

    Args:
        carrier: Carrier adapter issuing the booking call
        service: Service to book (its code is the carrier shipping method)
        timeout: Seconds allowed for the booking round trip
    """

    def __init__(
        self,
        carrier: BaseCarrier,
        service: ServiceDescriptor,
        timeout: Optional[float] = None,
    ):
        self.carrier = carrier
        self.service = service
        self.timeout = timeout if timeout is not None else settings.SENDCLOUD_TIMEOUT_SECONDS

    def validate(self, shipment: Shipment, credentials: Optional[Credentials]) -> None:
        """
        Check booking prerequisites. No network access.

        Raises:
            ShippingValidationError listing every missing field
        """
        missing: List[str] = []

        if credentials is None or not credentials.is_complete:
            missing.append("credentials")

        # Same values the booking request is built from
        destination = shipment.destination_values()
        for address_field, reported, _label in REQUIRED_DESTINATION_FIELDS:
            value = destination.get(address_field)
            if value is None or not str(value).strip():
                missing.append(reported)

        if shipment.weight is None or shipment.weight <= 0:
            missing.append("weight")

        if not self.service.code:
            missing.append("service_code")

        if missing:
            labels = {reported: label for _field, reported, label in REQUIRED_DESTINATION_FIELDS}
            readable = ", ".join(labels.get(m, m.replace("_", " ")) for m in missing)
            raise ShippingValidationError(
                f"Cannot book shipment {shipment.id}: missing {readable}",
                missing_fields=missing,
            )

    def build_request(self, shipment: Shipment) -> BookingRequest:
        package = shipment.to_package()
        destination = package.destination
        return BookingRequest(
            service_code=self.service.code,
            weight=package.weight,
            name=destination.name,
            address_line1=destination.address_line1,
            city=destination.city,
            postal_code=destination.postal_code,
            country_code=destination.country_code,
            house_number=destination.house_number,
            company_name=destination.company_name,
            state_province=destination.state_province,
            email=destination.email,
            phone=destination.phone,
            order_number=package.order_number,
            sender_address_id=package.origin.sender_address_id,
        )

    async def _book(self, request: BookingRequest, credentials: Credentials) -> BookingResponse:
        try:
            return await asyncio.wait_for(
                self.carrier.book_shipment(request, credentials),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise CarrierCommunicationError(
                f"{self.carrier.carrier_name} booking timed out after {self.timeout}s",
                code="CARRIER_TIMEOUT",
            )

    async def create_shipment(self, shipment: Shipment, credentials: Credentials) -> BookingConfirmation:
        """
        Book the shipment with the carrier and record the result.

        Returns:
            BookingConfirmation with tracking number, label URL and parcel id

        Raises:
            ShippingValidationError: prerequisites missing, nothing was sent
            BookingAuthError: credentials rejected (not retryable)
            BookingError: carrier rejection (not retryable) or
                communication failure (retryable)
        """
        self.validate(shipment, credentials)

        if shipment.is_booked:
            logger.warning(
                f"[BOOKING] Shipment {shipment.id} already booked as {shipment.tracking_number}; booking again"
            )

        request = self.build_request(shipment)

        try:
            response = await self._book(request, credentials)
        except CarrierAuthError as e:
            error = BookingAuthError(
                f"{self.carrier.carrier_name} rejected the API credentials: {e.message}",
                shipment_id=shipment.id,
                status_code=e.status_code,
            )
            log_shipping_error(error, context="BOOKING")
            raise error from e
        except CarrierRejectedError as e:
            error = BookingError(
                f"{self.carrier.carrier_name} rejected the booking: {e.message}",
                retryable=False,
                shipment_id=shipment.id,
            )
            log_shipping_error(error, context="BOOKING")
            raise error from e
        except CarrierCommunicationError as e:
            error = BookingError(
                f"Could not reach {self.carrier.carrier_name}: {e.message}",
                retryable=True,
                shipment_id=shipment.id,
            )
            log_shipping_error(error, context="BOOKING")
            raise error from e

        if not response.is_complete:
            error = BookingError(
                f"{self.carrier.carrier_name} booking response is missing tracking, label or parcel id",
                retryable=True,
                shipment_id=shipment.id,
                details={
                    "has_tracking_number": bool(response.tracking_number),
                    "has_label_url": bool(response.label_url),
                    "has_parcel_id": response.parcel_id is not None,
                },
            )
            log_shipping_error(error, context="BOOKING")
            raise error

        confirmation = BookingConfirmation(
            tracking_number=response.tracking_number,
            label_url=response.label_url,
            parcel_id=response.parcel_id,
        )
        shipment.apply_booking(confirmation)

        logger.info(
            f"[BOOKING] Shipment {shipment.id} booked: parcel {confirmation.parcel_id}, "
            f"tracking {confirmation.tracking_number}"
        )
        return confirmation
