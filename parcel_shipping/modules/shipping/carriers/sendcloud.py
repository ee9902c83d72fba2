"""
Sendcloud Carrier Implementation

- Implements BaseCarrier interface
- Wraps SendcloudClient
- Registered via @register_carrier decorator
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from parcel_shipping.core.exceptions import CarrierAuthError, ShippingValidationError
from parcel_shipping.models.carrier import CarrierCode, Credentials
from parcel_shipping.models.package import Package
from parcel_shipping.modules.shipping.carriers.base import (
    BaseCarrier,
    BookingRequest,
    BookingResponse,
    RateQuote,
)
from parcel_shipping.modules.shipping.carriers import register_carrier
from parcel_shipping.services.sendcloud_client import SendcloudClient

logger = logging.getLogger(__name__)

SENDCLOUD_CURRENCY = "EUR"
MINOR_UNITS = Decimal("100")


def to_minor_units(amount: Decimal) -> int:
    """Convert a euro amount to integer cents."""
    return int((amount * MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@register_carrier(CarrierCode.SENDCLOUD)
class SendcloudCarrier(BaseCarrier):
    """
    Sendcloud shipping carrier implementation.

    Rate lookups use the credentials given at construction; bookings use
    the credentials passed per call, each on its own client.
    """

    def __init__(self, credentials: Optional[Credentials] = None):
        super().__init__(credentials)
        self._clients: Dict[Credentials, SendcloudClient] = {}

    @property
    def carrier_code(self) -> CarrierCode:
        return CarrierCode.SENDCLOUD

    @property
    def carrier_name(self) -> str:
        return "Sendcloud"

    def _get_client(self, credentials: Optional[Credentials] = None) -> SendcloudClient:
        """Get or create the client for a credential pair."""
        credentials = credentials or self._credentials
        if credentials is None or not credentials.is_complete:
            raise CarrierAuthError("Sendcloud API key and secret are not configured")

        client = self._clients.get(credentials)
        if client is None:
            client = SendcloudClient(credentials)
            self._clients[credentials] = client
        return client

    async def find_rates(self, package: Package) -> List[RateQuote]:
        """Get rates from Sendcloud for methods serving the package's destination."""
        client = self._get_client()
        country = package.destination.country_code

        methods = await client.get_shipping_methods(
            to_country=country,
            sender_address_id=package.origin.sender_address_id,
        )

        quotes = []
        for method in methods:
            if not method.accepts_weight(package.weight):
                continue
            price = method.price_for(country)
            if price is None:
                continue
            quotes.append(RateQuote(
                service_name=method.name,
                service_code=str(method.id),
                price=to_minor_units(price),
                currency=SENDCLOUD_CURRENCY,
                carrier=method.carrier,
            ))

        logger.debug(f"Sendcloud quotes to {country} for {package.weight} kg: {len(quotes)}")
        return quotes

    async def book_shipment(self, request: BookingRequest, credentials: Credentials) -> BookingResponse:
        """Create a Sendcloud parcel with a label."""
        if not str(request.service_code).isdigit():
            raise ShippingValidationError(
                f"Sendcloud shipping method id must be numeric, got {request.service_code!r}",
                missing_fields=["service_code"],
            )

        client = self._get_client(credentials)

        parcel = {
            "name": request.name,
            "address": request.address_line1,
            "city": request.city,
            "postal_code": request.postal_code,
            "country": request.country_code,
            "weight": f"{request.weight:.3f}",
            "shipment": {"id": int(request.service_code)},
        }
        optional = {
            "house_number": request.house_number,
            "company_name": request.company_name,
            "country_state": request.state_province,
            "email": request.email,
            "telephone": request.phone,
            "order_number": request.order_number,
            "sender_address": request.sender_address_id,
        }
        parcel.update({k: v for k, v in optional.items() if v})

        result = await client.create_parcel(parcel)

        return BookingResponse(
            parcel_id=result.id,
            tracking_number=result.tracking_number,
            label_url=result.label_printer_url or (result.normal_printer_urls[0] if result.normal_printer_urls else None),
            raw_response=result.raw_response,
        )

    async def close(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
