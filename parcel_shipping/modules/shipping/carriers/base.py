"""
Base Carrier Interface

- All carrier adapters implement this interface
- The rate evaluator and booking client program against it; adapters are
  swapped via the carrier registry
- Each carrier provides its own:
  - Rate lookup
  - Shipment booking (tracking number, label URL, parcel id)

Adapters raise CarrierCommunicationError, CarrierAuthError or
CarrierRejectedError; they never return partial booking results silently.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from parcel_shipping.models.carrier import CarrierCode, Credentials
from parcel_shipping.models.package import Package


# =============================================================================
# Carrier-Agnostic Data Classes
# =============================================================================

@dataclass(frozen=True)
class RateQuote:
    """Priced offer for one service. price is in carrier minor units (cents)."""
    service_name: str
    service_code: str
    price: int
    currency: str = "EUR"
    carrier: Optional[str] = None  # parcel carrier slug, e.g. "postnl"


@dataclass(frozen=True)
class BookingRequest:
    """Request to book one parcel with the carrier."""
    service_code: str
    weight: Decimal  # kilograms
    name: str
    address_line1: str
    city: str
    postal_code: str
    country_code: str
    house_number: Optional[str] = None
    company_name: Optional[str] = None
    state_province: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    order_number: Optional[str] = None
    sender_address_id: Optional[int] = None


@dataclass
class BookingResponse:
    """Booking result as parsed from the carrier response; fields may be missing."""
    parcel_id: Optional[int] = None
    tracking_number: Optional[str] = None
    label_url: Optional[str] = None
    raw_response: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return bool(self.tracking_number) and bool(self.label_url) and self.parcel_id is not None


@dataclass(frozen=True)
class BookingConfirmation:
    """Validated booking result: all three identifiers present."""
    tracking_number: str
    label_url: str
    parcel_id: int


# =============================================================================
# Base Carrier Interface
# =============================================================================

class BaseCarrier(ABC):
    """
    Abstract base class for all shipping carriers.

    All carriers must implement these methods.
    """

    def __init__(self, credentials: Optional[Credentials] = None):
        """
        Initialize the carrier.

        Args:
            credentials: API credentials used for rate lookups
        """
        self._credentials = credentials

    @property
    @abstractmethod
    def carrier_code(self) -> CarrierCode:
        """Return the carrier code enum value."""
        pass

    @property
    @abstractmethod
    def carrier_name(self) -> str:
        """Return the human-readable carrier name."""
        pass

    @abstractmethod
    async def find_rates(self, package: Package) -> List[RateQuote]:
        """
        Get shipping rates for a package.

        Args:
            package: Package with weight, origin and destination

        Returns:
            List of RateQuote objects for services serving the destination

        Raises:
            CarrierCommunicationError, CarrierAuthError, CarrierRejectedError
        """
        pass

    @abstractmethod
    async def book_shipment(self, request: BookingRequest, credentials: Credentials) -> BookingResponse:
        """
        Book a parcel and request its label.

        Args:
            request: BookingRequest with destination, weight and service
            credentials: Calculator credentials to book with

        Returns:
            BookingResponse with parcel id, tracking number and label URL

        Raises:
            CarrierCommunicationError, CarrierAuthError, CarrierRejectedError
        """
        pass

    async def close(self) -> None:
        """Release transport resources."""
        return None
