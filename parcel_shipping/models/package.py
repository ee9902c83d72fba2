"""
Package value types handed to the engine by the order system.

Packing line items into weight-bearing parcels is done by the caller;
these values are read-only to rate evaluation and booking.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union


@dataclass(frozen=True)
class Address:
    """Destination address. Country is required; the rest is needed for booking."""
    country_code: str
    postal_code: Optional[str] = None
    city: Optional[str] = None
    name: Optional[str] = None
    company_name: Optional[str] = None
    address_line1: Optional[str] = None
    house_number: Optional[str] = None
    state_province: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def __post_init__(self):
        if not self.country_code or not self.country_code.strip():
            raise ValueError("Address.country_code is required")
        object.__setattr__(self, "country_code", self.country_code.strip().upper())


@dataclass(frozen=True)
class StockLocation:
    """Origin of a package."""
    id: Union[int, str]
    name: str = ""
    country_code: str = "NL"
    postal_code: Optional[str] = None
    city: Optional[str] = None
    sender_address_id: Optional[int] = None  # Sendcloud sender address


@dataclass(frozen=True)
class Package:
    """Package weight (kilograms) with its origin and destination."""
    weight: Decimal
    origin: StockLocation
    destination: Address
    order_number: Optional[str] = None

    def __post_init__(self):
        weight = self.weight if isinstance(self.weight, Decimal) else Decimal(str(self.weight))
        if weight <= 0:
            raise ValueError(f"Package weight must be positive, got {weight}")
        object.__setattr__(self, "weight", weight)
