"""
Shipment model for the Sendcloud shipping integration

Owned by the order system. Created empty when an order ships; the booking
engine writes tracking number, label URL and carrier parcel id exactly once,
on a successful booking, and leaves the row untouched on failure.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Dict, Optional
from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Index
)
import enum

from parcel_shipping.core.database import Base
from parcel_shipping.models.package import Address, Package, StockLocation

if TYPE_CHECKING:
    from parcel_shipping.modules.shipping.carriers.base import BookingConfirmation


class BookingState(str, enum.Enum):
    """Booking lifecycle of a shipment."""
    UNBOOKED = "unbooked"
    BOOKED = "booked"


class Shipment(Base):
    """
    A shipment awaiting (or holding) a carrier booking.

    Carries enough destination and weight data to build a Package.
    """
    __tablename__ = "shipments"
    __table_args__ = (
        Index("ix_shipments_order_number", "order_number"),
        Index("ix_shipments_tracking_number", "tracking_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), nullable=True)

    # Package
    weight = Column(Numeric(8, 3), nullable=False)  # kilograms

    # Origin
    stock_location_id = Column(Integer, nullable=True)
    origin_country_code = Column(String(2), default="NL")
    origin_postal_code = Column(String(20), nullable=True)
    sender_address_id = Column(Integer, nullable=True)

    # Destination
    recipient_name = Column(String(100), nullable=True)
    company_name = Column(String(100), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    house_number = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    state_province = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country_code = Column(String(2), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)

    # Written by a successful booking, all together
    tracking_number = Column(String(100), nullable=True)
    label_url = Column(String(500), nullable=True)
    carrier_parcel_id = Column(Integer, nullable=True)
    booked_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def booking_state(self) -> BookingState:
        if self.tracking_number and self.label_url and self.carrier_parcel_id is not None:
            return BookingState.BOOKED
        return BookingState.UNBOOKED

    @property
    def is_booked(self) -> bool:
        return self.booking_state == BookingState.BOOKED

    def destination_values(self) -> Dict[str, Optional[str]]:
        """Destination columns keyed by Address field name."""
        return {
            "country_code": self.country_code,
            "postal_code": self.postal_code,
            "city": self.city,
            "name": self.recipient_name,
            "company_name": self.company_name,
            "address_line1": self.address_line1,
            "house_number": self.house_number,
            "state_province": self.state_province,
            "email": self.email,
            "phone": self.phone,
        }

    @property
    def destination(self) -> Address:
        return Address(**self.destination_values())

    def to_package(self) -> Package:
        """Build the immutable Package the rate and booking engine work on."""
        origin = StockLocation(
            id=self.stock_location_id if self.stock_location_id is not None else 0,
            country_code=self.origin_country_code or "NL",
            postal_code=self.origin_postal_code,
            sender_address_id=self.sender_address_id,
        )
        return Package(
            weight=Decimal(str(self.weight)),
            origin=origin,
            destination=self.destination,
            order_number=self.order_number,
        )

    def apply_booking(self, confirmation: "BookingConfirmation") -> None:
        """Write the booking result. All three fields are set in one step."""
        self.tracking_number, self.label_url, self.carrier_parcel_id, self.booked_at = (
            confirmation.tracking_number,
            confirmation.label_url,
            confirmation.parcel_id,
            datetime.now(timezone.utc),
        )

    def __repr__(self):
        return f"<Shipment(id={self.id}, order={self.order_number}, tracking={self.tracking_number})>"
