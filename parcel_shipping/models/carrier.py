"""
Carrier models for the Sendcloud shipping integration

Stores carrier configuration (API credentials, default service) and the
per-carrier, per-destination-country weight limit table.
"""
import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime,
    Numeric, Text, Index, UniqueConstraint, Enum as SQLEnum
)
import enum

from parcel_shipping.core.database import Base


class CarrierCode(str, enum.Enum):
    """
    Supported carrier APIs.

    Sendcloud fronts the parcel carriers (PostNL, DHL, DPD, ...); the carrier
    slug of a service lives on its ServiceDescriptor.
    """
    SENDCLOUD = "SENDCLOUD"


@dataclass(frozen=True)
class ServiceDescriptor:
    """
    One carrier service offering.

    Attributes:
        name: Human-readable service name as the carrier labels it
        code: Stable carrier service code (Sendcloud shipping method id),
              None when the carrier has no stable code
        carrier: Owning parcel carrier slug, e.g. "postnl"
    """
    name: str
    code: Optional[str]
    carrier: str


@dataclass(frozen=True)
class Credentials:
    """API key/secret pair scoped to one calculator configuration."""
    api_key: str
    api_secret: str

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key and self.api_secret)

    @property
    def fingerprint(self) -> str:
        """Short stable digest identifying the account; safe to log and to key caches on."""
        return hashlib.sha256(f"{self.api_key}:{self.api_secret}".encode()).hexdigest()[:16]

    def __repr__(self) -> str:
        # Never leak the secret into logs
        masked = f"{self.api_key[:4]}..." if self.api_key else ""
        return f"Credentials(api_key={masked!r}, api_secret='***')"


class Carrier(Base):
    """
    Carrier configuration and settings.

    Stores API credentials and the default service for a calculator.
    """
    __tablename__ = "carriers"
    __table_args__ = (
        Index("ix_carriers_code", "code"),
        Index("ix_carriers_active", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Carrier identification
    code = Column(SQLEnum(CarrierCode), nullable=False)
    name = Column(String(100), nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)

    # API Configuration
    api_key = Column(Text, nullable=True)
    api_secret = Column(Text, nullable=True)

    # Default service
    service_name = Column(String(100), nullable=True)
    service_code = Column(String(50), nullable=True)
    service_carrier = Column(String(50), nullable=True)  # e.g. "postnl"

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def credentials(self) -> Credentials:
        return Credentials(api_key=self.api_key or "", api_secret=self.api_secret or "")

    @property
    def service(self) -> Optional[ServiceDescriptor]:
        if not self.service_name or not self.service_carrier:
            return None
        return ServiceDescriptor(
            name=self.service_name,
            code=self.service_code,
            carrier=self.service_carrier,
        )

    def __repr__(self):
        return f"<Carrier(id={self.id}, code={self.code}, name={self.name}, active={self.is_active})>"


class CarrierWeightLimit(Base):
    """
    Maximum shippable weight per carrier and destination country.

    max_weight of 0 means the carrier ships there without a weight limit.
    A missing row means the carrier does not serve the country.
    """
    __tablename__ = "carrier_weight_limits"
    __table_args__ = (
        UniqueConstraint("carrier", "country_code", name="uq_carrier_weight_limits_carrier_country"),
        Index("ix_carrier_weight_limits_carrier", "carrier"),
    )

    id = Column(Integer, primary_key=True, index=True)
    carrier = Column(String(50), nullable=False)  # e.g. "postnl"
    country_code = Column(String(2), nullable=False)
    max_weight = Column(Numeric(8, 3), nullable=False, default=0)  # kilograms

    def __repr__(self):
        return f"<CarrierWeightLimit(carrier={self.carrier}, country={self.country_code}, max={self.max_weight})>"
