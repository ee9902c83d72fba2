"""
Sendcloud Shipping Calculators

The calculator is what an order system binds to a shipping method. It
holds the api_key/api_secret preferences for its Sendcloud account and
delegates to a RateEvaluator (available/compute) and a BookingClient
(create_shipment) bound to its service.

Subclasses name their service through `description`; `service_name()`
falls back to it when not overridden.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from parcel_shipping.core.config import settings
from parcel_shipping.core.rate_cache import RateCache
from parcel_shipping.models.carrier import CarrierCode, Credentials, ServiceDescriptor
from parcel_shipping.models.package import Package
from parcel_shipping.models.shipment import Shipment
from parcel_shipping.modules.shipping.carriers import get_carrier
from parcel_shipping.modules.shipping.carriers.base import BaseCarrier, BookingConfirmation
from parcel_shipping.modules.shipping.weight_limits import WeightLimitPolicy
from parcel_shipping.services.booking_client import BookingClient
from parcel_shipping.services.rate_evaluator import AvailabilityResult, RateEvaluator

logger = logging.getLogger(__name__)

# Shared by calculators that are not handed their own cache.
# One pricing session (request / cart) should not outlive the TTL.
shipping_rate_cache = RateCache(
    ttl_seconds=settings.SHIPPING_RATE_CACHE_TTL_SECONDS,
    max_size=settings.SHIPPING_RATE_CACHE_MAX_SIZE,
)


def clear_rate_cache() -> None:
    """Reset the shared rate cache between independent pricing sessions."""
    shipping_rate_cache.clear()


class SendcloudCalculator:
    """
    Base calculator for one Sendcloud service.

    Class attributes:
        description: Human-readable service name
        carrier: Parcel carrier slug used for weight limits
        service_code: Sendcloud shipping method id, None if unknown
    """

    description: str = "Sendcloud"
    carrier: str = "sendcloud"
    service_code: Optional[str] = None
    preference_names = ("api_key", "api_secret")

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        weight_policy: Optional[WeightLimitPolicy] = None,
        cache: Optional[RateCache] = None,
        carrier_adapter: Optional[BaseCarrier] = None,
        timeout: Optional[float] = None,
    ):
        self._preferences: Dict[str, Any] = {
            "api_key": api_key if api_key is not None else settings.SENDCLOUD_API_KEY,
            "api_secret": api_secret if api_secret is not None else settings.SENDCLOUD_API_SECRET,
        }
        self.weight_policy = weight_policy or WeightLimitPolicy.default()
        self.cache = cache if cache is not None else shipping_rate_cache
        self.timeout = timeout
        self._injected_adapter = carrier_adapter
        self._carrier_adapter: Optional[BaseCarrier] = None

    @classmethod
    def service_name(cls) -> str:
        """Name matched against the carrier's quotes; the description unless overridden."""
        return cls.description

    @classmethod
    def service(cls) -> ServiceDescriptor:
        return ServiceDescriptor(
            name=cls.service_name(),
            code=cls.service_code,
            carrier=cls.carrier,
        )

    # ==================== Preferences ====================

    def set_preference(self, name: str, value: Any) -> None:
        if name not in self.preference_names:
            raise KeyError(f"Unknown calculator preference: {name}")
        self._preferences[name] = value
        # Rate lookups run on the adapter credentials; rebuild on next use
        self._carrier_adapter = None

    def get_preference(self, name: str) -> Any:
        if name not in self.preference_names:
            raise KeyError(f"Unknown calculator preference: {name}")
        return self._preferences.get(name)

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            api_key=self._preferences.get("api_key") or "",
            api_secret=self._preferences.get("api_secret") or "",
        )

    # ==================== Collaborators ====================

    @property
    def carrier_adapter(self) -> BaseCarrier:
        if self._injected_adapter is not None:
            return self._injected_adapter
        if self._carrier_adapter is None:
            self._carrier_adapter = get_carrier(CarrierCode.SENDCLOUD, self.credentials)
        return self._carrier_adapter

    def rate_evaluator(self) -> RateEvaluator:
        return RateEvaluator(
            carrier=self.carrier_adapter,
            service=self.service(),
            weight_policy=self.weight_policy,
            cache=self.cache,
            timeout=self.timeout,
            account=self.credentials.fingerprint,
        )

    def booking_client(self) -> BookingClient:
        return BookingClient(
            carrier=self.carrier_adapter,
            service=self.service(),
            timeout=self.timeout,
        )

    def max_weight_for_country(self, country_code: str) -> Optional[Decimal]:
        return self.weight_policy.max_weight(self.carrier, country_code)

    # ==================== Operations ====================

    async def evaluate(self, package: Package) -> AvailabilityResult:
        return await self.rate_evaluator().evaluate(package)

    async def available(self, package: Package) -> bool:
        return await self.rate_evaluator().is_available(package)

    async def compute(self, package: Package) -> Optional[Decimal]:
        return await self.rate_evaluator().compute_price(package)

    async def create_shipment(self, shipment: Shipment) -> BookingConfirmation:
        return await self.booking_client().create_shipment(shipment, self.credentials)

    async def close(self) -> None:
        if self._carrier_adapter is not None:
            await self._carrier_adapter.close()
            self._carrier_adapter = None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(service={self.service_name()!r})>"


class PakketNederland(SendcloudCalculator):
    """PostNL parcel service through Sendcloud."""
    description = "Pakket Nederland (PostNL)"
    carrier = "postnl"
    service_code = settings.SENDCLOUD_PAKKET_NEDERLAND_METHOD_ID
