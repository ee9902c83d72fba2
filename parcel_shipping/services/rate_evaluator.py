"""
Rate Evaluator

Answers two questions for a Package against one bound carrier service:

- is_available(pkg): can the carrier ship it at all? Advisory and fail-closed:
  any carrier failure reads as "not available" and is only logged.
- compute_price(pkg): what does the bound service cost? Carrier failures
  propagate by kind; a service missing from the quote set is None.

Both share one rate query, memoized by the RateCache so an availability
check followed by a price computation costs one outbound call.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from parcel_shipping.core.config import settings
from parcel_shipping.core.exceptions import (
    CarrierAuthError,
    CarrierCommunicationError,
    CarrierError,
    NotServedError,
    log_shipping_error,
)
from parcel_shipping.core.rate_cache import RateCache, RateCacheKey
from parcel_shipping.models.carrier import ServiceDescriptor
from parcel_shipping.models.package import Package
from parcel_shipping.modules.shipping.carriers.base import BaseCarrier, RateQuote
from parcel_shipping.modules.shipping.weight_limits import WeightLimitPolicy

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    NO_RATES = "no_rates"
    NOT_SERVED = "not_served"
    CARRIER_ERROR = "carrier_error"


@dataclass
class AvailabilityResult:
    """Outcome of an availability check before it is collapsed to a bool."""
    status: AvailabilityStatus
    quotes: List[RateQuote] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def is_available(self) -> bool:
        return self.status == AvailabilityStatus.AVAILABLE


class RateEvaluator:
    """
    Rate lookup, availability and price selection for one carrier service.

    Args:
        carrier: Carrier adapter issuing the rate query
        service: The service this evaluator prices
        weight_policy: Per-carrier, per-country weight limits
        cache: Rate cache instance (clear() between independent sessions)
        timeout: Seconds allowed for one carrier round trip
        account: Credentials fingerprint scoping cached quotes to one account
    """

    def __init__(
        self,
        carrier: BaseCarrier,
        service: ServiceDescriptor,
        weight_policy: WeightLimitPolicy,
        cache: RateCache,
        timeout: Optional[float] = None,
        account: str = "",
    ):
        self.carrier = carrier
        self.service = service
        self.weight_policy = weight_policy
        self.cache = cache
        self.timeout = timeout if timeout is not None else settings.SENDCLOUD_TIMEOUT_SECONDS
        self.account = account

    def _cache_key(self, package: Package) -> RateCacheKey:
        return RateCacheKey.for_package(self.carrier.carrier_code.value, package, account=self.account)

    async def _fetch_rates(self, package: Package) -> List[RateQuote]:
        try:
            return await asyncio.wait_for(self.carrier.find_rates(package), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CarrierCommunicationError(
                f"{self.carrier.carrier_name} rate lookup timed out after {self.timeout}s",
                code="CARRIER_TIMEOUT",
            )

    async def find_rates(self, package: Package) -> List[RateQuote]:
        """
        Rate query shared by availability and pricing, through the cache.

        Raises:
            CarrierError subclasses; failures are not cached
        """
        return await self.cache.get_or_fetch(
            self._cache_key(package),
            lambda: self._fetch_rates(package),
        )

    async def evaluate(self, package: Package) -> AvailabilityResult:
        """
        Three-way availability outcome. Never raises for carrier failures.
        """
        country = package.destination.country_code

        try:
            self.weight_policy.ensure_shippable(self.service.carrier, country, package.weight)
        except NotServedError as e:
            logger.debug(f"[RATES] {self.service.name} not served: {e.message}")
            return AvailabilityResult(status=AvailabilityStatus.NOT_SERVED, error=e)

        try:
            quotes = await self.find_rates(package)
        except CarrierError as e:
            context = "RATES_AUTH" if isinstance(e, CarrierAuthError) else "RATES"
            log_shipping_error(e, context=context)
            return AvailabilityResult(status=AvailabilityStatus.CARRIER_ERROR, error=e)

        if not quotes:
            return AvailabilityResult(status=AvailabilityStatus.NO_RATES)
        return AvailabilityResult(status=AvailabilityStatus.AVAILABLE, quotes=quotes)

    async def is_available(self, package: Package) -> bool:
        """True iff the carrier serves the destination and returns at least one quote."""
        result = await self.evaluate(package)
        return result.is_available

    def select_quote(self, quotes: List[RateQuote]) -> Optional[RateQuote]:
        """
        Quote for the bound service: exact name match first, then exact code.
        """
        for quote in quotes:
            if quote.service_name == self.service.name:
                return quote

        if self.service.code is not None:
            for quote in quotes:
                if quote.service_code == self.service.code:
                    return quote

        return None

    async def compute_price(self, package: Package) -> Optional[Decimal]:
        """
        Price of the bound service in major units (minor units / 100).

        Returns:
            Decimal price, or None when the service is not in the quote set

        Raises:
            CarrierCommunicationError, CarrierAuthError, CarrierRejectedError
        """
        quotes = await self.find_rates(package)
        quote = self.select_quote(quotes)

        if quote is None:
            logger.info(
                f"[RATES] {self.service.name} not among {len(quotes)} quotes to "
                f"{package.destination.country_code}"
            )
            return None

        return (Decimal(quote.price) / 100).quantize(CENTS)
