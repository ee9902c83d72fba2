"""
Carrier Weight Limit Policy

Per-carrier, per-destination-country maximum shippable weight.

    max_weight(carrier, country) -> None      carrier does not serve the country
    max_weight(carrier, country) -> 0         served, no weight restriction
    max_weight(carrier, country) -> positive  inclusive maximum in kilograms

The table comes from the bundled carrier-published defaults, the
SHIPPING_WEIGHT_LIMITS setting, or carrier_weight_limits rows.
"""
import logging
from decimal import Decimal
from typing import Dict, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_shipping.core.config import settings
from parcel_shipping.core.exceptions import NotServedError
from parcel_shipping.models.carrier import CarrierWeightLimit

logger = logging.getLogger(__name__)

NO_WEIGHT_LIMIT = Decimal("0")

WeightValue = Union[int, float, str, Decimal]

# Carrier-published limits in kilograms, as offered through Sendcloud
DEFAULT_WEIGHT_LIMITS: Dict[str, Dict[str, WeightValue]] = {
    "postnl": {
        "NL": 23, "BE": 23, "LU": 23,
        "DE": "31.5", "FR": 30, "AT": 30, "DK": 30, "ES": 30, "IT": 30,
        "GB": 20, "US": 20,
    },
    "dpd": {
        "NL": "31.5", "BE": "31.5", "LU": "31.5", "DE": "31.5", "FR": "31.5",
    },
    "dhl": {
        "NL": "31.5", "BE": "31.5", "DE": "31.5",
    },
    # Unstamped letters: weight is governed by the method window, not per country
    "sendcloud": {
        "NL": 0,
    },
}


def _to_weight(value: WeightValue) -> Decimal:
    weight = value if isinstance(value, Decimal) else Decimal(str(value))
    if weight < 0:
        raise ValueError(f"Weight limit cannot be negative: {value}")
    return weight


class WeightLimitPolicy:
    """
    Lookup over a (carrier, country) -> max weight table.

    Carrier slugs and country codes are matched case-insensitively.
    No side effects.
    """

    def __init__(self, table: Mapping[str, Mapping[str, WeightValue]]):
        self._table: Dict[str, Dict[str, Decimal]] = {}
        for carrier, countries in table.items():
            self._table[carrier.lower().strip()] = {
                country.upper().strip(): _to_weight(limit)
                for country, limit in countries.items()
            }

    @classmethod
    def default(cls) -> "WeightLimitPolicy":
        """Policy from SHIPPING_WEIGHT_LIMITS, or the bundled table when unset."""
        if settings.SHIPPING_WEIGHT_LIMITS:
            return cls(settings.SHIPPING_WEIGHT_LIMITS)
        return cls(DEFAULT_WEIGHT_LIMITS)

    def max_weight(self, carrier: str, country_code: str) -> Optional[Decimal]:
        """
        Maximum weight the carrier ships to a country.

        Returns:
            None if not served, 0 for no restriction, otherwise the inclusive maximum
        """
        countries = self._table.get(carrier.lower().strip())
        if countries is None:
            return None
        return countries.get(country_code.upper().strip())

    def is_shippable(self, carrier: str, country_code: str, weight: WeightValue) -> bool:
        limit = self.max_weight(carrier, country_code)
        if limit is None:
            return False
        if limit == NO_WEIGHT_LIMIT:
            return True
        return _to_weight(weight) <= limit

    def ensure_shippable(self, carrier: str, country_code: str, weight: WeightValue) -> None:
        """
        Raise NotServedError unless the carrier ships this weight to the country.
        """
        limit = self.max_weight(carrier, country_code)
        if limit is None:
            raise NotServedError(
                f"{carrier} does not ship to {country_code}",
                carrier=carrier,
                country_code=country_code,
            )
        if limit != NO_WEIGHT_LIMIT and _to_weight(weight) > limit:
            raise NotServedError(
                f"{carrier} ships at most {limit} kg to {country_code}, package weighs {weight} kg",
                carrier=carrier,
                country_code=country_code,
                max_weight=limit,
            )

    def countries_for(self, carrier: str) -> Dict[str, Decimal]:
        """All countries served by a carrier with their limits."""
        return dict(self._table.get(carrier.lower().strip(), {}))

    def __repr__(self) -> str:
        return f"<WeightLimitPolicy(carriers={sorted(self._table)})>"


async def load_weight_limit_policy(db: AsyncSession) -> WeightLimitPolicy:
    """
    Build a policy from carrier_weight_limits rows.

    Args:
        db: Async database session

    Returns:
        WeightLimitPolicy over the persisted table
    """
    result = await db.execute(select(CarrierWeightLimit))
    rows = result.scalars().all()

    table: Dict[str, Dict[str, Decimal]] = {}
    for row in rows:
        table.setdefault(row.carrier, {})[row.country_code] = row.max_weight

    logger.info(f"Loaded {len(rows)} carrier weight limits for {len(table)} carriers")
    return WeightLimitPolicy(table)
