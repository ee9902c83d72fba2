"""
Tests for the carrier weight limit policy.
"""
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from parcel_shipping.core.exceptions import NotServedError
from parcel_shipping.models.carrier import CarrierWeightLimit
from parcel_shipping.modules.shipping.weight_limits import (
    DEFAULT_WEIGHT_LIMITS,
    WeightLimitPolicy,
    load_weight_limit_policy,
)


@pytest.fixture
def policy() -> WeightLimitPolicy:
    return WeightLimitPolicy({
        "postnl": {"NL": 23, "DE": "31.5", "BE": 0},
        "dpd": {"NL": 30},
    })


class TestMaxWeight:
    """Three-way lookup: absent, unlimited, ceiling."""

    def test_absent_country_is_not_served(self, policy):
        assert policy.max_weight("postnl", "JP") is None

    def test_unknown_carrier_is_not_served(self, policy):
        assert policy.max_weight("ups", "NL") is None

    def test_zero_means_unlimited(self, policy):
        assert policy.max_weight("postnl", "BE") == Decimal("0")

    def test_positive_ceiling(self, policy):
        assert policy.max_weight("postnl", "DE") == Decimal("31.5")

    def test_lookup_is_case_insensitive(self, policy):
        assert policy.max_weight("PostNL", "nl") == Decimal("23")

    def test_limits_are_carrier_specific(self, policy):
        assert policy.max_weight("postnl", "NL") != policy.max_weight("dpd", "NL")

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            WeightLimitPolicy({"postnl": {"NL": -1}})


class TestShippable:
    """Weight checks against the table."""

    def test_ceiling_is_inclusive(self, policy):
        assert policy.is_shippable("postnl", "NL", Decimal("23")) is True
        assert policy.is_shippable("postnl", "NL", Decimal("23.001")) is False

    def test_zero_limit_ships_any_weight(self, policy):
        assert policy.is_shippable("postnl", "BE", Decimal("5000")) is True

    def test_not_served_is_not_shippable(self, policy):
        assert policy.is_shippable("postnl", "JP", Decimal("1")) is False

    def test_ensure_shippable_raises_for_absent_country(self, policy):
        with pytest.raises(NotServedError) as exc_info:
            policy.ensure_shippable("postnl", "JP", Decimal("1"))

        assert exc_info.value.code == "SHIPPING_NOT_SERVED"
        assert exc_info.value.details["country_code"] == "JP"

    def test_ensure_shippable_raises_when_too_heavy(self, policy):
        with pytest.raises(NotServedError) as exc_info:
            policy.ensure_shippable("postnl", "NL", Decimal("24"))

        assert exc_info.value.details["max_weight"] == "23"

    def test_ensure_shippable_passes(self, policy):
        policy.ensure_shippable("postnl", "BE", Decimal("100"))


class TestPolicySources:
    """Bundled defaults and persisted rows."""

    def test_default_uses_bundled_table(self):
        policy = WeightLimitPolicy.default()

        assert policy.max_weight("postnl", "NL") == Decimal(str(DEFAULT_WEIGHT_LIMITS["postnl"]["NL"]))
        assert policy.countries_for("postnl")

    @pytest.mark.asyncio
    async def test_load_from_database(self, mock_db):
        rows = [
            CarrierWeightLimit(carrier="postnl", country_code="NL", max_weight=Decimal("23")),
            CarrierWeightLimit(carrier="postnl", country_code="BE", max_weight=Decimal("0")),
            CarrierWeightLimit(carrier="dhl", country_code="DE", max_weight=Decimal("31.5")),
        ]
        mock_result = MagicMock()
        mock_result.scalars.return_value.all.return_value = rows
        mock_db.execute.return_value = mock_result

        policy = await load_weight_limit_policy(mock_db)

        assert mock_db.execute.call_count == 1
        assert policy.max_weight("postnl", "NL") == Decimal("23")
        assert policy.max_weight("postnl", "BE") == Decimal("0")
        assert policy.max_weight("dhl", "DE") == Decimal("31.5")
        assert policy.max_weight("dhl", "NL") is None
