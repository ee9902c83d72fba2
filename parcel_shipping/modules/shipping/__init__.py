"""
Shipping Module

- BaseCarrier interface for all carrier implementations
- CarrierFactory for dependency injection
- Per-carrier, per-country weight limit policy
"""
from parcel_shipping.modules.shipping.carriers import CarrierFactory, get_carrier
from parcel_shipping.modules.shipping.carriers.base import BaseCarrier
from parcel_shipping.modules.shipping.weight_limits import WeightLimitPolicy

__all__ = [
    "CarrierFactory",
    "get_carrier",
    "BaseCarrier",
    "WeightLimitPolicy",
]
