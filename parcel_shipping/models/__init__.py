from parcel_shipping.models.carrier import (
    Carrier,
    CarrierCode,
    CarrierWeightLimit,
    Credentials,
    ServiceDescriptor,
)
from parcel_shipping.models.package import Address, Package, StockLocation
from parcel_shipping.models.shipment import BookingState, Shipment

__all__ = [
    "Address",
    "BookingState",
    "Carrier",
    "CarrierCode",
    "CarrierWeightLimit",
    "Credentials",
    "Package",
    "ServiceDescriptor",
    "Shipment",
    "StockLocation",
]
