"""
Carrier adapter registry

Adapters announce themselves with @register_carrier; calculators ask
CarrierFactory for an instance bound to their credentials.
"""
from typing import Dict, List, Optional, Type
import logging

from parcel_shipping.models.carrier import CarrierCode, Credentials
from parcel_shipping.modules.shipping.carriers.base import BaseCarrier

logger = logging.getLogger(__name__)

# CarrierCode -> adapter class
_ADAPTERS: Dict[CarrierCode, Type[BaseCarrier]] = {}


def register_carrier(carrier_code: CarrierCode):
    """
    Class decorator binding an adapter to a carrier code.

    Usage:
        @register_carrier(CarrierCode.SENDCLOUD)
        class SendcloudCarrier(BaseCarrier):
            ...
    """
    def decorator(adapter_cls: Type[BaseCarrier]):
        _ADAPTERS[carrier_code] = adapter_cls
        logger.debug(f"Carrier adapter {adapter_cls.__name__} handles {carrier_code.value}")
        return adapter_cls
    return decorator


class CarrierFactory:
    """Builds adapter instances from the registry."""

    @classmethod
    def get_carrier(
        cls,
        carrier_code: CarrierCode,
        credentials: Optional[Credentials] = None,
    ) -> Optional[BaseCarrier]:
        """
        Instantiate the adapter for a carrier code.

        Args:
            carrier_code: Carrier API to talk to
            credentials: Key/secret used for rate lookups

        Returns:
            Adapter instance, or None when no adapter handles the code
        """
        adapter_cls = _ADAPTERS.get(carrier_code)
        if adapter_cls is None:
            logger.warning(f"No carrier adapter for {carrier_code.value}")
            return None

        return adapter_cls(credentials)

    @classmethod
    def get_registered_carriers(cls) -> List[CarrierCode]:
        return list(_ADAPTERS)


def get_carrier(
    carrier_code: CarrierCode,
    credentials: Optional[Credentials] = None,
) -> Optional[BaseCarrier]:
    """Shortcut for CarrierFactory.get_carrier()."""
    return CarrierFactory.get_carrier(carrier_code, credentials)


# Adapter modules register on import; kept last because they import register_carrier
from parcel_shipping.modules.shipping.carriers.sendcloud import SendcloudCarrier  # noqa: E402, F401
