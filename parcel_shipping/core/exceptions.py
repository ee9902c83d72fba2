"""
Parcel Shipping Exception Hierarchy

Structured exception classes for rate evaluation and shipment booking.
All exceptions include code, message, and details for audit trail and debugging.

Exception Hierarchy:
    ShippingBaseError
    └── ShippingError
        ├── NotServedError
        ├── CarrierError
        │   ├── CarrierCommunicationError
        │   ├── CarrierAuthError
        │   └── CarrierRejectedError
        ├── ShippingValidationError
        └── BookingError
            └── BookingAuthError
"""
import logging
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


class ShippingBaseError(Exception):
    """
    Base exception for all parcel shipping errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "PARCEL_SHIPPING_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# SHIPPING ERRORS
# =============================================================================

class ShippingError(ShippingBaseError):
    """Base exception for shipping-related errors."""
    default_code = "SHIPPING_ERROR"
    default_severity = "P1"


class NotServedError(ShippingError):
    """Destination/weight combination is outside the carrier's service envelope.

    An expected outcome, not a fault.
    """
    default_code = "SHIPPING_NOT_SERVED"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        carrier: Optional[str] = None,
        country_code: Optional[str] = None,
        max_weight: Optional[Any] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "carrier": carrier,
            "country_code": country_code,
            "max_weight": str(max_weight) if max_weight is not None else None,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# CARRIER ERRORS
# =============================================================================

class CarrierError(ShippingError):
    """Base exception for failures talking to the carrier API."""
    default_code = "CARRIER_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details=details, **kwargs)


class CarrierCommunicationError(CarrierError):
    """Network failure, timeout, 5xx or malformed response. Potentially transient."""
    default_code = "CARRIER_COMMUNICATION_FAILED"
    default_severity = "P2"
    retryable = True


class CarrierAuthError(CarrierError):
    """Carrier rejected the API key/secret. Needs a credential fix, never retried."""
    default_code = "CARRIER_AUTH_FAILED"
    default_severity = "P0"  # Auth failures are critical
    retryable = False


class CarrierRejectedError(CarrierError):
    """Carrier refused the request (4xx other than auth)."""
    default_code = "CARRIER_REJECTED"
    retryable = False


class ShippingValidationError(ShippingError):
    """Required booking data missing; raised before any carrier call."""
    default_code = "SHIPPING_VALIDATION_FAILED"
    default_severity = "P2"

    def __init__(
        self,
        message: str,
        missing_fields: Optional[List[str]] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["missing_fields"] = list(missing_fields or [])
        self.missing_fields = list(missing_fields or [])
        super().__init__(message, details=details, **kwargs)


class BookingError(ShippingError):
    """Failed to book a shipment / acquire its label."""
    default_code = "SHIPPING_LABEL_FAILED"

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        shipment_id: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "retryable": retryable,
            "shipment_id": shipment_id,
        })
        self.retryable = retryable
        super().__init__(message, details=details, **kwargs)


class BookingAuthError(BookingError, CarrierAuthError):
    """Booking refused because the calculator credentials are invalid."""
    default_code = "SHIPPING_LABEL_AUTH_FAILED"
    default_severity = "P0"

    def __init__(self, message: str, shipment_id: Optional[int] = None, **kwargs):
        super().__init__(message, retryable=False, shipment_id=shipment_id, **kwargs)


# =============================================================================
# EXCEPTION CATALOG
# =============================================================================

EXCEPTION_CATALOG = {
    "SHIPPING_NOT_SERVED": {"class": NotServedError, "severity": "P3"},
    "CARRIER_COMMUNICATION_FAILED": {"class": CarrierCommunicationError, "severity": "P2"},
    "CARRIER_AUTH_FAILED": {"class": CarrierAuthError, "severity": "P0"},
    "CARRIER_REJECTED": {"class": CarrierRejectedError, "severity": "P1"},
    "SHIPPING_VALIDATION_FAILED": {"class": ShippingValidationError, "severity": "P2"},
    "SHIPPING_LABEL_FAILED": {"class": BookingError, "severity": "P1"},
    "SHIPPING_LABEL_AUTH_FAILED": {"class": BookingAuthError, "severity": "P0"},
}


def log_shipping_error(error: ShippingBaseError, context: Optional[str] = None) -> None:
    """Log a structured shipping error at a level derived from its severity."""
    level = {
        "P0": logging.ERROR,
        "P1": logging.ERROR,
        "P2": logging.WARNING,
        "P3": logging.INFO,
    }.get(error.severity, logging.WARNING)
    prefix = f"[{context}] " if context else ""
    logger.log(level, f"{prefix}{error.code}: {error.message}", extra={"shipping_error": error.to_dict()})
