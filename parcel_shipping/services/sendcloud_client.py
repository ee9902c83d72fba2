"""
Sendcloud API Client for the parcel shipping integration

Implements the Sendcloud panel API v2 calls the engine needs:
- Shipping methods (rate lookup per destination country)
- Parcels (book a shipment and request its label)

Authentication is HTTP Basic with the calculator's API key/secret.
Every external API call is logged (sanitized) and mapped onto the
carrier error taxonomy. No retries: failures surface once.
"""
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from parcel_shipping.core.config import settings
from parcel_shipping.core.exceptions import (
    CarrierAuthError,
    CarrierCommunicationError,
    CarrierRejectedError,
)
from parcel_shipping.models.carrier import Credentials

logger = logging.getLogger(__name__)

# API endpoints (relative to SENDCLOUD_API_BASE)
SHIPPING_METHODS_PATH = "/shipping_methods"
PARCELS_PATH = "/parcels"

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")


def sanitize_for_logging(text: str, max_length: int = 500) -> str:
    """Truncate carrier text and mask e-mail addresses before logging."""
    if not text:
        return ""
    return _EMAIL_RE.sub("***@***", text[:max_length])


@dataclass
class SendcloudCountryPrice:
    """Price of a shipping method for one destination country."""
    iso_2: str
    price: Decimal  # euros


@dataclass
class SendcloudShippingMethod:
    """Shipping method as returned by GET /shipping_methods."""
    id: int
    name: str
    carrier: str
    min_weight: Decimal
    max_weight: Decimal
    countries: List[SendcloudCountryPrice] = field(default_factory=list)
    raw_response: Dict = field(default_factory=dict)

    def price_for(self, country_code: str) -> Optional[Decimal]:
        for country in self.countries:
            if country.iso_2 == country_code.upper():
                return country.price
        return None

    def accepts_weight(self, weight: Decimal) -> bool:
        return self.min_weight <= weight <= self.max_weight


@dataclass
class SendcloudParcel:
    """Parcel as returned by POST /parcels."""
    id: Optional[int]
    tracking_number: Optional[str]
    label_printer_url: Optional[str]
    normal_printer_urls: List[str] = field(default_factory=list)
    status: Optional[str] = None
    raw_response: Dict = field(default_factory=dict)


def _decimal(value: Any, default: Optional[str] = None) -> Optional[Decimal]:
    """Parse a Sendcloud numeric field; None when absent and no default applies."""
    if value is None:
        return Decimal(default) if default is not None else None
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Malformed numeric value from Sendcloud: {value!r}")
    if parsed.is_nan():
        raise ValueError(f"Malformed numeric value from Sendcloud: {value!r}")
    return parsed


def _country_prices(raw_countries: Any) -> List[SendcloudCountryPrice]:
    """Countries that carry a price; an unpriced country is not quoted."""
    prices = []
    for country in raw_countries or []:
        price = _decimal(country.get("price"))
        if price is None:
            logger.debug(f"Sendcloud country {country.get('iso_2')!r} has no price; not quoted")
            continue
        prices.append(SendcloudCountryPrice(iso_2=str(country.get("iso_2", "")).upper(), price=price))
    return prices


class SendcloudClient:
    """
    Sendcloud API Client.

    One client per credential pair; the HTTP connection pool is created
    lazily and released with close().
    """

    def __init__(
        self,
        credentials: Credentials,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.credentials = credentials
        self.base_url = (base_url or settings.SENDCLOUD_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SENDCLOUD_TIMEOUT_SECONDS
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _make_request(
        self,
        method: str,
        path: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Dict:
        """Make authenticated API request."""
        client = await self._get_http_client()
        url = f"{self.base_url}{path}"
        auth = httpx.BasicAuth(self.credentials.api_key, self.credentials.api_secret)

        try:
            if method.upper() == "GET":
                response = await client.get(url, params=params, auth=auth)
            elif method.upper() == "POST":
                response = await client.post(url, json=data, auth=auth)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.TimeoutException as e:
            logger.error(f"Sendcloud API {method} {path} timed out: {e}")
            raise CarrierCommunicationError(f"Timeout talking to Sendcloud: {e}", code="CARRIER_TIMEOUT")
        except httpx.RequestError as e:
            logger.error(f"Sendcloud API request failed: {e}")
            raise CarrierCommunicationError(f"Network error: {e}")

        logger.debug(f"Sendcloud API {method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            error_msg = self._extract_error_message(response)

            if response.status_code in (401, 403):
                logger.error(f"Sendcloud authentication failed: {response.status_code}")
                raise CarrierAuthError(
                    message=error_msg or "Failed to authenticate with Sendcloud",
                    status_code=response.status_code,
                )
            if response.status_code >= 500 or response.status_code == 429:
                logger.error(f"Sendcloud API error: {response.status_code} - {sanitize_for_logging(error_msg)}")
                raise CarrierCommunicationError(
                    message=error_msg or "Sendcloud API unavailable",
                    status_code=response.status_code,
                )

            logger.error(f"Sendcloud rejected request: {response.status_code} - {sanitize_for_logging(error_msg)}")
            raise CarrierRejectedError(
                message=error_msg or "Sendcloud rejected the request",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Sendcloud returned undecodable JSON for {path}: {sanitize_for_logging(response.text)}")
            raise CarrierCommunicationError(f"Malformed response from Sendcloud: {e}", status_code=response.status_code)

        if not isinstance(payload, dict):
            raise CarrierCommunicationError("Malformed response from Sendcloud: expected an object")
        return payload

    @staticmethod
    def _extract_error_message(response: httpx.Response) -> str:
        """Pull {"error": {"message": ...}} out of a Sendcloud error body."""
        try:
            error_data = response.json()
        except ValueError:
            return response.text[:500]

        if isinstance(error_data, dict):
            error = error_data.get("error")
            if isinstance(error, dict):
                return str(error.get("message", ""))
            if isinstance(error, str):
                return error
        return ""

    # ==================== Shipping Methods ====================

    async def get_shipping_methods(
        self,
        to_country: str,
        sender_address_id: Optional[int] = None,
    ) -> List[SendcloudShippingMethod]:
        """
        Get shipping methods available towards a destination country.

        Args:
            to_country: ISO-2 destination country
            sender_address_id: Sendcloud sender address, "all" when None

        Returns:
            List of shipping methods with per-country prices
        """
        params = {
            "sender_address": str(sender_address_id) if sender_address_id else "all",
            "to_country": to_country.upper(),
        }

        response = await self._make_request("GET", SHIPPING_METHODS_PATH, params=params)

        raw_methods = response.get("shipping_methods")
        if not isinstance(raw_methods, list):
            raise CarrierCommunicationError("Malformed shipping_methods response from Sendcloud")

        methods = []
        for raw in raw_methods:
            try:
                countries = _country_prices(raw.get("countries"))
                methods.append(SendcloudShippingMethod(
                    id=int(raw["id"]),
                    name=raw.get("name", ""),
                    carrier=raw.get("carrier", ""),
                    min_weight=_decimal(raw.get("min_weight"), default="0"),
                    max_weight=_decimal(raw.get("max_weight"), default="Infinity"),
                    countries=countries,
                    raw_response=raw,
                ))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed Sendcloud shipping method: {e}")

        logger.info(f"Sendcloud returned {len(methods)} shipping methods to {params['to_country']}")
        return methods

    # ==================== Parcels ====================

    async def create_parcel(self, parcel: Dict[str, Any]) -> SendcloudParcel:
        """
        Create a parcel and request its label.

        Args:
            parcel: Sendcloud parcel attributes (name, address, city, ...)

        Returns:
            Parsed parcel with id, tracking number and label URLs
        """
        request_data = {"parcel": dict(parcel, request_label=True)}

        response = await self._make_request("POST", PARCELS_PATH, data=request_data)

        raw_parcel = response.get("parcel")
        if not isinstance(raw_parcel, dict):
            raise CarrierCommunicationError("Malformed parcel response from Sendcloud")

        label = raw_parcel.get("label") or {}
        if not isinstance(label, dict):
            raise CarrierCommunicationError(f"Malformed parcel label from Sendcloud: {type(label).__name__}")
        normal_printer = label.get("normal_printer") or []
        if isinstance(normal_printer, str):
            normal_printer = [normal_printer]
        if not isinstance(normal_printer, list):
            raise CarrierCommunicationError("Malformed parcel label from Sendcloud: normal_printer")
        status = raw_parcel.get("status") or {}
        parcel_id = raw_parcel.get("id")

        try:
            parcel_id = int(parcel_id) if parcel_id is not None else None
        except (TypeError, ValueError):
            raise CarrierCommunicationError(f"Malformed parcel id from Sendcloud: {parcel_id!r}")

        result = SendcloudParcel(
            id=parcel_id,
            tracking_number=raw_parcel.get("tracking_number") or None,
            label_printer_url=label.get("label_printer") or None,
            normal_printer_urls=list(normal_printer),
            status=status.get("message") if isinstance(status, dict) else None,
            raw_response=response,
        )

        logger.info(f"Sendcloud parcel {result.id} created, tracking {result.tracking_number}")
        return result
