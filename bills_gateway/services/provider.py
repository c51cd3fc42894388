from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Literal, Optional

import requests

from ..core.config import Settings
from ..core.errors import (
    ProviderFailureError,
    ProviderUnreachableError,
    UnsupportedNetworkError,
)
from ..models import ProviderResponse


logger = logging.getLogger(__name__)

NETWORK_CODES = {"mtn": "01", "glo": "02", "9mobile": "03", "airtel": "04"}
SUCCESS_STATUSES = frozenset({"ORDER_RECEIVED", "ORDER_COMPLETED", "SUCCESS"})


def normalize_network(network: str) -> str:
    """Return the canonical network name for a name or provider code."""
    value = (network or "").strip().lower()
    if value in NETWORK_CODES:
        return value
    for name, code in NETWORK_CODES.items():
        if value == code:
            return name
    raise UnsupportedNetworkError(f"Unsupported network: {network}")


def network_code(network: str) -> str:
    return NETWORK_CODES[normalize_network(network)]


def is_success(response: ProviderResponse) -> bool:
    return (response.status or "").upper() in SUCCESS_STATUSES


def ensure_success(response: ProviderResponse) -> ProviderResponse:
    if not is_success(response):
        raise ProviderFailureError(
            response.message or response.status or "Provider API Failure",
            response=response.model_dump(),
        )
    return response


def _format_amount(amount: Decimal | int) -> str:
    value = Decimal(amount)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return str(value)


class ClubKonnectClient:
    """HTTP client for the ClubKonnect (Nellobyte) prepaid-services API.

    Every call is a GET with credentials and parameters in the query string.
    Transport failures, timeouts, non-2xx statuses and non-JSON bodies raise
    ProviderUnreachableError; the status field is left for the caller to judge.
    """

    def __init__(
        self,
        *,
        user_id: str,
        api_key: str,
        base_url: str = "https://www.nellobytesystems.com",
        callback_url: str = "",
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.user_id = user_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.callback_url = callback_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClubKonnectClient":
        return cls(
            user_id=settings.provider_user_id,
            api_key=settings.provider_api_key,
            base_url=settings.provider_base_url,
            callback_url=settings.provider_callback_url,
            timeout=settings.provider_timeout_seconds,
        )

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _get_json(self, endpoint: str, params: dict[str, str]) -> Any:
        query = {"UserID": self.user_id, "APIKey": self.api_key}
        query.update(params)
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.exceptions.Timeout as exc:
            logger.warning("provider.timeout", extra={"endpoint": endpoint})
            raise ProviderUnreachableError(
                f"Provider request timed out after {self.timeout}s"
            ) from exc
        except requests.exceptions.RequestException as exc:
            logger.warning(
                "provider.transport_error",
                extra={"endpoint": endpoint, "error": str(exc)},
            )
            raise ProviderUnreachableError(f"Unable to reach provider: {exc}") from exc

        if not response.ok:
            logger.warning(
                "provider.http_error",
                extra={"endpoint": endpoint, "status_code": response.status_code},
            )
            raise ProviderUnreachableError(
                f"ClubKonnect API Error: {response.status_code} {response.reason}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnreachableError("Invalid response format from provider") from exc

    def _request(self, endpoint: str, params: dict[str, str]) -> ProviderResponse:
        payload = self._get_json(endpoint, params)
        if not isinstance(payload, dict):
            raise ProviderUnreachableError("Invalid response format from provider")
        result = ProviderResponse.model_validate(payload)
        logger.info(
            "provider.response",
            extra={
                "endpoint": endpoint,
                "status": result.status,
                "orderid": result.orderid,
                "request_id": params.get("RequestID"),
            },
        )
        return result

    def _order(self, endpoint: str, request_id: str, **params: str) -> ProviderResponse:
        params["RequestID"] = request_id
        params["CallBackURL"] = self.callback_url
        return self._request(endpoint, params)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    def get_wallet_balance(self) -> ProviderResponse:
        return self._request("/APIWalletBalanceV1.asp", {})

    def buy_airtime(
        self,
        network: str,
        mobile_number: str,
        amount: Decimal | int,
        request_id: str,
    ) -> ProviderResponse:
        return self._order(
            "/APIAirtimeV1.asp",
            request_id,
            MobileNetwork=network_code(network),
            MobileNumber=mobile_number,
            Amount=_format_amount(amount),
        )

    def buy_data(
        self,
        network: str,
        mobile_number: str,
        plan_id: str,
        request_id: str,
    ) -> ProviderResponse:
        return self._order(
            "/APIDatabundleV1.asp",
            request_id,
            MobileNetwork=network_code(network),
            MobileNumber=mobile_number,
            DataPlan=plan_id,
        )

    def pay_cable_tv(
        self,
        cable_provider: str,
        smart_card_no: str,
        package_id: str,
        request_id: str,
    ) -> ProviderResponse:
        return self._order(
            "/APICableTVV1.asp",
            request_id,
            CableProvider=cable_provider,
            SmartCardNo=smart_card_no,
            Package=package_id,
        )

    def pay_electricity(
        self,
        disco: str,
        meter_no: str,
        amount: Decimal | int,
        meter_type: Literal["prepaid", "postpaid"],
        request_id: str,
    ) -> ProviderResponse:
        return self._order(
            "/APIElectricityV1.asp",
            request_id,
            ElectricityCompany=disco,
            MeterNo=meter_no,
            Amount=_format_amount(amount),
            MeterType=meter_type,
        )

    def print_recharge_card(
        self,
        network: str,
        value: str,
        quantity: int,
        request_id: str,
    ) -> ProviderResponse:
        return self._order(
            "/APIRechargeCardV1.asp",
            request_id,
            MobileNetwork=network_code(network),
            Value=value,
            Quantity=str(quantity),
        )

    def buy_exam_pin(self, exam: Literal["WAEC", "JAMB"], request_id: str) -> ProviderResponse:
        endpoint = "/APIWAECV1.asp" if exam == "WAEC" else "/APIJAMBV1.asp"
        return self._order(endpoint, request_id)

    def query_transaction_status(self, order_id: str) -> ProviderResponse:
        return self._request("/APIQueryV1.asp", {"OrderID": order_id})

    def get_data_plan_catalog(self) -> dict[str, Any]:
        payload = self._get_json("/APIDatabundlePlansV2.asp", {})
        if not isinstance(payload, dict):
            raise ProviderUnreachableError("Invalid catalog format from provider")
        return payload
