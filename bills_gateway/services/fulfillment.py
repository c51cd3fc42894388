from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from ..core.errors import (
    InvalidRequestError,
    ProviderFailureError,
    RefundFailedError,
)
from ..models import (
    BillsPaymentRequest,
    FulfillmentOutcome,
    FulfillmentRequest,
    ProductType,
    ProviderResponse,
    SagaState,
)
from .identity import IdentityService
from .ledger import BalanceLedger, to_money
from .pricing import PricingResolver
from .provider import ClubKonnectClient, ensure_success, normalize_network


logger = logging.getLogger(__name__)


def generate_request_id() -> str:
    return f"REQ-{int(time.time() * 1000)}-{uuid4().hex[:8]}"


class FulfillmentSaga:
    """Prices, debits, fulfils and, when fulfilment fails, refunds.

    States run Authenticating -> Pricing -> Debiting -> Fulfilling and end in
    Completed, or in Refunding -> Failed. Failures before the debit are
    raised as-is with nothing charged. Once the debit is committed, every
    failure in Fulfilling goes through the refund before it is reported.
    Nothing is retried here; a retry is a new execution with a new requestId.
    """

    def __init__(
        self,
        identity: IdentityService,
        pricing: PricingResolver,
        ledger: BalanceLedger,
        provider: ClubKonnectClient,
    ) -> None:
        self.identity = identity
        self.pricing = pricing
        self.ledger = ledger
        self.provider = provider

    def execute(
        self,
        authorization: Optional[str],
        payload: BillsPaymentRequest,
        request_id: Optional[str] = None,
    ) -> FulfillmentOutcome:
        request_id = request_id or payload.request_id or generate_request_id()
        self._enter(SagaState.AUTHENTICATING, request_id)
        user_id = self.identity.resolve_user(authorization)
        request = self.build_request(user_id, payload, request_id)
        return self.run(request)

    @staticmethod
    def build_request(
        user_id: str,
        payload: BillsPaymentRequest,
        request_id: str,
    ) -> FulfillmentRequest:
        network = normalize_network(payload.network)
        if payload.type == ProductType.DATA and not payload.plan_id:
            raise InvalidRequestError("planId is required for data purchases")
        if payload.type == ProductType.AIRTIME and payload.amount is None:
            raise InvalidRequestError("amount is required for airtime purchases")
        return FulfillmentRequest(
            request_id=request_id,
            user_id=user_id,
            type=payload.type,
            network=network,
            target_number=payload.phone,
            amount=to_money(payload.amount) if payload.type == ProductType.AIRTIME else None,
            plan_id=payload.plan_id if payload.type == ProductType.DATA else None,
        )

    def run(self, request: FulfillmentRequest) -> FulfillmentOutcome:
        self._enter(SagaState.PRICING, request.request_id)
        selector = request.plan_id if request.type == ProductType.DATA else request.amount
        charge = self.pricing.resolve_price(request.type, request.network, selector)

        self._enter(SagaState.DEBITING, request.request_id)
        balance = self.ledger.debit(request.user_id, charge, ref=request.request_id)
        logger.info(
            "saga.debited",
            extra={
                "request_id": request.request_id,
                "user_id": request.user_id,
                "charge": str(charge),
                "balance": str(balance),
            },
        )

        self._enter(SagaState.FULFILLING, request.request_id)
        try:
            response = ensure_success(self._fulfil(request))
        except Exception as exc:
            return self._compensate(request, charge, exc)
        except BaseException:
            # Interrupted mid-flight: the debit must not outlive the call.
            # A failed refund is already logged; the interrupt still wins.
            try:
                self._refund(request, charge)
            except RefundFailedError:
                pass
            raise

        self._enter(SagaState.COMPLETED, request.request_id)
        return FulfillmentOutcome(
            success=True,
            state=SagaState.COMPLETED,
            provider_status=response.status,
            provider_message=response.message,
            charged=charge,
            request_id=request.request_id,
            payload=response.model_dump(exclude_none=True),
        )

    def _fulfil(self, request: FulfillmentRequest) -> ProviderResponse:
        if request.type == ProductType.AIRTIME:
            return self.provider.buy_airtime(
                request.network,
                request.target_number,
                request.amount,
                request.request_id,
            )
        if request.type == ProductType.DATA:
            return self.provider.buy_data(
                request.network,
                request.target_number,
                request.plan_id,
                request.request_id,
            )
        raise InvalidRequestError("Invalid service type reached execution")

    def _compensate(
        self,
        request: FulfillmentRequest,
        charge: Decimal,
        error: Exception,
    ) -> FulfillmentOutcome:
        message = str(error) or type(error).__name__
        logger.warning(
            "saga.fulfilment_failed",
            extra={
                "request_id": request.request_id,
                "user_id": request.user_id,
                "error": message,
                "error_type": type(error).__name__,
            },
        )
        self._refund(request, charge)

        provider_status = None
        if isinstance(error, ProviderFailureError):
            provider_status = error.response.get("status")

        self._enter(SagaState.FAILED, request.request_id)
        return FulfillmentOutcome(
            success=False,
            state=SagaState.FAILED,
            provider_status=provider_status,
            provider_message=message,
            charged=Decimal("0"),
            request_id=request.request_id,
            refunded=True,
            error=f"Service Failure: {message}. Wallet Refunded.",
        )

    def _refund(self, request: FulfillmentRequest, charge: Decimal) -> None:
        self._enter(SagaState.REFUNDING, request.request_id)
        try:
            self.ledger.credit(request.user_id, charge, ref=request.request_id)
        except Exception as exc:
            logger.critical(
                "saga.refund_failed",
                extra={
                    "request_id": request.request_id,
                    "user_id": request.user_id,
                    "amount": str(charge),
                    "error": str(exc),
                },
            )
            raise RefundFailedError(
                f"Refund of {charge} failed for request {request.request_id}"
            ) from exc
        logger.info(
            "saga.refunded",
            extra={
                "request_id": request.request_id,
                "user_id": request.user_id,
                "amount": str(charge),
            },
        )

    @staticmethod
    def _enter(state: SagaState, request_id: str) -> None:
        logger.debug("saga.state", extra={"state": state.value, "request_id": request_id})
