import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header

from ..core.dependencies import (
    get_catalog_sync,
    get_fulfillment_saga,
    get_price_book,
    get_provider_client,
    require_admin,
)
from ..core.errors import BillsError, RefundFailedError
from ..models import (
    AirtimeConfigResponse,
    AirtimeConfigUpdate,
    BillsPaymentRequest,
    BillsPaymentResponse,
    DataPlanResponse,
    DataPlanUpdate,
    StatusResponse,
    SyncSummary,
)
from ..services import (
    ClubKonnectClient,
    FulfillmentSaga,
    PlanCatalogSync,
    PriceBook,
    generate_request_id,
)
from ..services.provider import normalize_network


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bills", tags=["bills"])

@router.get("", response_model=StatusResponse)
def bills_status() -> StatusResponse:
    return StatusResponse(status="online", message="Bills Payment service is ready")

@router.post("", response_model=BillsPaymentResponse, response_model_exclude_none=True)
def pay_bill(
    payload: BillsPaymentRequest,
    authorization: Optional[str] = Header(default=None),
    saga: FulfillmentSaga = Depends(get_fulfillment_saga),
) -> BillsPaymentResponse:
    request_id = payload.request_id or generate_request_id()
    try:
        outcome = saga.execute(authorization, payload, request_id=request_id)
    except RefundFailedError:
        return BillsPaymentResponse(
            success=False,
            error="Service Failure: refund could not be completed. Support has been notified.",
            request_id=request_id,
        )
    except BillsError as exc:
        return BillsPaymentResponse(success=False, error=str(exc), request_id=request_id)
    except Exception:
        logger.exception("bills.unexpected_error", extra={"request_id": request_id})
        return BillsPaymentResponse(success=False, error="Unknown error", request_id=request_id)

    if not outcome.success:
        return BillsPaymentResponse(success=False, error=outcome.error, request_id=request_id)
    return BillsPaymentResponse(
        success=True,
        data=outcome.payload,
        charged=outcome.charged,
        request_id=request_id,
    )

plans_router = APIRouter(prefix="/data-plans", tags=["data-plans"])

@plans_router.get("", response_model=list[DataPlanResponse])
def list_data_plans(
    network: str,
    price_book: PriceBook = Depends(get_price_book),
) -> list[DataPlanResponse]:
    plans = price_book.list_plans(normalize_network(network))
    return [DataPlanResponse.model_validate(plan, from_attributes=True) for plan in plans]

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

@admin_router.post("/data-plans/sync", response_model=SyncSummary)
def sync_data_plans(sync: PlanCatalogSync = Depends(get_catalog_sync)) -> SyncSummary:
    return sync.sync()

@admin_router.patch("/data-plans/{plan_id}", response_model=DataPlanResponse)
def update_data_plan(
    plan_id: str,
    payload: DataPlanUpdate,
    price_book: PriceBook = Depends(get_price_book),
) -> DataPlanResponse:
    plan = price_book.update_plan(plan_id, payload)
    return DataPlanResponse.model_validate(plan, from_attributes=True)

@admin_router.put("/airtime-configs/{network}", response_model=AirtimeConfigResponse)
def set_airtime_config(
    network: str,
    payload: AirtimeConfigUpdate,
    price_book: PriceBook = Depends(get_price_book),
) -> AirtimeConfigResponse:
    config = price_book.set_airtime_config(normalize_network(network), payload)
    return AirtimeConfigResponse.model_validate(config, from_attributes=True)

@admin_router.get("/provider/balance")
def provider_balance(
    provider: ClubKonnectClient = Depends(get_provider_client),
) -> dict[str, Any]:
    return provider.get_wallet_balance().model_dump(exclude_none=True)

@admin_router.get("/provider/orders/{order_id}")
def provider_order_status(
    order_id: str,
    provider: ClubKonnectClient = Depends(get_provider_client),
) -> dict[str, Any]:
    return provider.query_transaction_status(order_id).model_dump(exclude_none=True)

__all__ = ["router", "plans_router", "admin_router"]
