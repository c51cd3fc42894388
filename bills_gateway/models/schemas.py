from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

class ProductType(str, Enum):
    AIRTIME = "airtime"
    DATA = "data"

class SagaState(str, Enum):
    AUTHENTICATING = "authenticating"
    PRICING = "pricing"
    DEBITING = "debiting"
    FULFILLING = "fulfilling"
    COMPLETED = "completed"
    REFUNDING = "refunding"
    FAILED = "failed"

class BillsPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: ProductType
    network: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(default=None, gt=0, description="Airtime face value")
    plan_id: Optional[str] = Field(default=None, alias="planId")
    request_id: Optional[str] = Field(default=None, alias="requestId")

class FulfillmentRequest(BaseModel):
    """One saga execution's input; request_id is forwarded to the provider."""

    model_config = ConfigDict(frozen=True)

    request_id: str
    user_id: str
    type: ProductType
    network: str
    target_number: str
    amount: Optional[Decimal] = None
    plan_id: Optional[str] = None

class FulfillmentOutcome(BaseModel):
    success: bool
    state: SagaState
    provider_status: Optional[str] = None
    provider_message: Optional[str] = None
    charged: Decimal = Decimal("0")
    request_id: str
    refunded: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

class BillsPaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    charged: Optional[Decimal] = None
    request_id: Optional[str] = Field(default=None, alias="requestId")

class ProviderResponse(BaseModel):
    """Provider reply; unknown fields are kept as-is."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    status: Optional[str] = None
    message: Optional[str] = None
    orderid: Optional[str] = None

class DataPlanResponse(BaseModel):
    plan_id: str
    network: str
    name: str
    selling_price: Decimal
    is_active: bool

class DataPlanUpdate(BaseModel):
    selling_price: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

class AirtimeConfigUpdate(BaseModel):
    cost_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    sell_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    is_active: bool = True

class AirtimeConfigResponse(BaseModel):
    network: str
    cost_percentage: Decimal
    sell_percentage: Decimal
    is_active: bool
    updated_at: datetime

class SyncSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    inserted_or_updated: int = Field(default=0, alias="insertedOrUpdated")
    networks: list[str] = Field(default_factory=list)
    skipped: int = 0
    message: str = ""

class StatusResponse(BaseModel):
    status: Literal["ok", "online"]
    message: Optional[str] = None
