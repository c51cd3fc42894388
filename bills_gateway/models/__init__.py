from .db import AccessToken as AccessTokenModel
from .db import AirtimeConfig as AirtimeConfigModel
from .db import DataPlan as DataPlanModel
from .db import UserProfile as UserProfileModel
from .db import Wallet as WalletModel
from .db import WalletEntry as WalletEntryModel
from .schemas import (
    AirtimeConfigResponse,
    AirtimeConfigUpdate,
    BillsPaymentRequest,
    BillsPaymentResponse,
    DataPlanResponse,
    DataPlanUpdate,
    FulfillmentOutcome,
    FulfillmentRequest,
    ProductType,
    ProviderResponse,
    SagaState,
    StatusResponse,
    SyncSummary,
)

__all__ = [
    "AirtimeConfigResponse",
    "AirtimeConfigUpdate",
    "BillsPaymentRequest",
    "BillsPaymentResponse",
    "DataPlanResponse",
    "DataPlanUpdate",
    "FulfillmentOutcome",
    "FulfillmentRequest",
    "ProductType",
    "ProviderResponse",
    "SagaState",
    "StatusResponse",
    "SyncSummary",
    "AccessTokenModel",
    "AirtimeConfigModel",
    "DataPlanModel",
    "UserProfileModel",
    "WalletModel",
    "WalletEntryModel",
]
