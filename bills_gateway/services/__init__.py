from .catalog import PlanCatalogSync
from .fulfillment import FulfillmentSaga, generate_request_id
from .identity import IdentityService
from .ledger import BalanceLedger
from .pricing import PriceBook, PricingResolver
from .provider import ClubKonnectClient
from .repository import BillsRepository

__all__ = [
    "BalanceLedger",
    "BillsRepository",
    "ClubKonnectClient",
    "FulfillmentSaga",
    "IdentityService",
    "PlanCatalogSync",
    "PriceBook",
    "PricingResolver",
    "generate_request_id",
]
