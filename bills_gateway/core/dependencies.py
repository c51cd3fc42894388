from collections.abc import Generator
from typing import Optional

from fastapi import Depends, Header
from sqlmodel import Session

from ..services import (
    BalanceLedger,
    BillsRepository,
    ClubKonnectClient,
    FulfillmentSaga,
    IdentityService,
    PlanCatalogSync,
    PriceBook,
    PricingResolver,
)
from .config import get_settings
from .db import get_session

def get_provider_client() -> Generator[ClubKonnectClient, None, None]:
    # requests.Session is not thread-safe; each request gets its own.
    client = ClubKonnectClient.from_settings(get_settings())
    try:
        yield client
    finally:
        client.close()

def get_repository(session: Session = Depends(get_session)) -> BillsRepository:
    return BillsRepository(session)

def get_identity_service(repository: BillsRepository = Depends(get_repository)) -> IdentityService:
    return IdentityService(repository)

def get_fulfillment_saga(
    repository: BillsRepository = Depends(get_repository),
    provider: ClubKonnectClient = Depends(get_provider_client),
) -> FulfillmentSaga:
    settings = get_settings()
    return FulfillmentSaga(
        identity=IdentityService(repository),
        pricing=PricingResolver(repository, minimum_airtime=settings.airtime_minimum),
        ledger=BalanceLedger(repository.session, repository),
        provider=provider,
    )

def get_catalog_sync(
    repository: BillsRepository = Depends(get_repository),
    provider: ClubKonnectClient = Depends(get_provider_client),
) -> PlanCatalogSync:
    return PlanCatalogSync(
        repository.session,
        provider,
        markup=get_settings().data_plan_markup,
        repository=repository,
    )

def get_price_book(repository: BillsRepository = Depends(get_repository)) -> PriceBook:
    return PriceBook(repository)

def require_admin(
    authorization: Optional[str] = Header(default=None),
    identity: IdentityService = Depends(get_identity_service),
) -> str:
    return identity.require_admin(authorization)
