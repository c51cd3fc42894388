from decimal import Decimal
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core import db as core_db
from ..core.db import create_engine_for_url, get_session, set_engine
from ..core.dependencies import get_provider_client
from ..main import app
from ..models import (
    AccessTokenModel,
    AirtimeConfigModel,
    DataPlanModel,
    ProviderResponse,
    UserProfileModel,
    WalletModel,
)
from ..services import BalanceLedger
from ..services.ledger import to_minor


class FakeProvider:
    """Stands in for ClubKonnectClient and records every call."""

    def __init__(
        self,
        response: Optional[dict[str, Any]] = None,
        error: Optional[BaseException] = None,
        catalog: Optional[dict[str, Any]] = None,
    ) -> None:
        self.response = response or {"status": "ORDER_RECEIVED", "orderid": "7001"}
        self.error = error
        self.catalog = catalog or {"MOBILE_NETWORK": {}}
        self.calls: list[tuple] = []

    def _respond(self, call: tuple) -> ProviderResponse:
        self.calls.append(call)
        if self.error is not None:
            raise self.error
        return ProviderResponse.model_validate(self.response)

    def buy_airtime(self, network, mobile_number, amount, request_id):
        return self._respond(("airtime", network, mobile_number, amount, request_id))

    def buy_data(self, network, mobile_number, plan_id, request_id):
        return self._respond(("data", network, mobile_number, plan_id, request_id))

    def get_wallet_balance(self):
        self.calls.append(("balance",))
        return ProviderResponse.model_validate({"status": "SUCCESS", "balance": "250000.00"})

    def query_transaction_status(self, order_id):
        self.calls.append(("query", order_id))
        return ProviderResponse.model_validate({"status": "ORDER_COMPLETED", "orderid": order_id})

    def get_data_plan_catalog(self):
        self.calls.append(("catalog",))
        return self.catalog


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'test.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def seed(engine):
    def _seed(
        user_id: str,
        token: Optional[str] = None,
        balance: Optional[str] = None,
        role: str = "user",
    ) -> None:
        with Session(engine) as session:
            session.add(UserProfileModel(id=user_id, role=role))
            session.flush()
            if token is not None:
                session.add(AccessTokenModel(token=token, user_id=user_id))
            if balance is not None:
                session.add(WalletModel(user_id=user_id, balance=to_minor(balance)))
            session.commit()

    return _seed


@pytest.fixture
def add_plan(engine):
    def _add_plan(
        plan_id: str,
        network: str = "mtn",
        cost_price: str = "404",
        selling_price: str = "454",
        is_active: bool = True,
    ) -> None:
        with Session(engine) as session:
            session.add(
                DataPlanModel(
                    plan_id=plan_id,
                    network=network,
                    name=f"{network.upper()} {plan_id}",
                    cost_price=Decimal(cost_price),
                    selling_price=Decimal(selling_price),
                    is_active=is_active,
                )
            )
            session.commit()

    return _add_plan


@pytest.fixture
def add_airtime_config(engine):
    def _add_config(network: str, sell_percentage: str, is_active: bool = True) -> None:
        with Session(engine) as session:
            session.add(
                AirtimeConfigModel(
                    network=network,
                    sell_percentage=Decimal(sell_percentage),
                    is_active=is_active,
                )
            )
            session.commit()

    return _add_config


@pytest.fixture
def balance_of(engine):
    def _balance_of(user_id: str) -> Decimal:
        with Session(engine) as session:
            return BalanceLedger(session).get_balance(user_id)

    return _balance_of


@pytest.fixture
def client(engine, provider) -> TestClient:
    original_engine = core_db.engine
    set_engine(engine)

    def _get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session_override
    app.dependency_overrides[get_provider_client] = lambda: provider

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(original_engine)
