from decimal import Decimal

import pytest

from ..core.errors import (
    BelowMinimumError,
    InsufficientFundsError,
    InvalidPlanError,
    InvalidRequestError,
    ProviderUnreachableError,
    RefundFailedError,
    UnauthorizedError,
    UnsupportedNetworkError,
)
from ..models import BillsPaymentRequest, SagaState
from ..services import (
    BalanceLedger,
    BillsRepository,
    FulfillmentSaga,
    IdentityService,
    PricingResolver,
)
from .conftest import FakeProvider

AUTH = "Bearer token-alice"


@pytest.fixture
def make_saga(session):
    def _make(provider: FakeProvider, ledger: BalanceLedger | None = None) -> FulfillmentSaga:
        repository = BillsRepository(session)
        return FulfillmentSaga(
            identity=IdentityService(repository),
            pricing=PricingResolver(repository, minimum_airtime=50),
            ledger=ledger or BalanceLedger(session, repository),
            provider=provider,
        )

    return _make


@pytest.fixture
def alice(seed):
    seed("alice", token="token-alice", balance="5000")
    return "alice"


def airtime(amount: str, **extra) -> BillsPaymentRequest:
    return BillsPaymentRequest(type="airtime", network="mtn", phone="08030000000", amount=Decimal(amount), **extra)


def test_airtime_purchase_completes_and_charges_once(make_saga, alice, balance_of) -> None:
    provider = FakeProvider(response={"status": "ORDER_RECEIVED", "orderid": "9001"})
    saga = make_saga(provider)

    outcome = saga.execute(AUTH, airtime("1000"), request_id="REQ-1")

    assert outcome.success is True
    assert outcome.state == SagaState.COMPLETED
    assert outcome.charged == Decimal("1000.00")
    assert outcome.payload["orderid"] == "9001"
    assert balance_of(alice) == Decimal("4000.00")
    assert provider.calls == [("airtime", "mtn", "08030000000", Decimal("1000"), "REQ-1")]


def test_provider_failure_refunds_the_debit(make_saga, alice, balance_of) -> None:
    provider = FakeProvider(response={"status": "FAILED", "message": "Invalid number"})
    saga = make_saga(provider)

    outcome = saga.execute(AUTH, airtime("1000"), request_id="REQ-2")

    assert outcome.success is False
    assert outcome.state == SagaState.FAILED
    assert outcome.refunded is True
    assert outcome.provider_status == "FAILED"
    assert outcome.error == "Service Failure: Invalid number. Wallet Refunded."
    assert balance_of(alice) == Decimal("5000.00")


@pytest.mark.parametrize(
    "error",
    [
        ProviderUnreachableError("Provider request timed out after 20.0s"),
        RuntimeError("socket closed"),
        KeyError("orderid"),
    ],
)
def test_any_exception_after_debit_is_compensated(make_saga, alice, balance_of, error) -> None:
    saga = make_saga(FakeProvider(error=error))

    outcome = saga.execute(AUTH, airtime("1000"))

    assert outcome.state == SagaState.FAILED
    assert outcome.refunded is True
    assert outcome.error.endswith("Wallet Refunded.")
    assert balance_of(alice) == Decimal("5000.00")


def test_interrupt_during_fulfilment_still_refunds(make_saga, alice, balance_of) -> None:
    saga = make_saga(FakeProvider(error=SystemExit(1)))

    with pytest.raises(SystemExit):
        saga.execute(AUTH, airtime("1000"))

    assert balance_of(alice) == Decimal("5000.00")


def test_debit_and_refund_are_recorded_against_request_id(make_saga, alice, session) -> None:
    saga = make_saga(FakeProvider(response={"status": "FAILED"}))

    saga.execute(AUTH, airtime("1000"), request_id="REQ-AUDIT")

    entries = BillsRepository(session).list_entries(alice, ref="REQ-AUDIT")
    assert [(entry.type, entry.amount) for entry in entries] == [
        ("DEBIT", -100000),
        ("CREDIT", 100000),
    ]


def test_unknown_data_plan_is_rejected_before_debit(make_saga, alice, balance_of) -> None:
    provider = FakeProvider()
    saga = make_saga(provider)
    payload = BillsPaymentRequest(type="data", network="mtn", phone="0803", planId="missing")

    with pytest.raises(InvalidPlanError):
        saga.execute(AUTH, payload)

    assert balance_of(alice) == Decimal("5000.00")
    assert provider.calls == []


def test_data_purchase_charges_selling_price(make_saga, alice, add_plan, balance_of) -> None:
    add_plan("500.0", network="mtn", cost_price="404", selling_price="454")
    provider = FakeProvider(response={"status": "ORDER_COMPLETED"})
    saga = make_saga(provider)
    payload = BillsPaymentRequest(type="data", network="MTN", phone="0803", planId="500.0", requestId="REQ-D")

    outcome = saga.execute(AUTH, payload)

    assert outcome.success is True
    assert outcome.charged == Decimal("454.00")
    assert balance_of(alice) == Decimal("4546.00")
    assert provider.calls == [("data", "mtn", "0803", "500.0", "REQ-D")]


def test_airtime_below_minimum_is_rejected(make_saga, alice, balance_of) -> None:
    provider = FakeProvider()

    with pytest.raises(BelowMinimumError):
        make_saga(provider).execute(AUTH, airtime("30"))

    assert balance_of(alice) == Decimal("5000.00")
    assert provider.calls == []


def test_insufficient_funds_never_reaches_provider(make_saga, seed, balance_of) -> None:
    seed("bob", token="token-bob", balance="40")
    provider = FakeProvider()

    with pytest.raises(InsufficientFundsError):
        make_saga(provider).execute("Bearer token-bob", airtime("1000"))

    assert balance_of("bob") == Decimal("40.00")
    assert provider.calls == []


@pytest.mark.parametrize("authorization", [None, "", "Bearer unknown", "Basic token-alice"])
def test_unauthenticated_callers_are_rejected(make_saga, alice, balance_of, authorization) -> None:
    provider = FakeProvider()

    with pytest.raises(UnauthorizedError):
        make_saga(provider).execute(authorization, airtime("1000"))

    assert balance_of(alice) == Decimal("5000.00")


def test_missing_selector_is_invalid(make_saga, alice) -> None:
    payload = BillsPaymentRequest(type="data", network="glo", phone="0805")

    with pytest.raises(InvalidRequestError):
        make_saga(FakeProvider()).execute(AUTH, payload)


def test_unknown_network_is_invalid(make_saga, alice) -> None:
    payload = BillsPaymentRequest(type="airtime", network="vodafone", phone="0805", amount=Decimal("100"))

    with pytest.raises(UnsupportedNetworkError):
        make_saga(FakeProvider()).execute(AUTH, payload)


def test_failed_refund_is_escalated(make_saga, alice, session) -> None:
    class BrokenCreditLedger(BalanceLedger):
        def credit(self, user_id, amount, *, ref=None):
            raise RuntimeError("ledger offline")

    saga = make_saga(FakeProvider(response={"status": "FAILED"}), ledger=BrokenCreditLedger(session))

    with pytest.raises(RefundFailedError):
        saga.execute(AUTH, airtime("1000"))


def test_generated_request_id_is_sent_to_provider(make_saga, alice) -> None:
    provider = FakeProvider()

    outcome = make_saga(provider).execute(AUTH, airtime("100"))

    assert outcome.request_id.startswith("REQ-")
    assert provider.calls[0][-1] == outcome.request_id


def test_interrupt_is_reraised_even_when_refund_fails(make_saga, alice, session) -> None:
    class BrokenCreditLedger(BalanceLedger):
        def credit(self, user_id, amount, *, ref=None):
            raise RuntimeError("ledger offline")

    saga = make_saga(FakeProvider(error=SystemExit(1)), ledger=BrokenCreditLedger(session))

    with pytest.raises(SystemExit):
        saga.execute(AUTH, airtime("1000"))


def test_airtime_amount_is_rounded_to_kobo_before_provider(make_saga, alice, balance_of) -> None:
    provider = FakeProvider()

    outcome = make_saga(provider).execute(AUTH, airtime("1000.123"), request_id="REQ-K")

    assert outcome.charged == Decimal("1000.12")
    assert provider.calls == [("airtime", "mtn", "08030000000", Decimal("1000.12"), "REQ-K")]
    assert str(provider.calls[0][3]) == "1000.12"
    assert balance_of(alice) == Decimal("3999.88")


def test_discounted_airtime_refund_restores_balance_exactly(
    make_saga, alice, add_airtime_config, balance_of, session
) -> None:
    add_airtime_config("mtn", "3.5")
    saga = make_saga(FakeProvider(response={"status": "FAILED"}))

    outcome = saga.execute(AUTH, airtime("1000.55"), request_id="REQ-DISC")

    assert outcome.refunded is True
    assert balance_of(alice) == Decimal("5000.00")
    entries = BillsRepository(session).list_entries(alice, ref="REQ-DISC")
    assert [(entry.type, entry.amount) for entry in entries] == [
        ("DEBIT", -96553),
        ("CREDIT", 96553),
    ]
