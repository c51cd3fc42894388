from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..core.errors import InsufficientFundsError
from .repository import BillsRepository


logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")
MINOR_UNITS = 100


def to_money(value: Decimal | int | str) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_minor(value: Decimal | int | str) -> int:
    """Naira to kobo, rounded half-up to the kobo first."""
    return int(to_money(value) * MINOR_UNITS)


def from_minor(value: int) -> Decimal:
    return to_money(Decimal(value) / MINOR_UNITS)


class BalanceLedger:
    """Atomic wallet adjustments.

    Every adjustment is one conditional UPDATE committed on its own, so the
    store serializes concurrent debits on the same wallet row. A debit that
    would take the balance below zero matches no row and is rejected; a
    credit always applies, creating the wallet if needed.
    """

    def __init__(
        self,
        session: Session,
        repository: Optional[BillsRepository] = None,
    ) -> None:
        self.session = session
        self.repository = repository or BillsRepository(session)

    def get_balance(self, user_id: str) -> Decimal:
        balance = self.repository.read_balance(user_id)
        return from_minor(balance or 0)

    def adjust_balance(
        self,
        user_id: str,
        delta: Decimal,
        *,
        ref: Optional[str] = None,
    ) -> Decimal:
        delta = to_money(delta)
        if delta == 0:
            raise ValueError("Adjustment amount must be non-zero")
        minor = to_minor(delta)

        applied = self.repository.apply_delta(user_id, minor)
        if not applied:
            if delta < 0:
                self.session.rollback()
                logger.info(
                    "ledger.insufficient_funds",
                    extra={"user_id": user_id, "delta": str(delta), "ref": ref},
                )
                raise InsufficientFundsError("Insufficient balance")
            self._credit_new_wallet(user_id, minor)

        self.repository.add_entry(
            user_id=user_id,
            amount=minor,
            entry_type="DEBIT" if delta < 0 else "CREDIT",
            ref=ref,
        )
        balance = self.get_balance(user_id)
        self.session.commit()

        logger.info(
            "ledger.adjusted",
            extra={
                "user_id": user_id,
                "delta": str(delta),
                "balance": str(balance),
                "ref": ref,
            },
        )
        return balance

    def debit(self, user_id: str, amount: Decimal, *, ref: Optional[str] = None) -> Decimal:
        return self.adjust_balance(user_id, -to_money(amount), ref=ref)

    def credit(self, user_id: str, amount: Decimal, *, ref: Optional[str] = None) -> Decimal:
        return self.adjust_balance(user_id, to_money(amount), ref=ref)

    def _credit_new_wallet(self, user_id: str, delta: int) -> None:
        try:
            self.repository.add_wallet(user_id, delta)
        except IntegrityError:
            # Another writer created the wallet first.
            self.session.rollback()
            if not self.repository.apply_delta(user_id, delta):
                raise
