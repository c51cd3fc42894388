from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from ..models import (
    AccessTokenModel,
    AirtimeConfigModel,
    DataPlanModel,
    UserProfileModel,
    WalletEntryModel,
    WalletModel,
)


class BillsRepository:
    """Thin data access layer around the SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # Wallets ------------------------------------------------------------
    def get_wallet(self, user_id: str) -> Optional[WalletModel]:
        return self.session.get(WalletModel, user_id)

    def add_wallet(self, user_id: str, balance: int = 0) -> WalletModel:
        wallet = WalletModel(user_id=user_id, balance=balance)
        self.session.add(wallet)
        self.session.flush()
        self.session.refresh(wallet)
        return wallet

    def apply_delta(self, user_id: str, delta: int) -> bool:
        """Single conditional UPDATE in minor units; debits only match while the floor holds."""
        stmt = update(WalletModel).where(WalletModel.user_id == user_id)
        if delta < 0:
            stmt = stmt.where(WalletModel.balance + delta >= 0)
        stmt = stmt.values(
            balance=WalletModel.balance + delta,
            updated_at=datetime.now(UTC),
        ).execution_options(synchronize_session=False)
        result = self.session.exec(stmt)
        return result.rowcount == 1

    def read_balance(self, user_id: str) -> Optional[int]:
        stmt = select(WalletModel.balance).where(WalletModel.user_id == user_id)
        return self.session.exec(stmt).first()

    # Wallet entries -----------------------------------------------------
    def add_entry(
        self,
        *,
        user_id: str,
        amount: int,
        entry_type: str,
        ref: Optional[str],
    ) -> WalletEntryModel:
        entry = WalletEntryModel(
            user_id=user_id,
            amount=amount,
            type=entry_type,
            ref=ref,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def list_entries(self, user_id: str, ref: Optional[str] = None) -> list[WalletEntryModel]:
        stmt = select(WalletEntryModel).where(WalletEntryModel.user_id == user_id)
        if ref is not None:
            stmt = stmt.where(WalletEntryModel.ref == ref)
        stmt = stmt.order_by(WalletEntryModel.ts)
        return list(self.session.exec(stmt))

    # Catalog ------------------------------------------------------------
    def get_plan(self, plan_id: str) -> Optional[DataPlanModel]:
        return self.session.get(DataPlanModel, plan_id)

    def get_active_plan(self, plan_id: str) -> Optional[DataPlanModel]:
        stmt = (
            select(DataPlanModel)
            .where(DataPlanModel.plan_id == plan_id)
            .where(DataPlanModel.is_active == True)  # noqa: E712
        )
        return self.session.exec(stmt).first()

    def list_plans(self, network: str, active_only: bool = True) -> list[DataPlanModel]:
        stmt = select(DataPlanModel).where(DataPlanModel.network == network)
        if active_only:
            stmt = stmt.where(DataPlanModel.is_active == True)  # noqa: E712
        stmt = stmt.order_by(DataPlanModel.cost_price)
        return list(self.session.exec(stmt))

    def save_plan(self, plan: DataPlanModel) -> DataPlanModel:
        plan.updated_at = datetime.now(UTC)
        self.session.add(plan)
        self.session.flush()
        return plan

    def get_airtime_config(self, network: str) -> Optional[AirtimeConfigModel]:
        return self.session.get(AirtimeConfigModel, network)

    def save_airtime_config(self, config: AirtimeConfigModel) -> AirtimeConfigModel:
        config.updated_at = datetime.now(UTC)
        self.session.add(config)
        self.session.flush()
        return config

    # Identity -----------------------------------------------------------
    def get_user_id_for_token(self, token: str) -> Optional[str]:
        record = self.session.get(AccessTokenModel, token)
        return record.user_id if record is not None else None

    def is_admin(self, user_id: str) -> bool:
        profile = self.session.get(UserProfileModel, user_id)
        return profile is not None and profile.role == "admin"
