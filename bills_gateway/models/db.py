from __future__ import annotations
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4
from sqlalchemy import BigInteger
from sqlmodel import Field, SQLModel

class Wallet(SQLModel, table=True):
    user_id: str = Field(primary_key=True, index=True)
    # Minor units (kobo); SQLite has no exact decimal arithmetic.
    balance: int = Field(default=0, ge=0, sa_type=BigInteger)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

class WalletEntry(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    user_id: str = Field(foreign_key="wallet.user_id", index=True)
    amount: int = Field(sa_type=BigInteger)
    type: str
    ref: Optional[str] = Field(default=None, index=True)

class DataPlan(SQLModel, table=True):
    plan_id: str = Field(primary_key=True)
    network: str = Field(index=True)
    name: str
    cost_price: Decimal = Field(max_digits=14, decimal_places=2)
    selling_price: Decimal = Field(max_digits=14, decimal_places=2)
    is_active: bool = True
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

class AirtimeConfig(SQLModel, table=True):
    network: str = Field(primary_key=True)
    cost_percentage: Decimal = Field(default=Decimal("0"), max_digits=6, decimal_places=3)
    sell_percentage: Decimal = Field(default=Decimal("0"), max_digits=6, decimal_places=3)
    is_active: bool = True
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

class UserProfile(SQLModel, table=True):
    id: str = Field(primary_key=True)
    role: str = "user"

class AccessToken(SQLModel, table=True):
    token: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="userprofile.id", index=True)
