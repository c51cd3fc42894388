from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Union

from ..core.errors import BelowMinimumError, InvalidPlanError, InvalidRequestError
from ..models import (
    AirtimeConfigModel,
    AirtimeConfigUpdate,
    DataPlanModel,
    DataPlanUpdate,
    ProductType,
)
from .ledger import to_money
from .repository import BillsRepository


logger = logging.getLogger(__name__)

Selector = Union[str, Decimal, int]


class PricingResolver:
    """Computes what a purchase costs the user's wallet. Read-only."""

    def __init__(self, repository: BillsRepository, minimum_airtime: int = 50) -> None:
        self.repository = repository
        self.minimum_airtime = Decimal(minimum_airtime)

    def resolve_price(
        self,
        product_type: ProductType,
        network: str,
        selector: Selector,
    ) -> Decimal:
        if product_type == ProductType.DATA:
            return self._data_price(network, str(selector))
        if product_type == ProductType.AIRTIME:
            return self._airtime_price(network, selector)
        raise InvalidRequestError(f"Unsupported service type: {product_type}")

    def _data_price(self, network: str, plan_id: str) -> Decimal:
        plan = self.repository.get_active_plan(plan_id)
        if plan is None or plan.network != network:
            raise InvalidPlanError(f"Invalid Data Plan: {plan_id}")
        return to_money(plan.selling_price)

    def _airtime_price(self, network: str, selector: Selector) -> Decimal:
        try:
            amount = Decimal(selector)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise InvalidRequestError(f"Invalid airtime amount: {selector}") from exc
        if not amount.is_finite() or amount < self.minimum_airtime:
            raise BelowMinimumError(f"Minimum Airtime is N{self.minimum_airtime}")

        config = self.repository.get_airtime_config(network)
        if config is None or not config.is_active or not config.sell_percentage:
            return to_money(amount)

        # sell_percentage is the discount passed on to the user.
        discount = amount * Decimal(config.sell_percentage) / Decimal(100)
        charge = to_money(amount - discount)
        logger.debug(
            "pricing.airtime.discounted",
            extra={
                "network": network,
                "amount": str(amount),
                "sell_percentage": str(config.sell_percentage),
                "charge": str(charge),
            },
        )
        return charge


class PriceBook:
    """Admin-side edits of plan prices and airtime margins."""

    def __init__(self, repository: BillsRepository) -> None:
        self.repository = repository

    def list_plans(self, network: str) -> list[DataPlanModel]:
        return self.repository.list_plans(network, active_only=True)

    def update_plan(self, plan_id: str, changes: DataPlanUpdate) -> DataPlanModel:
        plan = self.repository.get_plan(plan_id)
        if plan is None:
            raise InvalidPlanError(f"Invalid Data Plan: {plan_id}")
        if changes.selling_price is not None:
            plan.selling_price = to_money(changes.selling_price)
        if changes.is_active is not None:
            plan.is_active = changes.is_active
        self.repository.save_plan(plan)
        self.repository.session.commit()
        logger.info(
            "pricing.plan.updated",
            extra={
                "plan_id": plan_id,
                "selling_price": str(plan.selling_price),
                "is_active": plan.is_active,
            },
        )
        return plan

    def set_airtime_config(self, network: str, changes: AirtimeConfigUpdate) -> AirtimeConfigModel:
        config = self.repository.get_airtime_config(network)
        if config is None:
            config = AirtimeConfigModel(network=network)
        config.cost_percentage = changes.cost_percentage
        config.sell_percentage = changes.sell_percentage
        config.is_active = changes.is_active
        self.repository.save_airtime_config(config)
        self.repository.session.commit()
        logger.info(
            "pricing.airtime_config.updated",
            extra={"network": network, "sell_percentage": str(config.sell_percentage)},
        )
        return config
