from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core.errors import ProviderFailureError
from ..models import DataPlanModel, SyncSummary
from .ledger import to_money
from .provider import ClubKonnectClient
from .repository import BillsRepository


logger = logging.getLogger(__name__)

# Upstream field names vary between responses; exact keys are tried in
# order, then the first scalar field whose name matches the pattern.
ID_KEYS = ("PRODUCT_ID", "ID", "id", "PLAN_ID", "plan_id")
PRICE_KEYS = ("PRODUCT_AMOUNT", "AMOUNT", "PRICE", "COST", "cost_price")
NAME_KEYS = ("PRODUCT_NAME", "NAME", "TITLE", "PACKAGE_NAME")

ID_PATTERN = re.compile(r"id$", re.IGNORECASE)
PRICE_PATTERN = re.compile(r"amount|price|cost", re.IGNORECASE)
NAME_PATTERN = re.compile(r"name|title|package", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedPlan:
    plan_id: str
    network: str
    name: str
    cost_price: Decimal


def extract_field(
    plan: dict[str, Any],
    keys: tuple[str, ...],
    pattern: re.Pattern[str],
) -> Optional[str]:
    for key in keys:
        value = plan.get(key)
        if value not in (None, ""):
            return str(value)
    for key, value in plan.items():
        if isinstance(value, (dict, list)) or value in (None, ""):
            continue
        if pattern.search(key):
            return str(value)
    return None


def normalize_catalog_network(key: str) -> str:
    name = key.lower()
    if "mtn" in name:
        return "mtn"
    if "glo" in name:
        return "glo"
    if "airtel" in name:
        return "airtel"
    if "mobile" in name or "etisalat" in name:
        return "9mobile"
    return name


def iter_catalog_plans(catalog: dict[str, Any]) -> Iterator[tuple[str, str, dict[str, Any]]]:
    """Yield (network key, network, plan) for every plan in the catalog.

    Entries under a network may be a list or a single object, and each entry
    may wrap its plans in a PRODUCT list or object.
    """
    networks = catalog.get("MOBILE_NETWORK")
    if not isinstance(networks, dict):
        raise ProviderFailureError("Catalog response has no MOBILE_NETWORK section", response=catalog)

    for network_key, entries in networks.items():
        network = normalize_catalog_network(network_key)
        if isinstance(entries, dict):
            entries = [entries]
        for entry in entries or []:
            if not isinstance(entry, dict):
                continue
            products = entry.get("PRODUCT")
            if isinstance(products, list):
                plans = products
            elif isinstance(products, dict):
                plans = [products]
            else:
                plans = [entry]
            for plan in plans:
                if isinstance(plan, dict):
                    yield network_key, network, plan


def parse_plan(network: str, plan: dict[str, Any]) -> Optional[ParsedPlan]:
    """Returns None for id-less wrappers; raises ValueError for bad records."""
    plan_id = extract_field(plan, ID_KEYS, ID_PATTERN)
    if plan_id is None:
        return None

    raw_price = extract_field(plan, PRICE_KEYS, PRICE_PATTERN)
    if raw_price is None:
        raise ValueError(f"Plan {plan_id} has no price")
    try:
        cost_price = to_money(raw_price.replace(",", ""))
    except InvalidOperation as exc:
        raise ValueError(f"Plan {plan_id} has unparseable price {raw_price!r}") from exc
    if not cost_price.is_finite() or cost_price < 0:
        raise ValueError(f"Plan {plan_id} has invalid price {raw_price!r}")

    name = extract_field(plan, NAME_KEYS, NAME_PATTERN) or f"{network.upper()} {plan_id}"
    return ParsedPlan(plan_id=plan_id, network=network, name=name, cost_price=cost_price)


class PlanCatalogSync:
    """Pulls the provider's data-plan catalog into local price records.

    New plans get cost price plus the fixed markup as their selling price.
    Existing plans only have cost, name and network refreshed; the selling
    price and the active flag belong to the admin.
    """

    def __init__(
        self,
        session: Session,
        provider: ClubKonnectClient,
        markup: Decimal | int = 50,
        repository: Optional[BillsRepository] = None,
    ) -> None:
        self.session = session
        self.provider = provider
        self.markup = to_money(markup)
        self.repository = repository or BillsRepository(session)

    def sync(self) -> SyncSummary:
        catalog = self.provider.get_data_plan_catalog()

        processed = 0
        skipped = 0
        networks: list[str] = []
        mappings: list[str] = []

        for network_key, network, plan in iter_catalog_plans(catalog):
            mapping = f"{network_key}->{network}"
            if mapping not in mappings:
                mappings.append(mapping)
            if network not in networks:
                networks.append(network)

            try:
                parsed = parse_plan(network, plan)
            except ValueError as exc:
                skipped += 1
                logger.warning(
                    "catalog.plan.skipped",
                    extra={"network": network, "reason": str(exc)},
                )
                continue
            if parsed is None:
                continue

            try:
                self._upsert(parsed)
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                skipped += 1
                logger.warning(
                    "catalog.plan.write_failed",
                    extra={"plan_id": parsed.plan_id, "error": str(exc)},
                )
                continue
            processed += 1

        logger.info(
            "catalog.synced",
            extra={"processed": processed, "skipped": skipped, "networks": networks},
        )
        return SyncSummary(
            success=True,
            inserted_or_updated=processed,
            networks=networks,
            skipped=skipped,
            message=f"Synced {processed} plans. Networks: {', '.join(mappings)}",
        )

    def _upsert(self, parsed: ParsedPlan) -> DataPlanModel:
        plan = self.repository.get_plan(parsed.plan_id)
        if plan is None:
            plan = DataPlanModel(
                plan_id=parsed.plan_id,
                network=parsed.network,
                name=parsed.name,
                cost_price=parsed.cost_price,
                selling_price=parsed.cost_price + self.markup,
                is_active=True,
            )
        else:
            plan.network = parsed.network
            plan.name = parsed.name
            plan.cost_price = parsed.cost_price
        return self.repository.save_plan(plan)
