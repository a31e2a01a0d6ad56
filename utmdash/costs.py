from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Mapping

from utmdash.storage import (
    FROZEN_BALANCE_KEY,
    GENERAL_INVESTMENT_KEY,
    GROUP_INVESTMENT_KEY,
    LINKED_FILTERS_KEY,
    Storage,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostInputs:
    """User-entered cost overlays; independent of whichever dataset is loaded."""

    general_investment: float = 0.0
    frozen_balance: float = 0.0
    group_investments: Dict[str, float] = field(default_factory=dict)

    def group_investment(self, key: str) -> float:
        return self.group_investments.get(key, 0.0)


def group_key(source: str, campaign: str) -> str:
    return f"{source}|{campaign}"


def as_amount(value: object) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return out if math.isfinite(out) else 0.0


def set_general_investment(costs: CostInputs, amount: object) -> CostInputs:
    return replace(costs, general_investment=as_amount(amount))


def set_frozen_balance(costs: CostInputs, amount: object) -> CostInputs:
    return replace(costs, frozen_balance=as_amount(amount))


def set_group_investment(costs: CostInputs, key: str, amount: object) -> CostInputs:
    return replace(costs, group_investments={**costs.group_investments, key: as_amount(amount)})


def apply_group_edits(costs: CostInputs, edits: Mapping[str, object]) -> CostInputs:
    """Fold edited per-group amounts, keyed by group key, into the overlay.

    Only keys whose amount actually changed are written, so an unchanged edit
    returns an equal `CostInputs`.
    """
    for key, amount in edits.items():
        amount = as_amount(amount)
        if amount != costs.group_investment(str(key)):
            costs = set_group_investment(costs, str(key), amount)
    return costs


class SessionStore:
    """Cost overlays and the linked-filters toggle, persisted through a Storage."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def load_costs(self) -> CostInputs:
        raw_groups = self.storage.load(GROUP_INVESTMENT_KEY, {})
        if not isinstance(raw_groups, dict):
            logger.warning("Ignoring malformed group investments: %r", type(raw_groups).__name__)
            raw_groups = {}
        return CostInputs(
            general_investment=as_amount(self.storage.load(GENERAL_INVESTMENT_KEY, 0)),
            frozen_balance=as_amount(self.storage.load(FROZEN_BALANCE_KEY, 0)),
            group_investments={str(k): as_amount(v) for k, v in raw_groups.items()},
        )

    def save_costs(self, costs: CostInputs) -> None:
        self.storage.save(GENERAL_INVESTMENT_KEY, costs.general_investment)
        self.storage.save(FROZEN_BALANCE_KEY, costs.frozen_balance)
        self.storage.save(GROUP_INVESTMENT_KEY, dict(costs.group_investments))

    def load_linked_filters(self) -> bool:
        value = self.storage.load(LINKED_FILTERS_KEY, True)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in {"true", "false"}:
            return value.lower() == "true"
        return True

    def save_linked_filters(self, linked: bool) -> None:
        self.storage.save(LINKED_FILTERS_KEY, bool(linked))
