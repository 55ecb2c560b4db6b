"""Owned, in-memory dashboard state.

`DashboardState` holds the record store, the seller registry, the selection
and the goal map, and exposes the few operations that mutate them. Every
mutation happens under a lock so the same instance can back the HTTP API,
whose sync endpoints run in a thread pool.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

import pandas as pd

from core.data import REPASSE, LoadResult, empty_records, load_sales_data
from core.errors import LoadFailure, ValidationFailure, user_message

logger = logging.getLogger(__name__)

REPASSE_NOT_ALLOWED = '"Repasse" não pode ser adicionado como um vendedor.'
SELLER_INVALID = "Este vendedor já existe ou o nome é inválido!"
REMOVE_PROMPT = "Tem certeza que deseja remover {seller}?"
SELLER_UNKNOWN = "Vendedor não cadastrado: {seller}"
REPASSE_NOT_REMOVABLE = "\"Repasse\" não pode ser removido."

Loader = Callable[[], LoadResult]
Confirm = Callable[[str], bool]


def is_repasse(name: object) -> bool:
    return str(name or "").strip().lower() == REPASSE.lower()


@dataclass(frozen=True)
class StateSnapshot:
    records: pd.DataFrame
    sellers: List[str] = field(default_factory=list)
    selected_sellers: List[str] = field(default_factory=list)
    goals: Dict[str, float] = field(default_factory=dict)
    loading: bool = False
    error: Optional[str] = None

    @property
    def goal_sellers(self) -> List[str]:
        return [s for s in self.sellers if s != REPASSE]

    def as_data_ctx(self) -> Dict[str, object]:
        return {
            "records": self.records,
            "sellers": list(self.sellers),
            "selected_sellers": list(self.selected_sellers),
            "goals": dict(self.goals),
        }


class DashboardState:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: pd.DataFrame = empty_records()
        self._sellers: List[str] = []
        self._selected: List[str] = []
        self._goals: Dict[str, float] = {}
        self._error: Optional[str] = None
        self._generation = 0
        self._applied_generation = 0
        self._in_flight: Set[int] = set()

    # ---------------- Reload ----------------
    def begin_reload(self) -> int:
        with self._lock:
            self._generation += 1
            self._in_flight.add(self._generation)
            self._error = None
            return self._generation

    def apply_load(self, generation: int, result: LoadResult) -> bool:
        """Install a load result unless a newer reload has already been applied."""
        with self._lock:
            self._in_flight.discard(generation)
            if generation <= self._applied_generation:
                logger.warning("Discarding stale reload #%d (applied #%d)", generation, self._applied_generation)
                return False

            sellers = list(dict.fromkeys(str(s) for s in result.sellers))
            self._records = result.records.copy()
            self._sellers = sellers
            self._selected = list(sellers)
            for seller in sellers:
                if seller != REPASSE and seller not in self._goals:
                    self._goals[seller] = 0.0
            self._applied_generation = generation
            self._error = None
            logger.info("Reload #%d applied: %d rows, %d sellers", generation, len(self._records), len(sellers))
            return True

    def fail_load(self, generation: int, exc: BaseException) -> bool:
        with self._lock:
            self._in_flight.discard(generation)
            if generation <= self._applied_generation:
                return False
            self._error = user_message(exc)
            return True

    def reload(self, loader: Optional[Loader] = None) -> LoadResult:
        """Fetch fresh records and sync sellers, selection and goals.

        On failure the previous records, sellers, selection and goals are kept,
        `error` holds the message and LoadFailure is raised.
        """
        loader = loader or load_sales_data
        generation = self.begin_reload()
        try:
            result = loader()
        except Exception as exc:
            self.fail_load(generation, exc)
            logger.error("Reload #%d failed: %s", generation, user_message(exc))
            if isinstance(exc, LoadFailure):
                raise
            raise LoadFailure(user_message(exc)) from exc
        self.apply_load(generation, result)
        return result

    # ---------------- Sellers / goals / selection ----------------
    def add_seller(self, name: str) -> str:
        name = (name or "").strip()
        with self._lock:
            if is_repasse(name):
                raise ValidationFailure(REPASSE_NOT_ALLOWED)
            if not name or name in self._sellers:
                raise ValidationFailure(SELLER_INVALID)
            self._sellers.append(name)
            if name not in self._selected:
                self._selected.append(name)
            self._goals[name] = 0.0
        logger.info("Seller added: %s", name)
        return name

    def remove_seller(self, name: str, confirm: Confirm) -> bool:
        """Remove a seller after `confirm` agrees. Sale records are kept."""
        if is_repasse(name):
            raise ValidationFailure(REPASSE_NOT_REMOVABLE)
        with self._lock:
            known = name in self._sellers or name in self._goals
        if not known:
            return False
        if not confirm(REMOVE_PROMPT.format(seller=name)):
            return False
        with self._lock:
            self._sellers = [s for s in self._sellers if s != name]
            self._selected = [s for s in self._selected if s != name]
            self._goals.pop(name, None)
        logger.info("Seller removed: %s", name)
        return True

    def select_sellers(self, names: List[str]) -> List[str]:
        selection = list(dict.fromkeys(str(n) for n in (names or [])))
        with self._lock:
            self._selected = selection
        return list(selection)

    def set_goal(self, seller: str, value: object) -> float:
        if is_repasse(seller):
            raise ValidationFailure(REPASSE_NOT_ALLOWED)
        try:
            goal = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValidationFailure(f"Meta inválida para {seller}: {value!r}") from exc
        if pd.isna(goal) or goal < 0:
            raise ValidationFailure(f"Meta inválida para {seller}: {value!r}")
        with self._lock:
            if seller not in self._sellers:
                raise ValidationFailure(SELLER_UNKNOWN.format(seller=seller))
            self._goals[seller] = goal
        return goal

    # ---------------- Read access ----------------
    @property
    def loading(self) -> bool:
        with self._lock:
            return bool(self._in_flight)

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(
                records=self._records.copy(),
                sellers=list(self._sellers),
                selected_sellers=list(self._selected),
                goals=dict(self._goals),
                loading=bool(self._in_flight),
                error=self._error,
            )
