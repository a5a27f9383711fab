"""
Time-boxed sync scheduler.

The host kills a request at 60 seconds, so a sync run works through
(date, status, account) cells in priority order and checks a wall-clock budget
before starting each one. When the budget runs out every remaining cell is
marked SKIPPED and the run returns normally. There is no persisted cursor: the
next cron invocation recomputes the same rolling window and picks the skipped
cells up again.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class TimeBudget:
    """Wall-clock allowance for a run, measured from construction."""

    def __init__(self, max_runtime_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_runtime_seconds = max_runtime_seconds
        self._clock = clock
        self._started = clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    @property
    def remaining(self) -> float:
        return max(0.0, self.max_runtime_seconds - self.elapsed)

    @property
    def exhausted(self) -> bool:
        return self.elapsed >= self.max_runtime_seconds


class CellState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    SKIPPED = "skipped"


@dataclass
class CellResult:
    """Counts reported by a cell handler."""
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    deferred: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return self.inserted + self.updated


@dataclass
class SyncCell:
    date: date
    status: Optional[str]
    account: str
    state: CellState = CellState.PENDING
    result: Optional[CellResult] = None

    def key(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "status": self.status, "account": self.account}


@dataclass
class SchedulerSummary:
    cells: List[SyncCell]
    elapsed_seconds: float
    budget_exhausted: bool

    @property
    def completed(self) -> List[SyncCell]:
        return [cell for cell in self.cells if cell.state == CellState.DONE]

    @property
    def skipped(self) -> List[SyncCell]:
        return [cell for cell in self.cells if cell.state == CellState.SKIPPED]

    @property
    def next_cell(self) -> Optional[SyncCell]:
        """First cell the next invocation should start from."""
        skipped = self.skipped
        return skipped[0] if skipped else None

    def _total(self, attr: str) -> int:
        return sum(getattr(cell.result, attr) for cell in self.completed if cell.result)

    @property
    def fetched(self) -> int:
        return self._total("fetched")

    @property
    def inserted(self) -> int:
        return self._total("inserted")

    @property
    def updated(self) -> int:
        return self._total("updated")

    @property
    def skipped_records(self) -> int:
        return self._total("skipped")

    @property
    def deferred(self) -> int:
        return self._total("deferred")

    @property
    def synced(self) -> int:
        return self.inserted + self.updated

    @property
    def errors(self) -> List[str]:
        errors = []
        for cell in self.completed:
            if cell.result:
                errors.extend(cell.result.errors)
        return errors

    def to_dict(self) -> Dict[str, Any]:
        next_cell = self.next_cell
        return {
            "synced": self.synced,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped_records,
            "deferred": self.deferred,
            "fetched": self.fetched,
            "cells_completed": len(self.completed),
            "cells_total": len(self.cells),
            "skipped_cells": [cell.key() for cell in self.skipped],
            "next_cell": next_cell.key() if next_cell else None,
            "budget_exhausted": self.budget_exhausted,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "errors": self.errors,
        }


CellHandler = Callable[[SyncCell, TimeBudget], Awaitable[CellResult]]


def build_cells(
    dates: Sequence[date],
    statuses: Sequence[Optional[str]],
    accounts: Sequence[str],
) -> List[SyncCell]:
    """Cells ordered by status priority, then date, then account."""
    return [
        SyncCell(date=day, status=status, account=account)
        for status in statuses
        for day in dates
        for account in accounts
    ]


class SyncScheduler:
    """Runs cells sequentially until done or out of budget."""

    def __init__(self, budget: TimeBudget):
        self.budget = budget

    async def run(self, cells: List[SyncCell], handler: CellHandler) -> SchedulerSummary:
        budget_exhausted = False

        for index, cell in enumerate(cells):
            if self.budget.exhausted:
                budget_exhausted = True
                for remaining in cells[index:]:
                    remaining.state = CellState.SKIPPED
                logger.warning(
                    f"Sync budget of {self.budget.max_runtime_seconds}s exhausted after "
                    f"{self.budget.elapsed:.1f}s; skipping {len(cells) - index} cells"
                )
                break

            cell.state = CellState.IN_PROGRESS
            try:
                cell.result = await handler(cell, self.budget)
            except Exception as e:
                logger.error(f"Sync cell {cell.key()} failed: {e}")
                cell.result = CellResult(errors=[f"{cell.date} {cell.status or ''} [{cell.account}]: {e}"])
            cell.state = CellState.DONE

        summary = SchedulerSummary(
            cells=cells,
            elapsed_seconds=self.budget.elapsed,
            budget_exhausted=budget_exhausted,
        )
        logger.info(
            f"Sync run finished: {len(summary.completed)}/{len(cells)} cells, "
            f"{summary.synced} synced, {summary.skipped_records} skipped, {len(summary.errors)} errors"
        )
        return summary
