from datetime import date

import pytest

from sellerops.services.sync_scheduler import (
    CellResult,
    CellState,
    SyncScheduler,
    TimeBudget,
    build_cells,
)


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_build_cells_orders_by_status_then_date_then_account():
    cells = build_cells([date(2026, 1, 29), date(2026, 1, 30)], ["ACCEPT", "FINAL_DELIVERY"], ["a", "b"])

    assert [(c.status, c.date.day, c.account) for c in cells][:5] == [
        ("ACCEPT", 29, "a"),
        ("ACCEPT", 29, "b"),
        ("ACCEPT", 30, "a"),
        ("ACCEPT", 30, "b"),
        ("FINAL_DELIVERY", 29, "a"),
    ]
    assert len(cells) == 8


@pytest.mark.asyncio
async def test_budget_exhaustion_skips_remaining_cells_without_raising():
    clock = _FakeClock()
    budget = TimeBudget(8, clock=clock)
    cells = build_cells([date(2026, 1, 29), date(2026, 1, 30)], ["ACCEPT", "FINAL_DELIVERY"], ["a"])

    async def handler(cell, budget):
        clock.now += 3
        return CellResult(fetched=2, inserted=2)

    summary = await SyncScheduler(budget).run(cells, handler)

    assert len(summary.completed) == 3
    assert len(summary.skipped) == 1
    assert summary.inserted == 6
    assert summary.budget_exhausted is True
    assert summary.next_cell is cells[3]
    assert cells[3].state == CellState.SKIPPED

    payload = summary.to_dict()
    assert payload["skipped_cells"] == [{"date": "2026-01-30", "status": "FINAL_DELIVERY", "account": "a"}]
    assert payload["cells_completed"] == 3
    assert payload["cells_total"] == 4


@pytest.mark.asyncio
async def test_handler_failure_is_recorded_on_cell_and_run_continues():
    cells = build_cells([date(2026, 1, 30)], ["ACCEPT", "INSTRUCT"], ["a"])

    async def handler(cell, budget):
        if cell.status == "ACCEPT":
            raise RuntimeError("upstream 500")
        return CellResult(inserted=1)

    summary = await SyncScheduler(TimeBudget(50)).run(cells, handler)

    assert all(cell.state == CellState.DONE for cell in cells)
    assert summary.inserted == 1
    assert len(summary.errors) == 1
    assert "upstream 500" in summary.errors[0]
    assert summary.next_cell is None
