"""
Concurrent transactions against the same product must serialize.

Two stock-outs that each need the whole quantity: exactly one wins, the
other sees the drained product and is rejected. Neither both succeed
(negative stock) nor both fail.
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from restostock.core.errors import InvalidStateError

from conftest import current_quantity, ledger_rows


def _run_concurrently(fn, args_list):
    barrier = Barrier(len(args_list))

    def worker(args):
        barrier.wait()
        try:
            return "ok", fn(*args)
        except InvalidStateError as exc:
            return "rejected", exc

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(worker, args_list))


@pytest.mark.parametrize("round_", range(5))
def test_two_full_stock_outs_one_wins(coordinator, engine, make_product, round_):
    pid = make_product(quantity=5)

    results = _run_concurrently(coordinator.stock_out, [(pid, 5), (pid, 5)])

    outcomes = sorted(kind for kind, _ in results)
    assert outcomes == ["ok", "rejected"]
    assert current_quantity(engine, pid) == 0
    rows = ledger_rows(engine, pid)
    assert len(rows) == 1
    assert rows[0]["previous_quantity"] == 5
    assert rows[0]["new_quantity"] == 0


def test_many_small_stock_outs_never_overdraw(coordinator, engine, make_product):
    pid = make_product(quantity=5)

    results = _run_concurrently(coordinator.stock_out, [(pid, 1)] * 10)

    assert sum(1 for kind, _ in results if kind == "ok") == 5
    assert sum(1 for kind, _ in results if kind == "rejected") == 5
    assert current_quantity(engine, pid) == 0

    rows = ledger_rows(engine, pid)
    assert len(rows) == 5
    assert sum(r["quantity_change"] for r in rows) == Decimal("-5")
    # each accepted entry starts where the previous one ended
    for before, after in zip(rows, rows[1:]):
        assert after["previous_quantity"] == before["new_quantity"]


def test_mixed_directions_reconcile(coordinator, engine, make_product):
    pid = make_product(quantity=3)
    calls = [(pid, "IN", 2), (pid, "OUT", -4), (pid, "WASTE", -1), (pid, "IN", 1)] * 3

    results = _run_concurrently(coordinator.record_transaction, calls)

    rows = ledger_rows(engine, pid)
    assert len(rows) == sum(1 for kind, _ in results if kind == "ok")
    assert current_quantity(engine, pid) == Decimal("3") + sum(r["quantity_change"] for r in rows)
    assert current_quantity(engine, pid) >= 0
