"""
Property-based tests for batch quantities.

Random sequences of movements and settlements are applied through the
orchestrator.  Whatever the sequence:

- the batch quantity is never negative;
- opening quantity + net ledger movement == current quantity;
- a rejected movement leaves the quantity unchanged.
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from stock_kernel.domain.ledger import EntryType
from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.selectors import BatchSelector, LedgerSelector

MOVEMENT = st.tuples(
    st.sampled_from([t.value for t in EntryType] + ["approve", "decline"]),
    st.integers(min_value=1, max_value=40),
)

FUZZ_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)


def _state(session_factory, batch_id) -> tuple[int, int]:
    with session_factory() as s:
        return (
            BatchSelector(s).get(batch_id).current_qty,
            LedgerSelector(s).net_movement(batch_id),
        )


@FUZZ_SETTINGS
@given(opening=st.integers(min_value=0, max_value=60), movements=st.lists(MOVEMENT, max_size=12))
def test_quantity_never_negative_and_reconciles(
    orchestrator, session_factory, make_batch, user_id, opening, movements,
):
    record = make_batch(current_qty=opening)
    pending: list = []

    for action, quantity in movements:
        before, _ = _state(session_factory, record.id)
        try:
            if action == "approve" and pending:
                orchestrator.approve_sale(pending.pop(0), user_id=user_id)
            elif action == "decline" and pending:
                orchestrator.decline_sale(pending.pop(), "Fuzzed decline", user_id=user_id)
            elif action in ("approve", "decline"):
                continue
            else:
                entry = orchestrator.record_transaction(record.id, action, quantity, user_id)
                if entry.is_pending:
                    pending.append(entry.id)
        except InsufficientStockError:
            after, _ = _state(session_factory, record.id)
            assert after == before

        current, net = _state(session_factory, record.id)
        assert current >= 0
        assert opening + net == current


@FUZZ_SETTINGS
@given(quantities=st.lists(st.integers(min_value=1, max_value=30), min_size=1, max_size=10))
def test_declining_every_sale_restores_opening(
    orchestrator, session_factory, make_batch, user_id, quantities,
):
    record = make_batch(current_qty=100)
    sales = []
    for quantity in quantities:
        try:
            sales.append(orchestrator.record_transaction(record.id, "sale", quantity, user_id))
        except InsufficientStockError:
            pass

    for sale in sales:
        orchestrator.decline_sale(sale.id, "Undo", user_id=user_id)

    current, net = _state(session_factory, record.id)
    assert current == 100
    assert net == 0
