"""
Property tests: random operation sequences against a simple balance model.

After every sequence the stored record must match the model, the total must
equal the sum of its sides, no side may go negative, and replaying the
ledger must reproduce the stored balances.
"""

from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from relief_kernel.domain.values import StockSide
from relief_kernel.exceptions import InsufficientStockError, ShelterStockNotFoundError

SHELTER_SLOTS = 3

_side_index = st.integers(min_value=-1, max_value=SHELTER_SLOTS - 1)  # -1 is provincial
_quantity = st.integers(min_value=1, max_value=60)

operations = st.lists(
    st.one_of(
        st.tuples(st.just("receive"), _side_index, _quantity),
        st.tuples(st.just("dispense"), st.integers(0, SHELTER_SLOTS - 1), _quantity),
        st.tuples(st.just("transfer"), _side_index, _side_index, _quantity),
        st.tuples(st.just("adjust"), _side_index, st.integers(0, 80)),
    ),
    min_size=1,
    max_size=25,
)

FUZZ_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture, HealthCheck.too_slow],
)


class _Model:
    """Expected balances keyed by side index (-1 provincial)."""

    def __init__(self, initial: int):
        self.balances = {-1: initial}
        self.received = initial
        self.dispensed = 0

    def held(self, index: int) -> int | None:
        return self.balances.get(index)


def _apply(ledger, actor, item_id, shelter_ids, model: _Model, op) -> None:
    def side(index: int) -> StockSide:
        return StockSide.provincial() if index < 0 else StockSide.shelter(shelter_ids[index])

    kind = op[0]
    if kind == "receive":
        _, index, qty = op
        ledger.receive(item_id, side(index), qty, "Donor", actor)
        model.balances[index] = model.balances.get(index, 0) + qty
        model.received += qty
    elif kind == "dispense":
        _, index, qty = op
        held = model.held(index)
        try:
            ledger.dispense(item_id, shelter_ids[index], qty, "Families", actor)
        except ShelterStockNotFoundError:
            assert held is None
            return
        except InsufficientStockError as exc:
            assert held is not None and held < qty
            assert exc.available == held
            return
        model.balances[index] = held - qty
        model.dispensed += qty
    elif kind == "transfer":
        _, source, dest, qty = op
        if source == dest:
            return
        held = model.held(source)
        try:
            ledger.transfer(item_id, side(source), side(dest), qty, actor)
        except ShelterStockNotFoundError:
            assert held is None
            return
        except InsufficientStockError:
            assert held is not None and held < qty
            return
        model.balances[source] = held - qty
        model.balances[dest] = model.balances.get(dest, 0) + qty
    else:
        _, index, new_quantity = op
        result = ledger.adjust(item_id, side(index), new_quantity, actor)
        if model.held(index) is None and new_quantity == 0:
            assert result.movement is None
            return
        model.balances[index] = new_quantity


@FUZZ_SETTINGS
@given(initial=st.integers(min_value=0, max_value=100), ops=operations)
def test_random_sequences_match_model(
    session, ledger, shelters, stock_selector, consistency, test_actor_id, initial, ops
):
    with session.begin_nested() as savepoint:
        shelter_ids = [
            shelters.register(f"FZ-{uuid4().hex[:10]}", "Fuzz shelter", test_actor_id).shelter_id
            for _ in range(SHELTER_SLOTS)
        ]
        item = ledger.initialize_item(
            f"Fuzz item {uuid4().hex}", "other", "units", test_actor_id, initial_quantity=initial
        ).record
        model = _Model(initial)

        for op in ops:
            _apply(ledger, test_actor_id, item.item_id, shelter_ids, model, op)

        record = stock_selector.get(item.item_id)
        assert record.provincial_quantity == model.balances[-1]
        for index, shelter_id in enumerate(shelter_ids):
            assert record.shelter_quantities.get(shelter_id) == model.held(index)
        assert record.total_quantity == sum(model.balances.values())
        assert record.total_quantity == record.provincial_quantity + sum(
            record.shelter_quantities.values()
        )
        assert all(qty >= 0 for qty in record.shelter_quantities.values())
        assert record.provincial_quantity >= 0
        assert record.total_received == model.received
        assert record.total_dispensed == model.dispensed
        assert consistency.verify_item(item.item_id).is_consistent

        savepoint.rollback()


@FUZZ_SETTINGS
@given(initial=st.integers(min_value=1, max_value=200), moves=st.lists(_quantity, max_size=10))
def test_transfers_never_change_total(
    session, ledger, shelters, stock_selector, test_actor_id, initial, moves
):
    with session.begin_nested() as savepoint:
        shelter_id = shelters.register(
            f"FZ-{uuid4().hex[:10]}", "Fuzz shelter", test_actor_id
        ).shelter_id
        item = ledger.initialize_item(
            f"Fuzz item {uuid4().hex}", "food", "units", test_actor_id, initial_quantity=initial
        ).record

        for i, qty in enumerate(moves):
            source, dest = (
                (StockSide.provincial(), StockSide.shelter(shelter_id))
                if i % 2 == 0
                else (StockSide.shelter(shelter_id), StockSide.provincial())
            )
            try:
                ledger.transfer(item.item_id, source, dest, qty, test_actor_id)
            except (InsufficientStockError, ShelterStockNotFoundError):
                pass
            assert stock_selector.get(item.item_id).total_quantity == initial

        savepoint.rollback()
