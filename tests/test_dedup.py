import pytest

from tradelog.core.exceptions import PersistenceFailure
from tradelog.services.dedup import PersistenceGate

from conftest import make_trade


def test_collapse_keeps_first_occurrence():
    first = make_trade(1, pnl="1")
    dup = make_trade(1, pnl="-9")
    other = make_trade(2)

    assert PersistenceGate.collapse([first, other, dup]) == [first, other]


def test_duplicate_message_in_one_batch_is_stored_once(repository):
    gate = PersistenceGate(repository)

    inserted = gate.persist([make_trade(10), make_trade(10), make_trade(11)], "user-1")

    assert [t.external_message_id for t in inserted] == [10, 11]
    assert len(repository.rows) == 2
    assert repository.insert_calls == 2


def test_already_stored_trades_are_not_rewritten(repository):
    repository.add(make_trade(10, owner_id="user-1"))
    gate = PersistenceGate(repository)

    inserted = gate.persist([make_trade(10), make_trade(12)], "user-1")

    assert [t.external_message_id for t in inserted] == [12]
    assert repository.insert_calls == 1


def test_persisted_trades_carry_the_owner(repository):
    gate = PersistenceGate(repository)

    gate.persist([make_trade(3)], "user-1")

    assert repository.rows[3].owner_id == "user-1"


def test_conflict_on_insert_is_silently_ignored(repository):
    class RacingRepository(type(repository)):
        def existing_message_ids(self, ids):
            # another run inserts between the lookup and the write
            return set()

    racing = RacingRepository()
    racing.add(make_trade(4, owner_id="user-2"))
    gate = PersistenceGate(racing)

    inserted = gate.persist([make_trade(4)], "user-1")

    assert inserted == []
    assert racing.rows[4].owner_id == "user-2"


def test_storage_failure_propagates_and_keeps_progress(repository):
    repository.fail_inserts_after = 1
    gate = PersistenceGate(repository)
    progress = []

    with pytest.raises(PersistenceFailure):
        gate.persist([make_trade(1), make_trade(2)], "user-1", inserted=progress)

    assert [t.external_message_id for t in progress] == [1]
    assert 1 in repository.rows


def test_expired_deadline_stops_inserting(repository):
    gate = PersistenceGate(repository)
    calls = iter([False, True])

    inserted = gate.persist(
        [make_trade(1), make_trade(2), make_trade(3)],
        "user-1",
        expired=lambda: next(calls),
    )

    assert [t.external_message_id for t in inserted] == [1]
    assert gate.stopped_early is True


def test_empty_batch_does_nothing(repository):
    assert PersistenceGate(repository).persist([], "user-1") == []
    assert repository.insert_calls == 0
