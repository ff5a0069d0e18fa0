import pytest

from pool.core.ledger import ContributionLedger
from protocol.types.common import RoundState, RoundClosed, RoundStateError, DuplicateShare, InvalidShare


def test_record_share_counts_per_worker():
    ledger = ContributionLedger(round_id=1)

    assert ledger.record_share("A") == 1
    assert ledger.record_share("A") == 2
    assert ledger.record_share("B") == 1

    assert dict(ledger.counts()) == {"A": 2, "B": 1}
    assert ledger.total_shares == 3
    assert len(ledger) == 2
    assert "A" in ledger and "C" not in ledger


def test_duplicate_share_id_is_refused():
    ledger = ContributionLedger(round_id=1)
    ledger.record_share("A", share_id="s1")

    with pytest.raises(DuplicateShare):
        ledger.record_share("B", share_id="s1")

    # DuplicateShare is an InvalidShare, and the refused share left no trace
    assert issubclass(DuplicateShare, InvalidShare)
    assert dict(ledger.counts()) == {"A": 1}


def test_record_share_after_lock_raises_round_closed():
    ledger = ContributionLedger(round_id=7)
    ledger.record_share("A")
    ledger.lock()

    assert ledger.state == RoundState.FINALIZING
    with pytest.raises(RoundClosed):
        ledger.record_share("A")
    assert ledger.total_shares == 1


def test_snapshot_only_while_finalizing_and_only_once():
    ledger = ContributionLedger(round_id=2)
    ledger.record_share("A")

    with pytest.raises(RoundStateError):
        ledger.snapshot()

    ledger.lock()
    snap = ledger.snapshot()
    assert dict(snap) == {"A": 1}

    with pytest.raises(TypeError):
        snap["A"] = 100

    with pytest.raises(RoundStateError):
        ledger.snapshot()


def test_state_transitions_are_one_way():
    ledger = ContributionLedger(round_id=3)

    with pytest.raises(RoundStateError):
        ledger.close()

    ledger.lock()
    with pytest.raises(RoundStateError):
        ledger.lock()

    ledger.close()
    assert ledger.state == RoundState.CLOSED
    with pytest.raises(RoundClosed):
        ledger.record_share("A")


def test_snapshot_preserves_first_share_order():
    ledger = ContributionLedger(round_id=4)
    for worker in ["C", "A", "C", "B", "A"]:
        ledger.record_share(worker)
    ledger.lock()

    assert list(ledger.snapshot()) == ["C", "A", "B"]


def test_sum_matches_accepted_shares():
    ledger = ContributionLedger(round_id=5)
    accepted = 0
    for i in range(50):
        worker = f"w{i % 7}"
        try:
            ledger.record_share(worker, share_id=f"s{i % 40}")
            accepted += 1
        except DuplicateShare:
            pass

    assert accepted == 40
    assert ledger.total_shares == accepted
