"""Concurrent submissions racing on the same idempotency key."""
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from payment_service.models import Payment, PaymentStatus
from payment_service.services.payments import submit_payment
from payment_service.utils.errors import DuplicatePayment


def _race(session_factory, keys):
    barrier = threading.Barrier(len(keys))

    def _attempt(key):
        with session_factory() as session:
            barrier.wait()
            try:
                return submit_payment(
                    session, amount=Decimal("50.00"), currency="USD", idempotency_key=key
                )
            except DuplicatePayment as exc:
                return exc

    with ThreadPoolExecutor(max_workers=len(keys)) as pool:
        return list(pool.map(_attempt, keys))


def _split(outcomes):
    winners = [o for o in outcomes if isinstance(o, Payment)]
    losers = [o for o in outcomes if isinstance(o, DuplicatePayment)]
    return winners, losers


def test_two_concurrent_submissions_create_one_payment(session_factory, count_payments):
    winners, losers = _split(_race(session_factory, ["k3", "k3"]))

    assert len(winners) == 1
    assert len(losers) == 1
    assert winners[0].status == PaymentStatus.SUCCESS
    assert count_payments("k3") == 1


def test_many_concurrent_submissions_have_exactly_one_winner(session_factory, count_payments):
    outcomes = _race(session_factory, ["hot-key"] * 8)
    winners, losers = _split(outcomes)

    assert len(winners) == 1
    assert len(losers) == 7
    assert all(loser.code == "DUPLICATE_PAYMENT" for loser in losers)
    assert count_payments("hot-key") == 1


def test_concurrent_submissions_with_distinct_keys_all_succeed(session_factory, count_payments):
    keys = [f"distinct-{i}" for i in range(6)]
    winners, losers = _split(_race(session_factory, keys))

    assert len(winners) == 6
    assert not losers
    assert len({w.transaction_reference for w in winners}) == 6
    assert count_payments() == 6
