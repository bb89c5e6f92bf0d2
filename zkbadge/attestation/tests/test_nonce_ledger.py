"""Tests for single-use session nonces"""

import threading

import pytest

from zkbadge.attestation.config import FIELD_MODULUS
from zkbadge.attestation.nonce import NonceLedger, random_field_element
from zkbadge.attestation.store import Store


def _consume(store, scope, value):
    with store.session() as session:
        return NonceLedger.consume(session, scope, value)


class TestNonceLedger:
    def test_issued_nonce_is_nonzero_field_element(self):
        ledger = NonceLedger(Store("sqlite://"))
        value = ledger.issue("social")

        assert 0 < value < FIELD_MODULUS
        assert ledger.peek("social", value)

    def test_random_field_element_range(self):
        for _ in range(50):
            assert 0 < random_field_element() < FIELD_MODULUS

    def test_nonce_consumed_once(self):
        store = Store("sqlite://")
        value = NonceLedger(store).issue("social")

        assert _consume(store, "social", value)
        assert not _consume(store, "social", value)
        assert not NonceLedger(store).peek("social", value)

    def test_wrong_scope_does_not_consume(self):
        store = Store("sqlite://")
        ledger = NonceLedger(store)
        value = ledger.issue("generation")

        assert not _consume(store, "social", value)
        assert ledger.peek("generation", value)
        assert not ledger.peek("social", value)

    def test_unknown_value(self):
        store = Store("sqlite://")
        assert not _consume(store, "aggregate", 12345)

    def test_unknown_scope_rejected(self):
        ledger = NonceLedger(Store("sqlite://"))
        with pytest.raises(ValueError):
            ledger.issue("login")

    def test_rolled_back_consume_leaves_nonce(self):
        store = Store("sqlite://")
        ledger = NonceLedger(store)
        value = ledger.issue("social")

        with pytest.raises(RuntimeError):
            with store.session() as session:
                assert NonceLedger.consume(session, "social", value)
                raise RuntimeError("binding failed later in the transaction")

        assert ledger.peek("social", value)

    def test_issued_values_are_distinct(self):
        ledger = NonceLedger(Store("sqlite://"))
        values = {ledger.issue("social") for _ in range(20)}
        assert len(values) == 20


class TestConcurrentConsume:
    def test_exactly_one_consumer_wins(self, tmp_path):
        store = Store(f"sqlite:///{tmp_path / 'nonces.db'}")
        value = NonceLedger(store).issue("social")
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(_consume(store, "social", value))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == [False] * 7 + [True]
