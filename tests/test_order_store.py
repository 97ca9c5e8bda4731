"""
Unit tests for the pending order registry.
"""
import threading
from datetime import datetime, timedelta, timezone

import pytest

from pos_checkout.core.store import OrderStore


class TestOrderStore:
    """Test suite for OrderStore."""

    @pytest.mark.unit
    def test_put_then_get(self, make_order) -> None:
        store = OrderStore()
        order = make_order("fp-1")

        store.put("fp-1", order)

        assert store.get("fp-1") is order
        assert "fp-1" in store
        assert len(store) == 1

    @pytest.mark.unit
    def test_get_unknown_is_none(self) -> None:
        assert OrderStore().get("missing") is None

    @pytest.mark.unit
    def test_get_does_not_remove(self, make_order) -> None:
        store = OrderStore()
        store.put("fp-1", make_order("fp-1"))

        store.get("fp-1")
        store.get("fp-1")

        assert len(store) == 1

    @pytest.mark.unit
    def test_remove_returns_record_once(self, make_order) -> None:
        store = OrderStore()
        order = make_order("fp-1")
        store.put("fp-1", order)

        assert store.remove("fp-1") is order
        assert store.remove("fp-1") is None
        assert "fp-1" not in store

    @pytest.mark.unit
    def test_remove_absent_is_silent(self) -> None:
        store = OrderStore()
        assert store.remove("never-stored") is None
        assert len(store) == 0

    @pytest.mark.unit
    def test_put_overwrites_existing_fingerprint(self, make_order) -> None:
        store = OrderStore()
        first = make_order("fp-1")
        second = make_order("fp-1")

        store.put("fp-1", first)
        store.put("fp-1", second)

        assert store.get("fp-1") is second
        assert len(store) == 1

    @pytest.mark.unit
    def test_remove_expired_only_takes_expired(self, make_order) -> None:
        now = datetime.now(timezone.utc)
        store = OrderStore()
        store.put("old", make_order("old", created_at=now - timedelta(minutes=10)))
        store.put("fresh", make_order("fresh", created_at=now))

        removed = store.remove_expired(now)

        assert [o.fingerprint for o in removed] == ["old"]
        assert "fresh" in store
        assert "old" not in store

    @pytest.mark.unit
    def test_snapshot_is_a_copy(self, make_order) -> None:
        store = OrderStore()
        store.put("fp-1", make_order("fp-1"))

        snapshot = store.snapshot()
        store.remove("fp-1")

        assert len(snapshot) == 1
        assert len(store) == 0

    @pytest.mark.race
    def test_concurrent_remove_hands_record_to_one_thread(self, make_order) -> None:
        """Only one of many racing threads receives the record."""
        store = OrderStore()
        store.put("fp-1", make_order("fp-1"))

        barrier = threading.Barrier(16)
        results = []
        results_lock = threading.Lock()

        def worker() -> None:
            barrier.wait()
            got = store.remove("fp-1")
            with results_lock:
                results.append(got)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len([r for r in results if r is not None]) == 1

    @pytest.mark.race
    def test_concurrent_puts_for_different_fingerprints(self, make_order) -> None:
        store = OrderStore()

        def worker(i: int) -> None:
            store.put(f"fp-{i}", make_order(f"fp-{i}"))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 50
