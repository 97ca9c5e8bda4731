"""
Tests for the optional expired order sweep.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from pos_checkout.core.models import OrderState
from pos_checkout.core.store import OrderStore
from pos_checkout.workers.expiry_sweeper import ExpirySweeper

from .conftest import make_settings


class TestExpirySweeper:
    """Test suite for ExpirySweeper."""

    @pytest.mark.unit
    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ExpirySweeper(OrderStore(), interval_seconds=0)

    @pytest.mark.unit
    def test_sweep_removes_only_expired(self, make_order) -> None:
        now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        store = OrderStore()
        store.put("old", make_order("old", created_at=now - timedelta(minutes=6)))
        store.put("fresh", make_order("fresh", created_at=now - timedelta(minutes=1)))
        sweeper = ExpirySweeper(store, interval_seconds=60, clock=lambda: now)

        expired = sweeper.sweep_once()

        assert [o.fingerprint for o in expired] == ["old"]
        assert expired[0].state is OrderState.EXPIRED
        assert expired[0].settled_at is None
        assert "fresh" in store
        assert "old" not in store

    @pytest.mark.unit
    def test_sweep_with_nothing_expired(self, make_order) -> None:
        store = OrderStore()
        store.put("fresh", make_order("fresh"))

        assert ExpirySweeper(store, interval_seconds=60).sweep_once() == []
        assert len(store) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_background_loop_sweeps_and_stops(self, make_order) -> None:
        store = OrderStore()
        store.put("old", make_order("old", created_at=datetime.now(timezone.utc) - timedelta(hours=1)))
        sweeper = ExpirySweeper(store, interval_seconds=0.01)

        task = sweeper.start()
        for _ in range(100):
            if "old" not in store:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert "old" not in store
        assert task.done()

    @pytest.mark.unit
    def test_container_has_no_sweeper_by_default(self, container_factory) -> None:
        assert container_factory(make_settings()).sweeper is None

    @pytest.mark.unit
    def test_container_builds_sweeper_when_enabled(self, container_factory) -> None:
        container = container_factory(make_settings(expiry_sweep_interval_seconds=30))

        assert container.sweeper is not None
        assert container.sweeper.interval_seconds == 30
