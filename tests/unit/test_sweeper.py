"""Tests for the expiry sweep."""

import asyncio
from datetime import timedelta

import pytest

from approvalhub.models.workflow import ApprovalAction, WorkflowStatus, WorkflowType
from approvalhub.services.sweeper import ExpirySweeper

from conftest import T0


@pytest.fixture
def sweeper(store, clock) -> ExpirySweeper:
    return ExpirySweeper(store, interval_seconds=0.01, clock=clock)


async def _create(engine, ttl_hours: float = 24) -> str:
    return await engine.create(
        WorkflowType.TRANSFER_AUTHORIZATION,
        "ORD-77",
        "logistics",
        {"quantity": 40, "ct_numbers": ["AB12CD34EF56GH"], "destination": "Plant 2"},
        ["managers"],
        ttl=timedelta(hours=ttl_hours),
    )


class TestSweep:
    """Tests for the ExpirySweeper."""

    @pytest.mark.asyncio
    async def test_expires_only_overdue_pending(self, engine, sweeper) -> None:
        """Test that only overdue pending workflows are expired."""
        short = await _create(engine, ttl_hours=1)
        long = await _create(engine, ttl_hours=48)
        resolved = await _create(engine, ttl_hours=1)
        await engine.transition(resolved, ApprovalAction.APPROVE, "919800000001")

        count = await sweeper.sweep(T0 + timedelta(hours=2))

        assert count == 1
        assert (await engine.get(short)).status is WorkflowStatus.EXPIRED
        assert (await engine.get(long)).status is WorkflowStatus.PENDING
        assert (await engine.get(resolved)).status is WorkflowStatus.APPROVED

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, engine, sweeper) -> None:
        """Test that repeated sweeps expire nothing new."""
        await _create(engine, ttl_hours=1)
        later = T0 + timedelta(hours=2)

        assert await sweeper.sweep(later) == 1
        assert await sweeper.sweep(later) == 0

    @pytest.mark.asyncio
    async def test_sweep_defaults_to_clock(self, engine, sweeper, clock) -> None:
        """Test that sweep uses the injected clock by default."""
        await _create(engine, ttl_hours=1)
        clock.advance(hours=1, minutes=1)

        assert await sweeper.sweep() == 1

    @pytest.mark.asyncio
    async def test_swept_workflow_rejects_late_response(self, engine, sweeper, order_actions) -> None:
        """Test that a late response to a swept workflow has no effect."""
        workflow_id = await _create(engine, ttl_hours=1)
        await sweeper.sweep(T0 + timedelta(hours=2))

        result = await engine.transition(workflow_id, ApprovalAction.APPROVE, "919800000001")

        assert not result.changed_state
        order_actions.execute_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_background_loop(self, engine, sweeper, clock) -> None:
        """Test the periodic background sweep."""
        workflow_id = await _create(engine, ttl_hours=1)
        clock.advance(hours=2)

        sweeper.start()
        try:
            for _ in range(50):
                if (await engine.get(workflow_id)).status is WorkflowStatus.EXPIRED:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.stop()

        assert (await engine.get(workflow_id)).status is WorkflowStatus.EXPIRED
