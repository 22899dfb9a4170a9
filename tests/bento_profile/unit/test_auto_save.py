"""Unit tests for the auto-save coordinator.

Covers debouncing, single flight with a newest-wins pending slot, error
downgrade, deactivation and reset across entities.
"""

import asyncio

import pytest

from bento_profile.core.errors import PersistenceError
from bento_profile.models import BentoItem, ProfileData
from bento_profile.services.auto_save import AutoSaveCoordinator, AutoSaveStatus, compute_fingerprint


class RecordingSave:
    """Save function that records calls and can block or fail on demand."""

    def __init__(self):
        self.calls = []
        self.gate = None
        self.fail = False
        self.active = 0
        self.max_active = 0

    async def __call__(self, fingerprint):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.calls.append(fingerprint)
            if self.gate is not None:
                await self.gate.wait()
            if self.fail:
                raise PersistenceError("quota exceeded")
        finally:
            self.active -= 1


@pytest.fixture
def save():
    return RecordingSave()


class TestDebounce:
    @pytest.mark.asyncio
    async def test_only_trailing_fingerprint_saved(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=50)
        for fingerprint in ("F1", "F2", "F3", "F4", "F5"):
            coordinator.update(fingerprint, has_content=True, is_active=True)
            await asyncio.sleep(0.005)

        assert save.calls == []
        await coordinator.wait_until_idle()
        assert save.calls == ["F5"]
        assert coordinator.status == AutoSaveStatus.SAVED
        assert coordinator.last_saved_fingerprint == "F5"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "fingerprint,has_content,is_active",
        [
            ("F1", True, False),
            ("F1", False, True),
            ("", True, True),
            (None, True, True),
        ],
    )
    async def test_unqualified_observations_do_not_schedule(self, save, fingerprint, has_content, is_active):
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update(fingerprint, has_content=has_content, is_active=is_active)
        assert not coordinator.has_scheduled_save
        await coordinator.wait_until_idle()
        assert save.calls == []
        assert coordinator.status == AutoSaveStatus.IDLE

    @pytest.mark.asyncio
    async def test_unchanged_fingerprint_not_saved_again(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()
        assert save.calls == ["F1"]

    @pytest.mark.asyncio
    async def test_unqualified_update_cancels_pending_timer(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=30)
        coordinator.update("F1", has_content=True, is_active=True)
        coordinator.update("F1", has_content=False, is_active=True)
        await asyncio.sleep(0.06)
        assert save.calls == []

    @pytest.mark.asyncio
    async def test_deactivation_cancels_timer(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=30)
        coordinator.update("F1", has_content=True, is_active=True)
        coordinator.update("F1", has_content=True, is_active=False)
        await asyncio.sleep(0.06)
        await coordinator.wait_until_idle()
        assert save.calls == []

    def test_negative_delay_rejected(self, save):
        with pytest.raises(ValueError):
            AutoSaveCoordinator(save, delay_ms=-1)


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_changes_during_save_coalesce_to_newest(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=10)

        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.03)
        assert coordinator.is_saving

        coordinator.update("F2", has_content=True, is_active=True)
        await asyncio.sleep(0.03)
        coordinator.update("F3", has_content=True, is_active=True)
        await asyncio.sleep(0.03)
        assert coordinator.pending_fingerprint == "F3"

        save.gate.set()
        await coordinator.wait_until_idle()

        assert save.calls == ["F1", "F3"]
        assert save.max_active == 1
        assert coordinator.last_saved_fingerprint == "F3"

    @pytest.mark.asyncio
    async def test_pending_equal_to_saved_is_dropped(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=0)

        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        assert coordinator.pending_fingerprint == "F1"

        save.gate.set()
        await coordinator.wait_until_idle()
        assert save.calls == ["F1"]

    @pytest.mark.asyncio
    async def test_pending_not_drained_while_inactive(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=0)

        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        coordinator.update("F2", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        coordinator.update("F2", has_content=True, is_active=False)

        save.gate.set()
        await coordinator.wait_until_idle()
        assert save.calls == ["F1"]

    @pytest.mark.asyncio
    async def test_trigger_save_skips_debounce(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=10_000)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.trigger_save()
        assert save.calls == ["F1"]
        assert not coordinator.has_scheduled_save

    @pytest.mark.asyncio
    async def test_trigger_save_while_saving_queues(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)

        coordinator.update("F2", has_content=True, is_active=True)
        trigger = asyncio.ensure_future(coordinator.trigger_save())
        await asyncio.sleep(0.01)
        assert save.max_active == 1
        save.gate.set()
        await trigger

        assert save.calls == ["F1", "F2"]

    @pytest.mark.asyncio
    async def test_trigger_save_while_inactive_keeps_coordinator_inactive(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)

        coordinator.update("F2", has_content=True, is_active=False)
        trigger = asyncio.ensure_future(coordinator.trigger_save())
        await asyncio.sleep(0.01)
        save.gate.set()
        await trigger

        assert save.calls == ["F1", "F2"]
        assert coordinator.is_active is False

        # A later queued change is not drained while inactive
        save.gate = asyncio.Event()
        coordinator.update("F3", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        coordinator.update("F4", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        coordinator.update("F4", has_content=True, is_active=False)
        save.gate.set()
        await coordinator.wait_until_idle()
        assert save.calls == ["F1", "F2", "F3"]

    @pytest.mark.asyncio
    async def test_trigger_save_without_content_is_noop(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        await coordinator.trigger_save()
        assert save.calls == []


class TestErrors:
    @pytest.mark.asyncio
    async def test_failure_sets_error_status_without_retry(self, save):
        save.fail = True
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()

        assert coordinator.status == AutoSaveStatus.ERROR
        assert isinstance(coordinator.last_error, PersistenceError)
        await asyncio.sleep(0.02)
        assert save.calls == ["F1"]

    @pytest.mark.asyncio
    async def test_next_qualifying_edit_recovers(self, save):
        save.fail = True
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()

        save.fail = False
        coordinator.update("F2", has_content=True, is_active=True)
        await coordinator.wait_until_idle()
        assert coordinator.status == AutoSaveStatus.SAVED
        assert coordinator.last_error is None
        assert save.calls == ["F1", "F2"]

    @pytest.mark.asyncio
    async def test_failed_fingerprint_retried_on_next_observation(self, save):
        save.fail = True
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()

        save.fail = False
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()
        assert save.calls == ["F1", "F1"]

    @pytest.mark.asyncio
    async def test_status_callback_errors_are_contained(self, save):
        def broken(status):
            raise RuntimeError("listener bug")

        coordinator = AutoSaveCoordinator(save, delay_ms=0, on_status_change=broken)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()
        assert coordinator.status == AutoSaveStatus.SAVED


class TestStatusAndReset:
    @pytest.mark.asyncio
    async def test_status_transitions(self, save):
        seen = []
        coordinator = AutoSaveCoordinator(save, delay_ms=0, on_status_change=seen.append)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.wait_until_idle()
        assert seen == [AutoSaveStatus.SAVING, AutoSaveStatus.SAVED]

    @pytest.mark.asyncio
    async def test_reset_discards_previous_entity_outcome(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("F1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        assert coordinator.status == AutoSaveStatus.SAVING

        coordinator.reset()
        assert coordinator.status == AutoSaveStatus.IDLE

        save.gate.set()
        await coordinator.wait_until_idle()
        assert coordinator.status == AutoSaveStatus.IDLE
        assert coordinator.last_saved_fingerprint is None
        assert coordinator.save_count == 1

    @pytest.mark.asyncio
    async def test_reset_keeps_single_flight_for_new_entity(self, save):
        save.gate = asyncio.Event()
        coordinator = AutoSaveCoordinator(save, delay_ms=0)
        coordinator.update("A1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)

        coordinator.reset()
        coordinator.update("B1", has_content=True, is_active=True)
        await asyncio.sleep(0.01)
        assert save.max_active == 1
        assert coordinator.pending_fingerprint == "B1"

        save.gate.set()
        await coordinator.wait_until_idle()
        assert save.calls == ["A1", "B1"]
        assert coordinator.last_saved_fingerprint == "B1"

    @pytest.mark.asyncio
    async def test_close_cancels_timer(self, save):
        coordinator = AutoSaveCoordinator(save, delay_ms=30)
        coordinator.update("F1", has_content=True, is_active=True)
        await coordinator.close()
        await asyncio.sleep(0.05)
        assert save.calls == []


class TestFingerprint:
    def test_stable_for_equal_state(self):
        items = [BentoItem(id="a", type="text", content={"text": "hi", "b": 1})]
        assert compute_fingerprint(ProfileData(name="Liz"), items) == compute_fingerprint(
            ProfileData(name="Liz"), [BentoItem(id="a", type="text", content={"b": 1, "text": "hi"})]
        )

    def test_ignores_timestamps(self):
        first = ProfileData(name="Liz", updated_at="2025-01-01T00:00:00.000Z")
        second = ProfileData(name="Liz", updated_at="2026-01-01T00:00:00.000Z")
        assert compute_fingerprint(first, []) == compute_fingerprint(second, [])

    def test_changes_with_position(self):
        before = compute_fingerprint(None, [BentoItem(id="a", x=0, y=0)])
        after = compute_fingerprint(None, [BentoItem(id="a", x=1, y=0)])
        assert before != after
        assert len(before) == 64
