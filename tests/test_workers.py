"""Tests for the phase request / response protocol."""

import logging

import numpy as np
import pytest

from map_generator import ChannelError, GenerationCancelled, ProcessingError
from map_generator import workers
from map_generator.workers import (
    ErrorMessage,
    PhaseRequest,
    ProgressMessage,
    ResultMessage,
    TASK_START_EROSION,
    TASK_START_TECTONICS,
    handle_request,
    run_inline_task,
    run_worker_task,
)


def collect(request, cancel_event=None):
    messages = []
    handle_request(request, messages.append, cancel_event=cancel_event)
    return messages


class TestHandleRequest:
    """Test the message stream produced for a request."""

    def test_progress_then_result(self, world_state):
        messages = collect(PhaseRequest(type=TASK_START_TECTONICS, world_state=world_state))

        *progress, terminal = messages
        assert all(isinstance(m, ProgressMessage) for m in progress)
        assert [m.current_step for m in progress] == [1, 3, 5, 6]
        assert all(m.phase == "Tectonics" and m.total_steps == 6 for m in progress)
        assert isinstance(terminal, ResultMessage)
        assert len(terminal.result.plates) == 4

    def test_erosion_request(self, world_state):
        messages = collect(PhaseRequest(type=TASK_START_EROSION, world_state=world_state))
        assert isinstance(messages[-1], ResultMessage)
        assert {m.phase for m in messages[:-1]} == {"Erosion"}

    def test_unknown_type(self, world_state):
        messages = collect(PhaseRequest(type="startVolcanoes", world_state=world_state))
        assert len(messages) == 1
        assert isinstance(messages[0], ErrorMessage)
        assert "startVolcanoes" in messages[0].message
        assert messages[0].cancelled is False

    def test_phase_failure(self, world_state, monkeypatch):
        def explode(state, **kwargs):
            raise RuntimeError("plate collision overflow")

        monkeypatch.setitem(workers.PHASE_TASKS, TASK_START_TECTONICS, ("Tectonics", explode))
        messages = collect(PhaseRequest(type=TASK_START_TECTONICS, world_state=world_state))
        assert len(messages) == 1
        assert "plate collision overflow" in messages[0].message
        assert messages[0].cancelled is False

    def test_cancelled(self, world_state, cancel_event):
        messages = collect(PhaseRequest(type=TASK_START_EROSION, world_state=world_state), cancel_event)
        assert messages == [messages[-1]]
        assert isinstance(messages[-1], ErrorMessage)
        assert messages[-1].cancelled is True


class TestInlineTask:
    """Test relaying a request on the calling thread."""

    def test_returns_world_state_and_progress(self, world_state, recorder):
        result = run_inline_task(
            PhaseRequest(type=TASK_START_TECTONICS, world_state=world_state),
            on_progress=recorder,
        )
        assert result.grid.plate_id.min() >= 0
        assert recorder.phases() == ["Tectonics"] * 4
        assert [e["current_step"] for e in recorder.events] == [1, 3, 5, 6]

    def test_error_becomes_processing_error(self, world_state):
        with pytest.raises(ProcessingError, match="Unknown request type"):
            run_inline_task(PhaseRequest(type="bogus", world_state=world_state))

    def test_cancel_becomes_generation_cancelled(self, world_state, cancel_event):
        with pytest.raises(GenerationCancelled):
            run_inline_task(
                PhaseRequest(type=TASK_START_TECTONICS, world_state=world_state),
                cancel_event=cancel_event,
            )

    def test_unknown_message_ignored(self):
        finished, result = workers._dispatch("not a message", None, logging.getLogger(__name__))
        assert finished is False
        assert result is None


class TestWorkerProcess:
    """Test running a phase in a separate process."""

    def test_matches_inline_result(self, small_settings, recorder):
        from map_generator.initializer import initialize_world_state

        inline = run_inline_task(
            PhaseRequest(type=TASK_START_TECTONICS, world_state=initialize_world_state(small_settings))
        )
        remote = run_worker_task(
            PhaseRequest(type=TASK_START_TECTONICS, world_state=initialize_world_state(small_settings)),
            on_progress=recorder,
        )
        np.testing.assert_array_equal(remote.grid.plate_id, inline.grid.plate_id)
        np.testing.assert_array_equal(remote.grid.height_map, inline.grid.height_map)
        assert [e["current_step"] for e in recorder.events] == [1, 3, 5, 6]

    def test_dead_worker_raises_channel_error(self, world_state, monkeypatch):
        # A target that fails before posting any message.
        monkeypatch.setattr(workers, "phase_worker", len)
        with pytest.raises(ChannelError):
            run_worker_task(PhaseRequest(type=TASK_START_TECTONICS, world_state=world_state))

    def test_cancellation_is_relayed(self, world_state, cancel_event):
        with pytest.raises(GenerationCancelled):
            run_worker_task(
                PhaseRequest(type=TASK_START_TECTONICS, world_state=world_state),
                cancel_event=cancel_event,
            )
