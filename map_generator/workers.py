# map_generator/workers.py

"""
================================================================================
ISOLATED PHASE EXECUTION
================================================================================
Runs the long simulation phases (tectonics, erosion) away from the caller,
either in a dedicated worker process or inline, using one message protocol.

Protocol:
---------------
- Request:  PhaseRequest(type='startTectonics' | 'startErosion', world_state)
- Response: zero or more ProgressMessage, then exactly one ResultMessage or
  ErrorMessage. Nothing is sent after the terminal message.

The worker owns the WorldState while it runs. In process mode the state is
pickled in and the result pickled back, so the caller's copy is never shared.
================================================================================
"""
import logging
import multiprocessing
import os
import queue
from dataclasses import dataclass

from . import config as DEFAULTS
from .erosion import run_erosion
from .errors import ChannelError, GenerationCancelled, ProcessingError
from .grid import WorldState
from .tectonics import run_tectonics

module_logger = logging.getLogger(__name__)

TASK_START_TECTONICS = 'startTectonics'
TASK_START_EROSION = 'startErosion'

PHASE_TECTONICS = 'Tectonics'
PHASE_EROSION = 'Erosion'

# Request type -> (phase name, phase function)
PHASE_TASKS = {
    TASK_START_TECTONICS: (PHASE_TECTONICS, run_tectonics),
    TASK_START_EROSION: (PHASE_EROSION, run_erosion),
}


@dataclass(frozen=True)
class PhaseRequest:
    type: str
    world_state: WorldState


@dataclass(frozen=True)
class ProgressMessage:
    current_step: int
    total_steps: int
    phase: str
    type: str = 'progress'


@dataclass(frozen=True)
class ResultMessage:
    result: WorldState
    type: str = 'result'


@dataclass(frozen=True)
class ErrorMessage:
    message: str
    cancelled: bool = False
    type: str = 'error'


def handle_request(request: PhaseRequest, post_message, cancel_event=None, logger: logging.Logger = None):
    """
    Executes a phase request, reporting through post_message(msg). Always
    posts exactly one terminal message and never raises.
    """
    logger = logger or module_logger
    task = PHASE_TASKS.get(request.type)
    if task is None:
        logger.warning(f"Unknown request type: {request.type}")
        post_message(ErrorMessage(message=f"Unknown request type: {request.type}"))
        return

    phase, phase_function = task
    logger.info(f"Received {request.type} request.")

    def report_progress(current_step, total_steps):
        post_message(ProgressMessage(current_step=current_step, total_steps=total_steps, phase=phase))

    try:
        result = phase_function(
            request.world_state,
            report_progress=report_progress,
            cancel_event=cancel_event,
            logger=logger
        )
    except GenerationCancelled as e:
        logger.info(f"{phase} cancelled: {e}")
        post_message(ErrorMessage(message=str(e), cancelled=True))
        return
    except Exception as e:
        logger.critical(f"An exception occurred during {phase}: {e}", exc_info=True)
        post_message(ErrorMessage(message=f"{phase} failed: {e}"))
        return

    logger.info(f"{phase} complete. Sending result.")
    post_message(ResultMessage(result=result))


def phase_worker(request: PhaseRequest, message_queue, cancel_event):
    """
    A top-level, pickle-able process target. Recreates a logger inside the
    worker and streams the protocol messages into message_queue.
    """
    worker_logger = logging.getLogger(f"Worker-{os.getpid()}")
    handle_request(request, message_queue.put, cancel_event=cancel_event, logger=worker_logger)


def _dispatch(message, on_progress, logger):
    """
    Routes one response message. Returns (finished, world_state).

    Raises:
        GenerationCancelled, ProcessingError: For an ErrorMessage.
    """
    if isinstance(message, ProgressMessage):
        if on_progress is not None:
            on_progress({
                'phase': message.phase,
                'current_step': message.current_step,
                'total_steps': message.total_steps,
            })
        return False, None
    if isinstance(message, ResultMessage):
        return True, message.result
    if isinstance(message, ErrorMessage):
        if message.cancelled:
            raise GenerationCancelled(message.message)
        raise ProcessingError(message.message)
    logger.warning(f"Ignoring unknown message from worker: {message!r}")
    return False, None


def run_inline_task(request: PhaseRequest, on_progress=None, cancel_event=None, logger: logging.Logger = None) -> WorldState:
    """Runs a phase request on the calling thread with the same protocol."""
    logger = logger or module_logger
    messages = []
    handle_request(request, messages.append, cancel_event=cancel_event, logger=logger)

    for message in messages:
        finished, result = _dispatch(message, on_progress, logger)
        if finished:
            return result
    raise ChannelError(f"{request.type} finished without sending a result")


def run_worker_task(request: PhaseRequest, on_progress=None, cancel_event=None, logger: logging.Logger = None) -> WorldState:
    """
    Runs a phase request in a dedicated worker process and relays its
    messages. Blocks until the worker sends its terminal message.

    Args:
        request (PhaseRequest): The phase to run.
        on_progress (callable, optional): Receives progress event dicts.
        cancel_event (optional): Any object with is_set(). Relayed to the
            worker, which stops at its next iteration boundary.
        logger (logging.Logger, optional): Logger for runtime messages.

    Raises:
        ChannelError: If the worker cannot start or dies without a result.
        ProcessingError: If the phase itself fails.
        GenerationCancelled: If the phase was cancelled.
    """
    logger = logger or module_logger
    context = multiprocessing.get_context()
    message_queue = context.Queue()
    worker_cancel = context.Event()
    if cancel_event is not None and cancel_event.is_set():
        worker_cancel.set()

    process = context.Process(
        target=phase_worker,
        args=(request, message_queue, worker_cancel),
        name=f"map-generator-{request.type}",
        daemon=True,
    )
    try:
        process.start()
    except (OSError, ValueError) as e:
        raise ChannelError(f"Could not start worker for {request.type}: {e}") from e

    logger.info(f"Started worker process {process.pid} for {request.type}.")
    try:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                worker_cancel.set()

            try:
                message = message_queue.get(timeout=DEFAULTS.WORKER_POLL_INTERVAL_S)
            except queue.Empty:
                if process.is_alive():
                    continue
                # The worker may have exited right after its final put.
                try:
                    message = message_queue.get(timeout=DEFAULTS.WORKER_POLL_INTERVAL_S)
                except queue.Empty:
                    raise ChannelError(
                        f"Worker for {request.type} terminated unexpectedly "
                        f"(exit code {process.exitcode})"
                    ) from None

            finished, result = _dispatch(message, on_progress, logger)
            if finished:
                return result
    finally:
        process.join(timeout=5)
        if process.is_alive():
            logger.warning(f"Worker process {process.pid} did not exit; terminating it.")
            process.terminate()
            process.join()
        message_queue.close()
