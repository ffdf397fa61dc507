"""
Progress events for long operations.

Long operations are written as generators: they yield log/progress events
and return their result. The plain endpoints drain the generator; the
streaming endpoints forward every event as Server-Sent Events and finish
with exactly one ``success`` or ``error`` event.
"""
import json
import logging
import queue
import threading
from typing import Any, Dict, Generator, Iterator, Optional

from torneos.errors import TournamentEngineError

logger = logging.getLogger(__name__)

Event = Dict[str, Any]
Steps = Generator[Event, None, Any]


def log_event(message: str) -> Event:
    return {"type": "log", "message": message}


def progress_event(percent: int, status: str) -> Event:
    return {"type": "progress", "percent": percent, "status": status}


def success_event(result: Any) -> Event:
    return {"type": "success", "result": result}


def error_event(message: str, code: str = "engine_error", **extra: Any) -> Event:
    event = {"type": "error", "message": message, "code": code}
    event.update(extra)
    return event


def run_to_completion(steps: Steps) -> Any:
    """Drain a step generator, returning its result. Domain errors propagate."""
    while True:
        try:
            event = next(steps)
        except StopIteration as stop:
            return stop.value
        if event.get("type") == "log":
            logger.debug(event["message"])


def stream_events(steps: Steps) -> Iterator[Event]:
    """Forward step events and append the terminal success/error event."""
    try:
        result = yield from steps
    except TournamentEngineError as exc:
        logger.info("Streaming operation failed: %s", exc.message)
        yield error_event(**exc.to_dict())
        return
    except Exception as exc:
        # Headers are already sent; the only way to report is the terminal event
        logger.exception("Unexpected failure in streaming operation")
        yield error_event(str(exc) or exc.__class__.__name__, code="internal_error")
        return
    yield success_event(result)


def format_sse(event: Event) -> str:
    return f"data: {json.dumps(event, default=str)}\n\n"


def sse_stream(steps: Steps) -> Iterator[str]:
    """Relay step events as SSE frames.

    The steps run start to finish on one worker thread: the tournament lock
    is thread-bound, while the response iterator may be advanced from a
    different threadpool thread on every chunk. A client disconnect stops
    the steps at the next event boundary.
    """
    frames: "queue.Queue[Optional[str]]" = queue.Queue()
    cancelled = threading.Event()

    def produce() -> None:
        events = stream_events(steps)
        try:
            for event in events:
                if cancelled.is_set():
                    logger.info("Client went away; stopping streaming operation")
                    break
                frames.put(format_sse(event))
        finally:
            events.close()
            frames.put(None)

    threading.Thread(target=produce, name="sse-steps", daemon=True).start()
    try:
        while True:
            frame = frames.get()
            if frame is None:
                return
            yield frame
    finally:
        cancelled.set()
