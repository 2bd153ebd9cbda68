from __future__ import annotations

import inspect
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

# Frames of this package are not part of the caller's trace
OWN_PACKAGE = __name__.rpartition(".")[0]
CONNECTIONS_STACK_TRACES_DISABLED = False


@dataclass(frozen=True)
class StackFrame:
    module: str
    filename: str
    lineno: int
    function: str

    def __str__(self) -> str:
        return f"{self.module}.{self.function}({self.filename}:{self.lineno})"


def _belongs_to_own_package(frame: StackFrame) -> bool:
    return frame.module == OWN_PACKAGE or frame.module.startswith(OWN_PACKAGE + ".")


def _current_stack() -> Tuple[StackFrame, ...]:
    """Stack of the caller, most recent frame first."""
    frames = []
    frame = inspect.currentframe()
    try:
        # Skip this helper, the constructor becomes the top frame
        frame = frame.f_back if frame is not None else None
        while frame is not None:
            code = frame.f_code
            frames.append(
                StackFrame(
                    module=frame.f_globals.get("__name__", ""),
                    filename=code.co_filename,
                    lineno=frame.f_lineno,
                    function=code.co_name,
                )
            )
            frame = frame.f_back
    finally:
        del frame
    return tuple(frames)


class ConnectionInformations:
    """
    Opening time, thread and stack trace of a connection (or any monitored
    resource) at the moment it was opened.
    """

    __slots__ = ("_opening_time", "_opening_stack_trace", "_thread_id")

    def __init__(self) -> None:
        self._opening_time = int(time.time() * 1000)
        if CONNECTIONS_STACK_TRACES_DISABLED:
            self._opening_stack_trace: Tuple[StackFrame, ...] = ()
        else:
            self._opening_stack_trace = _current_stack()
        self._thread_id = threading.get_ident()

    @property
    def opening_time(self) -> int:
        return self._opening_time

    @property
    def opening_date(self) -> datetime:
        return datetime.fromtimestamp(self._opening_time / 1000, tz=timezone.utc)

    @property
    def opening_stack_trace(self) -> List[StackFrame]:
        stack_trace = list(self._opening_stack_trace)
        if not stack_trace:
            return stack_trace
        # Drop the constructor, then the rest of this package
        del stack_trace[0]
        while stack_trace and _belongs_to_own_package(stack_trace[0]):
            del stack_trace[0]
        return stack_trace

    @property
    def thread_id(self) -> int:
        return self._thread_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "opening_date": self.opening_date.isoformat(),
            "thread_id": self._thread_id,
            "opening_stack_trace": [asdict(frame) for frame in self.opening_stack_trace],
        }

    def __str__(self) -> str:
        return f"{type(self).__name__}[openingDate={self.opening_date}, threadId={self._thread_id}]"

    __repr__ = __str__


def capture() -> ConnectionInformations:
    """Capture the opening context of a resource for the calling code."""
    return ConnectionInformations()
