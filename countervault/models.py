from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlmodel import SQLModel, Field

# Oldest errors are dropped past this size
MAX_ERRORS_COUNT = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CounterRequest(SQLModel):
    name: str
    hits: int = 0
    durations_sum: int = 0  # milliseconds
    system_errors: int = 0

    @property
    def mean(self) -> int:
        if self.hits == 0:
            return -1
        return self.durations_sum // self.hits


class CounterError(SQLModel):
    time: datetime = Field(default_factory=_utcnow)
    message: str
    request_name: Optional[str] = None
    remote_user: Optional[str] = None


class Counter(SQLModel):
    """Request and error statistics of one instrumented component of an application."""

    name: str
    application: str
    storage_name: Optional[str] = None  # defaults to name
    start_date: datetime = Field(default_factory=_utcnow)
    requests: Dict[str, CounterRequest] = Field(default_factory=dict)
    errors: List[CounterError] = Field(default_factory=list)

    def get_storage_name(self) -> str:
        return self.storage_name or self.name

    @property
    def requests_count(self) -> int:
        return len(self.requests)

    @property
    def errors_count(self) -> int:
        return len(self.errors)

    def add_hits(self, request_name: str, duration_ms: int, system_error: bool = False) -> None:
        request = self.requests.get(request_name)
        if request is None:
            request = CounterRequest(name=request_name)
            self.requests[request_name] = request
        request.hits += 1
        request.durations_sum += duration_ms
        if system_error:
            request.system_errors += 1

    def add_error(
        self,
        message: str,
        request_name: Optional[str] = None,
        remote_user: Optional[str] = None,
    ) -> None:
        self.errors.append(
            CounterError(message=message, request_name=request_name, remote_user=remote_user)
        )
        if len(self.errors) > MAX_ERRORS_COUNT:
            del self.errors[: len(self.errors) - MAX_ERRORS_COUNT]

    def clear(self) -> None:
        self.requests.clear()
        self.errors.clear()
        self.start_date = _utcnow()
