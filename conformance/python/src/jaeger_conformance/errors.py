from __future__ import annotations

from typing import Any


class ConformanceError(Exception):
    """Base class for every failure a check can raise."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        self.message = message
        self.url = url
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} ({self.url})"
        return self.message

    def details(self) -> list[str]:
        return []


class TransportError(ConformanceError):
    """The HTTP exchange did not complete. Callers may retry within their own budget."""


class TransportTimeoutError(TransportError, TimeoutError):
    pass


class TransportConnectionError(TransportError, ConnectionError):
    pass


class NotReadyError(ConformanceError):
    def __init__(self, url: str, *, attempts: int, last_error: BaseException | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Service not ready after {attempts} attempts", url=url)

    def details(self) -> list[str]:
        if self.last_error is None:
            return []
        return [f"last error: {self.last_error}"]


class AssetMissingError(ConformanceError):
    def __init__(self, url: str, *, status_code: int | None = None, reason: str | None = None) -> None:
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = f"Static asset not served: expected 200, got {status_code}"
        else:
            message = f"Static asset not served: {reason}"
        super().__init__(message, url=url)


class NotFoundError(ConformanceError):
    def __init__(self, url: str, *, attempts: int, expected_count: int, last_count: int | None = None) -> None:
        self.attempts = attempts
        self.expected_count = expected_count
        self.last_count = last_count
        super().__init__(
            f"Expected {expected_count} trace(s) within {attempts} attempts, last poll returned {last_count}",
            url=url,
        )


class ExpectationError(ConformanceError, AssertionError):
    """Decoded data violates an expected invariant. Retrying cannot fix it."""

    def __init__(self, message: str, *, expected: Any, actual: Any, url: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(message, url=url)

    def details(self) -> list[str]:
        return [f"expected: {self.expected!r}", f"actual: {self.actual!r}"]


class DecodeError(ConformanceError):
    """A payload does not follow its wire contract."""

    def __init__(self, message: str, *, errors: list[str] | None = None, url: str | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(message, url=url)

    def details(self) -> list[str]:
        return list(self.errors)


class DeadlineExceededError(ConformanceError):
    def __init__(self, deadline_s: float, *, phase: str) -> None:
        self.deadline_s = deadline_s
        self.phase = phase
        super().__init__(f"Scenario deadline of {deadline_s:g}s exceeded before {phase}")
