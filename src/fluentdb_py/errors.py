from __future__ import annotations


class FluentdbPyError(Exception):
    pass


class ValidationError(FluentdbPyError):
    pass


class UnsupportedOperationError(FluentdbPyError):
    pass


class NotFoundError(FluentdbPyError):
    pass


class TransportError(FluentdbPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class ConditionFailedError(TransportError):
    pass
