"""Error taxonomy shared by every pixproxy engine.

Each error carries a machine-readable ``code`` and the HTTP status the proxy
layer answers with. Parsing and policy errors are client faults raised before
any pool permit is taken; processing errors are only raised from inside a
pool-held task.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


class PixproxyError(Exception):
    code = "internal.error"
    http_status = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedInputError(PixproxyError):
    """Request parameters could not be parsed, or conflict with each other."""
    code = "request.malformed"
    http_status = 400


class PolicyViolationError(PixproxyError):
    """The request parsed fine but the configured policy does not permit it."""
    code = "policy.violation"
    http_status = 400

    def __init__(self, messages: Sequence[str] | str):
        if isinstance(messages, str):
            messages = [messages]
        self.messages: List[str] = list(messages)
        super().__init__(", ".join(self.messages), details={"violations": self.messages})


class NotFoundError(PixproxyError):
    code = "source.not_found"
    http_status = 404


class BlobStoreError(PixproxyError):
    code = "storage.error"
    http_status = 502


class ProcessingError(PixproxyError):
    code = "processing.error"
    http_status = 502


class ProcessingTimeoutError(ProcessingError):
    code = "processing.timeout"
    http_status = 504

    def __init__(self, message: str, *, timeout_seconds: float):
        super().__init__(message, details={"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class ProcessingFailedError(ProcessingError):
    code = "processing.failed"
    http_status = 502

    def __init__(self, message: str, *, output: str = "", stage: str = "convert"):
        super().__init__(message, details={"stage": stage})
        self.output = output
        self.stage = stage

    def __str__(self) -> str:
        return f"[{self.stage}] {super().__str__()}"
