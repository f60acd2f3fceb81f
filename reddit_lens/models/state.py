from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ErrorKind(str, Enum):
    NETWORK_UNREACHABLE = "network_unreachable"
    RATE_LIMITED = "rate_limited"
    MALFORMED_PAYLOAD = "malformed_payload"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Idle:
    request_id: int = 0


@dataclass(frozen=True)
class Loading:
    request_id: int


@dataclass(frozen=True)
class Success:
    data: Any
    request_id: int


@dataclass(frozen=True)
class Error:
    kind: ErrorKind
    request_id: int
    message: str = ""


FetchState = Union[Idle, Loading, Success, Error]
