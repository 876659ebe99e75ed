from dataclasses import dataclass, field
from typing import Callable, Dict


@dataclass(frozen=True)
class Request:
    method: str
    target: str
    path: str
    version: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: str = ""
    remote_addr: str = ""


class ResponseWriter:
    """Sink for one response: status line, header fields, then body bytes."""

    @property
    def headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def set_header(self, name: str, value: str) -> None:
        raise NotImplementedError

    def write_status(self, status: int) -> None:
        raise NotImplementedError

    def write(self, data: bytes) -> int:
        raise NotImplementedError


class Handler:
    def handle(self, req: Request, writer: ResponseWriter) -> None:
        raise NotImplementedError


class HandlerFunc(Handler):
    def __init__(self, func: Callable[[Request, ResponseWriter], None]) -> None:
        self.func = func

    def handle(self, req: Request, writer: ResponseWriter) -> None:
        self.func(req, writer)
