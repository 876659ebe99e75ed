import logging
import time
from typing import Callable

from .models import Handler, Request, ResponseWriter
from .responder import StatusCapturingResponder

log = logging.getLogger("fileserve.access")


def format_duration(seconds: float) -> str:
    if seconds < 1e-3:
        return f"{seconds * 1e6:.0f}µs"
    if seconds < 1.0:
        return f"{seconds * 1e3:.2f}ms"
    return f"{seconds:.2f}s"


class RequestLogger(Handler):
    """Wraps a handler and logs one line per completed request:

        [<status>] <method> <uri> <remote address> <duration>

    The line is written after the inner handler returns. When the inner
    handler raises, the exception propagates and nothing is logged.
    """

    def __init__(self, inner: Handler, clock: Callable[[], float] = time.perf_counter) -> None:
        self.inner = inner
        self.clock = clock

    def handle(self, req: Request, writer: ResponseWriter) -> None:
        start = self.clock()

        capture = StatusCapturingResponder(writer)
        self.inner.handle(req, capture)

        log.info(
            "[%d] %s %s %s %s",
            capture.status,
            req.method,
            req.target,
            req.remote_addr,
            format_duration(self.clock() - start),
        )


def request_logger(inner: Handler) -> Handler:
    return RequestLogger(inner)
