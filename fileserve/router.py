from typing import Dict

from .models import Handler, Request, ResponseWriter


def not_found(writer: ResponseWriter) -> None:
    body = b"404 page not found\n"
    writer.set_header("Content-Type", "text/plain; charset=utf-8")
    writer.set_header("X-Content-Type-Options", "nosniff")
    writer.set_header("Content-Length", str(len(body)))
    writer.write_status(404)
    writer.write(body)


class Router(Handler):
    """Maps URL path patterns to handlers.

    A pattern ending in "/" matches every path below it, any other pattern
    matches only itself. The longest matching pattern wins, so "/" acts as
    the catch-all.
    """

    def __init__(self) -> None:
        self._routes: Dict[str, Handler] = {}

    def route(self, pattern: str, handler: Handler) -> None:
        if not pattern.startswith("/"):
            raise ValueError(f"invalid pattern {pattern!r}")
        if pattern in self._routes:
            raise ValueError(f"multiple registrations for {pattern}")
        self._routes[pattern] = handler

    def match(self, path: str) -> Handler | None:
        best = None
        best_len = -1
        for pattern, handler in self._routes.items():
            if pattern.endswith("/"):
                matched = path.startswith(pattern)
            else:
                matched = path == pattern
            if matched and len(pattern) > best_len:
                best, best_len = handler, len(pattern)
        return best

    def handle(self, req: Request, writer: ResponseWriter) -> None:
        handler = self.match(req.path)
        if handler is None:
            return not_found(writer)
        handler.handle(req, writer)
