import logging
import socket
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Dict, Tuple
from urllib.parse import unquote

from .models import Handler, Request, ResponseWriter

log = logging.getLogger(__name__)


class RequestHeaderTooLarge(ValueError):
    pass


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def format_addr(addr) -> str:
    if isinstance(addr, tuple) and len(addr) >= 2:
        host, port = addr[0], addr[1]
        if ":" in host:
            return f"[{host}]:{port}"
        return f"{host}:{port}"
    return str(addr)


class ConnectionWriter(ResponseWriter):
    """Writes one response to a client socket.

    Header fields are buffered until the status line goes out. Writing body
    bytes before any status sends a 200.
    """

    def __init__(self, conn: socket.socket, method: str, server_name: str) -> None:
        self.conn = conn
        self.head_only = method.upper() == "HEAD"
        self.server_name = server_name
        self.status = None
        self._headers: Dict[str, str] = {}

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def sent(self) -> bool:
        return self.status is not None

    def set_header(self, name: str, value: str) -> None:
        self._headers[name] = value

    def write_status(self, status: int) -> None:
        if self.sent:
            log.debug("superfluous write_status(%d), already sent %d", status, self.status)
            return
        self.status = status

        headers = dict(self._headers)
        headers.setdefault("Date", http_date())
        headers.setdefault("Server", self.server_name)
        headers["Connection"] = "close"

        status_line = f"HTTP/1.1 {status} {reason_phrase(status)}\r\n"
        header_block = status_line + "".join(f"{k}: {v}\r\n" for k, v in headers.items()) + "\r\n"
        self.conn.sendall(header_block.encode("iso-8859-1"))

    def write(self, data: bytes) -> int:
        if not self.sent:
            self.write_status(200)
        if self.head_only or not data:
            return 0
        self.conn.sendall(data)
        return len(data)

    def finish(self) -> None:
        if not self.sent:
            self._headers.setdefault("Content-Length", "0")
            self.write_status(200)


class Engine:
    def handle_connection(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        try:
            self.process(conn, addr)
        finally:
            try:
                conn.close()
            except OSError:
                pass

    def process(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        raise NotImplementedError


class HTTPEngine(Engine):
    def __init__(self, config, request_handler: Handler, server_name=None) -> None:
        self.config = config
        self.request_handler = request_handler
        if server_name is None:
            server_name = f"fileserve/{socket.gethostname()}"
        self.server_name = server_name

    def process(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        try:
            raw = self._read_headers(conn)
            if raw is None:
                return
            req = self._parse_request(raw, format_addr(addr))
        except (socket.timeout, TimeoutError, ConnectionError):
            return
        except RequestHeaderTooLarge:
            self._send_error(conn, 431)
            return
        except ValueError as e:
            log.debug("bad request from %s: %s", format_addr(addr), e)
            self._send_error(conn, 400)
            return

        writer = ConnectionWriter(conn, req.method, self.server_name)
        try:
            self.request_handler.handle(req, writer)
            writer.finish()
        except (socket.timeout, TimeoutError, ConnectionError):
            log.debug("connection from %s lost during %s %s", req.remote_addr, req.method, req.target)
        except Exception:
            log.exception("error serving %s %s", req.method, req.target)
            if not writer.sent:
                self._send_error(conn, 500)

    def _read_headers(self, conn: socket.socket) -> bytes | None:
        buf = bytearray()
        while True:
            if b"\r\n\r\n" in buf:
                return bytes(buf)
            if len(buf) > self.config.max_header_bytes:
                raise RequestHeaderTooLarge("request header block too large")
            chunk = conn.recv(self.config.chunk_size)
            if chunk == b"":
                return None
            buf.extend(chunk)

    def _parse_request(self, raw: bytes, remote_addr: str) -> Request:
        head, _, _ = raw.partition(b"\r\n\r\n")
        lines = head.split(b"\r\n")
        if not lines or not lines[0]:
            raise ValueError("empty request")

        request_line = lines[0].decode("iso-8859-1")
        parts = request_line.split()
        if len(parts) != 3:
            raise ValueError("bad request line")

        method, target, version = parts
        if not version.startswith("HTTP/"):
            raise ValueError("bad http version")

        headers = {}
        for bline in lines[1:]:
            if not bline:
                continue
            line = bline.decode("iso-8859-1", errors="ignore")
            if ":" not in line:
                raise ValueError("malformed header line")
            k, v = line.split(":", 1)
            headers[k.strip().lower()] = v.strip()

        path, _, query = target.partition("?")
        if not path.startswith("/"):
            raise ValueError("request target must be an absolute path")
        path = unquote(path)

        return Request(
            method=method,
            target=target,
            path=path,
            version=version,
            headers=headers,
            query=query,
            remote_addr=remote_addr,
        )

    def _send_error(self, conn: socket.socket, status: int) -> None:
        body = f"{status} {reason_phrase(status)}\n".encode("utf-8")
        writer = ConnectionWriter(conn, "GET", self.server_name)
        writer.set_header("Content-Type", "text/plain; charset=utf-8")
        writer.set_header("Content-Length", str(len(body)))
        try:
            writer.write_status(status)
            writer.write(body)
        except OSError:
            pass


def http_date() -> str:
    dt = datetime.now(timezone.utc)
    return dt.strftime("%a, %d %b %Y %H:%M:%S GMT")
