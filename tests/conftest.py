import http.client
import logging
import threading

import pytest

from fileserve.access import RequestLogger
from fileserve.config import ServerConfig
from fileserve.handler import FileHandler
from fileserve.models import Request, ResponseWriter
from fileserve.router import Router
from fileserve.server import ThreadedHTTPServer


class FakeWriter(ResponseWriter):
    def __init__(self):
        self._headers = {}
        self.status = None
        self.statuses = []
        self.body = bytearray()
        self.calls = []

    @property
    def headers(self):
        return self._headers

    def set_header(self, name, value):
        self.calls.append(("set_header", name, value))
        self._headers[name] = value

    def write_status(self, status):
        self.calls.append(("write_status", status))
        self.statuses.append(status)
        if self.status is None:
            self.status = status

    def write(self, data):
        self.calls.append(("write", data))
        if self.status is None:
            self.status = 200
        self.body.extend(data)
        return len(data)


@pytest.fixture
def writer():
    return FakeWriter()


@pytest.fixture
def make_request():
    def make(target="/", method="GET", headers=None, remote_addr="192.0.2.1:40000"):
        path, _, query = target.partition("?")
        return Request(
            method=method,
            target=target,
            path=path,
            version="HTTP/1.1",
            headers=headers or {},
            query=query,
            remote_addr=remote_addr,
        )

    return make


@pytest.fixture(autouse=True)
def restore_logging():
    logger = logging.getLogger("fileserve")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def docroot(tmp_path):
    root = tmp_path / "www"
    root.mkdir()
    (root / "hello.txt").write_text("hello, world\n")
    (root / "style.css").write_text("body { color: red; }\n")
    (root / "data.bin").write_bytes(bytes(range(256)) * 1024)
    sub = root / "sub"
    sub.mkdir()
    (sub / "index.html").write_text("<h1>sub</h1>\n")
    empty = root / "empty dir"
    empty.mkdir()
    (empty / "a&b.txt").write_text("x")
    return root


class Running:
    def __init__(self, server, thread):
        self.server = server
        self.thread = thread

    @property
    def port(self):
        return self.server.server_address[1]

    def get(self, target, method="GET", headers=None):
        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5)
        try:
            conn.request(method, target, headers=headers or {})
            resp = conn.getresponse()
            return resp, resp.read()
        finally:
            conn.close()

    def stop(self):
        self.server.stop()
        self.thread.join(timeout=10)


@pytest.fixture
def serve(docroot):
    running = []

    def start(handler=None, **overrides):
        settings = dict(host="127.0.0.1", port=0, root=str(docroot), accept_timeout=0.1)
        settings.update(overrides)
        config = ServerConfig(**settings)
        if handler is None:
            handler = Router()
            handler.route("/", RequestLogger(FileHandler(config.root, config.chunk_size)))
        server = ThreadedHTTPServer(config, handler)
        server.bind()
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        r = Running(server, thread)
        running.append(r)
        return r

    yield start
    for r in running:
        r.stop()
