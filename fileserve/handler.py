import html
import logging
import mimetypes
import os
import posixpath
from email.utils import formatdate, parsedate_to_datetime
from urllib.parse import quote

from .models import Handler, Request, ResponseWriter
from .router import not_found

log = logging.getLogger(__name__)

INDEX = "index.html"


class FileHandler(Handler):
    def __init__(self, document_root: str, chunk_size: int = 64 * 1024) -> None:
        self.root_real = os.path.realpath(document_root)
        self.chunk_size = chunk_size

    def handle(self, req: Request, writer: ResponseWriter) -> None:
        if req.method.upper() not in ("GET", "HEAD"):
            writer.set_header("Allow", "GET, HEAD")
            return self._error(writer, 405, "405 method not allowed")

        url_path = req.path if req.path.startswith("/") else "/" + req.path

        if url_path.endswith("/" + INDEX):
            return self._redirect(writer, req, "./")

        try:
            abs_path = self._safe_join(self.root_real, url_path)
        except PermissionError:
            return self._error(writer, 403, "403 Forbidden")
        except ValueError:
            return self._error(writer, 400, "400 Bad Request")

        try:
            st = os.stat(abs_path)
        except FileNotFoundError:
            return not_found(writer)
        except PermissionError:
            return self._error(writer, 403, "403 Forbidden")
        except OSError:
            log.exception("stat %s", abs_path)
            return self._error(writer, 500, "500 Internal Server Error")

        is_dir = os.path.isdir(abs_path)
        if is_dir and not url_path.endswith("/"):
            return self._redirect(writer, req, quote(posixpath.basename(url_path)) + "/")
        if not is_dir and url_path.endswith("/"):
            return self._redirect(writer, req, "../" + quote(posixpath.basename(url_path.rstrip("/"))))

        if is_dir:
            index = os.path.join(abs_path, INDEX)
            if not os.path.isfile(index):
                return self._list_directory(writer, req, abs_path, st)
            abs_path = index
            st = os.stat(index)

        self._send_file(writer, req, abs_path, st)

    def _send_file(self, writer: ResponseWriter, req: Request, abs_path: str, st: os.stat_result) -> None:
        if self._not_modified(req, st):
            writer.set_header("Last-Modified", formatdate(st.st_mtime, usegmt=True))
            writer.write_status(304)
            return

        try:
            f = open(abs_path, "rb")
        except PermissionError:
            return self._error(writer, 403, "403 Forbidden")

        with f:
            writer.set_header("Content-Type", self._content_type(abs_path))
            writer.set_header("Content-Length", str(st.st_size))
            writer.set_header("Last-Modified", formatdate(st.st_mtime, usegmt=True))
            writer.write_status(200)
            if req.method.upper() == "HEAD":
                return
            # Headers are out; a failed copy can only cut the body short.
            try:
                while True:
                    data = f.read(self.chunk_size)
                    if not data:
                        break
                    writer.write(data)
            except OSError as e:
                log.debug("copying %s to %s stopped: %s", abs_path, req.remote_addr, e)

    def _list_directory(self, writer: ResponseWriter, req: Request, abs_path: str, st: os.stat_result) -> None:
        if self._not_modified(req, st):
            writer.write_status(304)
            return

        try:
            names = sorted(os.listdir(abs_path))
        except OSError:
            return self._error(writer, 500, "Error reading directory")

        lines = ["<pre>\n"]
        for name in names:
            if os.path.isdir(os.path.join(abs_path, name)):
                name += "/"
            lines.append(f'<a href="{html.escape(quote(name))}">{html.escape(name)}</a>\n')
        lines.append("</pre>\n")
        body = "".join(lines).encode("utf-8")

        writer.set_header("Content-Type", "text/html; charset=utf-8")
        writer.set_header("Content-Length", str(len(body)))
        writer.set_header("Last-Modified", formatdate(st.st_mtime, usegmt=True))
        writer.write_status(200)
        if req.method.upper() != "HEAD":
            writer.write(body)

    @staticmethod
    def _not_modified(req: Request, st: os.stat_result) -> bool:
        since = req.headers.get("if-modified-since")
        if not since:
            return False
        try:
            ts = parsedate_to_datetime(since).timestamp()
        except (TypeError, ValueError):
            return False
        return int(st.st_mtime) <= ts

    @staticmethod
    def _content_type(path: str) -> str:
        ctype, _ = mimetypes.guess_type(path)
        if ctype is None:
            return "application/octet-stream"
        if ctype.startswith("text/"):
            return ctype + "; charset=utf-8"
        return ctype

    @staticmethod
    def _redirect(writer: ResponseWriter, req: Request, location: str) -> None:
        if req.query:
            location += "?" + req.query
        writer.set_header("Location", location)
        writer.set_header("Content-Length", "0")
        writer.write_status(301)

    @staticmethod
    def _error(writer: ResponseWriter, status: int, message: str) -> None:
        body = (message + "\n").encode("utf-8")
        writer.set_header("Content-Type", "text/plain; charset=utf-8")
        writer.set_header("X-Content-Type-Options", "nosniff")
        writer.set_header("Content-Length", str(len(body)))
        writer.write_status(status)
        writer.write(body)

    def _safe_join(self, root_real: str, url_path: str) -> str:
        if "\x00" in url_path:
            raise ValueError("embedded null byte")
        norm = posixpath.normpath(url_path)
        rel = norm.lstrip("/")
        candidate = os.path.join(root_real, *rel.split("/")) if rel else root_real
        real = os.path.realpath(candidate)

        root_prefix = root_real.rstrip(os.sep) + os.sep
        if real != root_real and not real.startswith(root_prefix):
            raise PermissionError("escape root")
        return real
