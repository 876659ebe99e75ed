from typing import Dict

from .models import ResponseWriter


class StatusCapturingResponder(ResponseWriter):
    """Forwards every call to the wrapped writer, remembering the status written.

    Only the first status counts, matching what reaches the client: a later
    write_status, or one after body bytes implied 200, is forwarded but not
    recorded.
    """

    def __init__(self, writer: ResponseWriter) -> None:
        self.writer = writer
        # Nothing written explicitly means the transport answers 200.
        self.status = 200
        self._committed = False

    @property
    def headers(self) -> Dict[str, str]:
        return self.writer.headers

    def set_header(self, name: str, value: str) -> None:
        self.writer.set_header(name, value)

    def write_status(self, status: int) -> None:
        if not self._committed:
            self.status = status
            self._committed = True
        self.writer.write_status(status)

    def write(self, data: bytes) -> int:
        self._committed = True
        return self.writer.write(data)

    def __getattr__(self, name):
        # Only reached for attributes outside the writer capability set.
        return getattr(self.writer, name)
