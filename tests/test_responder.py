import pytest

from fileserve.responder import StatusCapturingResponder


def test_defaults_to_200_when_status_never_written(writer):
    capture = StatusCapturingResponder(writer)
    capture.write(b"body")
    assert capture.status == 200
    assert writer.calls == [("write", b"body")]


def test_records_status_then_forwards(writer):
    capture = StatusCapturingResponder(writer)
    capture.write_status(404)
    assert capture.status == 404
    assert writer.statuses == [404]


def test_forwards_headers_and_body_unchanged(writer):
    capture = StatusCapturingResponder(writer)
    capture.set_header("Content-Type", "text/plain")
    capture.write_status(201)
    assert capture.write(b"abc") == 3

    assert writer.calls == [
        ("set_header", "Content-Type", "text/plain"),
        ("write_status", 201),
        ("write", b"abc"),
    ]
    assert capture.headers is writer.headers
    assert bytes(writer.body) == b"abc"


def test_other_attributes_reach_the_wrapped_writer(writer):
    writer.sent = True
    capture = StatusCapturingResponder(writer)
    assert capture.sent is True


def test_errors_from_wrapped_writer_propagate(writer):
    def broken(data):
        raise BrokenPipeError("peer gone")

    writer.write = broken
    capture = StatusCapturingResponder(writer)
    with pytest.raises(BrokenPipeError, match="peer gone"):
        capture.write(b"x")


def test_first_status_is_the_one_recorded(writer):
    capture = StatusCapturingResponder(writer)
    capture.write_status(404)
    capture.write_status(500)
    assert capture.status == 404
    assert writer.statuses == [404, 500]


def test_status_after_body_keeps_implied_200(writer):
    capture = StatusCapturingResponder(writer)
    capture.write(b"partial")
    capture.write_status(500)
    assert capture.status == 200
