from fastmetrics.metrics import Metric, new_metric_name
from fastmetrics.promhttp import (
    CONTENT_TYPE,
    annotated_handler,
    annotated_handler_for,
    handler,
    handler_for,
)
from fastmetrics.set import Set, default_set, reset_default_set
from fastmetrics.transformer import Desc, MetricType


class Counter(Metric):
    def __init__(self):
        self.value = 0

    def inc(self):
        self.value += 1

    def marshal_to(self, writer, name):
        writer.write_metric_name(name)
        writer.write_uint64(self.value)


def add_counter(metric_set, family):
    counter = Counter()
    metric_set.register_metric(counter, new_metric_name(family))
    counter.inc()


def call(app):
    captured = {}

    def start_response(status, headers):
        captured["status"] = status
        captured["headers"] = dict(headers)

    body = b"".join(app({"REQUEST_METHOD": "GET", "PATH_INFO": "/metrics"}, start_response))
    return captured["status"], captured["headers"], body


MAPPING = {"foo": Desc(help="This is a counter", type=MetricType.COUNTER)}


def test_handler_for_serves_set():
    metric_set = Set()
    add_counter(metric_set, "foo")
    status, headers, body = call(handler_for(metric_set))
    assert status.startswith("200")
    assert headers["Content-Type"] == "text/plain; version=0.0.4"
    assert headers["Content-Type"] == CONTENT_TYPE
    assert body == b"foo 1\n"
    assert headers["Content-Length"] == str(len(body))


def test_handler_for_empty_set():
    _, headers, body = call(handler_for(Set()))
    assert body == b""
    assert headers["Content-Length"] == "0"


def test_annotated_handler_for_with_mapping():
    metric_set = Set()
    add_counter(metric_set, "foo")
    _, headers, body = call(annotated_handler_for(metric_set, MAPPING))
    assert headers["Content-Type"] == CONTENT_TYPE
    assert body.decode() == "# HELP foo This is a counter\n# TYPE foo counter\nfoo 1\n"


def test_annotated_handler_for_without_mapping():
    metric_set = Set()
    add_counter(metric_set, "foo")
    _, _, body = call(annotated_handler_for(metric_set, None))
    assert body.decode() == "# HELP foo\n# TYPE foo untyped\nfoo 1\n"


def test_handler_serves_default_set():
    reset_default_set()
    try:
        app = handler()
        assert call(app)[2] == b""
        add_counter(default_set(), "foo")
        assert call(app)[2] == b"foo 1\n"
    finally:
        reset_default_set()


def test_annotated_handler_serves_default_set():
    reset_default_set()
    try:
        add_counter(default_set(), "foo")
        _, _, body = call(annotated_handler(MAPPING))
        assert body.decode().splitlines() == [
            "# HELP foo This is a counter",
            "# TYPE foo counter",
            "foo 1",
        ]
    finally:
        reset_default_set()


def test_handler_is_reusable():
    metric_set = Set()
    counter = Counter()
    metric_set.register_metric(counter, new_metric_name("foo"))
    app = handler_for(metric_set)
    first = call(app)[2]
    counter.inc()
    second = call(app)[2]
    assert first == b"foo 0\n"
    assert second == b"foo 1\n"