"""WSGI applications that serve metrics in Prometheus text format.

Plain handlers write no HELP or TYPE annotations. Annotated handlers add
them according to a mapping of family names to descriptions.
"""

from __future__ import annotations

import io
from typing import Any, Callable, Iterable, Mapping, Optional

from .set import Set, SetExpiredError, default_set
from .transformer import Desc, Transformer

CONTENT_TYPE = "text/plain; version=0.0.4"

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


def _render_plain(metric_set: Set) -> str:
    buffer = io.StringIO()
    metric_set.write_prometheus(buffer)
    return buffer.getvalue()


def _render_annotated(metric_set: Set, mapping: Optional[Mapping[str, Desc]]) -> str:
    transformer = Transformer(mapping)
    metric_set.write_prometheus(transformer)
    return transformer.read()


def _make_app(render: Callable[[], str]) -> WSGIApp:
    def app(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        try:
            body = render().encode("utf-8")
        except SetExpiredError:
            body = b""
        start_response(
            "200 OK",
            [("Content-Type", CONTENT_TYPE), ("Content-Length", str(len(body)))],
        )
        return [body]

    return app


def handler() -> WSGIApp:
    """Return a WSGI application serving the global set."""
    return _make_app(lambda: _render_plain(default_set()))


def handler_for(metric_set: Set) -> WSGIApp:
    """Return a WSGI application serving ``metric_set``."""
    return _make_app(lambda: _render_plain(metric_set))


def annotated_handler(mapping: Optional[Mapping[str, Desc]]) -> WSGIApp:
    """Return a WSGI application serving the global set with HELP and TYPE lines."""
    return _make_app(lambda: _render_annotated(default_set(), mapping))


def annotated_handler_for(
    metric_set: Set, mapping: Optional[Mapping[str, Desc]]
) -> WSGIApp:
    """Return a WSGI application serving ``metric_set`` with HELP and TYPE lines."""
    return _make_app(lambda: _render_annotated(metric_set, mapping))