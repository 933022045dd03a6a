# fastmetrics

A library for recording metrics in an application and exporting them in the
Prometheus text exposition format. The package depends only on the standard
library.

## Installing

    pip install fastmetrics

## Sets and metrics

Metrics live in a `fastmetrics.set.Set`. A metric is any subclass of
`fastmetrics.metrics.Metric` that implements `marshal_to(writer, name)`. You
register it under a `MetricName` with `Set.register_metric`. Registering a
second metric under the same name raises `ValueError`.

```python
import io

from fastmetrics.atomics import Sum
from fastmetrics.metrics import Metric, new_metric_name
from fastmetrics.set import Set


class Requests(Metric):
    def __init__(self):
        self.total = Sum()

    def marshal_to(self, writer, name):
        writer.write_metric_name(name)
        writer.write_float64(self.total.load())


root = Set("service", "api")
requests = Requests()
root.register_metric(requests, new_metric_name("http_requests", "path", "/"))
requests.total.inc()

buffer = io.StringIO()
root.write_prometheus(buffer)
print(buffer.getvalue())  # http_requests{service="api",path="/"} 1
```

`ExpfmtWriter` writes names and sample values:

- `write_metric_name`, followed by `write_uint64` or `write_float64`, writes one line.
- `write_lazy_metric_uint64`, `write_lazy_metric_float64` and
  `write_lazy_metric_duration` write a whole untagged line.

The writer puts the set's constant tags before the metric's own tags.

A set's metrics are written in order of family name, then its child sets,
then its collectors. `write_prometheus` yields to other threads between
metrics. `write_prometheus_unthrottled` does not. Both return the number of
characters written.

### Constant tags and child sets

- `Set(*label_value_pairs)` creates a set with constant tags.
- `new_set(...)` creates a child set. The child inherits the parent's tags
  and may add its own.
- A child with constant tags must be unique among its siblings. Creating a
  duplicate raises `ValueError`.
- `unregister_set` removes a child set.
- `append_constant_tags(...)` adds tags to a set and to all of its children.
  It is meant for initial setup only.
- `reset()` drops all metrics, children and collectors. It keeps the
  constant tags.

### Set vectors and expiry

A `fastmetrics.setvec.SetVec` splits a set by the value of one label.

```python
vec = root.new_set_vec("tenant")
tenant_set = vec.with_label_value("acme")  # its metrics carry tenant="acme"
vec.remove_by_label_value("acme")          # drops the set and all its metrics
```

`new_set_vec_with_ttl(label, ttl)` creates child sets that expire after `ttl`
seconds without use. Calling `with_label_value` keeps a child set alive, and
so does `Set.keep_alive()`. Expiry is checked against a clock that ticks once
a second.

When a parent is written, its expired children are dropped without an error.
Writing an expired set directly raises `SetExpiredError`.

## Collectors

Collectors subclass `fastmetrics.metrics.Collector`. Their `collect(writer)`
method runs each time the set is written. `register_collector(*collectors)`
adds collectors to a set. Registering the same object twice raises
`ValueError`. `unregister_collector` removes one.

`fastmetrics.collectors` provides two collectors:

- `new_process_metrics_collector()` works on Linux and macOS. It writes:
  - `process_start_time_seconds`
  - `process_cpu_seconds_total`
  - `process_open_fds`
  - `process_max_fds`
  - `process_virtual_memory_max_bytes`

  On Linux it also writes `process_resident_memory_bytes` and
  `process_virtual_memory_bytes`, which it reads from `/proc/self/stat`.
  On other platforms it writes nothing. The helpers `parse_proc_stat` and
  `open_file_count` are public.
- `new_self_metrics_collector()` writes `fastmetrics_ident_cache_size`. This
  is the number of interned identifiers that are still alive.

## The global set

`fastmetrics.set` has a global set and these functions that work on it:

- `default_set()`
- `reset_default_set()`
- `register_collector(...)`
- `register_default_collectors()`, which registers the process collector
- `write_prometheus(stream)`
- `new_set_vec(label)`
- `new_set_vec_with_ttl(label, ttl)`

## Names and validation

`fastmetrics.validator` checks names and values. Each function raises
`ValidationError` (a `ValueError`) when a check fails:

- `must_ident` and `must_label` take an identifier. It must match
  `[a-zA-Z_:.][a-zA-Z0-9_:.]*`.
- `must_value` takes a tag value. The value may be any text, but a double
  quote or a line feed must appear escaped as `\"` or `\n`. A backslash may
  only start one of `\n`, `\\` or `\"`.
- `must_tag(label, value)` builds one `Tag`.
- `must_tags(*pairs)` builds tags from alternating labels and values. An odd
  number of arguments raises `ValidationError`.

`unsafe_value` skips validation. Identifiers are interned: the same `Ident`
object is returned while it is in use.

## HELP and TYPE annotations

By default no `# HELP` or `# TYPE` lines are written. `fastmetrics.transformer`
adds them, either through `transform(text, mapping)` or through a
`Transformer`. A `Transformer` is a writable target: write the whole text
first, then `read()` the result. Writing after the first read raises
`ValueError`.

```python
from fastmetrics.transformer import Desc, MetricType, transform

mapping = {"foo": Desc(help="This is a counter", type=MetricType.COUNTER)}
print(transform("foo 1\n", mapping))
# # HELP foo This is a counter
# # TYPE foo counter
# foo 1
```

The transformer handles lines as follows:

- It drops blank lines, comment lines and lines that start with a space.
- It groups lines by family and sorts the families by name. Within a family,
  lines come out in the reverse of the order they were written.
- A name with the suffix `_bucket`, `_count` or `_sum` counts as its base
  family.
- A family that is not in the mapping is announced as `untyped`.

## Serving over HTTP

`fastmetrics.promhttp` builds WSGI applications that serve metrics with the
content type `text/plain; version=0.0.4` (`CONTENT_TYPE`):

- `handler()` serves the global set.
- `handler_for(metric_set)` serves the set you pass in.
- `annotated_handler(mapping)` and `annotated_handler_for(metric_set, mapping)`
  also add HELP and TYPE lines.

If the set has expired, the response body is empty.

```python
from wsgiref.simple_server import make_server

from fastmetrics.promhttp import handler_for

make_server("127.0.0.1", 8000, handler_for(root)).serve_forever()
```

## What it does not do

- There are no ready-made counter, gauge or histogram types. You supply your
  own `Metric` subclasses, and the thread-safe cells in `fastmetrics.atomics`
  (`Float64`, `Sum`) help with that.
- A `SetVec` only hands out and removes child sets. It has no shortcuts for
  creating metrics.
- There is no command-line program, and no HTTP server of its own. Serving
  works through the WSGI applications above.
- Responses are not compressed.