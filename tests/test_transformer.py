import pytest

from fastmetrics.transformer import Desc, MetricType, Transformer, get_family, transform

_INPUT_LINES = [
    "",
    "",
    "",
    "foo 1",
    "# something",
    "x 1",
    "",
    'foo{a="1"} 1',
    'foo{a="2"} 1',
    "######",
    "",
    'hist2_count{foo="bar"} 1',
    'hist2_sum{foo="bar"} 1',
    'hist2_bucket{le="+Inf",foo="bar"} 1',
    'hist2_bucket{le="10",foo="bar"} 1',
    'hist1_count{foo="bar"} 1',
    'hist1_sum{foo="bar"} 1',
    'hist1_bucket{le="+Inf",foo="bar"} 1',
    'hist1_bucket{le="10",foo="bar"} 1',
    'hist1_bucket{le="0.1",foo="bar"} 0',
    'foo2{b="1"} 1',
    "",
    "",
]
_INPUT = "\n".join(_INPUT_LINES)


def _block(family, kind, help_text, *samples):
    help_line = f"# HELP {family}" + (f" {help_text}" if help_text else "")
    return [help_line, f"# TYPE {family} {kind}", *samples]


_EXPECTED_LINES = [
    *_block("foo", "counter", "hello", 'foo{a="2"} 1', 'foo{a="1"} 1', "foo 1"),
    *_block("foo2", "untyped", "", 'foo2{b="1"} 1'),
    *_block(
        "hist1",
        "histogram",
        "cool histogram",
        'hist1_bucket{le="0.1",foo="bar"} 0',
        'hist1_bucket{le="10",foo="bar"} 1',
        'hist1_bucket{le="+Inf",foo="bar"} 1',
        'hist1_sum{foo="bar"} 1',
        'hist1_count{foo="bar"} 1',
    ),
    *_block(
        "hist2",
        "untyped",
        "",
        'hist2_bucket{le="10",foo="bar"} 1',
        'hist2_bucket{le="+Inf",foo="bar"} 1',
        'hist2_sum{foo="bar"} 1',
        'hist2_count{foo="bar"} 1',
    ),
    *_block("x", "untyped", "", "x 1"),
]
_EXPECTED = "\n".join(_EXPECTED_LINES) + "\n"

_MAPPING = {
    "foo": Desc(type=MetricType.COUNTER, help="hello"),
    "a": Desc(type=MetricType.GAUGE, help="cool gauge"),
    "hist1": Desc(type=MetricType.HISTOGRAM, help="cool histogram"),
}


def test_transformer():
    tr = Transformer(_MAPPING)
    tr.write(_INPUT)
    assert tr.read() == _EXPECTED


def test_transformer_no_mapping():
    tr = Transformer()
    assert tr.write("foo 1") == 5
    assert tr.read() == "# HELP foo\n# TYPE foo untyped\nfoo 1\n"
    assert tr.read() == ""


def test_transformer_example():
    tr = Transformer({"foo": Desc(type=MetricType.COUNTER, help="This is a counter")})
    tr.write("foo 1\n")
    assert tr.read() == "# HELP foo This is a counter\n# TYPE foo counter\nfoo 1\n"


def test_transformer_write_in_pieces_and_read_in_chunks():
    tr = Transformer(_MAPPING)
    for piece in (_INPUT[:40], _INPUT[40:100], _INPUT[100:]):
        tr.write(piece)
    chunks = []
    while chunk := tr.read(7):
        assert len(chunk) <= 7
        chunks.append(chunk)
    assert "".join(chunks) == _EXPECTED


def test_write_after_read_raises():
    tr = Transformer()
    tr.write("foo 1")
    tr.read()
    with pytest.raises(ValueError):
        tr.write("bar 1")


def test_read_before_write_is_empty_and_closes_writing():
    tr = Transformer()
    assert tr.read() == ""
    with pytest.raises(ValueError):
        tr.write("foo 1")


def test_transform_function_matches_transformer():
    assert transform(_INPUT, _MAPPING) == _EXPECTED
    assert transform("") == ""


def test_transform_strips_carriage_returns():
    assert transform("foo 1\r\n") == "# HELP foo\n# TYPE foo untyped\nfoo 1\n"


@pytest.mark.parametrize(
    "line, family",
    [
        ("foo 1", "foo"),
        ('foo{a="1"} 1', "foo"),
        ('hist1_bucket{le="10",foo="bar"} 1', "hist1"),
        ('hist1_sum{foo="bar"} 1', "hist1"),
        ("hist2_count 1", "hist2"),
        ("a_sum_count 1", "a_sum"),
        ("x", "x"),
    ],
)
def test_get_family(line, family):
    assert get_family(line) == family


def test_metric_type_names():
    assert [str(t) for t in MetricType] == [
        "untyped",
        "counter",
        "gauge",
        "histogram",
        "summary",
        "info",
    ]
    assert Desc().type is MetricType.UNTYPED