import io

import pytest

from fastmetrics.metrics import Metric, new_metric_name
from fastmetrics.set import Set
from fastmetrics.setvec import SetVec
from fastmetrics.validator import ValidationError


class _Gauge(Metric):
    def __init__(self, value):
        self.value = value

    def marshal_to(self, writer, name):
        writer.write_metric_name(name)
        writer.write_uint64(self.value)


def _lines(metric_set):
    buf = io.StringIO()
    metric_set.write_prometheus_unthrottled(buf)
    return sorted(line for line in buf.getvalue().split("\n") if line)


def test_same_value_returns_same_child():
    parent = Set()
    sv = SetVec(parent, "a")
    sv.with_label_value("1").register_metric(_Gauge(1), new_metric_name("foo"))
    sv.with_label_value("1").register_metric(_Gauge(2), new_metric_name("bar"))
    assert _lines(parent) == ['bar{a="1"} 2', 'foo{a="1"} 1']


def test_different_values_give_different_children():
    sv = SetVec(Set(), "a")
    assert sv.with_label_value("1") is not sv.with_label_value("2")


def test_label_is_validated():
    with pytest.raises(ValidationError):
        SetVec(Set(), "1bad")


def test_value_is_validated():
    sv = SetVec(Set(), "a")
    with pytest.raises(ValidationError):
        sv.with_label_value('foo"bar')


def test_negative_ttl_rejected():
    with pytest.raises(ValueError):
        SetVec(Set(), "a", -1)


def test_properties():
    parent = Set()
    sv = SetVec(parent, "a", 5)
    assert sv.parent is parent
    assert str(sv.label) == "a"
    assert sv.ttl == 5.0


def test_output_and_removal():
    parent = Set()
    sv = SetVec(parent, "a")
    sv.with_label_value("1").register_metric(_Gauge(1), new_metric_name("foo"))
    sv.with_label_value("2").register_metric(_Gauge(1), new_metric_name("foo"))
    assert _lines(parent) == ['foo{a="1"} 1', 'foo{a="2"} 1']

    sv.remove_by_label_value("1")
    assert _lines(parent) == ['foo{a="2"} 1']

    sv.remove_by_label_value("2")
    assert _lines(parent) == []


def test_remove_unknown_value_keeps_others():
    sv = SetVec(Set(), "a")
    child = sv.with_label_value("1")
    sv.remove_by_label_value("xxx")
    assert sv.with_label_value("1") is child


def test_removed_value_gets_fresh_child():
    sv = SetVec(Set(), "a")
    first = sv.with_label_value("1")
    sv.remove_by_label_value("1")
    assert sv.with_label_value("1") is not first


def test_constant_tags_carry_over():
    parent = Set("x", "y")
    sv = SetVec(parent, "a")
    sv.with_label_value("1").register_metric(_Gauge(1), new_metric_name("foo"))
    sv.with_label_value("2").register_metric(_Gauge(1), new_metric_name("foo"))
    assert _lines(parent) == ['foo{x="y",a="1"} 1', 'foo{x="y",a="2"} 1']