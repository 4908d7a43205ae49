import threading

import pytest

from kindkit.errors import (
    Aggregate,
    KindError,
    WrappedError,
    aggregate_concurrent,
    aggregate_errors,
    errorf,
    new,
    new_aggregate,
    new_without_stack,
    stack_trace,
    until_error_concurrent,
    with_stack,
    wrap,
    wrapf,
)


def test_errors_wrapped_aggregate():
    errs = [new("foo"), errorf("bar")]
    err = wrapf(new_aggregate(errs), "baz: %s", "quux")
    assert aggregate_errors(err) == errs


def test_errors_nil():
    assert aggregate_errors(None) is None


def test_stack_trace_wrapped_chain():
    err = new("foo")
    expected = err.stack
    result = stack_trace(wrap(wrap(err, "bar"), "baz"))
    assert result is expected


def test_stack_trace_nil():
    assert stack_trace(None) is None


def test_stack_trace_without_stack():
    assert stack_trace(new_without_stack("plain")) is None


def test_until_error_concurrent_first_to_return_error():
    expected = new("first")
    wait = threading.Event()

    def blocked():
        wait.wait()
        raise new("second")

    def failing():
        raise expected

    with pytest.raises(KindError) as excinfo:
        until_error_concurrent([blocked, failing])
    wait.set()
    assert excinfo.value is expected


def test_until_error_concurrent_nil():
    calls = []
    result = until_error_concurrent([lambda: calls.append(1)])
    assert result is None
    assert calls == [1]


def test_aggregate_concurrent_all_errors_returned():
    first = new("first")
    second = new("second")

    def raise_second():
        raise second

    def raise_first():
        raise first

    with pytest.raises(KindError) as excinfo:
        aggregate_concurrent([raise_second, raise_first])
    result = sorted(aggregate_errors(excinfo.value), key=str)
    assert result == [first, second]


def test_aggregate_concurrent_one_error():
    expected = new("foo")

    def failing():
        raise expected

    with pytest.raises(KindError) as excinfo:
        aggregate_concurrent([failing])
    assert excinfo.value is expected


def test_aggregate_concurrent_nil():
    calls = []
    result = aggregate_concurrent([lambda: calls.append(1), lambda: calls.append(2)])
    assert result is None
    assert sorted(calls) == [1, 2]


def test_new_aggregate_empty_and_nils():
    assert new_aggregate([]) is None
    assert new_aggregate([None, None]) is None


def test_new_aggregate_single_is_reduced():
    only = new("only")
    result = new_aggregate([None, only])
    assert isinstance(result, WrappedError)
    assert result.cause is only
    assert str(result) == "only"
    assert aggregate_errors(result) is None


def test_new_aggregate_flattens_nested():
    a, b, c = new("a"), new("b"), new("c")
    result = new_aggregate([Aggregate([a, Aggregate([b])]), c])
    assert aggregate_errors(result) == [a, b, c]


def test_aggregate_message_deduplicates():
    assert str(Aggregate([new("a"), new("a")])) == "a"
    assert str(Aggregate([new("a"), new("b"), new("a")])) == "[a, b]"
    assert str(Aggregate([new("solo")])) == "solo"
    assert str(Aggregate([])) == ""


def test_aggregate_matches():
    a = new("a")
    b = ValueError("b")
    agg = Aggregate([a, Aggregate([wrap(b, "ctx")])])
    assert agg.matches(a)
    assert agg.matches(b)
    assert agg.matches(ValueError)
    assert not agg.matches(new("a"))
    assert not agg.matches(KeyError)


def test_wrap_messages_and_nil():
    base = new("foo")
    assert wrap(None, "bar") is None
    assert wrapf(None, "bar %s", "x") is None
    assert with_stack(None) is None
    assert str(wrap(base, "bar")) == "bar: foo"
    assert str(wrapf(base, "bar %s", "x")) == "bar x: foo"
    assert str(with_stack(base)) == "foo"
    assert wrap(base, "bar").cause is base


def test_errorf_formats():
    assert str(errorf("unexpected number of %s nodes %d", "worker", 2)) == (
        "unexpected number of worker nodes 2"
    )
    assert str(new("plain")) == "plain"