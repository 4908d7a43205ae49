"""Error values with stack traces, cause chains, aggregation and concurrency helpers."""

from __future__ import annotations

import queue
import threading
import traceback
from collections.abc import Callable, Iterable, Iterator, Sequence

__all__ = [
    "KindError",
    "WrappedError",
    "Aggregate",
    "new",
    "new_without_stack",
    "errorf",
    "wrap",
    "wrapf",
    "with_stack",
    "stack_trace",
    "new_aggregate",
    "aggregate_errors",
    "until_error_concurrent",
    "aggregate_concurrent",
]


def _capture_stack() -> traceback.StackSummary:
    frames = [frame for frame in traceback.extract_stack() if frame.filename != __file__]
    return traceback.StackSummary.from_list(frames)


class KindError(Exception):
    """An error with a message, an optional cause and the stack where it was made."""

    def __init__(
        self,
        message: str = "",
        *,
        cause: BaseException | None = None,
        capture_stack: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.stack: traceback.StackSummary | None = _capture_stack() if capture_stack else None
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message


class WrappedError(KindError):
    """An error annotating its cause with a stack trace and an optional message."""

    def __init__(self, cause: BaseException, message: str | None = None) -> None:
        super().__init__(message or "", cause=cause)

    def __str__(self) -> str:
        if self.message:
            return f"{self.message}: {self.cause}"
        return str(self.cause)


class Aggregate(KindError):
    """Several errors held together without a single meaning of their own."""

    def __init__(self, errors: Iterable[BaseException]) -> None:
        super().__init__("", capture_stack=False)
        self.errors: list[BaseException] = list(errors)

    def _visit(self, visitor: Callable[[BaseException], bool]) -> bool:
        for err in self.errors:
            if isinstance(err, Aggregate):
                if err._visit(visitor):
                    return True
            elif visitor(err):
                return True
        return False

    def __str__(self) -> str:
        if not self.errors:
            return ""
        if len(self.errors) == 1:
            return str(self.errors[0])
        seen: dict[str, None] = {}

        def record(err: BaseException) -> bool:
            seen.setdefault(str(err), None)
            return False

        self._visit(record)
        joined = ", ".join(seen)
        if len(seen) == 1:
            return joined
        return f"[{joined}]"

    def matches(self, target: BaseException | type[BaseException]) -> bool:
        """Report whether any contained error is, or wraps, target."""
        return self._visit(lambda err: _is(err, target))


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.cause if isinstance(err, KindError) else None


def _is(err: BaseException, target: BaseException | type[BaseException]) -> bool:
    for current in _chain(err):
        if isinstance(target, type):
            if isinstance(current, target):
                return True
        elif current is target:
            return True
        if isinstance(current, Aggregate) and current.matches(target):
            return True
    return False


def new(message: str) -> KindError:
    """Return an error with message, recording the current stack."""
    return KindError(message)


def new_without_stack(message: str) -> KindError:
    """Return an error with message and no recorded stack."""
    return KindError(message, capture_stack=False)


def errorf(format: str, *args: object) -> KindError:
    """Return an error whose message is format % args, recording the stack."""
    return KindError(format % args if args else format)


def wrap(err: BaseException | None, message: str) -> WrappedError | None:
    """Annotate err with message and a stack trace; None stays None."""
    if err is None:
        return None
    return WrappedError(err, message)


def wrapf(err: BaseException | None, format: str, *args: object) -> WrappedError | None:
    """Annotate err with a formatted message and a stack trace; None stays None."""
    if err is None:
        return None
    return WrappedError(err, format % args if args else format)


def with_stack(err: BaseException | None) -> WrappedError | None:
    """Annotate err with a stack trace; None stays None."""
    if err is None:
        return None
    return WrappedError(err)


def stack_trace(err: BaseException | None) -> traceback.StackSummary | None:
    """Return the deepest recorded stack in err's cause chain, if any."""
    deepest = None
    for current in _chain(err):
        if isinstance(current, KindError) and current.stack is not None:
            deepest = current.stack
    return deepest


def _new(errlist: Iterable[BaseException | None]) -> Aggregate | None:
    errs = [err for err in errlist if err is not None]
    if not errs:
        return None
    return Aggregate(errs)


def _flatten(agg: Aggregate | None) -> Aggregate | None:
    if agg is None:
        return None
    result: list[BaseException] = []
    for err in agg.errors:
        if isinstance(err, Aggregate):
            flat = _flatten(err)
            if flat is not None:
                result.extend(flat.errors)
        elif err is not None:
            result.append(err)
    return _new(result)


def _reduce(err: BaseException | None) -> BaseException | None:
    if isinstance(err, Aggregate):
        if len(err.errors) == 1:
            return err.errors[0]
        if not err.errors:
            return None
    return err


def new_aggregate(errlist: Sequence[BaseException | None]) -> WrappedError | None:
    """Aggregate errlist, flattened and reduced, and annotated with a stack trace."""
    return with_stack(_reduce(_flatten(_new(errlist))))


def aggregate_errors(err: BaseException | None) -> list[BaseException] | None:
    """Return the errors of the deepest Aggregate in err's cause chain, if any."""
    deepest = None
    for current in _chain(err):
        if isinstance(current, Aggregate):
            deepest = current
    if deepest is None:
        return None
    return list(deepest.errors)


def _run_into(func: Callable[[], object], results: queue.Queue) -> None:
    try:
        func()
    except Exception as exc:  # noqa: BLE001 - every failure is reported to the caller
        results.put(exc)
    else:
        results.put(None)


def until_error_concurrent(funcs: Iterable[Callable[[], object]]) -> None:
    """Run funcs in threads and raise the first error any of them raises."""
    funcs = list(funcs)
    results: queue.Queue = queue.Queue()
    for func in funcs:
        threading.Thread(target=_run_into, args=(func, results), daemon=True).start()
    for _ in funcs:
        err = results.get()
        if err is not None:
            raise err


def aggregate_concurrent(funcs: Iterable[Callable[[], object]]) -> None:
    """Run funcs in threads, wait for all, and raise their error or an aggregate of them."""
    funcs = list(funcs)
    results: queue.Queue = queue.Queue()
    threads = [
        threading.Thread(target=_run_into, args=(func, results), daemon=True) for func in funcs
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    errs = []
    while not results.empty():
        err = results.get()
        if err is not None:
            errs.append(err)
    if len(errs) > 1:
        raise new_aggregate(errs)
    if errs:
        raise errs[0]