"""The standard trio of input, output and error streams."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import IO, Any

__all__ = ["IOStreams", "standard_io_streams"]


@dataclass
class IOStreams:
    """Input, output and error streams, handy to swap out in tests."""

    in_: IO[Any]
    out: IO[Any]
    err_out: IO[Any]


def standard_io_streams() -> IOStreams:
    """Return streams bound to this process's stdin, stdout and stderr."""
    return IOStreams(in_=sys.stdin, out=sys.stdout, err_out=sys.stderr)