"""The command line version and its display form."""

from __future__ import annotations

import argparse
import platform

__all__ = [
    "VERSION_CORE",
    "VERSION_PRE_RELEASE",
    "GIT_COMMIT",
    "GIT_COMMIT_COUNT",
    "version",
    "display_version",
    "truncate",
    "main",
]

VERSION_CORE = "0.20.0"
VERSION_PRE_RELEASE = "alpha"
# Filled in at build time when known.
GIT_COMMIT_COUNT = ""
GIT_COMMIT = ""


def truncate(s: str, max_len: int) -> str:
    """Return s cut to at most max_len characters."""
    return s[:max_len]


def version(git_commit: str | None = None, git_commit_count: str | None = None) -> str:
    """Return the semantic version, with pre-release and build metadata when known."""
    commit = GIT_COMMIT if git_commit is None else git_commit
    count = GIT_COMMIT_COUNT if git_commit_count is None else git_commit_count
    result = VERSION_CORE
    if VERSION_PRE_RELEASE:
        result += "-" + VERSION_PRE_RELEASE
        if count:
            result += "." + count
        if commit:
            # 14 character short hash
            result += "+" + truncate(commit, 14)
    return result


def display_version() -> str:
    """Return the version together with the runtime and platform."""
    runtime = f"python{platform.python_version()}"
    target = f"{platform.system().lower()}/{platform.machine().lower()}"
    return f"kind v{version()} {runtime} {target}"


def main(argv: list[str] | None = None) -> int:
    """Print the version; only the semantic version when quiet."""
    parser = argparse.ArgumentParser(prog="version", description="Prints the CLI version")
    parser.add_argument("-q", "--quiet", action="store_true", help="only print the version")
    args = parser.parse_args(argv)
    print(version() if args.quiet else display_version())
    return 0