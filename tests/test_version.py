import pytest

from kindkit import version as v


@pytest.mark.parametrize(
    "value, max_length, expected",
    [
        ("A Really Long String", 1, "A"),
        ("A Short String", 10, "A Short St"),
        ("Under Max Length String", 1000, "Under Max Length String"),
    ],
)
def test_truncate(value, max_length, expected):
    result = v.truncate(value, max_length)
    assert len(result) <= max_length
    assert result == expected


@pytest.mark.parametrize(
    "git_commit, git_commit_count, want",
    [
        (
            "mocked-hash",
            "mocked-count",
            v.VERSION_CORE + "-" + v.VERSION_PRE_RELEASE + "." + "mocked-count" + "+" + "mocked-hash",
        ),
        ("mocked-hash", "", v.VERSION_CORE + "-" + v.VERSION_PRE_RELEASE + "+" + "mocked-hash"),
        ("", "mocked-count", v.VERSION_CORE + "-" + v.VERSION_PRE_RELEASE + "." + "mocked-count"),
        ("", "", v.VERSION_CORE + "-" + v.VERSION_PRE_RELEASE),
    ],
)
def test_version(git_commit, git_commit_count, want):
    assert v.version(git_commit, git_commit_count) == want


def test_version_truncates_long_commit():
    result = v.version("0123456789abcdefghij", "")
    assert result == "0.20.0-alpha+0123456789abcd"


def test_version_defaults():
    assert v.version() == "0.20.0-alpha"


def test_display_version_contains_version():
    shown = v.display_version()
    assert shown.startswith("kind v" + v.version() + " ")
    assert "/" in shown.split(" ")[-1]


def test_main_quiet_prints_semver(capsys):
    assert v.main(["-q"]) == 0
    assert capsys.readouterr().out == v.version() + "\n"


def test_main_prints_display_version(capsys):
    assert v.main([]) == 0
    assert capsys.readouterr().out == v.display_version() + "\n"