"""Tests for the assertion predicates."""

import os

import pytest

from scenario_harness import (
    AssertionFailed,
    ProcessResult,
    Quantity,
    check_env,
    check_exit_status,
    check_files_absent,
    check_files_exist,
    check_line_count,
    check_running,
)
from scenario_harness.assertions import count_listed, listed_names, listing_pattern


def make_result(stdout="", stderr="", exit_status=0):
    return ProcessResult(command="ramen", stdout=stdout, stderr=stderr, exit_status=exit_status)


class TestLineCount:
    def test_counts_lines_of_the_stream(self):
        result = make_result(stdout="a\nb\nc\n", stderr="")
        check_line_count(result, "stdout", Quantity.parse("a few"))
        check_line_count(result, "stderr", Quantity.parse("no"))

    def test_last_line_without_newline_counts(self):
        check_line_count(make_result(stdout="a\nb"), "stdout", Quantity.parse("2"))

    def test_mismatch(self):
        result = make_result(stderr="boom\n")
        with pytest.raises(AssertionFailed) as excinfo:
            check_line_count(result, "stderr", Quantity.parse("no"), context="ramen lines on stderr")
        assert excinfo.value.actual == 1
        assert excinfo.value.context == "ramen lines on stderr"


class TestExitStatus:
    def test_equal(self):
        check_exit_status(make_result(exit_status=0), 0)

    def test_unequal(self):
        with pytest.raises(AssertionFailed) as excinfo:
            check_exit_status(make_result(exit_status=2), 0)
        assert (excinfo.value.expected, excinfo.value.actual) == (0, 2)

    def test_negated(self):
        """'exit with status not 0' accepts any other status."""
        check_exit_status(make_result(exit_status=1), 0, negate=True)
        with pytest.raises(AssertionFailed):
            check_exit_status(make_result(exit_status=0), 0, negate=True)


class TestFiles:
    def test_existing_file(self, tmp_path):
        path = tmp_path / "foo.x"
        path.write_text("")
        check_files_exist([path])

    def test_missing_file_names_the_path(self, tmp_path):
        present = tmp_path / "a"
        present.write_text("")
        missing = tmp_path / "b"
        with pytest.raises(AssertionFailed) as excinfo:
            check_files_exist([present, missing])
        assert excinfo.value.context == str(missing)

    def test_executable_mode(self, tmp_path):
        path = tmp_path / "foo.x"
        path.write_text("#!/bin/sh\n")
        path.chmod(0o644)
        with pytest.raises(AssertionFailed):
            check_files_exist([path], "executable")
        path.chmod(0o755)
        check_files_exist([path], "executable")

    def test_unknown_mode(self, tmp_path):
        with pytest.raises(ValueError):
            check_files_exist([tmp_path], "hidden")

    def test_absent(self, tmp_path):
        check_files_absent([tmp_path / "nothing"])
        with pytest.raises(AssertionFailed):
            check_files_absent([tmp_path])


class TestListings:
    LISTING = "foo\trunning\nfoobar\trunning\nbar.baz\t12\tup\n\nnotab\n"

    def test_prefix_is_anchored_on_tab(self):
        """'foo' does not count 'foobar'."""
        assert count_listed(self.LISTING, ["foo"]) == 1

    def test_union_of_names(self):
        assert count_listed(self.LISTING, ["foo", "foobar"]) == 2

    def test_names_are_literal(self):
        """Regex metacharacters in a name are matched literally."""
        assert count_listed(self.LISTING, ["bar.baz"]) == 1
        assert count_listed(self.LISTING, ["bar?baz"]) == 0

    def test_pattern_requires_names(self):
        with pytest.raises(ValueError):
            listing_pattern([])

    def test_listed_names(self):
        assert listed_names(self.LISTING) == ["foo", "foobar", "bar.baz"]


class TestRunning:
    def test_running(self):
        check_running(2, running=True)
        with pytest.raises(AssertionFailed) as excinfo:
            check_running(0, running=True, context="workers foo")
        assert excinfo.value.expected == "> 0 running"

    def test_not_running(self):
        check_running(0, running=False)
        with pytest.raises(AssertionFailed):
            check_running(1, running=False)


class TestEnv:
    def test_set(self):
        check_env({"X": "1"}, "X")
        with pytest.raises(AssertionFailed):
            check_env({}, "X")

    def test_empty_counts_as_unset(self):
        with pytest.raises(AssertionFailed):
            check_env({"X": ""}, "X")
        check_env({"X": ""}, "X", must_be_set=False)

    def test_must_not_be_set(self):
        check_env({}, "X", must_be_set=False)
        with pytest.raises(AssertionFailed):
            check_env({"X": "v"}, "X", must_be_set=False)

    def test_reads_given_mapping_not_os_environ(self, monkeypatch):
        monkeypatch.setenv("HARNESS_ONLY_IN_OS", "1")
        assert "HARNESS_ONLY_IN_OS" in os.environ
        with pytest.raises(AssertionFailed):
            check_env({}, "HARNESS_ONLY_IN_OS")
