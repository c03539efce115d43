"""End-to-end tests of the standard step library against a fake program."""

import time

import pytest

from scenario_harness import (
    AssertionFailed,
    ConfigurationError,
    HarnessConfig,
    ScenarioContext,
    StepFailed,
    StepRegistry,
)
from scenario_harness.steps import register_standard_steps


def failure_of(ctx, text, payload=None) -> StepFailed:
    with pytest.raises(StepFailed) as excinfo:
        ctx.run(text, payload)
    return excinfo.value


def wait_for(predicate, seconds=5.0):
    deadline = time.monotonic() + seconds
    while not predicate():
        assert time.monotonic() < deadline, "condition not reached in time"
        time.sleep(0.05)


class TestRunAndExit:
    """Running executables and checking their outcome."""

    def test_true_exits_with_zero(self, ctx):
        ctx.run("I run true with no argument")
        ctx.run("true must exit with status 0")
        ctx.run("true must print no line on stdout")

    def test_result_is_kept_per_executable(self, ctx):
        ctx.run("I run true with no arguments")
        ctx.run("I run false with no arguments")
        ctx.run("true must exit with status 0")
        ctx.run("false must exit with status 1")
        ctx.run("false must exit with status not 0")
        ctx.run("false must exit with status different from 0")

    def test_wrong_status_reports_both_values(self, ctx):
        ctx.run("I run false with no argument")
        error = failure_of(ctx, "false must exit with status 0")
        assert isinstance(error.cause, AssertionFailed)
        assert error.cause.expected == 0
        assert error.cause.actual == 1

    def test_unrecorded_executable(self, ctx):
        error = failure_of(ctx, "ramen must exit with status 0")
        assert error.cause.actual == "no recorded run"

    def test_arguments_are_shell_split(self, ctx):
        ctx.run("I run printf with arguments '%s\\n' one 'two words' three")
        ctx.run("printf must print 3 lines on stdout")

    def test_fail_gracefully(self, ctx):
        ctx.run("I run ramen with argument bogus")
        ctx.run("ramen must fail gracefully")
        error = failure_of(ctx, "ramen must exit gracefully")
        assert error.failing_step == "ramen must exit with status 0"

    def test_terminate_gracefully(self, ctx):
        ctx.run("I run ramen with arguments compile foo.ramen")
        ctx.run("ramen must terminate gracefully")

    def test_missing_executable_fails_the_step(self, ctx):
        error = failure_of(ctx, "I run no-such-program-for-harness-tests with no argument")
        assert type(error.cause).__name__ == "ProcessLaunchFailed"


class TestPrint:
    def test_quantities(self, ctx):
        ctx.run("I run ramen with arguments compile foo.ramen")
        ctx.run("ramen must print a few lines on stdout")
        ctx.run("ramen must print 2 lines on stdout")
        ctx.run("ramen must print lines on stdout")
        ctx.run("ramen must print no line on stderr")

    def test_quantity_mismatch(self, ctx):
        ctx.run("I run ramen with arguments compile foo.ramen")
        error = failure_of(ctx, "ramen must print one line on stdout")
        assert error.cause.actual == 2

    def test_unknown_quantity_fails_the_step(self, ctx):
        ctx.run("I run true with no argument")
        error = failure_of(ctx, "true must print loads of lines on stdout")
        assert isinstance(error.cause, ValueError)


class TestFiles:
    def test_missing_file_reports_path_and_not_found(self, ctx):
        ctx.run("no file foo.x must exist")
        error = failure_of(ctx, "file foo.x must exist")
        assert isinstance(error.cause, AssertionFailed)
        assert error.cause.actual == "not found"
        assert error.cause.context.endswith("foo.x")

    def test_file_with_content(self, ctx):
        ctx.run("a file conf/settings.txt with content", "hello\nworld\n")
        assert ctx.path("conf/settings.txt").read_text() == "hello\nworld\n"
        ctx.run("a readable file conf/settings.txt must exist")

    def test_file_with_table_is_rejected(self, ctx):
        error = failure_of(ctx, "a file f.txt with content", [["a", "b"]])
        assert isinstance(error.cause, ValueError)

    def test_several_files(self, ctx):
        for name in ("a.x", "b.x"):
            ctx.path(name).write_text("")
        ctx.run("files a.x, b.x must exist")
        error = failure_of(ctx, "files a.x, b.x and c.x must exist")
        assert error.cause.context.endswith("c.x")
        error = failure_of(ctx, "no files c.x and b.x must exist")
        assert error.cause.context.endswith("b.x")

    @pytest.mark.parametrize(
        "condition,like,kept",
        [
            ("ending with", ".x", ["b.y", "tmp.y"]),
            ("starting with", "tmp", ["a.x", "b.y", "c.x"]),
            ("named", "b.y", ["a.x", "c.x", "tmp.y"]),
        ],
    )
    def test_no_files_present(self, ctx, condition, like, kept):
        out = ctx.path("out")
        out.mkdir()
        for name in ("a.x", "b.y", "c.x", "tmp.y"):
            (out / name).write_text("")
        ctx.run(f"no files {condition} {like} are present in out")
        assert sorted(p.name for p in out.iterdir()) == kept

    def test_no_files_present_in_missing_directory(self, ctx):
        ctx.run("no file named x is present in nowhere")


class TestProduce:
    """The composite 'must produce' step."""

    def test_compile_produces_binary(self, ctx):
        ctx.run("a file foo.ramen with content", "DEFINE bar AS SELECT 1 EVERY 1 SECOND;\n")
        ctx.run("I run ramen with arguments compile foo.ramen")
        ctx.run("ramen must produce executable files foo.x")
        ctx.run("ramen must produce file foo.x")

    def test_missing_product_names_the_file(self, ctx):
        ctx.run("I run ramen with arguments compile foo.ramen")
        error = failure_of(ctx, "ramen must produce files foo.x, bar.x")
        assert error.trail == [
            "ramen must produce files foo.x, bar.x",
            "a file bar.x must exist",
        ]
        assert error.cause.actual == "not found"

    def test_stdout_sub_step_failure(self, ctx):
        ctx.run("I run ramen with argument bogus")
        error = failure_of(ctx, "ramen must produce files foo.x")
        assert error.failing_step == "ramen must print a few lines on stdout"
        assert error.cause.actual == 0

    def test_stderr_sub_step_failure(self, ctx):
        ctx.run("I run sh with arguments -c 'echo out; echo err >&2'")
        error = failure_of(ctx, "sh must produce files whatever")
        assert error.failing_step == "sh must print no line on stderr"

    def test_exit_sub_step_failure(self, ctx):
        ctx.run("I run sh with arguments -c 'echo out; exit 4'")
        error = failure_of(ctx, "sh must produce files whatever")
        assert error.failing_step == "sh must exit with status 0"
        assert error.cause.actual == 4


class TestEnvironment:
    def test_set_to_value(self, ctx):
        ctx.run("the environment variable HARNESS_X is set to some value")
        assert ctx.env["HARNESS_X"] == "some value"
        ctx.run("the environment variable HARNESS_X must be set")

    def test_existing_value_is_kept(self, ctx):
        ctx.env["HARNESS_X"] = "first"
        ctx.run("the environment variable HARNESS_X is set to second")
        assert ctx.env["HARNESS_X"] == "first"

    def test_unset(self, ctx):
        ctx.env["HARNESS_X"] = "1"
        ctx.run("the environment variable HARNESS_X is not set")
        ctx.run("the environment variable HARNESS_X must not be defined")
        error = failure_of(ctx, "the environment variable HARNESS_X must be set")
        assert error.cause.actual == "unset"

    def test_default_from_configuration(self, ctx):
        ctx.run("the environment variable RAMEN_PERSIST_DIR is set")
        assert ctx.env["RAMEN_PERSIST_DIR"] == f"{ctx.root}/persist"

    def test_home_based_default(self, ctx):
        ctx.env["HOME"] = "/home/tester"
        ctx.env.pop("RAMEN_BUNDLE_DIR", None)
        ctx.run("the environment variable RAMEN_BUNDLE_DIR is set")
        assert ctx.env["RAMEN_BUNDLE_DIR"] == "/home/tester/share/src/ramen/bundle"

    def test_no_default(self, ctx):
        error = failure_of(ctx, "the environment variable HARNESS_UNKNOWN is set")
        assert isinstance(error.cause, ConfigurationError)
        assert "No idea what to set HARNESS_UNKNOWN to" in str(error.cause)

    def test_changes_reach_commands(self, ctx):
        ctx.run("the environment variable HARNESS_X is set to visible")
        ctx.run("I run sh with arguments -c 'test \"$HARNESS_X\" = visible'")
        ctx.run("sh must exit with status 0")

    def test_in_the_path(self, ctx, fake_program):
        ctx.run("ramen must be in the path")
        error = failure_of(ctx, "no-such-program-for-harness-tests must be in the path")
        assert error.cause.actual == "not found"


class TestCompile:
    def test_compiles_once(self, ctx):
        ctx.run("foo.ramen is compiled")
        assert ctx.path("foo.x").exists()
        ctx.path("foo.x").write_text("kept")
        ctx.run("foo.ramen is compiled")
        assert ctx.path("foo.x").read_text() == "kept"

    def test_compiled_as(self, ctx):
        ctx.run("foo.ramen is compiled as bin/other.x")
        assert ctx.path("bin/other.x").exists()
        assert not ctx.path("foo.x").exists()

    def test_compiler_failure(self, fake_program, tmp_path):
        config = HarnessConfig(subcommands={"compile": "bogus"}, terminate_timeout=2)
        registry = register_standard_steps(StepRegistry(), config)
        with ScenarioContext(registry, config, env=fake_program.env, root=tmp_path / "r") as ctx:
            error = failure_of(ctx, "foo.ramen is compiled")
        assert error.cause.expected == 0


class TestDaemon:
    """Starting the program and checking its programs and workers."""

    def test_started_sets_persist_dir_and_runs_once(self, ctx, fake_program):
        ctx.run("ramen is started")
        ctx.run("ramen is started")
        wait_for(lambda: fake_program.read("starts"))
        assert fake_program.read("persist_dir").strip() == f"{ctx.root}/persist"
        assert fake_program.read("starts") == "started\n"
        assert ctx.gateway.get_background("ramen").is_running()

    def test_daemon_stops_with_the_scenario(self, ctx):
        ctx.run("ramen is started")
        daemon = ctx.gateway.get_background("ramen")
        ctx.close()
        assert not daemon.is_running()

    def test_program_must_be_running_with_empty_listing(self, ctx, fake_program):
        fake_program.set_programs()
        error = failure_of(ctx, "program foo must be running")
        assert isinstance(error.cause, AssertionFailed)
        assert error.cause.actual == 0
        assert error.cause.expected == "> 0 running"

    def test_programs_running(self, ctx, fake_program):
        fake_program.set_programs("foo", "foobar")
        ctx.run("program foo must be running")
        ctx.run("the programs foo and bar must be running")
        ctx.run("program bar must not be running")
        ctx.run("program foob must not be running")

    def test_start_missing_programs(self, ctx, fake_program):
        fake_program.set_programs("foo")
        ctx.run("the programs foo, bar and baz are running")
        assert fake_program.read("programs") == "foo\trunning\nbar\trunning\nbaz\trunning\n"

    def test_kill_named_programs(self, ctx, fake_program):
        fake_program.set_programs("foo", "bar")
        ctx.run("program foo is not running")
        assert fake_program.read("killed") == "foo\n"
        ctx.run("program foo must not be running")
        ctx.run("program bar must be running")

    def test_no_program_running(self, ctx, fake_program):
        fake_program.set_programs("foo", "bar")
        ctx.run("no program is running")
        assert fake_program.read("killed") == "foo\nbar\n"
        ctx.run("programs foo, bar must not be running")

    def test_workers(self, ctx, fake_program):
        fake_program.set_workers("w1", "w2")
        ctx.run("worker w1 must be running")
        ctx.run("the workers w3 must not be running")
        error = failure_of(ctx, "no worker must be running")
        assert error.cause.actual == 2
        fake_program.set_workers()
        ctx.run("no worker must be running")


class TestEventually:
    """'after max N seconds' retries."""

    def test_passes_once_condition_holds(self, ctx, fake_program):
        fake_program.set_programs()
        programs = fake_program.state / "programs"
        ctx.gateway.spawn_background(
            "late", ["sh", "-c", f"sleep 0.3; printf 'late\\trunning\\n' >> {programs}"]
        )
        ctx.run("after max 5 seconds program late must be running")

    def test_fails_with_the_assertion(self, ctx, fake_program):
        fake_program.set_programs()
        error = failure_of(ctx, "after max 0.2 seconds program ghost must be running")
        assert isinstance(error.cause, AssertionFailed)
        assert error.failing_step == "program ghost must be running"

    def test_wraps_composites(self, ctx):
        ctx.run("I run ramen with arguments compile foo.ramen")
        ctx.run("after max 1 second ramen must produce files foo.x")
