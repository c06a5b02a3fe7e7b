from matrixci.dsl import sh
from matrixci.executor import ShellExecutor, hint_for
from matrixci.model import JobInstance


def _instance(channel="stable", index=1):
    return JobInstance(index=index, channel=channel)


def test_zero_exit_is_success(tmp_path):
    status = ShellExecutor(tmp_path).run_step(sh("ok", "true"), _instance())
    assert status.ok
    assert status.step == "ok"


def test_non_zero_exit_code_is_returned(tmp_path):
    status = ShellExecutor(tmp_path).run_step(sh("bad", "echo nope; exit 3"), _instance())
    assert not status.ok
    assert status.exit_code == 3
    assert "nope" in status.output


def test_channel_is_exported_to_the_step(tmp_path):
    ex = ShellExecutor(tmp_path, env={"EXTRA": "1"})
    status = ex.run_step(sh("env", 'echo "$MATRIXCI_CHANNEL/$MATRIXCI_INSTANCE/$EXTRA"'), _instance("nightly", 4))
    assert status.output.strip() == "nightly/4/1"


def test_channel_variable_name_is_configurable(tmp_path):
    ex = ShellExecutor(tmp_path, channel_var="TRAVIS_RUST_VERSION")
    status = ex.run_step(sh("v", 'test "$TRAVIS_RUST_VERSION" = beta'), _instance("beta"))
    assert status.ok


def test_step_cwd_is_relative_to_repo_root(tmp_path):
    (tmp_path / "crate").mkdir()
    (tmp_path / "crate" / "Cargo.toml").write_text("[package]\n", encoding="utf-8")
    status = ShellExecutor(tmp_path).run_step(sh("ls", "test -f Cargo.toml", cwd="crate"), _instance())
    assert status.ok


def test_missing_cwd_fails_without_spawning(tmp_path):
    status = ShellExecutor(tmp_path).run_step(sh("ls", "true", cwd="missing"), _instance())
    assert not status.ok
    assert "cwd not found" in status.output


def test_output_tail_is_bounded(tmp_path):
    status = ShellExecutor(tmp_path).run_step(
        sh("loud", "i=0; while [ $i -lt 2000 ]; do echo line-$i; i=$((i+1)); done; exit 1"),
        _instance(),
    )
    assert len(status.output) <= 4000
    assert status.output.rstrip().endswith("line-1999")


def test_hint_for_missing_tool():
    assert "rustup" in hint_for(sh("build", "cargo build"), 127)
    assert hint_for(sh("build", "cargo build"), 101) is None
    assert hint_for(sh("x", "unknown-tool --flag"), 127) is None
