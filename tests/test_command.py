import pytest

from uefi_image_builder.errors import ExecutionError
from uefi_image_builder.lib.command import CmdResult, run_cmd, stdout_text


def test_true_succeeds():
    r = run_cmd(["true"])
    assert r.returncode == 0
    assert r.argv == ["true"]


def test_false_raises_with_exit_code():
    with pytest.raises(ExecutionError) as exc:
        run_cmd(["false"])
    assert exc.value.program == "false"
    assert exc.value.exit_code == 1


def test_check_false_returns_result():
    r = run_cmd(["false"], check=False)
    assert r.returncode == 1


def test_stderr_is_carried_on_error():
    with pytest.raises(ExecutionError) as exc:
        run_cmd(["sh", "-c", "echo broken >&2; exit 3"])
    assert exc.value.exit_code == 3
    assert exc.value.args_list == ["-c", "echo broken >&2; exit 3"]
    assert "broken" in exc.value.stderr
    assert "broken" in str(exc.value)


def test_missing_program_is_127():
    with pytest.raises(ExecutionError) as exc:
        run_cmd(["/nonexistent/definitely-not-here"])
    assert exc.value.exit_code == 127


def test_env_is_layered_on_inherited_environment():
    r = run_cmd(["sh", "-c", 'echo "$BUILDER_TEST_VAR:${PATH:+path}"'], env={"BUILDER_TEST_VAR": "x"})
    assert stdout_text(r) == "x:path"


def test_input_text_is_piped():
    r = run_cmd(["cat"], input_text="secret\nsecret\n")
    assert r.stdout == "secret\nsecret\n"


def test_stdout_text_strips_only_one_newline():
    r = CmdResult(argv=["x"], returncode=0, stdout="/dev/loop3\n\n", stderr="")
    assert stdout_text(r) == "/dev/loop3\n"
