import subprocess
import sys
from types import SimpleNamespace

import pytest

from pixproxy.common.errors import ProcessingFailedError, ProcessingTimeoutError
from pixproxy.image_processor import runner


def test_run_returns_stdout(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return SimpleNamespace(returncode=0, stdout="100 50", stderr="")

    monkeypatch.setattr(runner.subprocess, "run", fake_run)
    assert runner.run_gm(["gm", "identify", "x.png"], 5.0) == "100 50"
    cmd, kwargs = calls[0]
    assert cmd == ["gm", "identify", "x.png"]
    assert kwargs["timeout"] == 5.0
    assert "shell" not in kwargs


def test_non_zero_exit_carries_output_tail(monkeypatch):
    stderr = "\n".join(f"line {i}" for i in range(30))
    monkeypatch.setattr(
        runner.subprocess, "run", lambda cmd, **kw: SimpleNamespace(returncode=1, stdout="", stderr=stderr)
    )
    with pytest.raises(ProcessingFailedError) as exc:
        runner.run_gm(["gm", "convert"], 5.0)
    assert exc.value.output == stderr
    assert "line 29" in exc.value.message
    assert "line 5\n" not in exc.value.message
    assert exc.value.stage == "convert"


def test_missing_binary_is_a_failure(monkeypatch):
    def missing(cmd, **kw):
        raise FileNotFoundError(2, "No such file", cmd[0])

    monkeypatch.setattr(runner.subprocess, "run", missing)
    with pytest.raises(ProcessingFailedError):
        runner.run_gm(["gm-not-installed"], 1.0, stage="identify")


def test_timeout_kills_child():
    with pytest.raises(ProcessingTimeoutError) as exc:
        runner.run_gm([sys.executable, "-c", "import time; time.sleep(10)"], 0.5)
    assert exc.value.timeout_seconds == 0.5
    assert isinstance(exc.value.__cause__, subprocess.TimeoutExpired)


def test_scratch_files_are_removed(tmp_path):
    with runner.scratch_files(str(tmp_path), "png", "input", "output") as (inp, out):
        assert inp.name.startswith("gm_input_") and inp.suffix == ".png"
        assert out.name.startswith("gm_output_")
        assert inp != out
        inp.write_bytes(b"a")
        out.write_bytes(b"b")
    assert list(tmp_path.iterdir()) == []


def test_scratch_files_removed_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with runner.scratch_files(str(tmp_path), "", "input") as (inp,):
            inp.write_bytes(b"a")
            assert inp.suffix == ""
            raise RuntimeError("fail")
    assert list(tmp_path.iterdir()) == []
