import subprocess
import sys


def run_app(*args):
    return subprocess.run(
        [sys.executable, "-m", "restaurant_queue.app", *args],
        capture_output=True,
        text=True,
        check=False,
    )


def test_app_help_runs():
    proc = run_app("-h")
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "main entrypoint" in out
    assert "service" in out
    assert "merchant" in out


def test_service_help_runs():
    proc = run_app("service", "-h")
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "--lock-timeout" in out
    assert "--namespace" in out


def test_merchant_help_lists_actions():
    proc = run_app("merchant", "-h")
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "call-next" in out
    assert "no-show" in out
