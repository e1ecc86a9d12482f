from __future__ import annotations

import subprocess

import pytest

from datasync_api import run_django


def _fake_run(calls: list[list[str]], failing_command: str | None = None, returncode: int = 1):
    def fake_run(argv: list[str]) -> subprocess.CompletedProcess[list[str]]:
        calls.append(list(argv))
        code = returncode if argv[2] == failing_command else 0
        return subprocess.CompletedProcess(args=argv, returncode=code)

    return fake_run


@pytest.mark.scripts
def test_sync_migrates_then_runs_sync_with_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    manage_script = "/tmp/manage.py"
    monkeypatch.setattr(run_django.subprocess, "run", _fake_run(calls))
    monkeypatch.setattr(run_django, "_manage_script", lambda: manage_script)

    exit_code = run_django.sync(["--target", "orders"])

    assert exit_code == 0
    assert calls == [
        [run_django.sys.executable, manage_script, "migrate", "--no-input"],
        [run_django.sys.executable, manage_script, "sync", "--target", "orders"],
    ]


@pytest.mark.scripts
def test_sync_propagates_migrate_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    manage_script = "/tmp/manage.py"
    monkeypatch.setattr(run_django.subprocess, "run", _fake_run(calls, "migrate", 2))
    monkeypatch.setattr(run_django, "_manage_script", lambda: manage_script)

    exit_code = run_django.sync([])

    assert exit_code == 2
    assert calls == [[run_django.sys.executable, manage_script, "migrate", "--no-input"]]


@pytest.mark.scripts
def test_sync_propagates_sync_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(run_django.subprocess, "run", _fake_run(calls, "sync", 1))
    monkeypatch.setattr(run_django, "_manage_script", lambda: "/tmp/manage.py")

    assert run_django.sync([]) == 1


@pytest.mark.scripts
def test_sync_status_forwards_arguments(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[list[str]] = []
    monkeypatch.setattr(run_django.subprocess, "run", _fake_run(calls))
    monkeypatch.setattr(run_django, "_manage_script", lambda: "/tmp/manage.py")

    assert run_django.sync_status(["--fail-on-stale"]) == 0
    assert calls == [[run_django.sys.executable, "/tmp/manage.py", "sync_status", "--fail-on-stale"]]


@pytest.mark.scripts
def test_manage_script_resolves_to_package_module() -> None:
    assert run_django._manage_script().endswith("datasync_sync/manage.py")
