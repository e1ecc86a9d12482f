import subprocess
import sys
from importlib.util import find_spec
from pathlib import Path
from collections.abc import Sequence


def _manage_script() -> str:
    spec = find_spec("datasync_sync.manage")
    if spec is None or spec.origin is None:
        raise RuntimeError("Could not locate datasync_sync.manage")
    return str(Path(spec.origin).resolve())


def _run_manage(args: Sequence[str]) -> int:
    completed = subprocess.run([sys.executable, _manage_script(), *args])
    return completed.returncode


def migrate() -> int:
    return _run_manage(["migrate", "--no-input"])


def sync(argv: Sequence[str] | None = None) -> int:
    exit_code = migrate()
    if exit_code != 0:
        return exit_code

    extra_args = list(sys.argv[1:] if argv is None else argv)
    return _run_manage(["sync", *extra_args])


def sync_status(argv: Sequence[str] | None = None) -> int:
    extra_args = list(sys.argv[1:] if argv is None else argv)
    return _run_manage(["sync_status", *extra_args])
