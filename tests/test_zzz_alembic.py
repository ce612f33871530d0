"""Alembic migration tests.

File named test_zzz_alembic.py to sort LAST in pytest collection order.
"""

import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent


def _alembic(*args: str, db_url: str) -> subprocess.CompletedProcess:
    env = {**os.environ, "MH_DATABASE_URL": db_url}
    return subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        capture_output=True,
        text=True,
        cwd=ROOT,
        env=env,
    )


def test_alembic_upgrade_head(tmp_path) -> None:
    """alembic upgrade head succeeds, then current shows the head revision."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'migrate.db'}"
    result = _alembic("upgrade", "head", db_url=url)
    assert result.returncode == 0, f"alembic upgrade failed: {result.stderr}"

    current = _alembic("current", db_url=url)
    assert current.returncode == 0
    assert "001_progress_schema" in current.stdout
