"""Version helpers for zkcron."""

from __future__ import annotations

import os
import subprocess
from importlib import metadata
from pathlib import Path

DIST_NAME = "zkcron"


def _find_repo_root() -> Path | None:
    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / "pyproject.toml").exists() and (parent / "src" / "zkcron").is_dir():
            return parent
    return None


def _git_version(repo_root: Path) -> str | None:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return None
    sha = result.stdout.strip()
    return sha or None


def get_version() -> str:
    env_version = os.environ.get("ZKCRON_VERSION")
    if env_version:
        return env_version
    repo_root = _find_repo_root()
    if repo_root:
        sha = _git_version(repo_root)
        if sha:
            return f"dev-{sha}"
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        return "unknown"
