from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .rules.loader import RULES_FILENAME, RuleSet


# a checkout has pyproject.toml; a deployed service only ships its rules
_ROOT_MARKERS = ("pyproject.toml", f"data/rules/{RULES_FILENAME}")


def _env_path(root: Path, name: str, default: Path) -> Path:
    value = os.getenv(name)
    if not value:
        return default
    path = Path(value).expanduser()
    return path if path.is_absolute() else (root / path).resolve()


def find_project_root(start: Path | None = None) -> Path:
    """GARAGEGST_HOME if set, else the nearest directory holding a root marker."""
    home = os.getenv("GARAGEGST_HOME")
    if home:
        return Path(home).expanduser().resolve()

    cursor = (start or Path.cwd()).resolve()
    for candidate in (cursor, *cursor.parents):
        if any((candidate / marker).exists() for marker in _ROOT_MARKERS):
            return candidate
    raise RuntimeError(f"No garage-gst root at or above {cursor}; set GARAGEGST_HOME.")


@dataclass(frozen=True, slots=True)
class ProjectPaths:
    root: Path
    rules_dir: Path

    @property
    def rules_file(self) -> Path:
        return self.rules_dir / RULES_FILENAME

    @classmethod
    def detect(cls, start: Path | None = None) -> "ProjectPaths":
        root = find_project_root(start)
        data_dir = _env_path(root, "GARAGEGST_DATA_DIR", root / "data")
        return cls(root=root, rules_dir=_env_path(root, "GARAGEGST_RULES_DIR", data_dir / "rules"))

    def load_rules(self) -> RuleSet:
        return RuleSet.load_from_dir(self.rules_dir)
