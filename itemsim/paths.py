from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectPaths:
    data_dir: Path
    artifacts_dir: Path
    item_cf_dir: Path

    @classmethod
    def from_repo_root(
        cls,
        repo_root: Path,
        *,
        data_dir: Path | str = "data",
        artifacts_dir: Path | str = "artifacts",
    ) -> "ProjectPaths":
        data_dir_p = resolve_against(repo_root, data_dir)
        artifacts_dir_p = resolve_against(repo_root, artifacts_dir)
        return cls(
            data_dir=data_dir_p,
            artifacts_dir=artifacts_dir_p,
            item_cf_dir=artifacts_dir_p / "item_cf",
        )


def resolve_against(base: Path, p: Path | str) -> Path:
    """Resolve `p` relative to `base` unless it is already absolute."""
    p_path = Path(p) if isinstance(p, str) else p
    if not p_path.is_absolute():
        p_path = base / p_path
    return p_path.resolve()


def get_repo_root() -> Path:
    """Return repo root by searching upwards for `config.yaml` or `.git`."""
    start = Path.cwd().resolve()
    if start.is_file():
        start = start.parent

    for candidate in (start, *start.parents):
        if (candidate / "config.yaml").is_file() or (candidate / ".git").exists():
            return candidate

    # Fallback: search upwards from this file (useful if called from elsewhere).
    start = Path(__file__).resolve().parent
    for candidate in (start, *start.parents):
        if (candidate / "config.yaml").is_file() or (candidate / ".git").exists():
            return candidate

    raise FileNotFoundError("Could not locate repo root (expected `config.yaml` or `.git`).")
