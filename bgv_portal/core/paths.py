from __future__ import annotations

from pathlib import Path


def repo_root() -> Path:
    # bgv_portal/core/paths.py -> core -> bgv_portal -> repo
    return Path(__file__).resolve().parents[2]


def resolve_repo_path(path_value: str) -> Path:
    """
    Resolves a path that may be relative to the repo root.
    - If absolute: returns as-is.
    - Else tries CWD-relative.
    - Else falls back to repo-root-relative.
    """
    p = Path(path_value)
    if p.is_absolute():
        return p
    if p.exists():
        return p.resolve()
    return (repo_root() / path_value).resolve()
