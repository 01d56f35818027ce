from __future__ import annotations

from pathlib import Path

from chronicle.assets.registry import GameAssets, load_game_assets


_ASSETS: GameAssets | None = None


def default_project_root() -> Path:
    # chronicle/assets/singleton.py -> chronicle/assets -> chronicle -> project root
    return Path(__file__).resolve().parents[2]


def init_assets(*, project_root: Path | None = None) -> GameAssets:
    """Load the timeline and NPC roster once and cache them.

    Later calls return the cached instance regardless of `project_root`.
    """

    global _ASSETS
    if _ASSETS is None:
        _ASSETS = load_game_assets(root=project_root or default_project_root())
    return _ASSETS


def reset_assets_for_tests() -> None:
    global _ASSETS
    _ASSETS = None


def get_assets() -> GameAssets:
    if _ASSETS is None:
        raise RuntimeError("Assets not initialized. Call init_assets() at startup.")
    return _ASSETS
