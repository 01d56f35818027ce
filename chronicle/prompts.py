from __future__ import annotations

from pathlib import Path


class PromptLoadError(RuntimeError):
    pass


def project_root() -> Path:
    # chronicle/prompts.py -> chronicle/ -> project root
    return Path(__file__).resolve().parents[1]


def load_prompt(name: str, *, root: Path | None = None) -> str:
    """Load an instruction template from the repo `prompts/` directory.

    Example:
        load_prompt("diversity.txt")
    """

    path = (root or project_root()) / "prompts" / name
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError as e:
        raise PromptLoadError(f"Prompt not found: {path}") from e


def render_prompt(template: str, **values: object) -> str:
    try:
        return template.format(**values)
    except (KeyError, IndexError) as e:
        raise PromptLoadError(f"Prompt placeholder missing: {e}") from e
