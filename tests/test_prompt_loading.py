from __future__ import annotations

from pathlib import Path

import pytest

from chronicle.constraints.engine import load_instruction_templates
from chronicle.prompts import PromptLoadError, load_prompt, render_prompt


def test_all_instruction_templates_load() -> None:
    templates = load_instruction_templates()

    assert "{terms}" in templates.diversity
    assert "{goal}" in templates.aspiration_nudge
    assert templates.insufficient_food


def test_missing_prompt_raises(tmp_path: Path) -> None:
    with pytest.raises(PromptLoadError):
        load_prompt("nope.txt", root=tmp_path)


def test_prompt_is_stripped(tmp_path: Path) -> None:
    (tmp_path / "prompts").mkdir()
    (tmp_path / "prompts" / "x.txt").write_text("\n  你好 {name}  \n", encoding="utf-8")

    assert load_prompt("x.txt", root=tmp_path) == "你好 {name}"


def test_render_prompt_reports_missing_placeholder() -> None:
    assert render_prompt("立志{goal}", goal="匡扶汉室") == "立志匡扶汉室"

    with pytest.raises(PromptLoadError):
        render_prompt("立志{goal}")
