from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True, slots=True)
class GeneratorSettings:
    url: str | None
    timeout_s: float = 15.0
    # Extra attempts after the first one; transport failures only.
    max_retries: int = 2
    retry_delay_s: float = 1.0


@dataclass(frozen=True, slots=True)
class ConstraintSettings:
    low_health: int = 20
    high_hunger: int = 80

    diversity_lookback_rounds: int = 10
    diversity_sample_lines: int = 5
    diversity_min_lines: int = 3
    diversity_overlap_ratio: float = 0.7
    diversity_top_n: int = 15
    negative_constraint_rounds: int = 3

    perspective_switch_after: int = 3
    aspiration_interval: int = 10
    memory_resonance_min_rounds: int = 50

    start_year: int = 184
    game_over_span_years: int = 60
    terminal_year: int = 280

    max_skip_years: int = 100

    @property
    def max_skip_months(self) -> int:
        return self.max_skip_years * 12

    @property
    def max_skip_days(self) -> int:
        return self.max_skip_years * 365


@dataclass(frozen=True, slots=True)
class SaveLimits:
    max_dialogue_history: int = 100
    oversize_dialogue_history: int = 50
    max_record_bytes: int = 1_048_576
    max_history_logs: int = 200


def generator_settings_from_env() -> GeneratorSettings:
    return GeneratorSettings(
        url=os.environ.get("CHRONICLE_GENERATOR_URL") or None,
        timeout_s=_env_float("CHRONICLE_GENERATOR_TIMEOUT", 15.0),
        max_retries=_env_int("CHRONICLE_GENERATOR_MAX_RETRIES", 2),
        retry_delay_s=_env_float("CHRONICLE_GENERATOR_RETRY_DELAY", 1.0),
    )


def constraint_settings_from_env() -> ConstraintSettings:
    defaults = ConstraintSettings()
    return ConstraintSettings(
        low_health=_env_int("CHRONICLE_LOW_HEALTH", defaults.low_health),
        high_hunger=_env_int("CHRONICLE_HIGH_HUNGER", defaults.high_hunger),
        diversity_lookback_rounds=_env_int("CHRONICLE_DIVERSITY_LOOKBACK", defaults.diversity_lookback_rounds),
        diversity_overlap_ratio=_env_float("CHRONICLE_DIVERSITY_OVERLAP", defaults.diversity_overlap_ratio),
        aspiration_interval=_env_int("CHRONICLE_ASPIRATION_INTERVAL", defaults.aspiration_interval),
        memory_resonance_min_rounds=_env_int("CHRONICLE_MEMORY_MIN_ROUNDS", defaults.memory_resonance_min_rounds),
        start_year=_env_int("CHRONICLE_START_YEAR", defaults.start_year),
        game_over_span_years=_env_int("CHRONICLE_GAME_OVER_SPAN", defaults.game_over_span_years),
        terminal_year=_env_int("CHRONICLE_TERMINAL_YEAR", defaults.terminal_year),
    )
