from __future__ import annotations
import os
from dataclasses import dataclass


def _get_bool(env: str, default: bool) -> bool:
    val = os.getenv(env, "").strip().lower()
    if val in {"1", "true", "yes", "y", "on"}:
        return True
    if val in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _get_float(env: str, default: float) -> float:
    raw = os.getenv(env, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # General
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Attitude estimation
    fusion_algorithm: str = os.getenv("MOVESYNC_ALGORITHM", "madgwick").strip().lower()
    fusion_beta: float = _get_float("MOVESYNC_BETA", 0.1)
    fusion_init: str = os.getenv("MOVESYNC_FILTER_INIT", "first_sample").strip().lower()

    # Orchestration
    precompute_enabled: bool = _get_bool("MOVESYNC_PRECOMPUTE", True)

    # Presentation
    max_plot_points: int = int(os.getenv("MOVESYNC_MAX_PLOT_POINTS", "5000"))


settings = Settings()
