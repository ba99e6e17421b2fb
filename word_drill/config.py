from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
AUDIO_DIR = ARTIFACTS_DIR / "audio"
DECKS_DIR = PROJECT_ROOT / "decks"
MANIFEST_PATH = DECKS_DIR / "file-manifest.json"

PRONUNCIATION_SIDES = {"SOURCE", "TARGET", "NONE"}


@dataclass(frozen=True)
class DrillSettings:
    set_size: int = 5
    match_advance_delay: float = 0.75
    mismatch_reveal_delay: float = 1.0
    pronunciation_side: str = "SOURCE"
    pronunciation_lang: str = "de-DE"


def load_settings() -> DrillSettings:
    defaults = DrillSettings()
    set_size = _int_env("WORD_DRILL_SET_SIZE", defaults.set_size)
    if set_size < 1:
        raise ValueError("WORD_DRILL_SET_SIZE must be a positive integer")

    match_delay = _float_env("WORD_DRILL_MATCH_DELAY", defaults.match_advance_delay)
    mismatch_delay = _float_env("WORD_DRILL_MISMATCH_DELAY", defaults.mismatch_reveal_delay)
    if match_delay < 0 or mismatch_delay < 0:
        raise ValueError("display delays must not be negative")

    side = os.getenv("WORD_DRILL_PRONUNCIATION_SIDE", defaults.pronunciation_side).strip().upper()
    if side not in PRONUNCIATION_SIDES:
        raise ValueError(f"WORD_DRILL_PRONUNCIATION_SIDE must be one of {sorted(PRONUNCIATION_SIDES)}")

    return DrillSettings(
        set_size=set_size,
        match_advance_delay=match_delay,
        mismatch_reveal_delay=mismatch_delay,
        pronunciation_side=side,
        pronunciation_lang=os.getenv("WORD_DRILL_PRONUNCIATION_LANG", defaults.pronunciation_lang).strip(),
    )


def ensure_dirs() -> None:
    for path in [
        ARTIFACTS_DIR,
        AUDIO_DIR,
        DECKS_DIR,
    ]:
        path.mkdir(parents=True, exist_ok=True)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
