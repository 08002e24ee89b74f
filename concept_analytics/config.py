from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]

# Per-view concept limits; records keep the longest prefix any view needs.
RECORD_CONCEPT_LIMIT = 15
MATRIX_CONCEPT_LIMIT = 10
TIMELINE_CONCEPT_LIMIT = 12
PAIR_CONCEPT_LIMIT = 15


@dataclass(frozen=True)
class Settings:
    data_dir: pathlib.Path
    dictionary_path: pathlib.Path
    overlay_path: pathlib.Path
    lexicon_path: pathlib.Path | None
    overlay_reload_seconds: float
    cache_ttl_seconds: float
    env: str


def parse_simple_yaml(path: pathlib.Path) -> dict[str, str]:
    out: dict[str, str] = {}
    if not path.exists():
        return out
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, value = line.split(":", 1)
        out[key.strip()] = value.strip().strip("\"").strip("'")
    return out


def _resolve_path(value: str, root_dir: pathlib.Path) -> pathlib.Path:
    p = pathlib.Path(value).expanduser()
    if not p.is_absolute():
        p = root_dir / p
    return p.resolve()


def _as_float(value: str, fallback: float) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    return n if n > 0 else fallback


def load_settings(root_dir: pathlib.Path | None = None, environ: dict[str, str] | None = None) -> Settings:
    """
    Defaults, then config/settings.local.yml, then environment variables.
    """
    root_dir = root_dir or ROOT_DIR
    environ = os.environ if environ is None else environ
    defaults = {
        "CONCEPTS_DATA_DIR": str(root_dir / "data"),
        "CONCEPTS_DICTIONARY_PATH": "",
        "CONCEPTS_OVERLAY_PATH": "",
        "CONCEPTS_LEXICON_PATH": "",
        "CONCEPTS_OVERLAY_RELOAD_SECONDS": "60",
        "CONCEPTS_CACHE_TTL_SECONDS": "600",
        "CONCEPTS_ENV": "local",
    }
    merged = defaults.copy()
    merged.update(parse_simple_yaml(root_dir / "config" / "settings.local.yml"))
    for key in defaults:
        env_val = environ.get(key)
        if env_val not in (None, ""):
            merged[key] = env_val

    data_dir = _resolve_path(merged["CONCEPTS_DATA_DIR"], root_dir)
    latest = data_dir / "concepts" / "latest.json"
    dictionary_path = _resolve_path(merged["CONCEPTS_DICTIONARY_PATH"], root_dir) if merged["CONCEPTS_DICTIONARY_PATH"] else latest
    overlay_path = _resolve_path(merged["CONCEPTS_OVERLAY_PATH"], root_dir) if merged["CONCEPTS_OVERLAY_PATH"] else latest
    lexicon_path = _resolve_path(merged["CONCEPTS_LEXICON_PATH"], root_dir) if merged["CONCEPTS_LEXICON_PATH"] else None
    return Settings(
        data_dir=data_dir,
        dictionary_path=dictionary_path,
        overlay_path=overlay_path,
        lexicon_path=lexicon_path,
        overlay_reload_seconds=_as_float(merged["CONCEPTS_OVERLAY_RELOAD_SECONDS"], 60.0),
        cache_ttl_seconds=_as_float(merged["CONCEPTS_CACHE_TTL_SECONDS"], 600.0),
        env=merged["CONCEPTS_ENV"],
    )
