"""Runtime configuration for the smart crop CLI.

Defaults can be overridden through ``SMART_CROP_*`` environment variables;
command line flags override both.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

DEFAULT_QUALITY = 85


def env_int(value: str | None, default: int) -> int:
    """Parse an integer setting; unset, blank or malformed values give ``default``."""
    text = (value or "").strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        return default


def to_bool(value: Any, default: bool) -> bool:
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def clamp_quality(value: int) -> int:
    return max(0, min(100, int(value)))


@dataclass(frozen=True)
class CropConfig:
    quality: int = DEFAULT_QUALITY
    analyzer: str = "smartcrop"
    anchor: str = "center"
    resampling: str = "lanczos"
    legacy_auto_height: bool = False
    log_level: str = "INFO"
    max_analysis_size: int = 512

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CropConfig:
        env = os.environ if environ is None else environ
        base = cls()
        return cls(
            quality=clamp_quality(env_int(env.get("SMART_CROP_QUALITY"), base.quality)),
            analyzer=(env.get("SMART_CROP_ANALYZER") or base.analyzer).strip().lower(),
            anchor=(env.get("SMART_CROP_ANCHOR") or base.anchor).strip().lower(),
            resampling=(env.get("SMART_CROP_RESAMPLING") or base.resampling).strip().lower(),
            legacy_auto_height=to_bool(env.get("SMART_CROP_LEGACY_AUTO_HEIGHT"), base.legacy_auto_height),
            log_level=(env.get("SMART_CROP_LOG_LEVEL") or base.log_level).strip().upper(),
            max_analysis_size=max(1, env_int(env.get("SMART_CROP_MAX_ANALYSIS_SIZE"), base.max_analysis_size)),
        )

    def with_overrides(self, **overrides: Any) -> CropConfig:
        """Return a copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if "quality" in values:
            values["quality"] = clamp_quality(values["quality"])
        return replace(self, **values)
