"""Runtime settings read from ``TICTACTOE_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    # Tell the offending client why its message or move was ignored.
    echo_rejections: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            host=env.get("TICTACTOE_HOST", cls.host),
            port=int(env.get("TICTACTOE_PORT", str(cls.port))),
            log_level=env.get("TICTACTOE_LOG_LEVEL", cls.log_level).upper(),
            echo_rejections=env.get("TICTACTOE_ECHO_REJECTIONS", "").strip().lower()
            in _TRUTHY,
        )
