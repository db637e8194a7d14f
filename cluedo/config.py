"""运行环境配置。"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """服务与命令行共用的配置，命令行参数可覆盖。"""

    data_dir: Path = Path("data/games")
    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "INFO"
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=Path(os.getenv("CLUEDO_DATA_DIR", "data/games")),
            host=os.getenv("CLUEDO_HOST", "127.0.0.1"),
            port=int(os.getenv("CLUEDO_PORT", "3001")),
            log_level=os.getenv("CLUEDO_LOG_LEVEL", "INFO").upper(),
            debug=_env_flag(os.getenv("CLUEDO_DEBUG")),
        )


def get_settings() -> Settings:
    return Settings.from_env()
