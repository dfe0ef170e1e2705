from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class AppConfig(BaseModel):
    data_dir: Path = Field(default=Path("data"))
    openai_model: str = Field(default="gpt-3.5-turbo")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    max_history_records: int = Field(default=100, ge=1)
    request_timeout: Optional[float] = Field(default=None, gt=0)
    log_level: str = Field(default="WARNING")

    @property
    def data_dir_resolved(self) -> Path:
        return self.data_dir.resolve()

    @property
    def preferences_path(self) -> Path:
        return self.data_dir_resolved / "preferences.json"

    @property
    def notes_dir(self) -> Path:
        return self.data_dir_resolved / "Notes"

    @property
    def web_imports_dir(self) -> Path:
        return self.data_dir_resolved / "WebImports"


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    If `path` is None, looks for `config.yaml` in the current working directory.
    Also loads environment variables from a `.env` file if present.
    """
    load_dotenv()

    if path is None:
        path = Path("config.yaml")

    if not path.exists():
        # Fall back to defaults if no config file is present.
        cfg = AppConfig()
    else:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        try:
            cfg = AppConfig(**raw)
        except ValidationError as e:
            raise SystemExit(f"Invalid configuration in {path}:\n{e}") from e

    cfg.data_dir_resolved.mkdir(parents=True, exist_ok=True)
    return cfg


__all__ = ["AppConfig", "load_config"]
