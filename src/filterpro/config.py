"""Engine configuration via environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class FilterSettings(BaseSettings):
    """Loaded from FILTERPRO_* env vars or a .env file."""

    # Rules file lives at <base_dir>/data/filterpro/<filename>
    base_dir: str = "."
    filename: str = "rules.json"

    # Promote rule-matching traces to INFO
    debug: bool = False

    # Minimum authority for console operations
    console_authority: int = 3

    # Bearer token for the admin HTTP API and the authority it grants
    admin_token: str = "dev-token-change-me"
    admin_authority: int = 4

    model_config = {"env_prefix": "FILTERPRO_", "env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def data_dir(self) -> Path:
        return Path(self.base_dir) / "data" / "filterpro"

    @property
    def rules_path(self) -> Path:
        return self.data_dir / self.filename
