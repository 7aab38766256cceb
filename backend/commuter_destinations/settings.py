from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Keep logs in backend/out by default to avoid polluting source assets.
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping config out of code for easy extension."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Empty means the API starts without a world and answers 503.
    world_snapshot_path: str = Field(default="", alias="WORLD_SNAPSHOT_PATH")

    # "by_mode" uses the per-mode range table, "fixed" reproduces the legacy 64-unit range.
    transit_range_policy: str = Field(default="by_mode", alias="TRANSIT_RANGE_POLICY")
    arrival_tolerance: float = Field(default=2.0, gt=0.0, le=64.0, alias="ARRIVAL_TOLERANCE")
    max_cell_chain_length: int = Field(
        default=65_536,
        ge=1,
        le=1_000_000,
        alias="MAX_CELL_CHAIN_LENGTH",
    )

    @model_validator(mode="after")
    def _normalize_policy(self) -> "Settings":
        policy = str(self.transit_range_policy or "by_mode").strip().lower()
        if policy not in {"by_mode", "fixed"}:
            policy = "by_mode"
        self.transit_range_policy = policy
        return self


settings = Settings()
