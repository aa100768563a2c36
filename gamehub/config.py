from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # CORS origins; set GAMEHUB_ALLOWED_ORIGINS as a JSON list in production
    allowed_origins: List[str] = ["*"]
    debug: bool = False

    # Dev mode lowers the player minimum so a game can be tried with a few tabs
    dev_mode: bool = False
    min_players: int = 5
    dev_min_players: int = 3

    disconnect_grace_seconds: float = 60.0
    room_ttl_seconds: float = 4 * 60 * 60
    sweep_interval_seconds: float = 30 * 60

    room_code_length: int = 4
    max_name_length: int = 24

    model_config = SettingsConfigDict(
        env_prefix="GAMEHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )

    @property
    def required_players(self) -> int:
        return self.dev_min_players if self.dev_mode else self.min_players


settings = Settings()
