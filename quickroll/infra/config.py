"""Application configuration via Pydantic Settings."""

from pydantic_settings import BaseSettings

from quickroll.models.roll import CritBehavior, HideDC, RollConfig


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./quickroll.db"
    db_busy_timeout: float = 30.0  # seconds SQLite waits on a locked database

    # Rolls
    d20_mode: int = 1  # d20s rolled per attack/check before advantage
    crit_behavior: CritBehavior = CritBehavior.DEFAULT
    crit_string: str = "Crit"
    query_advantage_enabled: bool = False
    alt_secondary_enabled: bool = True
    quick_default_description_enabled: bool = False
    hide_dc: HideDC = HideDC.NEVER

    # Dice
    dice_seed: int | None = None

    # App
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_debug: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def roll_config(self) -> RollConfig:
        """Immutable snapshot of the roll settings, taken once per action."""
        return RollConfig(
            d20_mode=self.d20_mode,
            crit_behavior=self.crit_behavior,
            crit_string=self.crit_string,
            query_advantage_enabled=self.query_advantage_enabled,
            alt_secondary_enabled=self.alt_secondary_enabled,
            quick_default_description_enabled=self.quick_default_description_enabled,
            hide_dc=self.hide_dc,
        )


settings = Settings()
