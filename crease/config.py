from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    db_path: str = "data/matches.db"
    log_level: str = "INFO"

    # Overs allowed for a Test innings when no custom overs are configured
    test_overs: int = 450
    players_per_side: int = 11

    # None keeps every snapshot for the session
    undo_limit: Optional[int] = None

    timeline_length: int = 10

    # Expected pace for the over-rate timer
    minutes_per_over_limited: float = 4.25
    minutes_per_over_test: float = 4.0
    over_rate_tolerance_overs: float = 0.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
