from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # Announcement coordinator (seconds)
    debounce_delay: float = 0.4
    throttle_window: float = 1.0
    # Combat waves close after this much inactivity
    wave_timeout: float = 1.5
    # Last-resort duplicate filter in the narration sink
    speech_dedup_window: float = 0.3
    # Health ratios that trigger urgent alerts
    low_health_ratio: float = 0.25
    critical_health_ratio: float = 0.10
    # Periodic health readout during batched combat
    health_report_delay: float = 2.0
    health_report_interval: float = 5.0
    batched_combat_mode: bool = True
    # Settle waits after transitions; external state takes time to catch up
    state_settle_delays: List[float] = [0.3, 0.5]
    replay_settle_delays: List[float] = [0.3, 0.5, 0.5]
    selection_settle_delay: float = 0.3
    skill_equip_settle_delay: float = 0.1
    message_buffer_size: int = 50
    # CORS origins for the host bridge; set ALLOWED_ORIGINS env var (JSON list)
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


settings = Settings()
