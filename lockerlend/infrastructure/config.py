from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # The in-memory default shares one connection across requests; deployments need a file or Postgres URL.
    database_url: str = "sqlite+pysqlite:///:memory:"
    openapi_path: Path = Path(__file__).resolve().parents[1] / "openapi/openapi.yaml"
    log_level: str = "INFO"
    # How long a unit of work waits for a row/database lock before giving up.
    lock_timeout_seconds: float = 5.0
    # sit_id values up to this number belong to staff, everything above to students.
    staff_sit_id_max: int = 99999
    pickup_window_minutes: int = 60
    overdue_grace_hours: int = 168
    # 0 disables the background expiry sweeper.
    expiry_sweep_interval_seconds: int = 0


settings = Settings()
