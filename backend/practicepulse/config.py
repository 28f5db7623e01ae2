from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    app_name: str = "PracticePulse"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://practicepulse:practicepulse@db:5432/practicepulse"

    # Auth
    secret_key: str = "CHANGE_ME"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # Record source
    record_page_size: int = 1000

    # Reporting defaults
    default_daily_hours: float = 8.0
    default_fte: float = 1.0
    recoverability_target_percentage: float = 95.0
    excluded_staff_names: list[str] = ["disbursement"]

    # CORS
    backend_cors_origins: list[str] = ["http://localhost", "http://localhost:5173"]

    model_config = {"env_file": ".env", "case_sensitive": False}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
