from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "AuralCare Research"
    env: str = "dev"
    api_prefix: str = "/api"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./auralcare.db"

    frontend_origin: str = "http://localhost:3000"

    # Sequence conflicts on concurrent submissions are retried this many times.
    submission_max_retries: int = 3

    seed_demo_data: bool = True

    # Onboarding defaults for the auto-generated research schedule.
    default_total_weeks: int = 4
    default_session_duration_minutes: int = 30
    default_survey_types: list[str] = ["THI", "HHIA", "SSQ12"]


settings = Settings()
