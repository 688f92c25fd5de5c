"""Application settings using Pydantic Settings"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:3000/api"
    API_TIMEOUT_SECONDS: float = 10.0

    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    SESSION_SECRET_KEY: str = "change-me-in-production"
    SESSION_MAX_AGE_SECONDS: int = 60 * 60 * 24 * 7

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["dev", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"

    def validate_secrets_for_production(self) -> None:
        if self.is_production:
            errors = []
            if self.SESSION_SECRET_KEY == "change-me-in-production":
                errors.append("SESSION_SECRET_KEY must be set to a secure value in production")
            if not self.API_BASE_URL.startswith("https://"):
                errors.append("API_BASE_URL must use https in production")
            if errors:
                raise ValueError("; ".join(errors))

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
