from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    site_url: str = "http://localhost:3000"
    environment: str = "development"

    # Instagram Basic Display app credentials
    instagram_app_id: str | None = None
    instagram_app_secret: str | None = None
    instagram_timeout_s: float = 10.0

    # None means "strict only in production"
    strict_state_validation: bool | None = None

    jwt_secret: str
    jwt_allowed_algorithms: list[str] = ["HS256"]

    database_url: str = "sqlite:///./instagram_connect.db"

    rate_limit_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def enforce_state(self) -> bool:
        if self.strict_state_validation is None:
            return self.is_production
        return self.strict_state_validation

    @property
    def instagram_redirect_uri(self) -> str:
        return f"{self.site_url.rstrip('/')}/api/auth/instagram/callback"


settings = Settings()
