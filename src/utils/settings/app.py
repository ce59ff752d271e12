from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DEBUG: bool = False
    ENVIRONMENT: str = "DEV"
    API_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8010
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "https://upblock.ai",
        "https://www.upblock.ai",
    ]
    # Vercel preview deployments of the web app
    CORS_ORIGIN_REGEX: str | None = r"https://.*\.vercel\.app"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.upper() == "PROD"

    def validate_prod(self) -> None:
        """Sanity checks for production environment."""
        if not self.is_production:
            return
        if not self.CORS_ORIGINS:
            raise ValueError("CORS_ORIGINS must be set in production")
        if self.DEBUG:
            raise ValueError("DEBUG must be disabled in production")
