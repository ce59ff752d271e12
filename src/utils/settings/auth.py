from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Supabase project the access tokens are issued by."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    SUPABASE_JWT_SECRET: str = ""

    def validate_prod(self) -> None:
        if not self.SUPABASE_JWT_SECRET:
            raise ValueError("SUPABASE_JWT_SECRET must be set in production")
