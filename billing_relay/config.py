import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# .env is for local runs only; deployed environments inject real variables
if os.getenv("APP_ENV", "development") != "production":
    load_dotenv()


class Settings(BaseModel):
    app_env: str = "development"
    port: int = 3000
    log_level: str = "INFO"

    # CORS origin and base for redirect URLs
    frontend_url: str = "http://localhost:5173"

    clerk_publishable_key: str = ""
    clerk_secret_key: str = ""
    clerk_jwt_key: str = ""
    clerk_api_url: str = "https://api.clerk.com/v1"

    polar_access_token: str = ""
    polar_server: Literal["production", "sandbox"] = "production"
    polar_webhook_secret: str = ""

    provider_timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def authorized_parties(self) -> list[str]:
        return [self.frontend_url.rstrip("/")] if self.frontend_url else []


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        port=int(os.getenv("PORT", "3000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173").strip(),
        clerk_publishable_key=os.getenv("CLERK_PUBLISHABLE_KEY", ""),
        clerk_secret_key=os.getenv("CLERK_SECRET_KEY", ""),
        clerk_jwt_key=os.getenv("CLERK_JWT_KEY", ""),
        clerk_api_url=os.getenv("CLERK_API_URL", "https://api.clerk.com/v1"),
        polar_access_token=os.getenv("POLAR_ACCESS_TOKEN", ""),
        polar_server=os.getenv("POLAR_SERVER", "production").strip().lower() or "production",
        polar_webhook_secret=os.getenv("POLAR_WEBHOOK_SECRET", ""),
        provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30")),
    )
