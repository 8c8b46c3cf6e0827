"""Runtime settings read from the environment."""

import os
from typing import Optional

from pydantic import BaseModel, Field

from .models import AuthCredentials


class Settings(BaseModel):
    """Storefront configuration."""

    supabase_url: str = Field(description="Base URL of the hosted platform project")
    supabase_anon_key: str = Field(description="Public anon API key")
    session_file: Optional[str] = Field(None, description="Auth session file path")
    storage_file: Optional[str] = Field(None, description="Local storage file path")
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    credentials: Optional[AuthCredentials] = Field(None, description="Auto-login credentials")

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If SUPABASE_URL or SUPABASE_ANON_KEY is missing
        """
        url = os.environ.get("SUPABASE_URL")
        anon_key = os.environ.get("SUPABASE_ANON_KEY")
        if not url or not anon_key:
            raise ValueError("Missing Supabase environment variables")

        credentials = None
        email = os.environ.get("STOREFRONT_EMAIL")
        password = os.environ.get("STOREFRONT_PASSWORD")
        if email and password:
            credentials = AuthCredentials(email=email, password=password)

        return cls(
            supabase_url=url,
            supabase_anon_key=anon_key,
            session_file=os.environ.get("STOREFRONT_SESSION_FILE"),
            storage_file=os.environ.get("STOREFRONT_STORAGE_FILE"),
            timeout=float(os.environ.get("STOREFRONT_TIMEOUT", "30")),
            credentials=credentials,
        )
