"""Auth session persistence for the storefront."""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .models import SessionData

logger = logging.getLogger(__name__)


class AuthManager:
    """Manages authentication state and session persistence."""

    def __init__(self, session_file: Optional[str] = None) -> None:
        """
        Initialize the authentication manager.

        Args:
            session_file: Path to store session data. Defaults to ~/.storefront_session.json
        """
        if session_file is None:
            session_file = str(Path.home() / ".storefront_session.json")
        self.session_file = session_file
        self.session: SessionData = self._load_session()

        self._load_token_from_env()

    def _load_session(self) -> SessionData:
        """Load session data from file if it exists."""
        if os.path.exists(self.session_file):
            try:
                with open(self.session_file, "r") as f:
                    data = json.load(f)
                    return SessionData(**data)
            except (json.JSONDecodeError, ValueError, TypeError):
                # If file is corrupted, start fresh
                logger.warning(f"Ignoring corrupt session file {self.session_file}")
        return SessionData()

    def _save_session(self) -> None:
        """Save session data to file."""
        with open(self.session_file, "w") as f:
            json.dump(self.session.model_dump(), f, default=str)
        # Set restrictive permissions on session file
        os.chmod(self.session_file, 0o600)

    def save_session(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> None:
        """
        Save authentication session.

        Args:
            access_token: Bearer token from a successful sign-in
            refresh_token: Refresh token, when issued
            user_id: Auth user ID
            user_email: User's email address
        """
        self.session = SessionData(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user_id,
            user_email=user_email,
            is_authenticated=True,
        )
        self._save_session()
        logger.info(f"Session saved for {user_email or user_id}")

    def get_session(self) -> SessionData:
        """Get current session data."""
        return self.session

    def clear_session(self) -> None:
        """Clear the current session."""
        self.session = SessionData()
        if os.path.exists(self.session_file):
            os.remove(self.session_file)
            logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        """Check if there's an active authenticated session."""
        return self.session.is_authenticated and bool(self.session.access_token)

    def get_access_token(self) -> Optional[str]:
        """Get the bearer token of the current session."""
        return self.session.access_token if self.is_authenticated() else None

    def _load_token_from_env(self) -> None:
        """
        Load an access token from the environment.

        STOREFRONT_ACCESS_TOKEN seeds the session with an existing platform
        token, e.g. one copied from a browser session. The identity behind it
        is resolved later, when the session is restored.
        """
        token = os.environ.get("STOREFRONT_ACCESS_TOKEN")
        if not token:
            logger.debug("No access token found in environment variables")
            return

        logger.info("✓ Loaded access token from environment")
        self.session = SessionData(
            access_token=token,
            refresh_token=os.environ.get("STOREFRONT_REFRESH_TOKEN"),
            is_authenticated=True,
        )
        self._save_session()
