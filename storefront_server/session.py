"""Current identity and profile, backed by the platform's auth service."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union

from .auth import AuthManager
from .errors import AuthError, NotAuthenticatedError, PermissionDeniedError, PlatformError
from .models import AuthCredentials, Profile, ProfileUpdate, Role, User
from .platform_client import PlatformClient

logger = logging.getLogger(__name__)

SessionListener = Callable[["SessionStore"], None]


class SessionState(str, Enum):
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


class SessionStore:
    """Holds the signed-in identity and its profile row.

    Operations delegate to the platform. On success the in-memory identity is
    replaced and subscribers are notified; on failure the platform's error is
    raised unchanged and nothing is modified.
    """

    def __init__(self, platform: PlatformClient, auth_manager: AuthManager) -> None:
        self.platform = platform
        self.auth_manager = auth_manager
        self._user: Optional[User] = None
        self._profile: Optional[Profile] = None
        self._listeners: list[SessionListener] = []

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def profile(self) -> Optional[Profile]:
        return self._profile

    @property
    def state(self) -> SessionState:
        return SessionState.SIGNED_IN if self._user else SessionState.SIGNED_OUT

    @property
    def is_signed_in(self) -> bool:
        return self._user is not None

    @property
    def is_admin(self) -> bool:
        return self._profile is not None and self._profile.role == Role.ADMIN

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a callback run after every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, user: Optional[User], profile: Optional[Profile]) -> None:
        self._user = user
        self._profile = profile
        for listener in list(self._listeners):
            listener(self)

    def require_user(self) -> User:
        """Return the signed-in user or raise NotAuthenticatedError."""
        if self._user is None:
            raise NotAuthenticatedError()
        return self._user

    def require_admin(self) -> Profile:
        """Return the admin profile or raise."""
        self.require_user()
        if not self.is_admin:
            raise PermissionDeniedError()
        return self._profile

    def _fetch_profile(self, user_id: str, access_token: Optional[str] = None) -> Optional[Profile]:
        rows = (
            self.platform.table("profiles", access_token=access_token)
            .select("*")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not rows:
            logger.warning(f"No profile row for user {user_id}")
            return None
        return Profile.model_validate(rows[0])

    def sign_in(self, email: str, password: str) -> User:
        """
        Sign in with email and password.

        Raises:
            AuthError: If the platform rejects the credentials
        """
        payload = self.platform.sign_in_with_password(AuthCredentials(email=email, password=password))
        access_token = payload["access_token"]
        user = User.model_validate(payload["user"])
        profile = self._fetch_profile(user.id, access_token)

        self.auth_manager.save_session(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            user_id=user.id,
            user_email=user.email,
        )
        logger.info(f"Signed in as {user.email}")
        self._set(user, profile)
        return user

    def sign_up(self, email: str, password: str, full_name: str) -> User:
        """
        Register a new customer account.

        When the platform issues a session right away the profile row is
        created and the store is signed in. When email confirmation is
        pending, the created identity is returned and the store stays signed
        out.
        """
        payload = self.platform.sign_up(
            AuthCredentials(email=email, password=password),
            data={"full_name": full_name},
        )
        user = User.model_validate(payload.get("user") or payload)
        access_token = payload.get("access_token")
        if not access_token:
            logger.info(f"Sign-up for {email} awaits email confirmation")
            return user

        rows = (
            self.platform.table("profiles", access_token=access_token)
            .insert({
                "id": user.id,
                "email": email,
                "full_name": full_name,
                "role": Role.CUSTOMER.value,
            })
            .select()
            .execute()
        )
        profile = Profile.model_validate(rows[0]) if rows else Profile(id=user.id, email=email, full_name=full_name)

        self.auth_manager.save_session(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            user_id=user.id,
            user_email=user.email or email,
        )
        logger.info(f"Signed up {email}")
        self._set(user, profile)
        return user

    def sign_out(self) -> None:
        """
        Revoke the session token and forget the persisted session.

        A token the platform no longer accepts (401/403/404) counts as
        already revoked.

        Raises:
            PlatformError: If revocation fails for any other reason; the
                session is kept so sign-out can be retried
        """
        access_token = self.auth_manager.get_access_token()
        if access_token:
            try:
                self.platform.sign_out(access_token)
            except PlatformError as e:
                if e.status_code not in (401, 403, 404):
                    logger.warning(f"Could not revoke session token: {e}")
                    raise
                logger.info(f"Session token was already invalid: {e}")

        self.auth_manager.clear_session()
        logger.info("Signed out")
        self._set(None, None)

    def update_profile(self, fields: Union[ProfileUpdate, dict[str, Any]]) -> Profile:
        """
        Update the signed-in user's profile row.

        Raises:
            NotAuthenticatedError: If nobody is signed in
        """
        user = self.require_user()
        if isinstance(fields, dict):
            fields = ProfileUpdate.model_validate(fields)

        values = fields.model_dump(exclude_unset=True)
        values["updated_at"] = datetime.now(timezone.utc).isoformat()

        rows = self.platform.table("profiles").update(values).eq("id", user.id).select().execute()
        if rows:
            profile = Profile.model_validate(rows[0])
        elif self._profile is not None:
            profile = self._profile.model_copy(update=fields.model_dump(exclude_unset=True))
        else:
            profile = self._fetch_profile(user.id)

        logger.info(f"Profile updated for {user.email}")
        self._set(user, profile)
        return profile

    def restore(self) -> bool:
        """
        Resume a persisted session at startup.

        Returns:
            True if a session was restored
        """
        access_token = self.auth_manager.get_access_token()
        if not access_token:
            return False

        try:
            user = self.platform.get_user(access_token)
            profile = self._fetch_profile(user.id, access_token)
        except AuthError as e:
            logger.info(f"Stored session is no longer valid: {e}")
            self.auth_manager.clear_session()
            return False
        except PlatformError as e:
            logger.warning(f"Could not restore session: {e}")
            return False

        logger.info(f"Restored session for {user.email}")
        self._set(user, profile)
        return True
