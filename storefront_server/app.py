"""Composition root wiring the stores and services together."""

import logging
from typing import Optional

import httpx

from .addresses import AddressBook
from .admin import AdminService
from .auth import AuthManager
from .cart import CartStore, Storage
from .catalog import CatalogService
from .config import Settings
from .orders import OrderService
from .platform_client import PlatformClient
from .session import SessionStore
from .storage import LocalStorage

logger = logging.getLogger(__name__)


class Storefront:
    """Owns one application session: its stores, client and services."""

    def __init__(
        self,
        platform: PlatformClient,
        auth_manager: AuthManager,
        storage: Storage,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings
        self.platform = platform
        self.auth_manager = auth_manager
        self.storage = storage
        self.cart = CartStore(storage)
        self.session = SessionStore(platform, auth_manager)
        self.catalog = CatalogService(platform)
        self.addresses = AddressBook(platform, self.session)
        self.orders = OrderService(platform, self.session, self.cart)
        self.admin = AdminService(platform, self.session)

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None
    ) -> "Storefront":
        """Build a storefront from settings, restoring any persisted session."""
        auth_manager = AuthManager(settings.session_file)
        platform = PlatformClient(
            settings.supabase_url,
            settings.supabase_anon_key,
            auth_manager,
            timeout=settings.timeout,
            transport=transport,
        )
        storefront = cls(platform, auth_manager, LocalStorage(settings.storage_file), settings)
        storefront.session.restore()
        return storefront

    def ensure_authenticated(self) -> bool:
        """Sign in with configured credentials if no session is active."""
        if self.session.is_signed_in:
            return True

        credentials = self.settings.credentials if self.settings else None
        if credentials:
            logger.info("Auto-logging in with configured credentials...")
            self.session.sign_in(credentials.email, credentials.password)
            return True

        return False

    def close(self) -> None:
        self.platform.close()
