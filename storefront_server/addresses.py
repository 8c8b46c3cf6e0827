"""Saved customer addresses."""

import logging
from datetime import datetime, timezone
from typing import Optional

from .errors import NotFoundError
from .models import Address, AddressForm
from .platform_client import PlatformClient
from .session import SessionStore

logger = logging.getLogger(__name__)


class AddressBook:
    """Addresses of the signed-in customer."""

    def __init__(self, platform: PlatformClient, session: SessionStore) -> None:
        self.platform = platform
        self.session = session

    def list_addresses(self) -> list[Address]:
        """Own addresses, default first, then newest first."""
        user = self.session.require_user()
        rows = (
            self.platform.table("addresses")
            .select("*")
            .eq("user_id", user.id)
            .order("is_default", ascending=False)
            .order("created_at", ascending=False)
            .execute()
        )
        return [Address.model_validate(row) for row in rows]

    def save_address(self, form: AddressForm, address_id: Optional[str] = None) -> Address:
        """
        Create an address, or update the one with address_id.

        When the saved address is the default, the default flag is cleared on
        the owner's other addresses afterwards. The two writes are separate
        requests.
        """
        user = self.session.require_user()
        values = {
            "user_id": user.id,
            "full_name": form.full_name,
            "address_line_1": form.address_line_1,
            "address_line_2": form.address_line_2 or None,
            "city": form.city,
            "state": form.state,
            "postal_code": form.postal_code,
            "country": form.country,
            "phone": form.phone or None,
            "is_default": form.is_default,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        if address_id:
            rows = self.platform.table("addresses").update(values).eq("id", address_id).select().execute()
        else:
            rows = self.platform.table("addresses").insert(values).select().execute()

        if not rows:
            raise NotFoundError(f"Address not found: {address_id}")
        saved = Address.model_validate(rows[0])
        logger.info(f"Saved address {saved.id} for user {user.id}")

        if form.is_default:
            (
                self.platform.table("addresses")
                .update({"is_default": False})
                .eq("user_id", user.id)
                .neq("id", saved.id)
                .execute()
            )
        return saved

    def delete_address(self, address_id: str) -> None:
        self.session.require_user()
        self.platform.table("addresses").delete().eq("id", address_id).execute()
        logger.info(f"Deleted address {address_id}")

    def default_address(self) -> Optional[Address]:
        for address in self.list_addresses():
            if address.is_default:
                return address
        return None
