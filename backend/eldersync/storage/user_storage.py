"""
Account Storage - caregiver accounts for the local identity provider.
Accounts live in the key-value store next to the patient data.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict

from .interface import KeyValueStore

logger = logging.getLogger(__name__)


class UserStorage:
    """
    Manages persistent storage of caregiver accounts.
    Records live under ``account:{user_id}``; ``account_email:{email}`` indexes them by email.
    """

    def __init__(self, store: KeyValueStore):
        """
        Initialize account storage.

        Args:
            store: KeyValueStore implementation
        """
        self.store = store

    @staticmethod
    def _account_key(user_id: str) -> str:
        return f"account:{user_id}"

    @staticmethod
    def _email_key(email: str) -> str:
        return f"account_email:{email.lower()}"

    async def get_user(self, user_id: str) -> Optional[Dict]:
        """
        Get account by user_id.

        Args:
            user_id: User ID

        Returns:
            Optional[Dict]: Account data or None if not found
        """
        return await self.store.get(self._account_key(user_id))

    async def get_user_by_email(self, email: str) -> Optional[Dict]:
        """
        Get account by email.

        Args:
            email: Login email (case-insensitive)

        Returns:
            Optional[Dict]: Account data or None if not found
        """
        user_id = await self.store.get(self._email_key(email))
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def create_user(
        self,
        user_id: str,
        email: str,
        hashed_password: str,
        name: str,
    ) -> Dict:
        """
        Create a new account.

        Args:
            user_id: User ID (UUID)
            email: Login email
            hashed_password: bcrypt hash of the password
            name: Display name

        Returns:
            Dict: Created account data
        """
        user_data = {
            "id": user_id,
            "email": email,
            "name": name,
            "hashedPassword": hashed_password,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }

        await self.store.set(self._account_key(user_id), user_data)
        await self.store.set(self._email_key(email), user_id)
        logger.info("Account created", extra={"extra_fields": {"user_id": user_id}})

        return user_data
