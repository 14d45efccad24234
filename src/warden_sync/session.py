"""
Session manager for the external vault account.

Ticket validity is discovered by use: a cached ticket is probed with a
cheap read and, if refused, replaced by logging in again with the stored
credential.
"""

import logging
from datetime import datetime

from .exceptions import (
    AccountNotLinkedError,
    CredentialReEntryRequiredError,
    SyncError,
)
from .importers.pathcompanion.client import PathCompanionClient
from .importers.pathcompanion.schema import TICKET_PROBE_KEY
from .models import ExternalAccountLink
from .storage import SyncStorage
from .vault import CredentialDecryptError, CredentialVault

logger = logging.getLogger("warden-sync")


class SessionManager:
    """Obtains, refreshes and stores session tickets per local user."""

    def __init__(
        self,
        storage: SyncStorage,
        client: PathCompanionClient,
        vault: CredentialVault,
    ) -> None:
        self.storage = storage
        self.client = client
        self.vault = vault

    def require_link(self, owner_id: str) -> ExternalAccountLink:
        """The owner's connected account link.

        Raises:
            AccountNotLinkedError: If the account was never connected or was
                disconnected
        """
        link = self.storage.get_account_link(owner_id)
        if link is None or not link.is_connected:
            raise AccountNotLinkedError(
                "PathCompanion account not connected. Please connect your account first.",
                {"owner_id": owner_id},
            )
        return link

    async def _probe(self, ticket: str) -> bool:
        try:
            await self.client.get_user_data(ticket, keys=[TICKET_PROBE_KEY])
        except SyncError as e:
            logger.debug(f"Cached session ticket refused ({e.kind.value}), re-authenticating")
            return False
        return True

    async def ensure_valid_ticket(self, owner_id: str) -> str:
        """Return a session ticket the vault currently accepts.

        Re-authenticates at most once per call. Authentication failures are
        not retried.

        Raises:
            AccountNotLinkedError: Before any network call when not connected
            CredentialReEntryRequiredError: If the stored password cannot be
                decrypted with the current key
            AuthenticationFailedError: If the vault rejects the credentials
            ExternalServiceUnavailableError: On network failure or timeout
        """
        link = self.require_link(owner_id)

        if link.session_ticket and await self._probe(link.session_ticket):
            return link.session_ticket

        try:
            password = self.vault.decrypt(link.encrypted_password)
        except CredentialDecryptError:
            logger.warning(f"⚠️ Stored PathCompanion credential for {owner_id} can no longer be decrypted")
            raise CredentialReEntryRequiredError(
                "Stored PathCompanion password cannot be decrypted. "
                "Please reconnect your PathCompanion account.",
                {"owner_id": owner_id},
            ) from None

        result = await self.client.login(link.username, password)
        link.session_ticket = result.session_ticket
        link.playfab_id = result.playfab_id or link.playfab_id
        self.storage.save_account_link(link)
        logger.info(f"🔑 Refreshed PathCompanion session for {owner_id}")
        return result.session_ticket

    async def connect(self, owner_id: str, username: str, password: str) -> ExternalAccountLink:
        """Log in with fresh credentials and store them encrypted."""
        result = await self.client.login(username, password)
        link = ExternalAccountLink(
            owner_id=owner_id,
            username=username,
            encrypted_password=self.vault.encrypt(password),
            session_ticket=result.session_ticket,
            playfab_id=result.playfab_id,
            connected_at=datetime.now(),
        )
        self.storage.save_account_link(link)
        logger.info(f"🔗 Connected PathCompanion account {username} for {owner_id}")
        return link

    def disconnect(self, owner_id: str) -> ExternalAccountLink:
        """Null every stored field of the owner's account link."""
        link = ExternalAccountLink(owner_id=owner_id)
        self.storage.save_account_link(link)
        logger.info(f"Disconnected PathCompanion account for {owner_id}")
        return link
