"""
Sync orchestrator: the façade the outer interface layer calls.

Each operation composes the session manager, the vault client, the payload
decoder, the field extractors and the reconciler. Operations either return
a result model or raise a ``SyncError`` subclass.
"""

import logging
import re
from datetime import datetime

from .config import SyncConfig
from .exceptions import (
    MalformedEncodingError,
    PersistenceFailureError,
    RecordNotFoundError,
    SyncError,
)
from .importers.base import (
    BatchItemOutcome,
    ExportResult,
    ExternalCharacterListing,
    ExternalCharacterSummary,
    ImportAllReport,
    ReconcileResult,
    SharedCharacterPreview,
    SyncAction,
    SyncMode,
)
from .importers.pathcompanion.client import PathCompanionClient
from .importers.pathcompanion.decoder import (
    DecodedRecord,
    decode_record,
    decode_share_key,
    encode_payload,
)
from .importers.pathcompanion.exporter import build_export_document, find_free_slot
from .importers.pathcompanion.extractors import extract_character
from .importers.pathcompanion.schema import CAMPAIGN_SLOT_PATTERN, PLAYER_SLOT_PATTERN
from .models import ExternalAccountLink, LocalCharacter, RawExternalRecord
from .reconciler import Reconciler
from .session import SessionManager
from .storage import SyncStorage
from .vault import CredentialVault

logger = logging.getLogger("warden-sync")


def _slot_number(key: str, pattern: re.Pattern) -> int:
    match = pattern.match(key)
    return int(match.group(1)) if match else 0


def player_slots(keys: list[str]) -> list[str]:
    """Player-character keys (``character<n>``) in slot order."""
    slots = [key for key in keys if PLAYER_SLOT_PATTERN.match(key)]
    return sorted(slots, key=lambda key: _slot_number(key, PLAYER_SLOT_PATTERN))


def campaign_slots(keys: list[str]) -> list[str]:
    """GM, campaign and shared keys (``gm<n>``, ``shared<n>``)."""
    slots = [key for key in keys if CAMPAIGN_SLOT_PATTERN.match(key)]
    return sorted(slots, key=lambda key: (key[:2].lower(), _slot_number(key, CAMPAIGN_SLOT_PATTERN)))


class SyncOrchestrator:
    """Import, export and refresh characters against a PathCompanion account.

    Args:
        config: Sync settings
        storage: Local store (created under ``config.data_dir`` when omitted)
        client: Vault client (created from ``config`` when omitted)
        vault: Credential vault (keyed by ``config.encryption_key`` when omitted)
    """

    def __init__(
        self,
        config: SyncConfig,
        storage: SyncStorage | None = None,
        client: PathCompanionClient | None = None,
        vault: CredentialVault | None = None,
    ) -> None:
        self.config = config
        self.storage = storage or SyncStorage(config.data_dir)
        self.client = client or PathCompanionClient(config)
        self.vault = vault or CredentialVault(config.encryption_key)
        self.session = SessionManager(self.storage, self.client, self.vault)
        self.reconciler = Reconciler(self.storage)

    # --- Account ---

    async def connect_account(self, owner_id: str, username: str, password: str) -> ExternalAccountLink:
        return await self.session.connect(owner_id, username, password)

    def disconnect_account(self, owner_id: str) -> ExternalAccountLink:
        return self.session.disconnect(owner_id)

    # --- Fetching ---

    async def _fetch_record(
        self,
        ticket: str,
        external_id: str,
        playfab_id: str | None = None,
    ) -> DecodedRecord:
        records = await self.client.get_user_data(ticket, keys=[external_id], playfab_id=playfab_id)
        record = records.get(external_id)
        if record is None or record.value is None:
            raise RecordNotFoundError(
                f"Character not found in PathCompanion: {external_id}",
                {"external_id": external_id},
            )
        return decode_record(record)

    async def list_external_characters(self, owner_id: str) -> ExternalCharacterListing:
        """List the account's records, split into player characters and
        campaign/GM records. Records that fail to decode are left out."""
        ticket = await self.session.ensure_valid_ticket(owner_id)
        records = await self.client.get_user_data(ticket)
        keys = list(records)

        def summarize(slots: list[str]) -> list[ExternalCharacterSummary]:
            summaries: list[ExternalCharacterSummary] = []
            for key in slots[: self.config.list_limit]:
                try:
                    decoded = decode_record(records[key])
                except SyncError as e:
                    logger.warning(f"⚠️ Skipping {key}: {e.message}")
                    continue
                summaries.append(
                    ExternalCharacterSummary(
                        id=key,
                        name=decoded.display_name,
                        last_modified=decoded.last_updated,
                    )
                )
            return summaries

        listing = ExternalCharacterListing(
            characters=summarize(player_slots(keys)),
            campaigns=summarize(campaign_slots(keys)),
        )
        logger.debug(
            f"Listed {len(listing.characters)} characters and {len(listing.campaigns)} campaigns for {owner_id}"
        )
        return listing

    # --- Import ---

    async def _import_with_ticket(
        self,
        owner_id: str,
        ticket: str,
        external_id: str,
        merge_target_id: str | None = None,
    ) -> ReconcileResult:
        decoded = await self._fetch_record(ticket, external_id)
        extracted = extract_character(decoded.document, external_id)
        return self.reconciler.reconcile(
            owner_id,
            extracted,
            external_id,
            merge_target_id=merge_target_id,
            raw_document=decoded.document,
        )

    async def import_one(
        self,
        owner_id: str,
        external_id: str,
        merge_target_id: str | None = None,
    ) -> ReconcileResult:
        """Import one external character.

        Raises:
            NameConflictError: If an unlinked local character has the same name;
                resubmit with ``merge_target_id`` to merge into it
        """
        ticket = await self.session.ensure_valid_ticket(owner_id)
        return await self._import_with_ticket(owner_id, ticket, external_id, merge_target_id)

    async def import_all(self, owner_id: str) -> ImportAllReport:
        """Import every player-character record, one at a time.

        A failing item is recorded in the report and the batch continues.
        Session and enumeration failures raise before any item is processed.
        """
        ticket = await self.session.ensure_valid_ticket(owner_id)
        records = await self.client.get_user_data(ticket)
        slots = player_slots(list(records))

        limit = self.config.import_all_limit
        report = ImportAllReport(truncated=len(slots) > limit)
        if report.truncated:
            logger.warning(f"⚠️ {len(slots)} player records found, importing the first {limit}")

        for external_id in slots[:limit]:
            try:
                result = await self._import_with_ticket(owner_id, ticket, external_id)
            except SyncError as e:
                logger.error(f"❌ Import of {external_id} failed: {e.message}")
                report.outcomes.append(
                    BatchItemOutcome(
                        external_id=external_id,
                        error_kind=e.kind.value,
                        reason=e.message,
                    )
                )
                continue
            except Exception as e:
                logger.exception(f"❌ Unexpected error importing {external_id}")
                report.outcomes.append(
                    BatchItemOutcome(external_id=external_id, reason=str(e) or type(e).__name__)
                )
                continue

            report.outcomes.append(
                BatchItemOutcome(
                    external_id=external_id,
                    name=result.character.name,
                    action=result.action,
                )
            )

        logger.info(f"📦 Import-all for {owner_id}: {report.message}, {len(report.failed)} failed")
        return report

    # --- Sync ---

    async def refresh_sync(self, owner_id: str, character_id: str) -> ReconcileResult:
        """Overlay fresh mechanics onto an already-linked character.

        Name, identity and biography are kept. A failure leaves the
        character and its link untouched.
        """
        character = self.storage.require_character(owner_id, character_id)
        if not character.is_linked:
            raise RecordNotFoundError(
                "Character is not linked to PathCompanion",
                {"character_id": character_id},
            )

        ticket = await self.session.ensure_valid_ticket(owner_id)
        decoded = await self._fetch_record(ticket, character.external_id)
        extracted = extract_character(decoded.document, character.external_id)
        return self.reconciler.reconcile(
            owner_id,
            extracted,
            character.external_id,
            raw_document=decoded.document,
            mode=SyncMode.MECHANICAL,
        )

    # --- Export ---

    async def export_one(self, owner_id: str, character_id: str) -> ExportResult:
        """Write a local character to the first free ``character<n>`` slot and link it."""
        character = self.storage.require_character(owner_id, character_id)
        ticket = await self.session.ensure_valid_ticket(owner_id)

        occupied: dict[str, RawExternalRecord] = await self.client.get_user_data(ticket)
        slot = find_free_slot(occupied, self.config.export_slot_limit)
        if slot is None:
            raise PersistenceFailureError(
                f"No free PathCompanion character slot (checked {self.config.export_slot_limit})",
                {"character_id": character_id},
            )

        document = build_export_document(character)
        await self.client.update_user_data(ticket, {slot: encode_payload(document)})

        character.external_id = slot
        character.external_raw_data = document
        character.last_synced = datetime.now()
        saved = self.storage.save_character(character)
        logger.info(f"📤 Exported {saved.name} ({saved.id}) to {slot}")
        return ExportResult(external_id=slot, character=saved)

    # --- Linking ---

    @staticmethod
    def resolve_external_id(external_id_or_key: str) -> str:
        """Accept a bare external id or a base64 JSON character key."""
        try:
            return decode_share_key(external_id_or_key).character
        except MalformedEncodingError:
            return external_id_or_key.strip()

    async def link_existing(self, owner_id: str, character_id: str, external_id_or_key: str) -> ReconcileResult:
        """Link a local character to an existing external record.

        The record is fetched to verify it exists; mechanics and biography
        are not overwritten.
        """
        external_id = self.resolve_external_id(external_id_or_key)
        character = self.storage.require_character(owner_id, character_id)
        ticket = await self.session.ensure_valid_ticket(owner_id)
        decoded = await self._fetch_record(ticket, external_id)

        character.external_id = external_id
        character.last_synced = datetime.now()
        saved = self.storage.save_character(character)
        logger.info(f"🔗 Linked {saved.name} ({saved.id}) to {external_id} ({decoded.display_name})")
        return ReconcileResult(action=SyncAction.UPDATED, character=saved)

    def unlink(self, owner_id: str, character_id: str) -> LocalCharacter:
        """Clear the character's external link. Mechanics and biography are kept."""
        character = self.storage.require_character(owner_id, character_id)
        character.external_id = None
        character.last_synced = None
        saved = self.storage.save_character(character)
        logger.info(f"Unlinked {saved.name} ({saved.id}) from PathCompanion")
        return saved

    # --- Shared records ---

    async def preview_shared_character(self, share_key: str) -> SharedCharacterPreview:
        """Read a publicly shared character through an anonymous session.

        Nothing is written locally.
        """
        key = decode_share_key(share_key)
        if not key.account:
            raise MalformedEncodingError("Share key does not name an account")

        login = await self.client.login_anonymous()
        decoded = await self._fetch_record(login.session_ticket, key.character, playfab_id=key.account)
        return SharedCharacterPreview(
            account=key.account,
            external_id=key.character,
            character=extract_character(decoded.document, key.character),
        )
