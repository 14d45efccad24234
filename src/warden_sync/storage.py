"""
Storage layer for the sync engine.
Handles persistence of account links and local characters to JSON files.
"""

import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .exceptions import PersistenceFailureError, RecordNotFoundError
from .models import ExternalAccountLink, LocalCharacter

logger = logging.getLogger("warden-sync")


class SyncStorage:
    """Handles storage and retrieval of account links and characters.

    Layout::

        data_dir/
            accounts/<owner_id>.json
            characters/<character_id>.json

    The store upholds the external-id uniqueness invariant: within one owner,
    at most one character carries a given ``external_id``.
    """

    def __init__(self, data_dir: str | Path = "warden_data"):
        self.data_dir = Path(data_dir)
        logger.debug(f"📂 Initializing SyncStorage with data_dir: {self.data_dir.resolve()}")
        self._accounts_dir = self.data_dir / "accounts"
        self._characters_dir = self.data_dir / "characters"
        self._accounts_dir.mkdir(parents=True, exist_ok=True)
        self._characters_dir.mkdir(parents=True, exist_ok=True)

        self._characters: dict[str, LocalCharacter] = {}
        # (owner_id, external_id) -> character id
        self._external_index: dict[tuple[str, str], str] = {}
        self._load_characters()

    # --- Loading ---

    def _load_characters(self) -> None:
        for path in sorted(self._characters_dir.glob("*.json")):
            try:
                character = LocalCharacter.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValidationError) as e:
                logger.error(f"❌ Skipping unreadable character file {path.name}: {e}")
                continue
            self._characters[character.id] = character
            if character.external_id:
                self._external_index[(character.owner_id, character.external_id)] = character.id
        logger.debug(f"✅ Loaded {len(self._characters)} characters")

    def _write(self, path: Path, payload: str) -> None:
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceFailureError(f"Failed to write {path.name}: {e}") from e

    # --- Account links ---

    def _account_file(self, owner_id: str) -> Path:
        """Path of an owner's account link file.

        Owner ids are refused, not cleaned, when they hold anything besides
        letters, digits and ``-_@.`` or start with a dot.
        """
        safe_id = "".join(c for c in owner_id if c.isalnum() or c in ("-", "_", "@", "."))
        if not safe_id or safe_id != owner_id or safe_id.startswith("."):
            raise PersistenceFailureError(
                f"Invalid user id: {owner_id!r}", {"owner_id": owner_id}
            )
        return self._accounts_dir / f"{safe_id}.json"

    def get_account_link(self, owner_id: str) -> ExternalAccountLink | None:
        path = self._account_file(owner_id)
        if not path.exists():
            return None
        try:
            return ExternalAccountLink.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise PersistenceFailureError(f"Failed to read account link for {owner_id}: {e}") from e

    def save_account_link(self, link: ExternalAccountLink) -> ExternalAccountLink:
        self._write(self._account_file(link.owner_id), link.model_dump_json(indent=2))
        return link

    # --- Characters ---

    # Readers hand out deep copies; only save_character() changes stored state.

    def get_character(self, character_id: str) -> LocalCharacter | None:
        character = self._characters.get(character_id)
        return character.model_copy(deep=True) if character else None

    def require_character(self, owner_id: str, character_id: str) -> LocalCharacter:
        """Fetch a character owned by ``owner_id``.

        Characters of other owners are reported as missing.
        """
        character = self.get_character(character_id)
        if character is None or character.owner_id != owner_id:
            raise RecordNotFoundError(
                f"Character sheet not found: {character_id}",
                {"character_id": character_id},
            )
        return character

    def list_characters(self, owner_id: str) -> list[LocalCharacter]:
        return [
            c.model_copy(deep=True) for c in self._characters.values() if c.owner_id == owner_id
        ]

    def find_by_external_id(self, owner_id: str, external_id: str) -> LocalCharacter | None:
        character_id = self._external_index.get((owner_id, external_id))
        return self.get_character(character_id) if character_id else None

    def find_unlinked_by_name(self, owner_id: str, name: str) -> LocalCharacter | None:
        """Case-insensitive exact name match among the owner's unlinked characters."""
        wanted = name.lower()
        for character in self._characters.values():
            if (
                character.owner_id == owner_id
                and character.external_id is None
                and character.name.lower() == wanted
            ):
                return character.model_copy(deep=True)
        return None

    def save_character(self, character: LocalCharacter) -> LocalCharacter:
        """Create or update a character, enforcing external-id uniqueness."""
        if character.external_id:
            key = (character.owner_id, character.external_id)
            holder = self._external_index.get(key)
            if holder is not None and holder != character.id:
                raise PersistenceFailureError(
                    f"External character '{character.external_id}' is already linked "
                    f"to local character {holder}",
                    {"external_id": character.external_id, "character_id": holder},
                )

        character.updated_at = datetime.now()
        self._write(
            self._characters_dir / f"{character.id}.json",
            character.model_dump_json(indent=2),
        )

        previous = self._characters.get(character.id)
        if previous is not None and previous.external_id:
            self._external_index.pop((previous.owner_id, previous.external_id), None)
        if character.external_id:
            self._external_index[(character.owner_id, character.external_id)] = character.id
        self._characters[character.id] = character.model_copy(deep=True)
        logger.debug(f"💾 Saved character {character.id} ({character.name})")
        return character

