"""
Reconciler: maps an extracted external character onto the local store.

Decision order for one incoming record:

1. A local character of the same owner already carries the external id:
   update it.
2. The caller named a merge target: attach the external id to it and
   overwrite its mechanics.
3. An unlinked local character of the same owner has the same name
   (case-insensitive, exact): raise ``NameConflictError`` without writing.
4. Otherwise create a new linked character.

Checking the external id first makes re-imports idempotent even after the
local name was edited.
"""

import logging
from datetime import datetime
from typing import Any

from .exceptions import NameConflictError, RecordNotFoundError
from .importers.base import (
    ConflictingCharacter,
    ImportConflict,
    ReconcileResult,
    SyncAction,
    SyncMode,
)
from .models import ExtractedCharacter, LocalCharacter
from .storage import SyncStorage

logger = logging.getLogger("warden-sync")


def _mechanical_values(extracted: ExtractedCharacter) -> dict[str, Any]:
    return {
        "level": extracted.level,
        "character_class": extracted.basic.character_class,
        "abilities": extracted.abilities.model_copy(deep=True),
        "combat": extracted.combat.model_copy(deep=True),
        "saves": extracted.saves.model_copy(deep=True),
        "skills": {name: skill.model_copy() for name, skill in extracted.skills.items()},
        "feats": list(extracted.feats),
        "special_abilities": list(extracted.special_abilities),
        "weapons": [weapon.model_copy() for weapon in extracted.weapons],
        "armor": extracted.armor.model_copy(),
        "spells": {level: list(names) for level, names in extracted.spells.items()},
        "defenses": extracted.defenses.model_copy(deep=True),
        "caster": extracted.caster.model_copy(),
    }


def _identity_values(extracted: ExtractedCharacter) -> dict[str, Any]:
    return {
        "name": extracted.name,
        "race": extracted.basic.race,
        "alignment": extracted.basic.alignment,
        "deity": extracted.basic.deity,
        "size": extracted.basic.size,
        "avatar_url": extracted.basic.avatar_url,
    }


def apply_mechanics(character: LocalCharacter, extracted: ExtractedCharacter) -> None:
    """Overwrite mechanical facets. Identity and biography are left alone,
    except that an external avatar fills an empty local one."""
    for field_name, value in _mechanical_values(extracted).items():
        setattr(character, field_name, value)
    if character.avatar_url is None and extracted.basic.avatar_url:
        character.avatar_url = extracted.basic.avatar_url


def apply_full(character: LocalCharacter, extracted: ExtractedCharacter) -> None:
    """Overwrite mechanics and identity. Biography is left alone."""
    for field_name, value in _mechanical_values(extracted).items():
        setattr(character, field_name, value)
    for field_name, value in _identity_values(extracted).items():
        setattr(character, field_name, value)


class Reconciler:
    """Applies create/update/merge decisions to the local store."""

    def __init__(self, storage: SyncStorage) -> None:
        self.storage = storage

    def _stamp(self, character: LocalCharacter, raw_document: dict[str, Any] | None) -> None:
        character.external_raw_data = raw_document
        character.last_synced = datetime.now()

    def reconcile(
        self,
        owner_id: str,
        extracted: ExtractedCharacter,
        external_id: str,
        merge_target_id: str | None = None,
        raw_document: dict[str, Any] | None = None,
        mode: SyncMode = SyncMode.FULL,
    ) -> ReconcileResult:
        """Create, update or merge one external character.

        Args:
            owner_id: Local user the character belongs to
            extracted: Facets projected from the external record
            external_id: External key of the record
            merge_target_id: Local character to attach the record to, given
                when resolving a name conflict
            raw_document: Decoded external document, kept as an audit copy
            mode: FULL for imports, MECHANICAL for refresh-sync

        Raises:
            NameConflictError: If an unlinked local character has the same
                name and no merge target was given
            RecordNotFoundError: If the merge target does not exist, or a
                mechanical refresh finds no linked character
            PersistenceFailureError: If the write fails
        """
        linked = self.storage.find_by_external_id(owner_id, external_id)
        if linked is not None:
            if mode is SyncMode.MECHANICAL:
                apply_mechanics(linked, extracted)
            else:
                apply_full(linked, extracted)
            self._stamp(linked, raw_document)
            saved = self.storage.save_character(linked)
            logger.info(f"🔄 Updated {saved.name} ({saved.id}) from {external_id} [{mode.value}]")
            return ReconcileResult(action=SyncAction.UPDATED, character=saved)

        if mode is SyncMode.MECHANICAL:
            raise RecordNotFoundError(
                f"No local character is linked to {external_id}",
                {"external_id": external_id},
            )

        if merge_target_id is not None:
            target = self.storage.require_character(owner_id, merge_target_id)
            target.external_id = external_id
            apply_mechanics(target, extracted)
            self._stamp(target, raw_document)
            saved = self.storage.save_character(target)
            logger.info(f"🔀 Merged {external_id} into {saved.name} ({saved.id})")
            return ReconcileResult(action=SyncAction.MERGED, character=saved)

        existing = self.storage.find_unlinked_by_name(owner_id, extracted.name)
        if existing is not None:
            logger.info(f"Name conflict importing {external_id}: '{extracted.name}' matches {existing.id}")
            raise NameConflictError(
                ImportConflict(
                    external_id=external_id,
                    external_name=extracted.name,
                    existing=ConflictingCharacter(
                        id=existing.id,
                        name=existing.name,
                        level=existing.level,
                        character_class=existing.character_class,
                        is_linked=existing.is_linked,
                    ),
                )
            )

        character = LocalCharacter(owner_id=owner_id, external_id=external_id, **_identity_values(extracted))
        apply_mechanics(character, extracted)
        self._stamp(character, raw_document)
        saved = self.storage.save_character(character)
        logger.info(f"✨ Created {saved.name} ({saved.id}) from {external_id}")
        return ReconcileResult(action=SyncAction.CREATED, character=saved)
