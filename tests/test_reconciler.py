"""Tests for the reconciler."""

import pytest

from warden_sync.exceptions import ErrorKind, NameConflictError, RecordNotFoundError
from warden_sync.importers.base import SyncAction, SyncMode
from warden_sync.importers.pathcompanion.extractors import extract_character
from warden_sync.models import AbilityScores, ExtractedCharacter, LocalCharacter
from warden_sync.reconciler import Reconciler


@pytest.fixture
def reconciler(storage) -> Reconciler:
    return Reconciler(storage)


@pytest.fixture
def extracted(character_document) -> ExtractedCharacter:
    return extract_character(character_document, "character1")


class TestCreateAndUpdate:
    """Test creation and idempotent re-import."""

    def test_create_new_character(self, reconciler, storage, extracted, character_document):
        result = reconciler.reconcile("user-1", extracted, "character1", raw_document=character_document)

        assert result.action == SyncAction.CREATED
        character = result.character
        assert character.name == "Valeros"
        assert character.external_id == "character1"
        assert character.level == 5
        assert character.character_class == "Fighter / Rogue"
        assert character.abilities.strength == 18
        assert character.race == "Human"
        assert character.avatar_url == "https://example.com/valeros.png"
        assert character.external_raw_data == character_document
        assert character.last_synced is not None
        assert storage.get_character(character.id) is not None

    def test_reimport_is_idempotent(self, reconciler, storage, extracted):
        """The same external id updates the same record, even after a local rename."""
        created = reconciler.reconcile("user-1", extracted, "character1").character

        renamed = storage.get_character(created.id)
        renamed.name = "Valeros the Bold"
        storage.save_character(renamed)

        result = reconciler.reconcile("user-1", extracted, "character1")
        assert result.action == SyncAction.UPDATED
        assert result.character.id == created.id
        assert len(storage.list_characters("user-1")) == 1

    def test_full_update_overwrites_identity_but_not_biography(self, reconciler, storage, extracted):
        created = reconciler.reconcile("user-1", extracted, "character1").character
        edited = storage.get_character(created.id)
        edited.name = "Local Name"
        edited.biography = {"backstory": "Written locally."}
        storage.save_character(edited)

        result = reconciler.reconcile("user-1", extracted, "character1")
        assert result.character.name == "Valeros"
        assert result.character.biography == {"backstory": "Written locally."}

    def test_owners_are_isolated(self, reconciler, storage, extracted):
        """The same slot imported by two users yields two records."""
        reconciler.reconcile("user-1", extracted, "character1")
        result = reconciler.reconcile("user-2", extracted, "character1")
        assert result.action == SyncAction.CREATED
        assert len(storage.list_characters("user-1")) == 1
        assert len(storage.list_characters("user-2")) == 1


class TestConflictAndMerge:
    """Test name conflicts and their resolution."""

    @pytest.fixture
    def local_valeros(self, storage) -> LocalCharacter:
        return storage.save_character(
            LocalCharacter(
                owner_id="user-1",
                name="valeros",
                level=2,
                character_class="Fighter",
                abilities=AbilityScores(strength=12),
                race="Half-Orc",
                biography={"backstory": "Tavern brawler from Absalom."},
            )
        )

    def test_name_match_raises_conflict_without_writing(self, reconciler, storage, extracted, local_valeros):
        with pytest.raises(NameConflictError) as exc_info:
            reconciler.reconcile("user-1", extracted, "character1")

        error = exc_info.value
        assert error.kind == ErrorKind.NAME_CONFLICT
        assert error.conflict.external_id == "character1"
        assert error.conflict.existing.id == local_valeros.id
        assert error.conflict.existing.is_linked is False
        assert 'A character named "Valeros" already exists' in error.message

        assert storage.list_characters("user-1") == [storage.get_character(local_valeros.id)]
        assert storage.get_character(local_valeros.id).external_id is None

    def test_linked_character_with_same_name_does_not_conflict(self, reconciler, storage, extracted):
        storage.save_character(LocalCharacter(owner_id="user-1", name="Valeros", external_id="character9"))
        result = reconciler.reconcile("user-1", extracted, "character1")
        assert result.action == SyncAction.CREATED

    def test_other_owner_does_not_conflict(self, reconciler, storage, extracted):
        storage.save_character(LocalCharacter(owner_id="user-2", name="Valeros"))
        result = reconciler.reconcile("user-1", extracted, "character1")
        assert result.action == SyncAction.CREATED

    def test_merge_overwrites_mechanics_only(self, reconciler, storage, extracted, local_valeros):
        """Merging attaches the external id and keeps name, identity and biography."""
        result = reconciler.reconcile("user-1", extracted, "character1", merge_target_id=local_valeros.id)

        assert result.action == SyncAction.MERGED
        merged = result.character
        assert merged.id == local_valeros.id
        assert merged.external_id == "character1"
        assert merged.level == 5
        assert merged.abilities.strength == 18
        assert merged.character_class == "Fighter / Rogue"
        assert merged.name == "valeros"
        assert merged.race == "Half-Orc"
        assert merged.biography == {"backstory": "Tavern brawler from Absalom."}
        assert merged.avatar_url == "https://example.com/valeros.png"

    def test_merge_keeps_local_avatar(self, reconciler, storage, extracted, local_valeros):
        local_valeros.avatar_url = "https://example.com/local.png"
        storage.save_character(local_valeros)
        result = reconciler.reconcile("user-1", extracted, "character1", merge_target_id=local_valeros.id)
        assert result.character.avatar_url == "https://example.com/local.png"

    def test_merge_then_reimport_updates(self, reconciler, storage, extracted, local_valeros):
        reconciler.reconcile("user-1", extracted, "character1", merge_target_id=local_valeros.id)
        result = reconciler.reconcile("user-1", extracted, "character1")
        assert result.action == SyncAction.UPDATED
        assert result.character.id == local_valeros.id

    def test_merge_into_other_owners_character(self, reconciler, storage, extracted):
        foreign = storage.save_character(LocalCharacter(owner_id="user-2", name="Valeros"))
        with pytest.raises(RecordNotFoundError):
            reconciler.reconcile("user-1", extracted, "character1", merge_target_id=foreign.id)


class TestMechanicalMode:
    """Test the mechanics-only overlay used by refresh-sync."""

    def test_mechanical_update_preserves_narrative(self, reconciler, storage, extracted):
        created = reconciler.reconcile("user-1", extracted, "character1").character
        edited = storage.get_character(created.id)
        edited.name = "Sir Valeros"
        edited.race = "Aasimar"
        edited.avatar_url = "https://example.com/local.png"
        edited.biography = {"personality": "Stubborn."}
        storage.save_character(edited)

        renamed = extracted.model_copy(update={"name": "Somebody Else", "level": 6})
        result = reconciler.reconcile("user-1", renamed, "character1", mode=SyncMode.MECHANICAL)

        assert result.action == SyncAction.UPDATED
        assert result.character.level == 6
        assert result.character.name == "Sir Valeros"
        assert result.character.race == "Aasimar"
        assert result.character.avatar_url == "https://example.com/local.png"
        assert result.character.biography == {"personality": "Stubborn."}

    def test_mechanical_update_requires_link(self, reconciler, extracted):
        with pytest.raises(RecordNotFoundError):
            reconciler.reconcile("user-1", extracted, "character1", mode=SyncMode.MECHANICAL)
