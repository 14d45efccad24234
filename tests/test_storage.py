"""Tests for the JSON local store."""

import pytest

from warden_sync.exceptions import PersistenceFailureError, RecordNotFoundError
from warden_sync.models import AbilityScores, ExternalAccountLink, LocalCharacter
from warden_sync.storage import SyncStorage


def make_character(owner_id: str = "user-1", name: str = "Kyra", **kwargs) -> LocalCharacter:
    return LocalCharacter(owner_id=owner_id, name=name, **kwargs)


class TestCharacters:
    """Test character persistence and lookups."""

    def test_save_and_reload(self, storage: SyncStorage):
        """Characters survive a new storage instance."""
        character = make_character(
            abilities=AbilityScores(wisdom=18),
            spells={1: ["Bless"]},
            biography={"backstory": "Raised in Sandpoint's cathedral."},
            external_id="character1",
        )
        storage.save_character(character)

        reloaded = SyncStorage(storage.data_dir)
        loaded = reloaded.get_character(character.id)
        assert loaded is not None
        assert loaded.abilities.wisdom == 18
        assert loaded.spells == {1: ["Bless"]}
        assert loaded.biography["backstory"].startswith("Raised")
        assert reloaded.find_by_external_id("user-1", "character1").id == character.id

    def test_readers_return_copies(self, storage: SyncStorage):
        """Mutating a fetched character does not change the store."""
        character = storage.save_character(make_character())
        fetched = storage.get_character(character.id)
        fetched.name = "Changed"
        assert storage.get_character(character.id).name == "Kyra"

    def test_require_character_scoped_to_owner(self, storage: SyncStorage):
        """Another owner's character is reported as missing."""
        character = storage.save_character(make_character(owner_id="user-2"))
        with pytest.raises(RecordNotFoundError):
            storage.require_character("user-1", character.id)
        assert storage.require_character("user-2", character.id).id == character.id

    def test_require_missing_character(self, storage: SyncStorage):
        with pytest.raises(RecordNotFoundError) as exc_info:
            storage.require_character("user-1", "nope")
        assert exc_info.value.details["character_id"] == "nope"

    def test_list_characters_by_owner(self, storage: SyncStorage):
        storage.save_character(make_character(name="Kyra"))
        storage.save_character(make_character(name="Amiri"))
        storage.save_character(make_character(owner_id="user-2", name="Seoni"))
        names = sorted(c.name for c in storage.list_characters("user-1"))
        assert names == ["Amiri", "Kyra"]

    def test_external_id_unique_per_owner(self, storage: SyncStorage):
        """Two characters of one owner cannot carry the same external id."""
        storage.save_character(make_character(name="Kyra", external_id="character1"))
        with pytest.raises(PersistenceFailureError):
            storage.save_character(make_character(name="Amiri", external_id="character1"))

    def test_same_external_id_for_different_owners(self, storage: SyncStorage):
        """Slot names are per account, so owners do not collide."""
        storage.save_character(make_character(owner_id="user-1", external_id="character1"))
        storage.save_character(make_character(owner_id="user-2", external_id="character1"))
        assert storage.find_by_external_id("user-2", "character1").owner_id == "user-2"

    def test_relinking_frees_old_external_id(self, storage: SyncStorage):
        character = storage.save_character(make_character(external_id="character1"))
        character.external_id = "character2"
        storage.save_character(character)
        assert storage.find_by_external_id("user-1", "character1") is None
        assert storage.find_by_external_id("user-1", "character2").id == character.id

    def test_find_unlinked_by_name(self, storage: SyncStorage):
        """Name lookup is case-insensitive, exact, owner-scoped and skips linked characters."""
        unlinked = storage.save_character(make_character(name="Ezren"))
        storage.save_character(make_character(name="Merisiel", external_id="character1"))
        storage.save_character(make_character(owner_id="user-2", name="Lem"))

        assert storage.find_unlinked_by_name("user-1", "EZREN").id == unlinked.id
        assert storage.find_unlinked_by_name("user-1", "Ezren ") is None
        assert storage.find_unlinked_by_name("user-1", "merisiel") is None
        assert storage.find_unlinked_by_name("user-1", "Lem") is None

    def test_unreadable_file_is_skipped(self, storage: SyncStorage):
        storage.save_character(make_character())
        (storage.data_dir / "characters" / "broken.json").write_text("{not json", encoding="utf-8")
        reloaded = SyncStorage(storage.data_dir)
        assert len(reloaded.list_characters("user-1")) == 1


class TestAccountLinks:
    """Test account link persistence."""

    def test_missing_link(self, storage: SyncStorage):
        assert storage.get_account_link("user-1") is None

    def test_save_and_load_link(self, storage: SyncStorage):
        link = ExternalAccountLink(
            owner_id="user-1",
            username="kyra",
            encrypted_password="token",
            session_ticket="ticket",
        )
        storage.save_account_link(link)
        loaded = storage.get_account_link("user-1")
        assert loaded == link
        assert loaded.is_connected

    @pytest.mark.parametrize("owner_id", ["../../escaped", "a/b", "..", ".hidden", "", "c:\\x"])
    def test_unsafe_owner_id_rejected(self, storage: SyncStorage, owner_id: str):
        """Owner ids that could leave the accounts directory are refused."""
        link = ExternalAccountLink(owner_id=owner_id, username="kyra")
        with pytest.raises(PersistenceFailureError):
            storage.save_account_link(link)
        with pytest.raises(PersistenceFailureError):
            storage.get_account_link(owner_id)
        assert not (storage.data_dir.parent / "escaped.json").exists()
        assert list(storage.data_dir.rglob("*.json")) == []

    def test_email_style_owner_id_allowed(self, storage: SyncStorage):
        link = ExternalAccountLink(owner_id="kyra@example.com", username="kyra")
        storage.save_account_link(link)
        assert storage.get_account_link("kyra@example.com") == link
