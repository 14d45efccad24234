"""
Tests for the FastMCP tool surface.

Tools are called through ``<tool>.fn`` with the orchestrator's vault client
replaced by the in-memory fake.
"""

import importlib

import pytest

from warden_sync.importers.pathcompanion.decoder import encode_payload
from warden_sync.models import LocalCharacter
from warden_sync.sync import SyncOrchestrator


@pytest.fixture
def server(monkeypatch, tmp_path, sync_config, storage, fake_client, vault):
    """The main module, loaded against a temporary data directory."""
    monkeypatch.setenv("WARDEN_SYNC_DATA_DIR", str(tmp_path / "server_data"))
    monkeypatch.setenv("PATHCOMPANION_ENCRYPTION_KEY", "server-secret")
    import warden_sync.main as m
    m = importlib.reload(m)
    monkeypatch.setattr(
        m,
        "orchestrator",
        SyncOrchestrator(sync_config, storage=storage, client=fake_client, vault=vault),
    )
    return m


class TestServerSetup:
    """Test module-level configuration."""

    def test_config_from_environment(self, server, tmp_path):
        assert server.config.data_dir == (tmp_path / "server_data").resolve()
        assert server.config.encryption_key == "server-secret"
        assert (tmp_path / "server_data" / "characters").is_dir()


class TestAccountTools:
    """Test connect and disconnect tools."""

    @pytest.mark.asyncio
    async def test_connect(self, server, storage):
        result = await server.connect_pathcompanion.fn(
            user_id="user-1", username="valeros@example.com", password="hunter2"
        )
        assert "connected" in result
        assert storage.get_account_link("user-1").is_connected

    @pytest.mark.asyncio
    async def test_connect_bad_password(self, server):
        result = await server.connect_pathcompanion.fn(
            user_id="user-1", username="valeros@example.com", password="wrong"
        )
        assert result.startswith("❌")

    @pytest.mark.asyncio
    async def test_connect_rejects_path_like_user_id(self, server, tmp_path):
        result = await server.connect_pathcompanion.fn(
            user_id="../../escaped", username="valeros@example.com", password="hunter2"
        )
        assert result.startswith("❌")
        assert not any(tmp_path.rglob("escaped.json"))

    def test_disconnect(self, server, storage, connected_account):
        result = server.disconnect_pathcompanion.fn(user_id="user-1")
        assert "disconnected" in result
        assert not storage.get_account_link("user-1").is_connected


class TestImportTools:
    """Test import, sync and listing tools."""

    @pytest.mark.asyncio
    async def test_not_connected_message(self, server):
        result = await server.import_all_pathcompanion_characters.fn(user_id="user-1")
        assert result.startswith("❌")
        assert "not connected" in result

    @pytest.mark.asyncio
    async def test_import_and_sync(self, server, fake_client, connected_account, character_document):
        fake_client.records["character1"] = encode_payload(character_document)

        result = await server.import_pathcompanion_character.fn(user_id="user-1", external_id="character1")
        assert "New character imported from PathCompanion" in result
        assert '"modifiers"' in result

        character_id = server.orchestrator.storage.find_by_external_id("user-1", "character1").id
        result = await server.sync_pathcompanion_character.fn(user_id="user-1", character_id=character_id)
        assert "Character synced from PathCompanion" in result

    @pytest.mark.asyncio
    async def test_conflict_message_names_existing_character(self, server, storage, fake_client, connected_account, character_document):
        local = storage.save_character(LocalCharacter(owner_id="user-1", name="Valeros"))
        fake_client.records["character1"] = encode_payload(character_document)

        result = await server.import_pathcompanion_character.fn(user_id="user-1", external_id="character1")
        assert "already exists" in result
        assert local.id in result

    @pytest.mark.asyncio
    async def test_import_all_report(self, server, fake_client, connected_account, character_document):
        fake_client.records["character1"] = encode_payload(character_document)
        result = await server.import_all_pathcompanion_characters.fn(user_id="user-1")
        assert "Imported 1 characters" in result

    @pytest.mark.asyncio
    async def test_list(self, server, fake_client, connected_account, character_document):
        fake_client.records["character1"] = encode_payload(character_document)
        fake_client.records["gm1"] = encode_payload({"campaignName": "Runelords"})
        result = await server.list_pathcompanion_characters.fn(user_id="user-1")
        assert "Valeros (character1)" in result
        assert "Runelords (gm1)" in result


class TestExportAndLinkTools:
    """Test export, link and unlink tools."""

    @pytest.mark.asyncio
    async def test_export_link_unlink(self, server, storage, fake_client, connected_account, character_document):
        local = storage.save_character(LocalCharacter(owner_id="user-1", name="Ezren"))

        result = await server.export_pathcompanion_character.fn(user_id="user-1", character_id=local.id)
        assert "character1" in result

        result = server.unlink_pathcompanion_character.fn(user_id="user-1", character_id=local.id)
        assert "Unlinked Ezren" in result

        result = await server.link_pathcompanion_character.fn(
            user_id="user-1", character_id=local.id, character_key="character1"
        )
        assert "Successfully linked Ezren" in result

    @pytest.mark.asyncio
    async def test_unknown_character(self, server, connected_account):
        result = await server.export_pathcompanion_character.fn(user_id="user-1", character_id="missing")
        assert result.startswith("❌")
