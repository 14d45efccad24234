"""
Pytest configuration and fixtures for warden-sync tests.
"""

import json
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add src directory to Python path to allow importing warden_sync
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from warden_sync.config import SyncConfig
from warden_sync.exceptions import AuthenticationFailedError
from warden_sync.importers.pathcompanion.client import LoginResult
from warden_sync.models import ExternalAccountLink, RawExternalRecord
from warden_sync.storage import SyncStorage
from warden_sync.sync import SyncOrchestrator
from warden_sync.vault import CredentialVault

FIXTURES_DIR = Path(__file__).parent / "fixtures"

OWNER_ID = "user-1"
USERNAME = "valeros@example.com"
PASSWORD = "hunter2"
SECRET = "test-encryption-secret"


class FakeVaultClient:
    """In-memory stand-in for PathCompanionClient.

    ``records`` maps slot keys to stored (base64) values. ``shared`` maps a
    PlayFab account id to that account's publicly readable records.
    """

    def __init__(self, password: str = PASSWORD):
        self.password = password
        self.records: dict[str, str] = {}
        self.shared: dict[str, dict[str, str]] = {}
        self.valid_tickets: set[str] = set()
        self.errors: dict[str, Exception] = {}
        self.login_calls = 0
        self.anonymous_logins = 0
        self.get_calls: list[list[str] | None] = []
        self.updates: list[dict[str, str]] = []

    async def login(self, username: str, password: str) -> LoginResult:
        self.login_calls += 1
        if password != self.password:
            raise AuthenticationFailedError("Invalid username or password")
        ticket = f"ticket-{self.login_calls}"
        self.valid_tickets.add(ticket)
        return LoginResult(playfab_id="PF-OWNER", session_ticket=ticket)

    async def login_anonymous(self) -> LoginResult:
        self.anonymous_logins += 1
        ticket = f"anon-{self.anonymous_logins}"
        self.valid_tickets.add(ticket)
        return LoginResult(playfab_id="PF-ANON", session_ticket=ticket)

    def _check(self, ticket: str) -> None:
        if ticket not in self.valid_tickets:
            raise AuthenticationFailedError("Session ticket expired")

    async def get_user_data(
        self,
        session_ticket: str,
        keys: list[str] | None = None,
        playfab_id: str | None = None,
    ) -> dict[str, RawExternalRecord]:
        self.get_calls.append(keys)
        self._check(session_ticket)
        for key in keys or []:
            if key in self.errors:
                raise self.errors[key]
        source = self.shared.get(playfab_id, {}) if playfab_id else self.records
        wanted = list(source) if keys is None else keys
        return {
            key: RawExternalRecord(key=key, value=source[key], last_updated=datetime(2024, 5, 1, 12, 0))
            for key in wanted
            if key in source
        }

    async def update_user_data(self, session_ticket: str, data: dict[str, str]) -> None:
        self._check(session_ticket)
        self.updates.append(dict(data))
        self.records.update(data)


@pytest.fixture
def character_document() -> dict:
    """A decoded PathCompanion player record."""
    return json.loads((FIXTURES_DIR / "pathcompanion_character.json").read_text(encoding="utf-8"))


@pytest.fixture
def sync_config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(data_dir=tmp_path / "warden_data", encryption_key=SECRET)


@pytest.fixture
def storage(sync_config: SyncConfig) -> SyncStorage:
    return SyncStorage(data_dir=sync_config.data_dir)


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(SECRET)


@pytest.fixture
def fake_client() -> FakeVaultClient:
    return FakeVaultClient()


@pytest.fixture
def connected_account(storage: SyncStorage, vault: CredentialVault) -> ExternalAccountLink:
    """An account link with stored credentials and no cached ticket."""
    link = ExternalAccountLink(
        owner_id=OWNER_ID,
        username=USERNAME,
        encrypted_password=vault.encrypt(PASSWORD),
        playfab_id="PF-OWNER",
        connected_at=datetime(2024, 5, 1, 12, 0),
    )
    return storage.save_account_link(link)


@pytest.fixture
def orchestrator(
    sync_config: SyncConfig,
    storage: SyncStorage,
    fake_client: FakeVaultClient,
    vault: CredentialVault,
) -> SyncOrchestrator:
    return SyncOrchestrator(sync_config, storage=storage, client=fake_client, vault=vault)
