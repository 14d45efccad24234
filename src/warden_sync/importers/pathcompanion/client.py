"""
HTTP client for the PathCompanion vault (PlayFab Client API).

Covers the three calls the sync engine needs: login, reading the keyed
user-data store, and writing to it. Every call is bounded by the configured
timeout; transport failures become ``ExternalServiceUnavailableError`` and
refused credentials or tickets become ``AuthenticationFailedError``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel
from shortuuid import random

from warden_sync.config import SyncConfig
from warden_sync.exceptions import (
    AuthenticationFailedError,
    ExternalServiceUnavailableError,
    PersistenceFailureError,
    RecordNotFoundError,
    SyncError,
)
from warden_sync.models import RawExternalRecord

from .schema import ACCOUNT_NOT_FOUND_CODE, ACCOUNT_NOT_FOUND_ERROR, AUTH_ERROR_NAMES

logger = logging.getLogger(__name__)


class LoginResult(BaseModel):
    playfab_id: str
    session_ticket: str


class VaultApiError(ExternalServiceUnavailableError):
    """The vault answered with an error envelope or an unusable response.

    Raised as is for 5xx and malformed responses, which are outages. Error
    envelopes are translated by the calling method: refusals become
    ``AuthenticationFailedError`` and other 4xx envelopes become the kind
    the call maps them to.

    Attributes:
        error: PlayFab error name, e.g. "AccountNotFound"
        error_code: PlayFab numeric error code
        status_code: HTTP status of the response
    """

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_code: int | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, {"error": error, "error_code": error_code, "status_code": status_code})
        self.error = error
        self.error_code = error_code
        self.status_code = status_code

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403) or self.error in AUTH_ERROR_NAMES

    @property
    def is_account_not_found(self) -> bool:
        return self.error == ACCOUNT_NOT_FOUND_ERROR or self.error_code == ACCOUNT_NOT_FOUND_CODE


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class PathCompanionClient:
    """Async client for the vault's login and user-data endpoints.

    Args:
        config: Sync settings (base URL, title id, timeout)
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        config: SyncConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def _post(
        self,
        endpoint: str,
        body: dict[str, Any],
        session_ticket: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if session_ticket:
            headers["X-Authorization"] = session_ticket

        try:
            async with httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.request_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(f"/Client/{endpoint}", json=body, headers=headers)
        except httpx.TimeoutException:
            raise ExternalServiceUnavailableError(
                "PathCompanion is not responding. Try again later."
            ) from None
        except httpx.RequestError as e:
            raise ExternalServiceUnavailableError(
                f"Failed to connect to PathCompanion: {e}"
            ) from None

        if response.status_code >= 500:
            raise VaultApiError(
                f"PathCompanion returned HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            raise VaultApiError(
                "Invalid response from PathCompanion: expected JSON",
                status_code=response.status_code,
            ) from None

        if not isinstance(payload, dict):
            raise VaultApiError(
                "Invalid response from PathCompanion: expected JSON object",
                status_code=response.status_code,
            )

        if response.status_code != 200 or payload.get("error"):
            raise VaultApiError(
                payload.get("errorMessage") or payload.get("error") or f"{endpoint} failed",
                error=payload.get("error"),
                error_code=payload.get("errorCode"),
                status_code=response.status_code,
            )

        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _login_result(data: dict[str, Any]) -> LoginResult:
        ticket = data.get("SessionTicket")
        if not ticket:
            raise AuthenticationFailedError("No session ticket returned from PathCompanion")
        return LoginResult(
            playfab_id=data.get("PlayFabId") or "",
            session_ticket=ticket,
        )

    async def login(self, username: str, password: str) -> LoginResult:
        """Log in by username, falling back to e-mail login when no such username exists.

        Raises:
            AuthenticationFailedError: If the credentials are rejected
            ExternalServiceUnavailableError: On network failure or timeout
        """
        common = {
            "TitleId": self._config.title_id,
            "Password": password,
            "InfoRequestParameters": {"GetUserAccountInfo": True},
        }
        try:
            data = await self._post("LoginWithPlayFab", {**common, "Username": username})
        except VaultApiError as e:
            if not e.is_account_not_found:
                raise self._as_auth_error(e) from None
            logger.info("Username login failed, trying email login...")
            try:
                data = await self._post("LoginWithEmailAddress", {**common, "Email": username})
            except VaultApiError as email_error:
                raise self._as_auth_error(email_error) from None

        result = self._login_result(data)
        logger.info(f"PathCompanion login successful for: {username}")
        return result

    async def login_anonymous(self) -> LoginResult:
        """Throwaway custom-id login used to read publicly shared records."""
        try:
            data = await self._post(
                "LoginWithCustomID",
                {
                    "TitleId": self._config.title_id,
                    "CustomId": f"warden_import_{random(length=12)}",
                    "CreateAccount": True,
                },
            )
        except VaultApiError as e:
            raise self._as_auth_error(e) from None
        return self._login_result(data)

    async def get_user_data(
        self,
        session_ticket: str,
        keys: list[str] | None = None,
        playfab_id: str | None = None,
    ) -> dict[str, RawExternalRecord]:
        """Read the keyed blob store.

        Args:
            session_ticket: Ticket from a login call
            keys: Only return these keys (all keys when None)
            playfab_id: Read another account's public data

        Returns:
            Map of key to raw record; absent keys are simply missing
        """
        body: dict[str, Any] = {}
        if keys is not None:
            body["Keys"] = keys
        if playfab_id is not None:
            body["PlayFabId"] = playfab_id

        try:
            data = await self._post("GetUserData", body, session_ticket=session_ticket)
        except VaultApiError as e:
            raise self._as_request_error(e, RecordNotFoundError) from None

        entries = data.get("Data") or {}
        records: dict[str, RawExternalRecord] = {}
        for key, entry in entries.items():
            if isinstance(entry, dict):
                records[key] = RawExternalRecord(
                    key=key,
                    value=entry.get("Value"),
                    last_updated=_parse_timestamp(entry.get("LastUpdated")),
                )
            else:
                records[key] = RawExternalRecord(key=key, value=entry)
        logger.debug(f"GetUserData returned {len(records)} keys")
        return records

    async def update_user_data(self, session_ticket: str, data: dict[str, str]) -> None:
        """Write string values into the keyed blob store."""
        try:
            await self._post("UpdateUserData", {"Data": data}, session_ticket=session_ticket)
        except VaultApiError as e:
            raise self._as_request_error(e, PersistenceFailureError) from None

    @staticmethod
    def _as_auth_error(error: VaultApiError) -> Exception:
        """Refusals become AuthenticationFailedError; anything else passes through."""
        if error.is_auth_error or error.status_code == 400:
            return AuthenticationFailedError(error.message, error.details)
        return error

    @staticmethod
    def _as_request_error(error: VaultApiError, rejected: type[SyncError]) -> SyncError:
        """Map an error from a user-data call onto its error kind.

        Args:
            error: The error raised by ``_post``
            rejected: Kind for non-auth 4xx envelopes, e.g. ``InvalidParams``
        """
        if error.is_auth_error:
            return AuthenticationFailedError(error.message, error.details)
        if error.status_code is not None and 400 <= error.status_code < 500:
            return rejected(error.message, error.details)
        return error
