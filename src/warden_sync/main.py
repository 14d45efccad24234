"""
Warden Sync MCP Server
Exposes PathCompanion account linking, character import, export and
refresh-sync as FastMCP tools.
"""

import json
import logging
from typing import Annotated

from fastmcp import FastMCP
from pydantic import Field

from .config import load_config
from .exceptions import NameConflictError, SyncError
from .storage import SyncStorage
from .sync import SyncOrchestrator

logger = logging.getLogger("warden-sync")

logging.basicConfig(
    level=logging.DEBUG,
    )

config = load_config()

# Initialize storage, orchestrator and FastMCP server
storage = SyncStorage(data_dir=config.data_dir)
logger.debug("✅ Storage layer initialized")

orchestrator = SyncOrchestrator(config, storage=storage)

mcp = FastMCP(
    name="warden-sync"
)

logger.debug("✅ Server initialized, registering tools")


def _error(e: SyncError) -> str:
    if isinstance(e, NameConflictError):
        existing = e.conflict.existing
        return (
            f"⚠️ {e.message}\n"
            f"Existing character: {existing.name} (id: {existing.id}, level {existing.level})\n"
            f"Re-run the import with merge_target_id=\"{existing.id}\" to merge."
        )
    return f"❌ {e.message}"


# ----------------------------------------------------------------------
# Account
# ----------------------------------------------------------------------

@mcp.tool
async def connect_pathcompanion(
    user_id: Annotated[str, Field(description="Local user id")],
    username: Annotated[str, Field(description="PathCompanion username or e-mail")],
    password: Annotated[str, Field(description="PathCompanion password")],
) -> str:
    """Connect a PathCompanion account. The password is stored encrypted."""
    try:
        link = await orchestrator.connect_account(user_id, username, password)
    except SyncError as e:
        return _error(e)
    return f"🔗 PathCompanion account connected: {link.username}"


@mcp.tool
def disconnect_pathcompanion(
    user_id: Annotated[str, Field(description="Local user id")],
) -> str:
    """Disconnect the PathCompanion account and forget the stored credentials."""
    try:
        orchestrator.disconnect_account(user_id)
    except SyncError as e:
        return _error(e)
    return "PathCompanion account disconnected successfully"


@mcp.tool
async def list_pathcompanion_characters(
    user_id: Annotated[str, Field(description="Local user id")],
) -> str:
    """List characters and campaigns stored in the connected PathCompanion account."""
    try:
        listing = await orchestrator.list_external_characters(user_id)
    except SyncError as e:
        return _error(e)

    lines = ["**PathCompanion Characters:**"]
    lines.extend(f"• {c.name} ({c.id})" for c in listing.characters)
    if not listing.characters:
        lines.append("  (none)")
    if listing.campaigns:
        lines.append("")
        lines.append("**Campaigns / GM records:**")
        lines.extend(f"• {c.name} ({c.id})" for c in listing.campaigns)
    return "\n".join(lines)


# ----------------------------------------------------------------------
# Import / sync / export
# ----------------------------------------------------------------------

@mcp.tool
async def import_pathcompanion_character(
    user_id: Annotated[str, Field(description="Local user id")],
    external_id: Annotated[str, Field(description="PathCompanion character id, e.g. character1")],
    merge_target_id: Annotated[str | None, Field(description="Local character to merge into when resolving a name conflict")] = None,
) -> str:
    """Import one PathCompanion character, or merge it into an existing local character."""
    try:
        result = await orchestrator.import_one(user_id, external_id, merge_target_id)
    except SyncError as e:
        return _error(e)
    return f"✅ {result.message}\n\n{json.dumps(result.to_payload(), indent=2)}"


@mcp.tool
async def import_all_pathcompanion_characters(
    user_id: Annotated[str, Field(description="Local user id")],
) -> str:
    """Import every player character from the connected PathCompanion account."""
    try:
        report = await orchestrator.import_all(user_id)
    except SyncError as e:
        return _error(e)
    return report.format()


@mcp.tool
async def sync_pathcompanion_character(
    user_id: Annotated[str, Field(description="Local user id")],
    character_id: Annotated[str, Field(description="Local character id")],
) -> str:
    """Refresh a linked character's mechanics from PathCompanion. Name and biography are kept."""
    try:
        result = await orchestrator.refresh_sync(user_id, character_id)
    except SyncError as e:
        return _error(e)
    return f"🔄 {result.message}: {result.character.name} (level {result.character.level})"


@mcp.tool
async def export_pathcompanion_character(
    user_id: Annotated[str, Field(description="Local user id")],
    character_id: Annotated[str, Field(description="Local character id")],
) -> str:
    """Export a local character to a free PathCompanion slot and link it."""
    try:
        result = await orchestrator.export_one(user_id, character_id)
    except SyncError as e:
        return _error(e)
    return f"📤 {result.message}"


# ----------------------------------------------------------------------
# Linking
# ----------------------------------------------------------------------

@mcp.tool
async def link_pathcompanion_character(
    user_id: Annotated[str, Field(description="Local user id")],
    character_id: Annotated[str, Field(description="Local character id")],
    character_key: Annotated[str, Field(description="PathCompanion character id or share key")],
) -> str:
    """Link an existing local character to a PathCompanion character without overwriting it."""
    try:
        result = await orchestrator.link_existing(user_id, character_id, character_key)
    except SyncError as e:
        return _error(e)
    return f"🔗 Successfully linked {result.character.name} to PathCompanion character {result.character.external_id}"


@mcp.tool
def unlink_pathcompanion_character(
    user_id: Annotated[str, Field(description="Local user id")],
    character_id: Annotated[str, Field(description="Local character id")],
) -> str:
    """Remove a character's PathCompanion link. Its data is kept."""
    try:
        character = orchestrator.unlink(user_id, character_id)
    except SyncError as e:
        return _error(e)
    return f"Unlinked {character.name} from PathCompanion"


@mcp.tool
async def preview_shared_pathcompanion_character(
    share_key: Annotated[str, Field(description="PathCompanion share key")],
) -> str:
    """Show a publicly shared PathCompanion character without importing it."""
    try:
        preview = await orchestrator.preview_shared_character(share_key)
    except SyncError as e:
        return _error(e)
    return f"**{preview.character.name}**\n\n{json.dumps(preview.to_payload(), indent=2)}"


def run() -> None:
    """Main entry point for the Warden Sync MCP Server."""
    mcp.run()

if __name__ == "__main__":
    run()
