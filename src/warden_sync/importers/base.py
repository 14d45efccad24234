"""
Result models for the character import/export system.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from ..models import ExtractedCharacter, LocalCharacter


class SyncAction(str, Enum):
    """What a reconciliation did to the local store."""
    CREATED = "created"
    UPDATED = "updated"
    MERGED = "merged"


class SyncMode(str, Enum):
    """How much of a linked record an update may overwrite."""
    FULL = "full"              # mechanics + identity (import)
    MECHANICAL = "mechanical"  # mechanics only (refresh-sync)


ACTION_MESSAGES: dict[SyncAction, str] = {
    SyncAction.CREATED: "New character imported from PathCompanion",
    SyncAction.UPDATED: "Character synced from PathCompanion",
    SyncAction.MERGED: "PathCompanion data merged into existing character",
}


class ConflictingCharacter(BaseModel):
    """Summary of the local record an import collided with."""
    id: str
    name: str
    level: int
    character_class: str
    is_linked: bool


class ImportConflict(BaseModel):
    """A decision point surfaced to the caller, never persisted.

    Resolve by resubmitting the import with ``merge_target_id`` set to
    ``existing.id``.
    """
    external_id: str = Field(description="External key being imported")
    external_name: str = Field(description="Display name extracted from the external record")
    existing: ConflictingCharacter

    @property
    def message(self) -> str:
        return (
            f'A character named "{self.external_name}" already exists. '
            "Would you like to merge the PathCompanion data into it?"
        )


class ReconcileResult(BaseModel):
    """Outcome of a successful import, merge, sync or link."""
    action: SyncAction
    character: LocalCharacter

    @property
    def message(self) -> str:
        return ACTION_MESSAGES[self.action]

    def to_payload(self) -> dict[str, Any]:
        """Character with modifiers plus an ``_meta`` action tag."""
        payload = self.character.with_modifiers()
        payload["_meta"] = {"action": self.action.value, "message": self.message}
        return payload


class ExportResult(BaseModel):
    """Outcome of exporting a local character to a new external slot."""
    external_id: str
    character: LocalCharacter
    action: SyncAction = SyncAction.UPDATED

    @property
    def message(self) -> str:
        return f"Character exported successfully to PathCompanion as {self.external_id}"


class BatchItemOutcome(BaseModel):
    """Per-item result of import-all."""
    external_id: str
    name: str | None = None
    action: SyncAction | None = None
    error_kind: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.action is not None

    @property
    def status(self) -> str:
        """``created``, ``updated`` or ``failed:<reason>``."""
        if self.action is not None:
            return self.action.value
        return f"failed:{self.reason or 'Unknown error'}"


class ImportAllReport(BaseModel):
    """Collected outcomes of one import-all run, in processing order."""
    outcomes: list[BatchItemOutcome] = Field(default_factory=list)
    truncated: bool = Field(
        default=False,
        description="True when more player records existed than the batch limit",
    )

    @property
    def succeeded(self) -> list[BatchItemOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[BatchItemOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def message(self) -> str:
        return f"Imported {len(self.succeeded)} characters"

    def format(self) -> str:
        """Format the report as a readable text block.

        Returns:
            Multi-line formatted string suitable for a tool response.
        """
        lines: list[str] = [f"PathCompanion Import - {self.message}"]
        if self.failed:
            lines.append(f"Failed: {len(self.failed)}")
        lines.append("")

        for outcome in self.outcomes:
            label = outcome.name or outcome.external_id
            if outcome.succeeded:
                lines.append(f"  ✓ {outcome.external_id}: {label} ({outcome.status})")
            else:
                lines.append(f"  ✗ {outcome.external_id}: {outcome.reason}")

        if self.truncated:
            lines.append("")
            lines.append("  Only the first records were processed; run again after cleaning up slots.")

        return "\n".join(lines).rstrip()


class ExternalCharacterSummary(BaseModel):
    id: str
    name: str
    last_modified: datetime | None = None


class ExternalCharacterListing(BaseModel):
    """External records split into player characters and campaign/GM records."""
    characters: list[ExternalCharacterSummary] = Field(default_factory=list)
    campaigns: list[ExternalCharacterSummary] = Field(default_factory=list)


class SharedCharacterPreview(BaseModel):
    """A publicly shared external character, decoded but not stored."""
    account: str
    external_id: str
    character: ExtractedCharacter

    def to_payload(self) -> dict[str, Any]:
        payload = self.character.model_dump(mode="json")
        payload["modifiers"] = self.character.abilities.modifiers()
        payload["_meta"] = {"account": self.account, "external_id": self.external_id}
        return payload
