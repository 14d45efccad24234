"""
Data models for the PathCompanion sync engine.

Facet models are what the field extractors produce; ``LocalCharacter`` is
the durable record they are reconciled into.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field
from shortuuid import random


ABILITY_NAMES: tuple[str, ...] = (
    "strength",
    "dexterity",
    "constitution",
    "intelligence",
    "wisdom",
    "charisma",
)


def calculate_modifier(score: int) -> int:
    """Ability modifier, identical for D&D and Pathfinder."""
    return (score - 10) // 2


class AbilityScores(BaseModel):
    """The six ability scores. Missing scores default to 10."""
    strength: int = 10
    dexterity: int = 10
    constitution: int = 10
    intelligence: int = 10
    wisdom: int = 10
    charisma: int = 10

    def modifiers(self) -> dict[str, int]:
        """Map each ability name to its modifier."""
        return {name: calculate_modifier(getattr(self, name)) for name in ABILITY_NAMES}


class CombatStats(BaseModel):
    """Hit points, armor class and attack numbers."""
    current_hp: int = 0
    max_hp: int = 0
    temp_hp: int = 0
    armor_class: int = 10
    touch_ac: int = 10
    flat_footed_ac: int = 10
    initiative: int = 0
    speed: int = 30
    base_attack_bonus: int = 0
    cmb: int = 0
    cmd: int = 10


class SavingThrows(BaseModel):
    fortitude: int = 0
    reflex: int = 0
    will: int = 0


class Skill(BaseModel):
    ranks: int = 0
    total: int = 0
    misc: int = 0
    class_skill: bool = False


class Weapon(BaseModel):
    name: str = "Unknown Weapon"
    attack_bonus: int = 0
    damage: str = "1d6"
    critical: str = "×2"
    range: int = 0
    type: str = "S"
    notes: str = ""


class Armor(BaseModel):
    name: str = "No Armor"
    ac_bonus: int = 0
    max_dex: int = 99
    check_penalty: int = 0
    spell_failure: int = 0
    type: str = "light"


class BasicInfo(BaseModel):
    """Identity strings shown on the sheet header."""
    race: str = ""
    alignment: str = ""
    deity: str = ""
    size: str = "Medium"
    avatar_url: str | None = None
    character_class: str = ""


class DefensiveAbilities(BaseModel):
    damage_reduction: list[Any] = Field(default_factory=list)
    spell_resistance: int = 0
    resistances: dict[str, Any] = Field(default_factory=dict)
    immunities: list[Any] = Field(default_factory=list)


class CasterInfo(BaseModel):
    caster_level: int = 0
    spell_dc_base: int = 10
    concentration: int = 0


class ExtractedCharacter(BaseModel):
    """Typed facets projected out of one decoded external record.

    Transient: recomputed on every sync and never persisted as-is.
    """
    name: str
    level: int = 1
    abilities: AbilityScores = Field(default_factory=AbilityScores)
    combat: CombatStats = Field(default_factory=CombatStats)
    saves: SavingThrows = Field(default_factory=SavingThrows)
    skills: dict[str, Skill] = Field(default_factory=dict)
    feats: list[str] = Field(default_factory=list)
    special_abilities: list[str] = Field(default_factory=list)
    weapons: list[Weapon] = Field(default_factory=list)
    armor: Armor = Field(default_factory=Armor)
    spells: dict[int, list[str]] = Field(default_factory=dict)
    basic: BasicInfo = Field(default_factory=BasicInfo)
    defenses: DefensiveAbilities = Field(default_factory=DefensiveAbilities)
    caster: CasterInfo = Field(default_factory=CasterInfo)


class RawExternalRecord(BaseModel):
    """One keyed value as returned by the external blob store.

    ``value`` is normally a base64 string, possibly deflate-compressed.
    """
    key: str
    value: Any = None
    last_updated: datetime | None = None


class ExternalAccountLink(BaseModel):
    """A local user's connection to their external vault account.

    The session ticket has no expiry field: validity is discovered by
    probing it. Disconnecting nulls every field but the owner.
    """
    owner_id: str
    username: str | None = None
    encrypted_password: str | None = None
    session_ticket: str | None = None
    playfab_id: str | None = None
    connected_at: datetime | None = None

    @property
    def is_connected(self) -> bool:
        return bool(self.username and self.encrypted_password)


# Mechanical facets are overwritten by every kind of sync.
MECHANICAL_FIELDS: tuple[str, ...] = (
    "level",
    "character_class",
    "abilities",
    "combat",
    "saves",
    "skills",
    "feats",
    "special_abilities",
    "weapons",
    "armor",
    "spells",
    "defenses",
    "caster",
)

# Identity fields come from the external record but are only replaced on a
# full import of an already-linked character or on creation.
IDENTITY_FIELDS: tuple[str, ...] = (
    "name",
    "race",
    "alignment",
    "deity",
    "size",
    "avatar_url",
)


class LocalCharacter(BaseModel):
    """The durable local character record.

    ``biography`` holds locally-authored narrative fields; sync never
    touches it.
    """
    id: str = Field(default_factory=lambda: random(length=8))
    owner_id: str
    name: str

    # Mechanics
    level: int = 1
    character_class: str = ""
    abilities: AbilityScores = Field(default_factory=AbilityScores)
    combat: CombatStats = Field(default_factory=CombatStats)
    saves: SavingThrows = Field(default_factory=SavingThrows)
    skills: dict[str, Skill] = Field(default_factory=dict)
    feats: list[str] = Field(default_factory=list)
    special_abilities: list[str] = Field(default_factory=list)
    weapons: list[Weapon] = Field(default_factory=list)
    armor: Armor = Field(default_factory=Armor)
    spells: dict[int, list[str]] = Field(default_factory=dict)
    defenses: DefensiveAbilities = Field(default_factory=DefensiveAbilities)
    caster: CasterInfo = Field(default_factory=CasterInfo)

    # Identity
    race: str = ""
    alignment: str = ""
    deity: str = ""
    size: str = "Medium"
    avatar_url: str | None = None

    # Narrative
    biography: dict[str, str] = Field(default_factory=dict)

    # External link
    external_id: str | None = None
    external_raw_data: dict[str, Any] | None = Field(
        default=None,
        description="Audit copy of the last decoded external document, kept for support only",
    )
    last_synced: datetime | None = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_linked(self) -> bool:
        return self.external_id is not None

    def with_modifiers(self) -> dict[str, Any]:
        """Serialize with computed ability modifiers attached."""
        data = self.model_dump(mode="json", exclude={"external_raw_data"})
        data["modifiers"] = self.abilities.modifiers()
        return data
