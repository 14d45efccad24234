"""
PathCompanion record constants and field-candidate tables.

PathCompanion keeps no fixed schema: the same value can live under several
names depending on record kind and app version. Every sub-value the
extractors read is described here as an ordered tuple of candidate paths;
the first present candidate wins. Keeping the order in data rather than in
branching code lets it be checked on its own.
"""

import re

# A path into the decoded JSON document, one key per nesting level.
FieldPath = tuple[str, ...]

# ---------------------------------------------------------------------------
# Slot naming
# ---------------------------------------------------------------------------

# character1, character2, ... are player characters
PLAYER_SLOT_PATTERN = re.compile(r"^character(\d+)$")

# gm1.., shared1.. are campaign / GM / shared records
CAMPAIGN_SLOT_PATTERN = re.compile(r"^(?:gm|shared)(\d+)$", re.IGNORECASE)

EXPORT_SLOT_PREFIX = "character"

# Key read when probing whether a session ticket is still accepted
TICKET_PROBE_KEY = "character1"

# ---------------------------------------------------------------------------
# Vault API errors
# ---------------------------------------------------------------------------

ACCOUNT_NOT_FOUND_ERROR = "AccountNotFound"
ACCOUNT_NOT_FOUND_CODE = 1001

# Error names meaning the ticket or credentials were refused
AUTH_ERROR_NAMES = frozenset({
    "NotAuthenticated",
    "NotAuthorized",
    "InvalidSessionTicket",
    "ExpiredAuthToken",
    "InvalidUsernameOrPassword",
    "InvalidEmailOrPassword",
    "InvalidEmailAddress",
    "InvalidUsername",
    "InvalidPassword",
    "AccountNotFound",
    "AccountBanned",
})

# ---------------------------------------------------------------------------
# Display name
# ---------------------------------------------------------------------------

# Player records, GM/campaign records and shared records each name themselves
# differently. The external key is the final fallback.
DISPLAY_NAME_CANDIDATES: tuple[FieldPath, ...] = (
    ("characterInfo", "characterName"),
    ("campaignName",),
    ("name",),
    ("characterName",),
    ("Name",),
    ("characterInfo", "name"),
    ("basicInfo", "name"),
)

# ---------------------------------------------------------------------------
# Numeric coercion
# ---------------------------------------------------------------------------

# An object standing in for a number is read through these keys, in order.
NUMERIC_SUBKEYS: tuple[str, ...] = ("total", "permanentTotal", "value")

# ---------------------------------------------------------------------------
# Level
# ---------------------------------------------------------------------------

# Sparse per-level history keyed by level number: {"1": {...}, "3": {...}}
LEVEL_HISTORY_PATH: FieldPath = ("characterInfo", "levelInfo")

LEVEL_CANDIDATES: tuple[FieldPath, ...] = (
    ("level",),
    ("characterInfo", "level"),
    ("characterLevel",),
)

# ---------------------------------------------------------------------------
# Abilities
# ---------------------------------------------------------------------------

ABILITY_CONTAINER_CANDIDATES: tuple[FieldPath, ...] = (
    ("abilities",),
    ("characterInfo", "stats"),
    ("stats",),
    ("abilityScores",),
)

ABILITY_KEY_CANDIDATES: dict[str, tuple[str, ...]] = {
    "strength": ("strength", "str", "Strength"),
    "dexterity": ("dexterity", "dex", "Dexterity"),
    "constitution": ("constitution", "con", "Constitution"),
    "intelligence": ("intelligence", "int", "Intelligence"),
    "wisdom": ("wisdom", "wis", "Wisdom"),
    "charisma": ("charisma", "cha", "Charisma"),
}

# ---------------------------------------------------------------------------
# Combat
# ---------------------------------------------------------------------------

COMBAT_CANDIDATES: dict[str, tuple[FieldPath, ...]] = {
    "current_hp": (("defense", "hp", "current"),),
    "max_hp": (("defense", "hp", "total"),),
    "temp_hp": (("defense", "hp", "temp"),),
    "armor_class": (("defense", "ac", "total"), ("defense", "armorClass")),
    "touch_ac": (("defense", "ac", "touch"), ("defense", "touchAc")),
    "flat_footed_ac": (("defense", "ac", "flatFooted"), ("defense", "flatFootedAc")),
    "initiative": (("offense", "initiative"),),
    "speed": (("combat", "speed"), ("combat", "baseSpeed")),
    "base_attack_bonus": (("offense", "bab"),),
    "cmb": (("offense", "cmb"),),
    "cmd": (("defense", "cmd"),),
}

# ---------------------------------------------------------------------------
# Saving throws
# ---------------------------------------------------------------------------

SAVE_CONTAINER_CANDIDATES: tuple[FieldPath, ...] = (
    ("defense", "saves"),
    ("defense", "savingThrows"),
)

SAVE_KEY_CANDIDATES: dict[str, tuple[str, ...]] = {
    "fortitude": ("fortitude", "fort"),
    "reflex": ("reflex", "ref"),
    "will": ("will",),
}

# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------

SKILLS_PATH: FieldPath = ("skills",)

SKILL_FIELD_CANDIDATES: dict[str, tuple[str, ...]] = {
    "ranks": ("ranks",),
    "total": ("total", "value"),
    "misc": ("misc", "modifier"),
}

SKILL_CLASS_SKILL_KEY = "classSkill"

# ---------------------------------------------------------------------------
# Feats, special abilities, traits
# ---------------------------------------------------------------------------

# Per-level history entries list the feats taken at that level
LEVEL_FEAT_KEYS: tuple[str, ...] = ("Feats", "feats")

FEAT_LIST_CANDIDATES: tuple[FieldPath, ...] = (
    ("feats",),
    ("characterInfo", "feats"),
)

FEAT_NAME_KEYS: tuple[str, ...] = ("name", "featName")

# Every present list is collected, in this order
SPECIAL_ABILITY_LIST_PATHS: tuple[FieldPath, ...] = (
    ("characterInfo", "specialAbilities"),
    ("characterInfo", "classAbilities"),
    ("characterInfo", "traits"),
    ("specialAbilities",),
)

SPECIAL_ABILITY_NAME_KEYS: tuple[str, ...] = ("name", "description")

# ---------------------------------------------------------------------------
# Equipment
# ---------------------------------------------------------------------------

WEAPON_LIST_CANDIDATES: tuple[FieldPath, ...] = (
    ("equipment", "weapons"),
    ("offense", "weapons"),
    ("weapons",),
)

WEAPON_FIELD_CANDIDATES: dict[str, tuple[str, ...]] = {
    "name": ("name", "weaponName", "Name"),
    "attack_bonus": ("attackBonus", "attack", "AttackBonus"),
    "damage": ("damage", "damageRoll", "Damage"),
    "critical": ("critical", "crit", "Critical"),
    "range": ("range", "rangeIncrement", "Range"),
    "type": ("type", "damageType", "Type"),
    "notes": ("notes", "description", "Notes"),
}

ARMOR_CANDIDATES: tuple[FieldPath, ...] = (
    ("equipment", "armor"),
    ("defense", "armor"),
    ("armor",),
)

ARMOR_FIELD_CANDIDATES: dict[str, tuple[str, ...]] = {
    "name": ("name", "armorName", "Name"),
    "ac_bonus": ("acBonus", "bonus", "ACBonus"),
    "max_dex": ("maxDex", "maxDexBonus", "MaxDex"),
    "check_penalty": ("checkPenalty", "armorCheckPenalty", "CheckPenalty"),
    "spell_failure": ("spellFailure", "arcaneSpellFailure", "SpellFailure"),
    "type": ("type", "Type"),
}

# ---------------------------------------------------------------------------
# Spells and casting
# ---------------------------------------------------------------------------

SPELLS_PATH: FieldPath = ("spells",)
MAX_SPELL_LEVEL = 9


def spell_level_keys(level: int) -> tuple[str, ...]:
    """Keys a spell level's list may be stored under."""
    return (f"level{level}", str(level))


SPELL_NAME_KEYS: tuple[str, ...] = ("name", "spellName", "Name")

CASTER_CANDIDATES: dict[str, tuple[FieldPath, ...]] = {
    "caster_level": (("spells", "casterLevel"), ("spells", "CL")),
    "spell_dc_base": (("spells", "dcBase"),),
    "concentration": (("spells", "concentration"),),
}

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

BASIC_INFO_CANDIDATES: dict[str, tuple[FieldPath, ...]] = {
    "race": (("characterInfo", "race"), ("characterInfo", "raceName")),
    "alignment": (("characterInfo", "alignment"),),
    "deity": (("characterInfo", "deity"), ("characterInfo", "god")),
    "size": (("characterInfo", "size"),),
    "avatar_url": (
        ("characterInfo", "portrait"),
        ("characterInfo", "portraitUrl"),
        ("characterInfo", "image"),
        ("characterInfo", "avatar"),
    ),
}

# Class names recorded per level in the level history
LEVEL_CLASS_KEY = "Class"

CLASS_CANDIDATES: tuple[FieldPath, ...] = (
    ("class",),
    ("className",),
    ("characterInfo", "class"),
    ("characterInfo", "className"),
    ("characterInfo", "characterClass"),
)

# ---------------------------------------------------------------------------
# Defenses
# ---------------------------------------------------------------------------

DAMAGE_REDUCTION_PATH: FieldPath = ("defense", "dr")
SPELL_RESISTANCE_PATH: FieldPath = ("defense", "sr")
RESISTANCES_PATH: FieldPath = ("defense", "resistances")
IMMUNITIES_PATH: FieldPath = ("defense", "immunities")
