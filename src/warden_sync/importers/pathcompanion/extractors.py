"""
Field extractors translating decoded PathCompanion JSON into typed facets.

Each ``extract_*`` function is pure and total: it never raises, and it
always returns a fully-populated model, falling back to defaults (ability
score 10, AC 10, level 1, empty skill map, ...) when data is absent or
mistyped. Lookups walk the candidate tables in ``schema`` in order.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from warden_sync.models import (
    ABILITY_NAMES,
    AbilityScores,
    Armor,
    BasicInfo,
    CasterInfo,
    CombatStats,
    DefensiveAbilities,
    ExtractedCharacter,
    SavingThrows,
    Skill,
    Weapon,
)

from .schema import (
    ABILITY_CONTAINER_CANDIDATES,
    ABILITY_KEY_CANDIDATES,
    ARMOR_CANDIDATES,
    ARMOR_FIELD_CANDIDATES,
    BASIC_INFO_CANDIDATES,
    CASTER_CANDIDATES,
    CLASS_CANDIDATES,
    COMBAT_CANDIDATES,
    DAMAGE_REDUCTION_PATH,
    DISPLAY_NAME_CANDIDATES,
    FEAT_LIST_CANDIDATES,
    FEAT_NAME_KEYS,
    IMMUNITIES_PATH,
    LEVEL_CANDIDATES,
    LEVEL_CLASS_KEY,
    LEVEL_FEAT_KEYS,
    LEVEL_HISTORY_PATH,
    MAX_SPELL_LEVEL,
    NUMERIC_SUBKEYS,
    RESISTANCES_PATH,
    SAVE_CONTAINER_CANDIDATES,
    SAVE_KEY_CANDIDATES,
    SKILL_CLASS_SKILL_KEY,
    SKILL_FIELD_CANDIDATES,
    SKILLS_PATH,
    SPECIAL_ABILITY_LIST_PATHS,
    SPECIAL_ABILITY_NAME_KEYS,
    SPELL_NAME_KEYS,
    SPELL_RESISTANCE_PATH,
    SPELLS_PATH,
    WEAPON_FIELD_CANDIDATES,
    WEAPON_LIST_CANDIDATES,
    FieldPath,
    spell_level_keys,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Candidate lookup
# ---------------------------------------------------------------------------

class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def get_path(doc: Any, path: FieldPath) -> Any:
    """Walk ``path`` through nested mappings.

    Returns MISSING when a step is absent, not a mapping, or null.
    """
    current = doc
    for key in path:
        if not isinstance(current, Mapping):
            return MISSING
        current = current.get(key)
        if current is None:
            return MISSING
    return current


def coerce_int(value: Any) -> int | None:
    """Read a number out of a loosely typed value.

    Accepts bare numbers, numeric strings, and objects carrying one of
    ``NUMERIC_SUBKEYS``. Anything else is treated as absent (None).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
            return int(number) if math.isfinite(number) else None
    if isinstance(value, Mapping):
        for subkey in NUMERIC_SUBKEYS:
            if subkey in value:
                result = coerce_int(value[subkey])
                if result is not None:
                    return result
    return None


def coerce_str(value: Any) -> str | None:
    """Non-empty strings pass; numbers are stringified; anything else is absent."""
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def coerce_mapping(value: Any) -> Mapping | None:
    return value if isinstance(value, Mapping) else None


def coerce_list(value: Any) -> list | None:
    return value if isinstance(value, list) else None


def first_present(
    doc: Any,
    candidates: Iterable[FieldPath],
    coerce: Callable[[Any], T | None],
) -> T | None:
    """Return the first candidate path whose value coerces, else None."""
    for path in candidates:
        raw = get_path(doc, path)
        if raw is MISSING:
            continue
        value = coerce(raw)
        if value is not None:
            return value
    return None


def first_key(
    obj: Any,
    keys: Iterable[str],
    coerce: Callable[[Any], T | None],
) -> T | None:
    """Single-level variant of ``first_present`` over sibling key names."""
    return first_present(obj, ((key,) for key in keys), coerce)


def _item_name(item: Any, name_keys: tuple[str, ...], default: str) -> str:
    if isinstance(item, str):
        return item
    return first_key(item, name_keys, coerce_str) or default


def _dedupe(names: Iterable[str]) -> list[str]:
    """Drop repeats, keeping first occurrence order. Matching is exact."""
    return list(dict.fromkeys(names))


def _level_history(doc: Any) -> list[tuple[int, Any]]:
    """Numeric (level, entry) pairs from the level history, ascending."""
    history = coerce_mapping(get_path(doc, LEVEL_HISTORY_PATH))
    if history is None:
        return []
    entries: list[tuple[int, Any]] = []
    for key, entry in history.items():
        try:
            level = int(str(key).strip())
        except ValueError:
            continue
        entries.append((level, entry))
    entries.sort(key=lambda pair: pair[0])
    return entries


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

def extract_display_name(doc: Any, fallback: str) -> str:
    """Best-effort display name; ``fallback`` (the external key) when none is present."""
    return first_present(doc, DISPLAY_NAME_CANDIDATES, coerce_str) or fallback


def extract_level(doc: Any) -> int:
    """Character level.

    The level history holds one append record per level taken, so the
    effective level is its highest numeric key, not its length.
    """
    history = _level_history(doc)
    if history:
        level = history[-1][0]
        logger.debug(f"Extracted level {level} from level history with {len(history)} entries")
        return level

    level = first_present(doc, LEVEL_CANDIDATES, coerce_int)
    if level is None:
        logger.debug("Character level not found, defaulting to 1")
        return 1
    return level


def extract_abilities(doc: Any) -> AbilityScores:
    container = first_present(doc, ABILITY_CONTAINER_CANDIDATES, coerce_mapping) or {}
    scores: dict[str, int] = {}
    for ability in ABILITY_NAMES:
        score = first_key(container, ABILITY_KEY_CANDIDATES[ability], coerce_int)
        if score is not None:
            scores[ability] = score
    return AbilityScores(**scores)


def extract_combat_stats(doc: Any) -> CombatStats:
    values: dict[str, int] = {}
    for field_name, candidates in COMBAT_CANDIDATES.items():
        value = first_present(doc, candidates, coerce_int)
        if value is not None:
            values[field_name] = value
    return CombatStats(**values)


def extract_saving_throws(doc: Any) -> SavingThrows:
    container = first_present(doc, SAVE_CONTAINER_CANDIDATES, coerce_mapping) or {}
    values: dict[str, int] = {}
    for save, keys in SAVE_KEY_CANDIDATES.items():
        value = first_key(container, keys, coerce_int)
        if value is not None:
            values[save] = value
    return SavingThrows(**values)


def extract_skills(doc: Any) -> dict[str, Skill]:
    """Skills keyed by name. Entries that are not objects are skipped."""
    skills_data = coerce_mapping(get_path(doc, SKILLS_PATH)) or {}
    skills: dict[str, Skill] = {}
    for skill_name, entry in skills_data.items():
        if not isinstance(entry, Mapping):
            continue
        values: dict[str, Any] = {}
        for field_name, keys in SKILL_FIELD_CANDIDATES.items():
            value = first_key(entry, keys, coerce_int)
            if value is not None:
                values[field_name] = value
        values["class_skill"] = bool(entry.get(SKILL_CLASS_SKILL_KEY))
        skills[str(skill_name)] = Skill(**values)
    return skills


def extract_feats(doc: Any) -> list[str]:
    """Feats from every level-history entry, then from flat feat lists.

    The same feat can be listed under several levels; repeats are dropped.
    """
    feats: list[str] = []
    for _, entry in _level_history(doc):
        level_feats = first_key(entry, LEVEL_FEAT_KEYS, coerce_list) or []
        feats.extend(_item_name(feat, FEAT_NAME_KEYS, "Unknown Feat") for feat in level_feats)

    for path in FEAT_LIST_CANDIDATES:
        for feat in coerce_list(get_path(doc, path)) or []:
            feats.append(_item_name(feat, FEAT_NAME_KEYS, "Unknown Feat"))

    return _dedupe(feats)


def extract_special_abilities(doc: Any) -> list[str]:
    """Special abilities, class abilities and traits, deduplicated."""
    abilities: list[str] = []
    for path in SPECIAL_ABILITY_LIST_PATHS:
        for item in coerce_list(get_path(doc, path)) or []:
            abilities.append(_item_name(item, SPECIAL_ABILITY_NAME_KEYS, "Unknown Ability"))
    return _dedupe(abilities)


def _extract_weapon(item: Any) -> Weapon:
    if isinstance(item, str):
        return Weapon(name=item)
    values: dict[str, Any] = {}
    for field_name, keys in WEAPON_FIELD_CANDIDATES.items():
        coerce = coerce_int if field_name in ("attack_bonus", "range") else coerce_str
        value = first_key(item, keys, coerce)
        if value is not None:
            values[field_name] = value
    return Weapon(**values)


def extract_weapons(doc: Any) -> list[Weapon]:
    weapons = first_present(doc, WEAPON_LIST_CANDIDATES, coerce_list) or []
    return [_extract_weapon(item) for item in weapons]


def extract_armor(doc: Any) -> Armor:
    armor_data = first_present(doc, ARMOR_CANDIDATES, coerce_mapping) or {}
    values: dict[str, Any] = {}
    for field_name, keys in ARMOR_FIELD_CANDIDATES.items():
        coerce = coerce_str if field_name in ("name", "type") else coerce_int
        value = first_key(armor_data, keys, coerce)
        if value is not None:
            values[field_name] = value
    return Armor(**values)


def extract_spells(doc: Any) -> dict[int, list[str]]:
    """Spell names by spell level 0-9; levels without a list are omitted."""
    spells_data = coerce_mapping(get_path(doc, SPELLS_PATH)) or {}
    spells: dict[int, list[str]] = {}
    for level in range(MAX_SPELL_LEVEL + 1):
        level_spells = first_key(spells_data, spell_level_keys(level), coerce_list)
        if level_spells is not None:
            spells[level] = [_item_name(s, SPELL_NAME_KEYS, "Unknown Spell") for s in level_spells]
    return spells


def extract_basic_info(doc: Any) -> BasicInfo:
    # Classes in the order they were first taken, e.g. "Fighter / Rogue"
    classes = _dedupe(
        name
        for _, entry in _level_history(doc)
        if (name := first_key(entry, (LEVEL_CLASS_KEY,), coerce_str))
    )
    character_class = " / ".join(classes) or first_present(doc, CLASS_CANDIDATES, coerce_str) or ""

    values: dict[str, Any] = {"character_class": character_class}
    for field_name, candidates in BASIC_INFO_CANDIDATES.items():
        value = first_present(doc, candidates, coerce_str)
        if value is not None:
            values[field_name] = value
    return BasicInfo(**values)


def extract_defensive_abilities(doc: Any) -> DefensiveAbilities:
    return DefensiveAbilities(
        damage_reduction=coerce_list(get_path(doc, DAMAGE_REDUCTION_PATH)) or [],
        spell_resistance=first_present(doc, (SPELL_RESISTANCE_PATH,), coerce_int) or 0,
        resistances=dict(coerce_mapping(get_path(doc, RESISTANCES_PATH)) or {}),
        immunities=coerce_list(get_path(doc, IMMUNITIES_PATH)) or [],
    )


def extract_caster_info(doc: Any) -> CasterInfo:
    values: dict[str, int] = {}
    for field_name, candidates in CASTER_CANDIDATES.items():
        value = first_present(doc, candidates, coerce_int)
        if value is not None:
            values[field_name] = value
    return CasterInfo(**values)


def extract_character(doc: Any, fallback_name: str) -> ExtractedCharacter:
    """Run every extractor over one decoded document."""
    character = ExtractedCharacter(
        name=extract_display_name(doc, fallback_name),
        level=extract_level(doc),
        abilities=extract_abilities(doc),
        combat=extract_combat_stats(doc),
        saves=extract_saving_throws(doc),
        skills=extract_skills(doc),
        feats=extract_feats(doc),
        special_abilities=extract_special_abilities(doc),
        weapons=extract_weapons(doc),
        armor=extract_armor(doc),
        spells=extract_spells(doc),
        basic=extract_basic_info(doc),
        defenses=extract_defensive_abilities(doc),
        caster=extract_caster_info(doc),
    )
    logger.debug(
        f"Extracted {character.name}: level {character.level}, "
        f"HP {character.combat.current_hp}/{character.combat.max_hp}, AC {character.combat.armor_class}"
    )
    return character
