"""
Reverse mapping from a local character to the PathCompanion record shape.

The document written here uses the primary candidate path of every field
the extractors read, so an exported record imports back to the same
mechanical facets.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from warden_sync.models import ABILITY_NAMES, LocalCharacter

from .schema import EXPORT_SLOT_PREFIX


def _total(value: int) -> dict[str, int]:
    return {"total": value}


def _character_info(character: LocalCharacter) -> dict[str, Any]:
    info: dict[str, Any] = {
        "characterName": character.name,
        "name": character.name,
        "level": character.level,
        "size": character.size,
    }
    for key, value in (
        ("race", character.race),
        ("alignment", character.alignment),
        ("deity", character.deity),
        ("class", character.character_class),
        ("portrait", character.avatar_url),
    ):
        if value:
            info[key] = value
    return info


def _defense(character: LocalCharacter) -> dict[str, Any]:
    combat = character.combat
    defenses = character.defenses
    return {
        "hp": {
            "current": combat.current_hp,
            "total": combat.max_hp,
            "temp": combat.temp_hp,
        },
        "ac": {
            "total": combat.armor_class,
            "touch": combat.touch_ac,
            "flatFooted": combat.flat_footed_ac,
        },
        "cmd": _total(combat.cmd),
        "saves": {
            "fortitude": _total(character.saves.fortitude),
            "reflex": _total(character.saves.reflex),
            "will": _total(character.saves.will),
        },
        "dr": list(defenses.damage_reduction),
        "sr": _total(defenses.spell_resistance),
        "resistances": dict(defenses.resistances),
        "immunities": list(defenses.immunities),
    }


def _equipment(character: LocalCharacter) -> dict[str, Any]:
    armor = character.armor
    return {
        "weapons": [
            {
                "name": weapon.name,
                "attackBonus": weapon.attack_bonus,
                "damage": weapon.damage,
                "critical": weapon.critical,
                "range": weapon.range,
                "type": weapon.type,
                "notes": weapon.notes,
            }
            for weapon in character.weapons
        ],
        "armor": {
            "name": armor.name,
            "acBonus": armor.ac_bonus,
            "maxDex": armor.max_dex,
            "checkPenalty": armor.check_penalty,
            "spellFailure": armor.spell_failure,
            "type": armor.type,
        },
    }


def _spells(character: LocalCharacter) -> dict[str, Any]:
    spells: dict[str, Any] = {
        f"level{level}": list(names) for level, names in sorted(character.spells.items())
    }
    spells["casterLevel"] = character.caster.caster_level
    spells["dcBase"] = character.caster.spell_dc_base
    spells["concentration"] = character.caster.concentration
    return spells


def build_export_document(character: LocalCharacter) -> dict[str, Any]:
    """Map a local character's mechanical facets into the external schema.

    Narrative fields are not exported.
    """
    return {
        "name": character.name,
        "level": character.level,
        "characterInfo": _character_info(character),
        "abilities": {
            ability: _total(getattr(character.abilities, ability)) for ability in ABILITY_NAMES
        },
        "defense": _defense(character),
        "offense": {
            "bab": _total(character.combat.base_attack_bonus),
            "cmb": _total(character.combat.cmb),
            "initiative": _total(character.combat.initiative),
        },
        "combat": {"speed": _total(character.combat.speed)},
        "skills": {
            name: {
                "ranks": skill.ranks,
                "total": skill.total,
                "misc": skill.misc,
                "classSkill": skill.class_skill,
            }
            for name, skill in character.skills.items()
        },
        "feats": list(character.feats),
        "specialAbilities": list(character.special_abilities),
        "equipment": _equipment(character),
        "spells": _spells(character),
    }


def find_free_slot(occupied: Iterable[str], limit: int) -> str | None:
    """First ``character<n>`` slot (1..limit) not in ``occupied``, else None."""
    taken = set(occupied)
    for number in range(1, limit + 1):
        slot = f"{EXPORT_SLOT_PREFIX}{number}"
        if slot not in taken:
            return slot
    return None
