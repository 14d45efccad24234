"""
Decode and encode PathCompanion record values.

Stored values are base64 strings wrapping JSON that is zlib-compressed,
raw-deflate-compressed, or (legacy records) not compressed at all. Old
records carry no reliable format marker, so decoding tries every strategy
in a fixed order instead of sniffing magic bytes.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import zlib
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from warden_sync.exceptions import MalformedEncodingError, UndecodableRecordError
from warden_sync.models import RawExternalRecord

from .extractors import extract_display_name

logger = logging.getLogger(__name__)


class DecodeStrategy(str, Enum):
    ZLIB = "zlib"
    RAW_DEFLATE = "raw-deflate"
    PLAIN_JSON = "plain-json"


class DecodedRecord(BaseModel):
    """A successfully decoded external record."""
    external_id: str
    document: dict[str, Any]
    display_name: str
    strategy: DecodeStrategy
    last_updated: datetime | None = None


def _inflate(data: bytes) -> bytes:
    return zlib.decompress(data)


def _inflate_raw(data: bytes) -> bytes:
    return zlib.decompress(data, -zlib.MAX_WBITS)


def _identity(data: bytes) -> bytes:
    return data


# Tried in this order; the first that yields a JSON object wins.
DECODE_STRATEGIES: tuple[tuple[DecodeStrategy, Callable[[bytes], bytes]], ...] = (
    (DecodeStrategy.ZLIB, _inflate),
    (DecodeStrategy.RAW_DEFLATE, _inflate_raw),
    (DecodeStrategy.PLAIN_JSON, _identity),
)


def _b64decode(value: Any) -> bytes:
    if not isinstance(value, str):
        raise MalformedEncodingError(
            f"Expected a base64 string, got {type(value).__name__}",
        )
    cleaned = "".join(value.split())
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEncodingError(f"Record value is not valid base64: {e}") from None


def _parse_json_object(data: bytes) -> dict[str, Any]:
    document = json.loads(data.decode("utf-8"))
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return document


def decode_payload(value: Any) -> tuple[dict[str, Any], DecodeStrategy]:
    """Turn a stored base64 value into a JSON document.

    Only a top-level JSON object is accepted. Raw deflate can inflate
    unrelated bytes into output that parses as a JSON scalar or array, so
    anything but an object counts as a failed attempt and the next
    strategy is tried.

    Returns:
        Tuple of (document, strategy that succeeded)

    Raises:
        MalformedEncodingError: If the value is not base64
        UndecodableRecordError: If no strategy produced a JSON object;
            ``details["attempts"]`` lists each failure
    """
    data = _b64decode(value)

    attempts: list[dict[str, str]] = []
    for strategy, unwrap in DECODE_STRATEGIES:
        try:
            return _parse_json_object(unwrap(data)), strategy
        except (zlib.error, ValueError) as e:
            attempts.append({"strategy": strategy.value, "error": str(e)})

    raise UndecodableRecordError(
        "Failed to decompress/parse character data",
        {"attempts": attempts, "head": data[:50].hex()},
    )


def decode_record(record: RawExternalRecord) -> DecodedRecord:
    """Decode one keyed record and name it.

    Raises:
        MalformedEncodingError, UndecodableRecordError: As ``decode_payload``;
            ``details["external_id"]`` names the record
    """
    try:
        document, strategy = decode_payload(record.value)
    except (MalformedEncodingError, UndecodableRecordError) as e:
        e.details["external_id"] = record.key
        raise

    display_name = extract_display_name(document, record.key)
    logger.debug(f"Decoded {record.key} with {strategy.value}: {display_name}")
    return DecodedRecord(
        external_id=record.key,
        document=document,
        display_name=display_name,
        strategy=strategy,
        last_updated=record.last_updated,
    )


def encode_payload(document: dict[str, Any]) -> str:
    """Encode a document the way current records are stored: base64(zlib(json))."""
    raw = json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(zlib.compress(raw)).decode("ascii")


class ShareKey(BaseModel):
    """Decoded share/character key: base64 JSON ``{"account": ..., "character": ...}``."""
    account: str | None = None
    character: str


def decode_share_key(key: str) -> ShareKey:
    """Decode a share key.

    Raises:
        MalformedEncodingError: If the key is not base64 JSON naming a character
    """
    data = _b64decode(key.strip())
    try:
        payload = json.loads(data.decode("utf-8"))
    except ValueError:
        raise MalformedEncodingError("Invalid character key format") from None
    if not isinstance(payload, dict) or not isinstance(payload.get("character"), str):
        raise MalformedEncodingError("Invalid character key - missing character ID")
    account = payload.get("account")
    return ShareKey(account=account if isinstance(account, str) else None, character=payload["character"])
