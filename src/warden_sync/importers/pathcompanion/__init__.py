"""PathCompanion vault client, payload codec and field extractors."""

from .client import LoginResult, PathCompanionClient
from .decoder import decode_payload, decode_record, decode_share_key, encode_payload
from .extractors import extract_character

__all__ = [
    "LoginResult",
    "PathCompanionClient",
    "decode_payload",
    "decode_record",
    "decode_share_key",
    "encode_payload",
    "extract_character",
]
