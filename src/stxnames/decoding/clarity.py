"""Contract-call argument decoding.

Two entry points, selected by what the upstream operation carries:
- `decode_typed(repr, type)`: one pre-decoded `{type, repr}` argument.
- `decode_from_blob(blob)`: an opaque serialized argument blob, scanned for
  a length-prefixed ASCII username.

Neither function raises. Anything ambiguous or malformed yields None and
the caller skips the operation.
"""

from __future__ import annotations

import re

from stxnames.constants import USERNAME_MAX_LENGTH, USERNAME_MIN_LENGTH

_QUOTED = re.compile(r'^"|"$')
_SIGIL = re.compile(r"^'|'$")
_BLOB_TEXT = re.compile(rb"[a-z0-9_-]+", re.IGNORECASE)
_USERNAME = re.compile(r"[a-z0-9_-]+")

# Offsets of the 4-byte length field in the encodings seen in practice:
#   8 -> type(4) + flag(1) + pad(3) + len(4) + text
#   1 -> tag(1) + len(4) + text          (single serialized string-ascii)
#   5 -> list-len(4) + tag(1) + len(4) + text
BLOB_CANDIDATE_OFFSETS: tuple[int, ...] = (8, 1, 5)
LENGTH_PREFIX_BYTES = 4


def decode_typed(repr_: str | None, type_: str | None) -> str | None:
    """Decode one `{repr, type}` argument into a plain string.

    - string types: surrounding double quotes are removed
    - principal types: leading `'` sigil removed, truncated at the first `.`
    - anything else: returned unchanged
    """
    if not repr_:
        return None
    t = (type_ or "").lower()
    if "string" in t or "ascii" in t:
        return _QUOTED.sub("", repr_)
    if "principal" in t:
        return _SIGIL.sub("", repr_).split(".")[0]
    return repr_


def decode_principal(value: str | None) -> str | None:
    """Normalize a sender/owner value (plain address or contract id)."""
    return decode_typed(value, "principal")


def hex_to_bytes(hex_str: str | None) -> bytes | None:
    """Parse a (optionally 0x-prefixed) hex string; None when not valid hex."""
    if not hex_str:
        return None
    h = hex_str[2:] if hex_str.lower().startswith("0x") else hex_str
    try:
        return bytes.fromhex(h)
    except ValueError:
        return None


def _text_at(blob: bytes, offset: int) -> str | None:
    """Read `len(4, big-endian) + text` at `offset` if it fits, is clean and
    has a username-sized length."""
    start = offset + LENGTH_PREFIX_BYTES
    if offset < 0 or start > len(blob):
        return None
    length = int.from_bytes(blob[offset:start], "big")
    if not USERNAME_MIN_LENGTH <= length <= USERNAME_MAX_LENGTH or start + length > len(blob):
        return None
    raw = blob[start : start + length]
    if not _BLOB_TEXT.fullmatch(raw):
        return None
    return raw.decode("ascii")


def decode_from_blob(blob: bytes | None) -> str | None:
    """Locate the first length-prefixed `[a-z0-9_-]` run of 3-30 bytes in `blob`.

    Known offsets are tried first, then every offset in order.
    """
    if not blob:
        return None
    for offset in BLOB_CANDIDATE_OFFSETS:
        found = _text_at(blob, offset)
        if found is not None:
            return found
    for offset in range(0, len(blob) - LENGTH_PREFIX_BYTES + 1):
        found = _text_at(blob, offset)
        if found is not None:
            return found
    return None


def is_valid_username(name: str | None) -> bool:
    """3-30 chars of lowercase alphanumerics, `_` or `-`."""
    if not name:
        return False
    return USERNAME_MIN_LENGTH <= len(name) <= USERNAME_MAX_LENGTH and bool(_USERNAME.fullmatch(name))
