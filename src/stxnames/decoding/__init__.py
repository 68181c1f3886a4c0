"""Contract-call argument decoding.

This package provides:
- `decode_typed` for pre-decoded `{type, repr}` arguments
- `decode_from_blob` for opaque serialized argument blobs
- Username validation shared by the normalizer
"""

from stxnames.decoding.clarity import (
    decode_from_blob,
    decode_principal,
    decode_typed,
    hex_to_bytes,
    is_valid_username,
)

__all__ = [
    "decode_from_blob",
    "decode_principal",
    "decode_typed",
    "hex_to_bytes",
    "is_valid_username",
]
