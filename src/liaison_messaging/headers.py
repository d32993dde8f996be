"""Transport-neutral header names for large-payload handling.

The literal values are a wire-compatibility surface shared with other
implementations of the protocol. Never change them.
"""

from __future__ import annotations

from typing import Final


class LargePayloadHeaders:
    """Header names and canonical values for the claim-check protocol."""

    MODE: Final = "liaison.payload.mode"
    REFERENCE: Final = "liaison.payload.ref"
    SHA256: Final = "liaison.payload.sha256"
    SIZE: Final = "liaison.payload.size"
    ENCODING: Final = "liaison.payload.encoding"
    EXPIRES: Final = "liaison.payload.expires"

    MODE_INLINE: Final = "inline"
    MODE_EXTERNAL: Final = "external"
    ENCODING_GZIP: Final = "gzip"

    RESERVED: Final = frozenset({MODE, REFERENCE, SHA256, SIZE, ENCODING, EXPIRES})
