"""
trackline - TOON encoding.

Provides:
- Section types and schemas
- The encoder (encode_toon, safe_encode, encode_response)
- Typed errors shared with the registry
"""

from trackline.toon.encoder import (
    encode_response,
    encode_section,
    encode_simple_section,
    encode_toon,
    encode_value,
    format_cycle,
    format_estimate,
    format_priority,
    safe_encode,
    validate_row_against_schema,
)
from trackline.toon.errors import (
    ToonEncodingError,
    ToonError,
    ToonRegistryError,
    ToonResolutionError,
)
from trackline.toon.types import (
    EncodingOptions,
    EncodingResult,
    ToonMeta,
    ToonResponse,
    ToonSchema,
    ToonSection,
)

__all__ = [
    # Types
    "ToonSchema",
    "ToonSection",
    "ToonMeta",
    "ToonResponse",
    "EncodingOptions",
    "EncodingResult",
    # Encoder
    "encode_toon",
    "encode_section",
    "encode_simple_section",
    "encode_value",
    "encode_response",
    "safe_encode",
    "validate_row_against_schema",
    "format_priority",
    "format_estimate",
    "format_cycle",
    # Errors
    "ToonError",
    "ToonResolutionError",
    "ToonRegistryError",
    "ToonEncodingError",
]
