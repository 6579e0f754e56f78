"""Shared enums and the stored-document codec."""

from shared.enums import (
    ArcType,
    DocumentKind,
    InsightKind,
    InsightSource,
    MoodState,
    RotationSurface,
    SessionStatus,
    TraitKey,
)
from shared.serialization import decode_document, encode_document

__all__ = [
    "InsightKind",
    "InsightSource",
    "RotationSurface",
    "MoodState",
    "ArcType",
    "SessionStatus",
    "TraitKey",
    "DocumentKind",
    "decode_document",
    "encode_document",
]
