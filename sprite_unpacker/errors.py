"""Exception types raised while unpacking sprite sheets."""

from enum import Enum
from pathlib import Path


class SpriteUnpackerError(Exception):
    """Base class for all sprite unpacker failures."""


class SchemaErrorKind(Enum):
    """Classification of metadata failures."""
    UNSUPPORTED_FORMAT = "unsupported_format"
    UNRECOGNIZED_SCHEMA = "unrecognized_schema"
    MALFORMED_ENTRY = "malformed_entry"


class SchemaError(SpriteUnpackerError):
    """Metadata could not be turned into a canonical document.

    Args:
        kind: Which class of schema failure occurred
        message: Human readable description
    """

    def __init__(self, kind: SchemaErrorKind, message: str):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message


class MissingCompanionFileError(SpriteUnpackerError):
    """Metadata or texture file is absent for a sprite sheet base name."""

    def __init__(self, base: Path, missing: Path):
        super().__init__(
            f"Make sure you have both metadata and texture files for {base} "
            f"(missing {missing})"
        )
        self.base = base
        self.missing = missing


class ExtractionError(SpriteUnpackerError):
    """Pixel extraction failed for a single sprite."""

    def __init__(self, sprite: str, message: str):
        super().__init__(f"{sprite}: {message}")
        self.sprite = sprite
