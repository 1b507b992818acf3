"""Normalize sprite sheet metadata dialects into one canonical document.

Supported dialects:

    plist format 3    metadata.format == 3, textureRect/textureRotated/
                      spriteSourceSize/spriteOffset field names
    plist format 2    frame/rotated/sourceSize/offset field names (also the
                      best-effort fallback for other format numbers)
    json array        "frames" is a list of entries carrying "filename"
    json hash         "frames" is a mapping of name -> entry
    json multi-atlas  "textures" is a list of atlases, only the first is used

Plist dialects pack geometry into strings such as "{{x,y},{w,h}}" and encode
trimming as a centre offset (y up). JSON dialects use numeric fields and an
explicit spriteSourceSize rectangle (y down). Both end up as the same
CanonicalSpriteEntry.
"""

import json
import logging
import plistlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union
from xml.parsers.expat import ExpatError

from sprite_unpacker.config import DEFAULT_SYNTAX_ORDER, SYNTAX_EXTENSIONS, JobConfig
from sprite_unpacker.errors import SchemaError, SchemaErrorKind
from sprite_unpacker.geometry import (
    Rect,
    Size,
    centered_source_rect,
    parse_packed_point,
    parse_packed_rect,
    parse_packed_size,
    to_pixel,
)

logger = logging.getLogger(__name__)


class Dialect(Enum):
    """Closed set of metadata dialects."""
    PLIST_FORMAT_2 = "plist-format-2"
    PLIST_FORMAT_3 = "plist-format-3"
    JSON_ARRAY = "json-array"
    JSON_HASH = "json-hash"
    JSON_MULTI_ATLAS = "json-multi-atlas"

    @property
    def syntax(self) -> str:
        return self.value.split("-", 1)[0]


@dataclass(frozen=True)
class CanonicalSpriteEntry:
    """One sprite in canonical form.

    Rotated entries describe everything in the packed (footprint)
    orientation: the stored rect's w/h and the sourceSize w/h are swapped,
    and the placement is the natural one turned clockwise with its canvas.

    Attributes:
        frame_rect: Footprint of the packed pixels in the texture
        rotated: Packed pixels are turned 90 degrees clockwise
        source_size: Untrimmed canvas size, footprint orientation
        sprite_source_rect: Placement of the trimmed pixels in that canvas
        trimmed: Transparent borders were removed before packing
    """
    frame_rect: Rect
    rotated: bool
    source_size: Size
    sprite_source_rect: Rect
    trimmed: bool

    @property
    def natural_size(self) -> Size:
        """Size of the packed pixels once rotated back upright."""
        size = self.frame_rect.size
        return size.swapped() if self.rotated else size

    @property
    def natural_source_size(self) -> Size:
        """Untrimmed canvas size once rotated back upright."""
        return self.source_size.swapped() if self.rotated else self.source_size

    @property
    def natural_source_rect(self) -> Rect:
        """Placement of the trimmed pixels in the upright canvas."""
        if not self.rotated:
            return self.sprite_source_rect
        return self.sprite_source_rect.turned_counterclockwise(self.source_size)


@dataclass(frozen=True)
class CanonicalDocument:
    """All sprites of one metadata file plus sheet-level information."""
    frames: Dict[str, CanonicalSpriteEntry]
    dialect: Dialect
    canvas_size: Optional[Size] = None
    texture_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


# Field aliases applied to plist format 3 frames before extraction
FORMAT_3_ALIASES = {
    "textureRect": "frame",
    "textureRotated": "rotated",
    "spriteSourceSize": "sourceSize",
    "spriteOffset": "offset",
}


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _decode_json(data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, ValueError) as e:
        raise SchemaError(SchemaErrorKind.UNSUPPORTED_FORMAT, f"Invalid JSON metadata: {e}")


def _decode_plist(data: bytes) -> Any:
    try:
        return plistlib.loads(data)
    except (ValueError, ExpatError) as e:
        raise SchemaError(SchemaErrorKind.UNSUPPORTED_FORMAT, f"Invalid plist metadata: {e}")


_DECODERS = {
    "json": _decode_json,
    "plist": _decode_plist,
}


def decode_metadata(
    data: Union[bytes, str],
    syntax: Optional[str] = None
) -> Tuple[Dict[str, Any], str]:
    """Decode raw metadata into a plain mapping.

    Args:
        data: Raw metadata bytes or text
        syntax: "plist", "json", or None to try json then plist

    Returns:
        Tuple of (decoded mapping, syntax kind that decoded it)

    Raises:
        SchemaError: UNSUPPORTED_FORMAT if the syntax kind is unknown or the
            data cannot be decoded, UNRECOGNIZED_SCHEMA if the top level is
            not a mapping
    """
    if isinstance(data, str):
        data = data.encode("utf-8")

    if syntax is None:
        failures = []
        for candidate in DEFAULT_SYNTAX_ORDER:
            try:
                return decode_metadata(data, candidate)
            except SchemaError as e:
                if e.kind is not SchemaErrorKind.UNSUPPORTED_FORMAT:
                    raise
                failures.append(e.message)
        raise SchemaError(
            SchemaErrorKind.UNSUPPORTED_FORMAT,
            "Metadata is neither JSON nor plist (" + "; ".join(failures) + ")"
        )

    decoder = _DECODERS.get(syntax)
    if decoder is None:
        raise SchemaError(
            SchemaErrorKind.UNSUPPORTED_FORMAT,
            f"Wrong data format {syntax!r}, expected one of {sorted(_DECODERS)}"
        )

    raw = decoder(data)
    if not isinstance(raw, dict):
        raise SchemaError(
            SchemaErrorKind.UNRECOGNIZED_SCHEMA,
            f"Top level of {syntax} metadata is {type(raw).__name__}, expected a mapping"
        )
    return raw, syntax


# ---------------------------------------------------------------------------
# Dialect detection
# ---------------------------------------------------------------------------

def _plist_format(raw: Dict[str, Any]) -> Any:
    metadata = raw.get("metadata")
    if isinstance(metadata, dict):
        return metadata.get("format")
    return None


def _has_frame_mapping(raw):
    return isinstance(raw.get("frames"), dict)


def _is_plist_format_3(raw):
    return _has_frame_mapping(raw) and _plist_format(raw) == 3


def _is_json_array(raw):
    return isinstance(raw.get("frames"), list)


def _is_json_multi_atlas(raw):
    textures = raw.get("textures")
    return isinstance(textures, list) and len(textures) > 0


# Ordered structural discriminators; first match wins
_DISCRIMINATORS = [
    ("plist", _is_plist_format_3, Dialect.PLIST_FORMAT_3),
    ("plist", _has_frame_mapping, Dialect.PLIST_FORMAT_2),
    ("json", _is_json_array, Dialect.JSON_ARRAY),
    ("json", _has_frame_mapping, Dialect.JSON_HASH),
    ("json", _is_json_multi_atlas, Dialect.JSON_MULTI_ATLAS),
]


def detect_dialect(raw: Dict[str, Any], syntax: str) -> Dialect:
    """Pick the dialect of a decoded metadata mapping.

    Raises:
        SchemaError: UNSUPPORTED_FORMAT for an unknown syntax kind,
            UNRECOGNIZED_SCHEMA if no known frame collection is present
    """
    if syntax not in SYNTAX_EXTENSIONS:
        raise SchemaError(SchemaErrorKind.UNSUPPORTED_FORMAT, f"Wrong data format {syntax!r}")

    for kind, matches, dialect in _DISCRIMINATORS:
        if kind == syntax and matches(raw):
            if dialect is Dialect.PLIST_FORMAT_2 and _plist_format(raw) != 2:
                logger.warning(
                    "Unexpected plist metadata format %r, reading it as format 2",
                    _plist_format(raw)
                )
            return dialect

    logger.warning("Unrecognized %s metadata, top-level keys: %s", syntax, sorted(raw))
    raise SchemaError(
        SchemaErrorKind.UNRECOGNIZED_SCHEMA,
        f"No known frame collection in {syntax} metadata "
        f"(top-level keys: {', '.join(sorted(map(str, raw))) or 'none'})"
    )


# ---------------------------------------------------------------------------
# Per-dialect extraction
# ---------------------------------------------------------------------------

def _require(frame: Dict[str, Any], key: str) -> Any:
    if key not in frame:
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"missing field {key!r}")
    return frame[key]


def _untrimmed_rect(source_size: Size) -> Rect:
    return Rect(0, 0, source_size.w, source_size.h)


def _canonical_entry(
    stored: Rect,
    rotated: bool,
    source_size: Size,
    placed: Rect,
    trimmed: bool
) -> CanonicalSpriteEntry:
    """Build an entry from natural-orientation values.

    For rotated sprites the frame and source sizes are swapped and the
    placement is turned clockwise with its canvas, which trades the x/y of
    the centre offset it was derived from.
    """
    if not trimmed:
        placed = _untrimmed_rect(source_size)
    if not rotated:
        return CanonicalSpriteEntry(stored, rotated, source_size, placed, trimmed)
    return CanonicalSpriteEntry(
        frame_rect=stored.with_size(stored.size.swapped()),
        rotated=rotated,
        source_size=source_size.swapped(),
        sprite_source_rect=placed.turned_clockwise(source_size),
        trimmed=trimmed,
    )


def _extract_plist_entry(frame: Dict[str, Any], config: JobConfig) -> CanonicalSpriteEntry:
    """Build an entry from plist fields (format 3 names already aliased)."""
    rotated = bool(frame.get("rotated", False))

    # Stored rect and sourceSize hold the natural sizes
    stored = parse_packed_rect(_require(frame, "frame"))
    natural = stored.size
    source_size = parse_packed_size(frame["sourceSize"]) if "sourceSize" in frame else natural
    offset = parse_packed_point(frame["offset"]) if "offset" in frame else (0.0, 0.0)

    trimmed = (
        bool(frame.get("spriteTrimmed", False))
        or natural != source_size
        or offset != (0, 0)
    )
    negate_y = rotated and config.rotated_offset_sign == "negated"
    placed = centered_source_rect(source_size, natural, offset, negate_y)
    return _canonical_entry(stored, rotated, source_size, placed, trimmed)


def _json_rect(value: Any, key: str) -> Rect:
    if not isinstance(value, dict):
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"{key} must be an object, got {value!r}")
    return Rect(*(to_pixel(_require(value, k)) for k in ("x", "y", "w", "h")))


def _json_size(value: Any, key: str) -> Size:
    if not isinstance(value, dict):
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"{key} must be an object, got {value!r}")
    return Size(to_pixel(_require(value, "w")), to_pixel(_require(value, "h")))


def _extract_json_entry(frame: Dict[str, Any], config: JobConfig) -> CanonicalSpriteEntry:
    """Build an entry from TexturePacker JSON fields."""
    rotated = bool(frame.get("rotated", False))

    stored = _json_rect(_require(frame, "frame"), "frame")
    natural = stored.size

    if "sourceSize" in frame:
        source_size = _json_size(frame["sourceSize"], "sourceSize")
    else:
        source_size = natural

    if "spriteSourceSize" in frame:
        # Only the position is taken; the size is the packed pixels' size
        placed = _json_rect(frame["spriteSourceSize"], "spriteSourceSize").with_size(natural)
    else:
        placed = _untrimmed_rect(natural)

    trimmed = (
        bool(frame.get("trimmed", False))
        or natural != source_size
        or (placed.x, placed.y) != (0, 0)
    )
    return _canonical_entry(stored, rotated, source_size, placed, trimmed)


def _alias_format_3(frame: Dict[str, Any]) -> Dict[str, Any]:
    aliased = dict(frame)
    for source_key, canonical_key in FORMAT_3_ALIASES.items():
        if source_key in frame:
            aliased[canonical_key] = frame[source_key]
    return aliased


def _hash_to_array(frames: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Reshape a name -> entry mapping into array form."""
    array = []
    for name, entry in frames.items():
        if not isinstance(entry, dict):
            raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"{name}: frame entry must be a mapping")
        array.append(dict(entry, filename=name))
    return array


def _first_atlas(raw: Dict[str, Any]) -> Dict[str, Any]:
    atlas = raw["textures"][0]
    if not isinstance(atlas, dict):
        raise SchemaError(SchemaErrorKind.UNRECOGNIZED_SCHEMA, "First texture atlas is not a mapping")
    return atlas


def _plist_frames(raw, config, alias=False) -> Iterator[Tuple[str, CanonicalSpriteEntry]]:
    for name, frame in raw["frames"].items():
        if not isinstance(frame, dict):
            raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"{name}: frame entry must be a dict")
        if alias:
            frame = _alias_format_3(frame)
        yield name, _named(name, _extract_plist_entry, frame, config)


def _json_frames(frames: Any, config) -> Iterator[Tuple[str, CanonicalSpriteEntry]]:
    if isinstance(frames, dict):
        frames = _hash_to_array(frames)
    if not isinstance(frames, list):
        raise SchemaError(SchemaErrorKind.UNRECOGNIZED_SCHEMA, "Atlas frames must be a list or mapping")

    for index, frame in enumerate(frames):
        if not isinstance(frame, dict):
            raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"frames[{index}] must be an object")
        name = frame.get("filename")
        if not isinstance(name, str) or not name:
            raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"frames[{index}] has no filename")
        yield name, _named(name, _extract_json_entry, frame, config)


def _named(name, extract, frame, config) -> CanonicalSpriteEntry:
    """Run an extractor, prefixing any schema error with the sprite name."""
    try:
        return extract(frame, config)
    except SchemaError as e:
        raise SchemaError(e.kind, f"{name}: {e.message}") from e


_FRAME_READERS = {
    Dialect.PLIST_FORMAT_3: lambda raw, config: _plist_frames(raw, config, alias=True),
    Dialect.PLIST_FORMAT_2: lambda raw, config: _plist_frames(raw, config),
    Dialect.JSON_ARRAY: lambda raw, config: _json_frames(raw["frames"], config),
    Dialect.JSON_HASH: lambda raw, config: _json_frames(raw["frames"], config),
    Dialect.JSON_MULTI_ATLAS: lambda raw, config: _json_frames(_first_atlas(raw).get("frames"), config),
}


def _sheet_metadata(raw: Dict[str, Any], dialect: Dialect) -> Dict[str, Any]:
    if dialect.syntax == "plist":
        metadata = raw.get("metadata")
    else:
        metadata = raw.get("meta")
    metadata = dict(metadata) if isinstance(metadata, dict) else {}

    if dialect is Dialect.JSON_MULTI_ATLAS:
        # Atlas-level fields take precedence over the shared metadata
        atlas = _first_atlas(raw)
        metadata.update({k: v for k, v in atlas.items() if k != "frames"})
    return metadata


def _canvas_size(metadata: Dict[str, Any], dialect: Dialect) -> Optional[Size]:
    size = metadata.get("size")
    if size is None:
        return None
    try:
        if dialect.syntax == "plist":
            return parse_packed_size(size)
        return _json_size(size, "size")
    except SchemaError as e:
        raise SchemaError(e.kind, f"sheet size: {e.message}") from e


def _texture_name(metadata: Dict[str, Any], dialect: Dialect) -> Optional[str]:
    if dialect.syntax == "plist":
        name = metadata.get("realTextureFileName") or metadata.get("textureFileName")
    else:
        name = metadata.get("image")
    return name if isinstance(name, str) else None


def _validate_entry(name: str, entry: CanonicalSpriteEntry) -> None:
    frame = entry.frame_rect
    if frame.w <= 0 or frame.h <= 0 or frame.x < 0 or frame.y < 0:
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"{name}: invalid frame rect {frame}")
    if entry.source_size.w <= 0 or entry.source_size.h <= 0:
        raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"{name}: invalid source size {entry.source_size}")
    if not entry.sprite_source_rect.fits_within(entry.source_size):
        raise SchemaError(
            SchemaErrorKind.MALFORMED_ENTRY,
            f"{name}: trimmed rect {entry.sprite_source_rect} does not fit "
            f"source size {entry.source_size}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_raw(
    raw: Dict[str, Any],
    syntax: str,
    config: Optional[JobConfig] = None
) -> CanonicalDocument:
    """Normalize an already decoded metadata mapping."""
    config = config or JobConfig()
    dialect = detect_dialect(raw, syntax)
    logger.debug("Detected %s metadata", dialect.value)

    frames: Dict[str, CanonicalSpriteEntry] = {}
    for name, entry in _FRAME_READERS[dialect](raw, config):
        if name in frames:
            raise SchemaError(SchemaErrorKind.MALFORMED_ENTRY, f"Duplicate sprite name {name!r}")
        _validate_entry(name, entry)
        frames[name] = entry

    metadata = _sheet_metadata(raw, dialect)
    return CanonicalDocument(
        frames=frames,
        dialect=dialect,
        canvas_size=_canvas_size(metadata, dialect),
        texture_name=_texture_name(metadata, dialect),
        metadata=metadata,
    )


def normalize_metadata(
    data: Union[bytes, str],
    syntax: Optional[str] = None,
    config: Optional[JobConfig] = None
) -> CanonicalDocument:
    """Parse raw metadata in any known dialect into a CanonicalDocument.

    Args:
        data: Raw metadata bytes or text
        syntax: "plist", "json", or None to autodetect (json first)
        config: Job settings (defaults used if None)

    Returns:
        Canonical document with one entry per sprite

    Raises:
        SchemaError: If the metadata cannot be decoded or normalized
    """
    raw, syntax = decode_metadata(data, syntax)
    return normalize_raw(raw, syntax, config)


def syntax_for_path(path: Path) -> Optional[str]:
    """Syntax kind implied by a metadata file extension, if any."""
    for syntax, extension in SYNTAX_EXTENSIONS.items():
        if path.suffix.lower() == extension:
            return syntax
    return None


def normalize_file(
    path: Path,
    syntax: Optional[str] = None,
    config: Optional[JobConfig] = None
) -> CanonicalDocument:
    """Read a metadata file and normalize it.

    The syntax kind defaults to the config's, then to the file extension.
    """
    config = config or JobConfig()
    syntax = syntax or config.syntax or syntax_for_path(path)
    return normalize_metadata(path.read_bytes(), syntax, config)
