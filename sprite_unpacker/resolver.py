"""Turn canonical sprite entries into crop-rotate-pad extraction plans."""

from dataclasses import dataclass
from typing import Callable, List, Optional

from sprite_unpacker.config import JobConfig
from sprite_unpacker.errors import SchemaError, SchemaErrorKind
from sprite_unpacker.geometry import Rect, Size
from sprite_unpacker.normalizer import CanonicalDocument, CanonicalSpriteEntry, Dialect

# Dialects whose rotated frames may store the origin against the unrotated
# texture edge (only applied when JobConfig.flip_rotated_origin is set)
FLIPPED_ORIGIN_DIALECTS = frozenset({Dialect.PLIST_FORMAT_2})

TextureSizeProvider = Callable[[], Size]


@dataclass(frozen=True)
class Padding:
    """Transparent pixels added on each side of the upright crop."""
    left: int
    top: int
    right: int
    bottom: int


NO_PADDING = Padding(0, 0, 0, 0)


@dataclass(frozen=True)
class ExtractionPlan:
    """How to rebuild one sprite from the packed texture.

    Apply in order: crop crop_rect, rotate 90 degrees counter-clockwise if
    rotated, then pad to output_size. padding and output_size are upright.
    """
    name: str
    crop_rect: Rect
    padding: Padding
    rotated: bool
    output_size: Size

    @property
    def upright_size(self) -> Size:
        """Crop size after undoing the packing rotation."""
        size = self.crop_rect.size
        return size.swapped() if self.rotated else size


def restoration_padding(entry: CanonicalSpriteEntry) -> Padding:
    """Pads around the footprint from the trimmed rect's placement."""
    if not entry.trimmed:
        return NO_PADDING
    placed = entry.sprite_source_rect
    source = entry.source_size
    return Padding(
        left=placed.x,
        top=placed.y,
        right=source.w - placed.w - placed.x,
        bottom=source.h - placed.h - placed.y,
    )


def upright_padding(padding: Padding) -> Padding:
    """Footprint pads once the crop is turned 90 degrees counter-clockwise."""
    return Padding(
        left=padding.top,
        top=padding.right,
        right=padding.bottom,
        bottom=padding.left,
    )


def crop_rect(
    entry: CanonicalSpriteEntry,
    document: CanonicalDocument,
    config: JobConfig,
    texture_size: Optional[TextureSizeProvider] = None
) -> Rect:
    """Region of the packed texture holding the sprite.

    This is the frame rect, except for rotated legacy plist frames when
    origin flipping is enabled:  y = sheet_h - frame.h - stored_x.

    Raises:
        SchemaError: If flipping is needed but no sheet height is known
    """
    frame = entry.frame_rect
    if not (
        config.flip_rotated_origin
        and entry.rotated
        and document.dialect in FLIPPED_ORIGIN_DIALECTS
    ):
        return frame

    sheet = document.canvas_size
    if sheet is None and texture_size is not None:
        sheet = texture_size()
    if sheet is None:
        raise SchemaError(
            SchemaErrorKind.MALFORMED_ENTRY,
            "Sheet size is required to flip rotated frame origins"
        )

    # Rotation swap only touches w/h, so frame.x is still the stored x
    y = sheet.h - frame.h - frame.x
    if y < 0:
        raise SchemaError(
            SchemaErrorKind.MALFORMED_ENTRY,
            f"Flipped origin of {frame} falls outside sheet height {sheet.h}"
        )
    return Rect(frame.x, y, frame.w, frame.h)


def resolve_plan(
    name: str,
    entry: CanonicalSpriteEntry,
    document: CanonicalDocument,
    config: Optional[JobConfig] = None,
    texture_size: Optional[TextureSizeProvider] = None
) -> ExtractionPlan:
    """Build the extraction plan for a single sprite.

    Raises:
        SchemaError: If the crop and pads do not rebuild the source size
    """
    config = config or JobConfig()
    crop = crop_rect(entry, document, config, texture_size)
    pad = restoration_padding(entry)

    if (crop.w + pad.left + pad.right, crop.h + pad.top + pad.bottom) != (
        entry.source_size.w, entry.source_size.h
    ):
        raise SchemaError(
            SchemaErrorKind.MALFORMED_ENTRY,
            f"{name}: crop {crop.size} with {pad} does not rebuild {entry.source_size}"
        )

    return ExtractionPlan(
        name=name,
        crop_rect=crop,
        padding=upright_padding(pad) if entry.rotated else pad,
        rotated=entry.rotated,
        output_size=entry.natural_source_size,
    )


def _cached(provider: Optional[TextureSizeProvider]) -> Optional[TextureSizeProvider]:
    if provider is None:
        return None
    cache: List[Size] = []

    def size() -> Size:
        if not cache:
            cache.append(provider())
        return cache[0]

    return size


def resolve_plans(
    document: CanonicalDocument,
    config: Optional[JobConfig] = None,
    texture_size: Optional[TextureSizeProvider] = None
) -> List[ExtractionPlan]:
    """Build extraction plans for every sprite in a document.

    Args:
        document: Normalized metadata
        config: Job settings (defaults used if None)
        texture_size: Called at most once, only if a rotated legacy frame
            needs its origin flipped and the metadata has no sheet size

    Returns:
        One plan per sprite, in document order
    """
    config = config or JobConfig()
    texture_size = _cached(texture_size)
    return [
        resolve_plan(name, entry, document, config, texture_size)
        for name, entry in document.frames.items()
    ]
