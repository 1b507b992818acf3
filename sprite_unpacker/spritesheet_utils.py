"""Utilities for extracting sprites from a packed texture."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional
from PIL import Image

from sprite_unpacker.config import OUTPUT_EXTENSION, OUTPUT_MODE, JobConfig
from sprite_unpacker.errors import ExtractionError
from sprite_unpacker.geometry import Size
from sprite_unpacker.resolver import ExtractionPlan

logger = logging.getLogger(__name__)


@dataclass
class SpriteResult:
    """Outcome of extracting one sprite."""
    name: str
    path: Optional[Path] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def load_texture(texture_path: Path) -> Image.Image:
    """Open a texture and fully decode it to RGBA.

    The returned image is loaded into memory so it can be shared read-only
    between extraction threads.
    """
    with Image.open(texture_path) as img:
        return img.convert(OUTPUT_MODE)


def extract_sprite(texture: Image.Image, plan: ExtractionPlan) -> Image.Image:
    """Crop, rotate upright and pad one sprite.

    Args:
        texture: Decoded sprite sheet texture
        plan: Extraction plan for the sprite

    Returns:
        RGBA image of plan.output_size

    Raises:
        ExtractionError: If the crop rect lies outside the texture
    """
    texture_size = Size(*texture.size)
    if not plan.crop_rect.fits_within(texture_size):
        raise ExtractionError(
            plan.name,
            f"crop rect {plan.crop_rect} exceeds texture size "
            f"{texture_size.w}x{texture_size.h}"
        )

    sprite = texture.crop(plan.crop_rect.box)

    # Packers turn sprites clockwise, so undo with a counter-clockwise turn
    if plan.rotated:
        sprite = sprite.transpose(Image.Transpose.ROTATE_90)

    output = Image.new(OUTPUT_MODE, (plan.output_size.w, plan.output_size.h), (0, 0, 0, 0))
    output.paste(sprite, (plan.padding.left, plan.padding.top))
    return output


def sprite_output_path(output_dir: Path, name: str, extension: str = OUTPUT_EXTENSION) -> Path:
    """Output file for a sprite name.

    Slashes in the name become subdirectories and the extension is appended
    when missing.

    Raises:
        ExtractionError: If the name would escape output_dir
    """
    relative = PurePosixPath(name.replace("\\", "/"))
    if relative.is_absolute() or ".." in relative.parts or not relative.parts:
        raise ExtractionError(name, "sprite name is not a safe relative path")

    path = output_dir.joinpath(*relative.parts)
    if not path.name.lower().endswith(extension.lower()):
        path = path.with_name(path.name + extension)
    return path


def save_sprite(image: Image.Image, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(output_path)
    return output_path


def _extract_and_save(texture: Image.Image, plan: ExtractionPlan, output_dir: Path) -> Path:
    output_path = sprite_output_path(output_dir, plan.name)
    return save_sprite(extract_sprite(texture, plan), output_path)


def _output_collisions(plans: List[ExtractionPlan], output_dir: Path) -> Dict[int, ExtractionError]:
    """Errors for plans whose output path an earlier plan already claims."""
    claimed: Dict[Path, str] = {}
    collisions = {}
    for index, plan in enumerate(plans):
        try:
            path = sprite_output_path(output_dir, plan.name)
        except ExtractionError:
            # Reported when the sprite itself runs
            continue
        if path in claimed:
            collisions[index] = ExtractionError(
                plan.name, f"output {path} is already written by {claimed[path]!r}"
            )
        else:
            claimed[path] = plan.name
    return collisions


async def extract_all(
    texture: Image.Image,
    plans: List[ExtractionPlan],
    output_dir: Path,
    config: Optional[JobConfig] = None
) -> List[SpriteResult]:
    """Extract every planned sprite, one task per sprite.

    Tasks share the texture read-only and complete in any order. A failure
    in one sprite is recorded in its result and never cancels the others.
    When two names map to the same output file, the later sprite fails.

    Args:
        texture: Decoded, fully loaded texture
        plans: Extraction plans
        output_dir: Directory to write sprites into
        config: Job settings (max_workers bounds concurrency)

    Returns:
        One SpriteResult per plan, in plan order
    """
    config = config or JobConfig()
    semaphore = asyncio.Semaphore(config.max_workers)
    collisions = _output_collisions(plans, output_dir)

    async def run(index: int, plan: ExtractionPlan) -> Path:
        if index in collisions:
            raise collisions[index]
        async with semaphore:
            return await asyncio.to_thread(_extract_and_save, texture, plan, output_dir)

    outcomes = await asyncio.gather(
        *(run(index, plan) for index, plan in enumerate(plans)),
        return_exceptions=True
    )

    results = []
    for plan, outcome in zip(plans, outcomes):
        if isinstance(outcome, Exception):
            logger.warning("Failed to extract %s: %s", plan.name, outcome)
            if not isinstance(outcome, ExtractionError):
                error = ExtractionError(plan.name, str(outcome))
                error.__cause__ = outcome
                outcome = error
            results.append(SpriteResult(plan.name, error=outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results.append(SpriteResult(plan.name, path=outcome))
    return results
