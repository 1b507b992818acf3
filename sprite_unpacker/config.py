"""Configuration for sprite sheet unpacking."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Metadata syntax kinds, in autodetect preference order
DEFAULT_SYNTAX_ORDER = ("json", "plist")
SYNTAX_EXTENSIONS = {
    "json": ".json",
    "plist": ".plist",
}

# Image settings
TEXTURE_EXTENSION = ".png"
OUTPUT_EXTENSION = ".png"
OUTPUT_MODE = "RGBA"

# Pixel stage settings
DEFAULT_MAX_WORKERS = 8

# Sign applied to the vertical offset of rotated legacy sprites
ROTATED_OFFSET_SIGNS = ("standard", "negated")


@dataclass(frozen=True)
class JobConfig:
    """Explicit settings for one unpacking run.

    Attributes:
        syntax: "plist", "json" or None to autodetect
        output_dir: Root for extracted sprites (None writes next to the metadata)
        max_workers: Upper bound on concurrent per-sprite tasks
        flip_rotated_origin: Recompute the crop origin of rotated legacy plist
            frames from the texture height
        rotated_offset_sign: "standard" or "negated" vertical offset for
            rotated offset-encoded sprites
        dry_run: Resolve plans without writing images
    """
    syntax: Optional[str] = None
    output_dir: Optional[Path] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    flip_rotated_origin: bool = False
    rotated_offset_sign: str = "standard"
    dry_run: bool = False

    def __post_init__(self):
        if self.syntax is not None and self.syntax not in SYNTAX_EXTENSIONS:
            raise ValueError(f"Unknown syntax kind: {self.syntax!r}")
        if self.rotated_offset_sign not in ROTATED_OFFSET_SIGNS:
            raise ValueError(
                f"rotated_offset_sign must be one of {ROTATED_OFFSET_SIGNS}, "
                f"got {self.rotated_offset_sign!r}"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    @classmethod
    def from_args(cls, args) -> "JobConfig":
        """Build a config from parsed command-line arguments."""
        return cls(
            syntax=args.syntax,
            output_dir=args.output_dir,
            max_workers=args.workers,
            flip_rotated_origin=args.flip_rotated_origin,
            rotated_offset_sign="negated" if args.negate_rotated_offset else "standard",
            dry_run=args.dry_run,
        )
