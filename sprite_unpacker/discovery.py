"""Find metadata + texture pairs to unpack."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from sprite_unpacker.config import DEFAULT_SYNTAX_ORDER, SYNTAX_EXTENSIONS, TEXTURE_EXTENSION
from sprite_unpacker.errors import MissingCompanionFileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SheetJob:
    """One sprite sheet to unpack."""
    base: Path
    metadata_path: Path
    texture_path: Path
    syntax: str


def _with_extension(base: Path, extension: str) -> Path:
    return base.with_name(base.name + extension)


def _split_metadata_path(path: Path) -> Tuple[Path, Optional[str]]:
    """Split "sheet.json" into ("sheet", "json"); other paths are bases."""
    for syntax, extension in SYNTAX_EXTENSIONS.items():
        if path.suffix.lower() == extension:
            return path.with_suffix(""), syntax
    return path, None


def resolve_job(path: Path, syntax: Optional[str] = None) -> SheetJob:
    """Pair a metadata file or base name with its texture.

    Args:
        path: Metadata file, or base name without extension
        syntax: Metadata syntax; None tries json then plist

    Returns:
        SheetJob with both files present

    Raises:
        MissingCompanionFileError: If the metadata or texture is absent
    """
    base, implied = _split_metadata_path(path)

    if implied is not None and (syntax is None or syntax == implied):
        candidates = [(implied, path)]
    else:
        kinds = [syntax] if syntax else list(DEFAULT_SYNTAX_ORDER)
        candidates = [(kind, _with_extension(base, SYNTAX_EXTENSIONS[kind])) for kind in kinds]

    found = next(((kind, p) for kind, p in candidates if p.is_file()), None)
    if found is None:
        raise MissingCompanionFileError(base, candidates[0][1])

    texture_path = _with_extension(base, TEXTURE_EXTENSION)
    if not texture_path.is_file():
        raise MissingCompanionFileError(base, texture_path)

    kind, metadata_path = found
    return SheetJob(base=base, metadata_path=metadata_path, texture_path=texture_path, syntax=kind)


def has_metadata(base: Path, syntax: Optional[str] = None) -> bool:
    """True if a metadata file for base (e.g. base.json) exists."""
    kinds = [syntax] if syntax else list(DEFAULT_SYNTAX_ORDER)
    return any(_with_extension(base, SYNTAX_EXTENSIONS[kind]).is_file() for kind in kinds)


def find_metadata_files(root: Path, syntax: Optional[str] = None) -> List[Path]:
    """Recursively list metadata files under root, sorted."""
    if syntax:
        extensions = {SYNTAX_EXTENSIONS[syntax]}
    else:
        extensions = set(SYNTAX_EXTENSIONS.values())
    return sorted(
        path for path in root.rglob("*")
        if path.is_file() and path.suffix.lower() in extensions
    )


def discover_jobs(
    root: Path,
    syntax: Optional[str] = None
) -> Tuple[List[SheetJob], List[MissingCompanionFileError]]:
    """Find every unpackable sprite sheet under a directory.

    Returns:
        Tuple of (jobs, missing companion errors). A base name found as both
        .json and .plist yields one job, preferring json.
    """
    bases = []
    for metadata_path in find_metadata_files(root, syntax):
        base = metadata_path.with_suffix("")
        if base not in bases:
            bases.append(base)

    jobs, missing = [], []
    for base in bases:
        try:
            jobs.append(resolve_job(base, syntax))
        except MissingCompanionFileError as e:
            logger.warning("%s", e)
            missing.append(e)
    return jobs, missing
