"""Main orchestrator for the sprite sheet unpacking pipeline."""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from PIL import Image

from sprite_unpacker.config import JobConfig
from sprite_unpacker.discovery import SheetJob, discover_jobs, has_metadata, resolve_job
from sprite_unpacker.errors import MissingCompanionFileError, SpriteUnpackerError
from sprite_unpacker.geometry import Size
from sprite_unpacker.normalizer import normalize_file
from sprite_unpacker.resolver import ExtractionPlan, resolve_plans
from sprite_unpacker.spritesheet_utils import SpriteResult, extract_all, load_texture

logger = logging.getLogger(__name__)


@dataclass
class JobReport:
    """Outcome of unpacking one sprite sheet."""
    job: SheetJob
    output_dir: Path
    plans: List[ExtractionPlan] = field(default_factory=list)
    sprites: List[SpriteResult] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def failed_sprites(self) -> List[SpriteResult]:
        return [result for result in self.sprites if not result.ok]

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed_sprites


@dataclass
class BatchReport:
    """Outcome of unpacking every sprite sheet under a path."""
    jobs: List[JobReport] = field(default_factory=list)
    missing: List[MissingCompanionFileError] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.jobs and not self.missing

    @property
    def ok(self) -> bool:
        return not self.empty and not self.missing and all(report.ok for report in self.jobs)

    @property
    def sprite_count(self) -> int:
        return sum(len(report.sprites) - len(report.failed_sprites) for report in self.jobs)


class SpriteSheetUnpacker:
    """Orchestrates normalization, plan resolution and pixel extraction."""

    def __init__(self, config: Optional[JobConfig] = None):
        """Initialize unpacker.

        Args:
            config: Job settings shared by every sheet this unpacker handles
        """
        self.config = config or JobConfig()

    def output_dir_for(self, job: SheetJob) -> Path:
        """Sprites go to <output_dir>/<base name>, or <base>/ beside the metadata."""
        if self.config.output_dir is not None:
            return self.config.output_dir / job.base.name
        return job.base

    def unpack(self, job: SheetJob) -> JobReport:
        """Unpack one sprite sheet.

        Args:
            job: Metadata + texture pair

        Returns:
            JobReport with per-sprite results

        Raises:
            SchemaError: If the metadata cannot be normalized
            OSError: If the texture cannot be read
        """
        return asyncio.run(self.unpack_async(job))

    async def unpack_async(self, job: SheetJob) -> JobReport:
        output_dir = self.output_dir_for(job)
        report = JobReport(job=job, output_dir=output_dir)

        print(f"📄 Unpacking {job.metadata_path}")

        document = normalize_file(job.metadata_path, job.syntax, self.config)
        print(f"   {document.dialect.value} metadata, {len(document.frames)} sprites")

        report.plans = resolve_plans(
            document,
            self.config,
            texture_size=lambda: self._read_texture_size(job.texture_path)
        )

        if self.config.dry_run:
            for plan in report.plans:
                pad = plan.padding
                print(
                    f"   {plan.name}: crop {plan.crop_rect.box} "
                    f"{'rotated ' if plan.rotated else ''}"
                    f"pad ({pad.left}, {pad.top}, {pad.right}, {pad.bottom}) "
                    f"-> {plan.output_size.w}x{plan.output_size.h}"
                )
            return report

        texture = load_texture(job.texture_path)
        report.sprites = await extract_all(texture, report.plans, output_dir, self.config)

        for result in report.sprites:
            if result.ok:
                print(f"   {result.path} generated")
        if report.failed_sprites:
            print(f"   ⚠️  {len(report.failed_sprites)} of {len(report.sprites)} sprites failed")
        return report

    def unpack_path(self, path: Path) -> BatchReport:
        """Unpack a single sheet or every sheet under a directory.

        A single sheet's failure propagates. In directory mode each sheet's
        failure is recorded and the remaining sheets still run. A directory
        that is also a sheet base name (the default output folder) is
        treated as that sheet.
        """
        if not path.is_dir() or has_metadata(path, self.config.syntax):
            job = resolve_job(path, self.config.syntax)
            return BatchReport(jobs=[self.unpack(job)])

        jobs, missing = discover_jobs(path, self.config.syntax)
        print(f"🔍 Found {len(jobs)} sprite sheets under {path}")
        batch = BatchReport(missing=missing)

        for job in jobs:
            try:
                batch.jobs.append(self.unpack(job))
            except (SpriteUnpackerError, OSError) as e:
                logger.warning("Skipping %s: %s", job.metadata_path, e)
                print(f"   ❌ {job.metadata_path}: {e}")
                batch.jobs.append(JobReport(job=job, output_dir=self.output_dir_for(job), error=e))

        return batch

    @staticmethod
    def _read_texture_size(texture_path: Path) -> Size:
        with Image.open(texture_path) as img:
            return Size(*img.size)
