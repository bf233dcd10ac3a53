# src/pipeline/session.py
"""Conversion session: the single entry point for a batch of books.

Usage:
    from epubzip.pipeline.session import ConversionSession
    session = ConversionSession()
    session.add_files(candidates)
    summary = await session.start()
    artifact = await session.download_all()

The session owns one SessionState (file and results registries) and wires
intake, the name sequencer, the runner and the archive builder together.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from epubzip.archive.builder import ArchiveBuilder
from epubzip.batch.intake import Candidate, validate_files
from epubzip.config.settings import Settings
from epubzip.core.errors import AggregationError
from epubzip.core.models import (
    BatchSummary,
    DownloadArtifact,
    InputFile,
    IntakeReport,
    OutputMapping,
    ProcessingStats,
    dump_for_export,
)
from epubzip.extraction.base_extractor import BaseExtractor
from epubzip.extraction.epub_extractor import EpubImageExtractor
from epubzip.logging.context import clear_context
from epubzip.naming.sequencer import NameSequencer
from epubzip.pipeline.runner import ConversionRunner, ProgressCallback
from epubzip.pipeline.state import SessionState

logger = logging.getLogger(__name__)


class ConversionSession:
    """Registry management, conversion and download for one user session.

    Args:
        settings: Runtime settings. Loaded from .env if None.
        extractor: Image extractor override (tests, other formats).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        extractor: BaseExtractor | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._state = SessionState()
        self._sequencer = NameSequencer()
        self._extractor = extractor or EpubImageExtractor()
        self._builder = ArchiveBuilder(
            compression_level=self._settings.compression_level,
            yield_every=self._settings.yield_every_images,
            large_file_bytes=self._settings.large_file_warning_bytes,
        )
        self._max_concurrent_jobs = self._settings.max_concurrent_jobs
        self._runner: ConversionRunner | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def sequencer(self) -> NameSequencer:
        return self._sequencer

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def files(self) -> list[InputFile]:
        return self._state.all_files()

    # --- File registry ---

    def add_files(self, candidates: Iterable[Candidate]) -> IntakeReport:
        """Validate and register books, then re-sequence the whole registry.

        Invalid candidates are reported, never raised. A candidate with the
        same name and size as a registered file is skipped. Refused while
        processing: the report comes back empty with ``refused`` set.
        """
        if self._refuse_while_busy("add files"):
            return IntakeReport(refused=True)
        valid, rejected = validate_files(candidates)
        report = IntakeReport(rejected=rejected)

        for candidate in valid:
            if self._state.find_duplicate(candidate.name, candidate.size) is not None:
                logger.info("Skipping duplicate file: %s", candidate.name)
                report.duplicates.append(candidate.name)
                continue
            file = InputFile(name=candidate.name, size=candidate.size, content=candidate.content)
            self._state.add_file(file)
            report.added.append(file)

        if report.added:
            self._resequence()
        if report.warning:
            logger.warning(report.warning)
        logger.info(
            "Added %d files (%d rejected, %d duplicates); registry holds %d",
            len(report.added), len(report.rejected), len(report.duplicates),
            len(self._state.files),
        )
        return report

    def remove_file(self, file_id: str) -> bool:
        """Drop one file and its result. Refused while processing."""
        if self._refuse_while_busy("remove a file"):
            return False
        removed = self._state.remove_file(file_id)
        if removed is None:
            return False
        self._resequence()
        return True

    def clear(self) -> None:
        """Empty both registries. Refused while processing."""
        if self._refuse_while_busy("clear files"):
            return
        self._state.clear()
        self._sequencer.reset()

    def reset(self) -> None:
        """Start over with a fresh session state. Refused while processing."""
        if self._refuse_while_busy("reset the session"):
            return
        self._state = SessionState()
        self._sequencer.reset()
        self._runner = None
        clear_context()
        logger.info("Session reset")

    def preview_names(self) -> list[OutputMapping]:
        """Output mapping the next run would use, without side effects."""
        return self._sequencer.preview_sorting(self._state.all_files())

    # --- Conversion ---

    async def start(self, on_progress: ProgressCallback | None = None) -> BatchSummary | None:
        """Convert every registered book.

        Returns None (with a warning) when a batch is already running or the
        registry is empty.
        """
        if self._state.is_processing:
            logger.warning("A conversion is already running; ignoring start request")
            return None
        if not self._state.files:
            logger.warning("No files to convert")
            return None

        self._state.is_processing = True
        self._runner = ConversionRunner(
            self._state,
            extractor=self._extractor,
            builder=self._builder,
            max_concurrent_jobs=self._max_concurrent_jobs,
            batch_yield_s=self._settings.batch_yield_seconds,
            large_image_bytes=self._settings.large_image_warning_bytes,
        )
        try:
            return await self._runner.run(on_progress)
        finally:
            self._state.is_processing = False

    # --- Download ---

    async def download_all(self) -> DownloadArtifact:
        """One archive when a single book succeeded, otherwise a bundle.

        Raises:
            AggregationError: If no book converted successfully.
        """
        successful = self._state.successful_results()
        if not successful:
            raise AggregationError("No files available for download")

        if len(successful) == 1:
            only = successful[0]
            return DownloadArtifact(file_name=only.file_name, data=only.archive_bytes)

        archive_name = self._settings.aggregate_archive_name
        data = await self._builder.build_aggregate(successful, archive_name)
        return DownloadArtifact(
            file_name=archive_name, data=data, entry_count=len(successful),
        )

    def download_single(self, output_name: str) -> DownloadArtifact:
        """The archive of one successfully converted book.

        Raises:
            KeyError: If no successful result carries *output_name*.
        """
        for result in self._state.successful_results():
            if result.file_name == output_name:
                return DownloadArtifact(file_name=result.file_name, data=result.archive_bytes)
        raise KeyError(f"No converted archive named {output_name}")

    # --- Stats and configuration ---

    def processing_stats(self) -> ProcessingStats:
        return self._state.processing_stats()

    def export_results(self) -> dict[str, Any]:
        """Timestamped JSON-ready snapshot of the session."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self._state.session_id,
            "stats": dump_for_export(self.processing_stats()),
            "files": [dump_for_export(f) for f in self._state.all_files()],
            "results": [dump_for_export(r) for r in self._state.results.values()],
        }

    def configure(
        self,
        max_concurrent_jobs: int | None = None,
        compression_level: int | None = None,
    ) -> None:
        """Change tunables for the next run.

        Raises:
            ValueError: If jobs <= 0 or the level is outside 0..9.
        """
        if max_concurrent_jobs is not None:
            if max_concurrent_jobs <= 0:
                raise ValueError("max_concurrent_jobs must be > 0")
            self._max_concurrent_jobs = max_concurrent_jobs
        if compression_level is not None:
            self._builder.set_compression_level(compression_level)
        logger.debug(
            "Configured: max_concurrent_jobs=%d, compression_level=%d",
            self._max_concurrent_jobs, self._builder.compression_level,
        )

    def status(self) -> dict[str, Any]:
        runner = self._runner
        return {
            "is_processing": self._state.is_processing,
            "file_count": len(self._state.files),
            "max_concurrent_jobs": self._max_concurrent_jobs,
            "in_flight": runner.in_flight if runner is not None else 0,
            **self._builder.status(),
        }

    # --- Internals ---

    def _resequence(self) -> None:
        files = self._state.all_files()
        if not files:
            self._sequencer.reset()
            return
        self._state.apply_output_names(self._sequencer.process_file_names(files))

    def _refuse_while_busy(self, action: str) -> bool:
        if self._state.is_processing:
            logger.warning("Cannot %s while a conversion is running", action)
            return True
        return False
