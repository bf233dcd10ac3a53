# src/pipeline/runner.py
"""Conversion runner: drive every registered book through extract -> zip.

Walks the file registry in order and starts one job per file, with at most
``max_concurrent_jobs`` jobs in flight (asyncio.Semaphore). A job owns a
single file id for its lifetime and never lets an exception escape: every
failure becomes that file's ``error`` status and a failed ConversionResult.

Supports:
  - Bounded concurrency; dispatch (and the ``processing`` transition) in
    registry order, completion in any order
  - Per-file failure taxonomy: parse_failed, no_images, compression_failed,
    plus unexpected_error for anything unclassified
  - Advisory progress callbacks (status transitions, adding, compressing)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid

from epubzip.archive.builder import ArchiveBuilder, ProgressCallback
from epubzip.core.errors import (
    ConversionError,
    FailureCode,
    NoImagesError,
    ParseFailedError,
)
from epubzip.core.models import (
    BatchSummary,
    ConversionResult,
    FileStatus,
    InputFile,
    ProgressEvent,
)
from epubzip.extraction.base_extractor import BaseExtractor
from epubzip.extraction.epub_extractor import (
    LARGE_IMAGE_BYTES,
    EpubImageExtractor,
    validate_outcome,
)
from epubzip.logging.context import set_batch_context, set_file_context, set_stage
from epubzip.naming.sequencer import NameSequencer
from epubzip.pipeline.state import SessionState

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_JOBS = 3
DEFAULT_BATCH_YIELD_S = 0.05


class ConversionRunner:
    """Execute one conversion batch against a SessionState.

    Args:
        state: Session registries to read files from and record results in.
        extractor: Image extractor (EPUB by default).
        builder: Archive builder for per-file archives.
        max_concurrent_jobs: Upper bound on jobs in flight.
        batch_yield_s: Pause after each dispatch to keep the loop responsive.
        large_image_bytes: Images above this size are logged as warnings.
    """

    def __init__(
        self,
        state: SessionState,
        extractor: BaseExtractor | None = None,
        builder: ArchiveBuilder | None = None,
        max_concurrent_jobs: int = DEFAULT_MAX_CONCURRENT_JOBS,
        batch_yield_s: float = DEFAULT_BATCH_YIELD_S,
        large_image_bytes: int = LARGE_IMAGE_BYTES,
    ) -> None:
        if max_concurrent_jobs <= 0:
            raise ValueError("max_concurrent_jobs must be > 0")
        self._state = state
        self._extractor = extractor or EpubImageExtractor()
        self._builder = builder or ArchiveBuilder()
        self._max_jobs = max_concurrent_jobs
        self._batch_yield_s = max(0.0, batch_yield_s)
        self._large_image_bytes = large_image_bytes
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def max_concurrent_jobs(self) -> int:
        return self._max_jobs

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of simultaneous jobs seen during the last run."""
        return self._peak_in_flight

    async def run(self, on_progress: ProgressCallback | None = None) -> BatchSummary:
        """Convert every registered file and return one result per file.

        Files that have no output name yet are sequenced first, over the
        whole registry.
        """
        start = time.perf_counter()
        files = self._state.all_files()
        self._peak_in_flight = 0

        set_batch_context(uuid.uuid4().hex[:12])
        self._ensure_output_names(files)

        for file in files:
            self._state.results.pop(file.id, None)
            self._set_status(file, "waiting", on_progress, "Waiting")

        semaphore = asyncio.Semaphore(self._max_jobs)
        tasks: list[asyncio.Task[ConversionResult]] = []

        for file in files:
            await semaphore.acquire()
            self._job_started()
            self._set_status(file, "processing", on_progress, "Parsing EPUB...")
            tasks.append(
                asyncio.create_task(
                    self._run_job(file, semaphore, on_progress),
                    name=f"convert-{file.output_name or file.id}",
                )
            )
            await asyncio.sleep(self._batch_yield_s)

        results = list(await asyncio.gather(*tasks))

        succeeded = sum(1 for r in results if r.success)
        summary = BatchSummary(
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
            duration_seconds=round(time.perf_counter() - start, 3),
        )
        logger.info(
            "Conversion: %s (peak %d concurrent jobs, %.2fs)",
            summary.message, self._peak_in_flight, summary.duration_seconds,
        )
        return summary

    async def _run_job(
        self,
        file: InputFile,
        semaphore: asyncio.Semaphore,
        on_progress: ProgressCallback | None,
    ) -> ConversionResult:
        """One file, start to terminal status. Never raises Exception."""
        set_file_context(file.id, file.name)
        try:
            result = await self._convert(file, on_progress)
        except ConversionError as exc:
            logger.error("Conversion of %s failed (%s): %s", file.name, exc.code.value, exc)
            result = _failed_result(file, str(exc), exc.code)
        except Exception as exc:
            logger.exception("Unexpected error while converting %s", file.name)
            result = _failed_result(file, f"Unexpected error: {exc}", FailureCode.UNEXPECTED_ERROR)
        finally:
            set_stage(None)
            self._in_flight -= 1
            semaphore.release()

        self._state.record_result(result)
        if result.success:
            self._set_status(file, "completed", on_progress, "Done")
        else:
            self._set_status(file, "error", on_progress, result.error or "", error=result.error)
        return result

    async def _convert(
        self, file: InputFile, on_progress: ProgressCallback | None,
    ) -> ConversionResult:
        set_stage("extract")
        outcome = await self._extractor.extract(file.content)
        if not outcome.success:
            raise ParseFailedError(outcome.error or "Parse failed")
        if not outcome.images:
            raise NoImagesError("No images found")
        for issue in validate_outcome(outcome, self._large_image_bytes).issues:
            if issue.type == "large_image":
                logger.warning(issue.message)

        set_stage("compress")
        _emit(on_progress, ProgressEvent(
            file_id=file.id,
            file_name=file.name,
            status="processing",
            message="Building ZIP...",
        ))

        def forward(event: ProgressEvent) -> None:
            if on_progress is None:
                return
            if event.stage == "compressing":
                message = f"Compressing... {round(event.percent or 0)}%"
            else:
                message = "Adding files..."
            on_progress(event.model_copy(update={
                "file_id": file.id, "status": "processing", "message": message,
            }))

        archive = await self._builder.build_from_images(
            outcome.images, file.output_name, on_progress=forward,
        )
        return ConversionResult(
            file_id=file.id,
            file_name=file.output_name,
            original_name=file.name,
            archive_bytes=archive,
            size=len(archive),
            image_count=len(outcome.images),
            metadata=outcome.metadata,
            success=True,
        )

    def _ensure_output_names(self, files: list[InputFile]) -> None:
        if all(f.output_name for f in files):
            return
        logger.info("Assigning output names before conversion")
        self._state.apply_output_names(NameSequencer().process_file_names(files))

    def _job_started(self) -> None:
        self._in_flight += 1
        self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

    def _set_status(
        self,
        file: InputFile,
        status: FileStatus,
        on_progress: ProgressCallback | None,
        message: str,
        error: str | None = None,
    ) -> None:
        self._state.update_status(file.id, status, error=error)
        _emit(on_progress, ProgressEvent(
            file_id=file.id, file_name=file.name, status=status, message=message,
        ))


def _failed_result(file: InputFile, error: str, code: FailureCode) -> ConversionResult:
    return ConversionResult(
        file_id=file.id,
        file_name=file.output_name,
        original_name=file.name,
        success=False,
        error=error,
        error_code=code.value,
    )


def _emit(callback: ProgressCallback | None, event: ProgressEvent) -> None:
    if callback is None:
        return
    try:
        callback(event)
    except Exception:
        logger.exception("Progress callback failed for %s", event.file_name)
