"""
Fast-start rewrite of MP4 files.

MovieFastStart moves the moov box in front of the media data and drops free
boxes, patching every chunk offset so the samples are still found:

    Indexing -> Deciding -> Patching -> WritingOutput

``check`` stops after Deciding; ``process`` runs to the end. Neither raises:
both return a boolean and leave details in ``status``, ``output_length`` and
``last_exception``.
"""

import logging
import os

from faststart.configs import settings
from faststart.const import SKIPPED_KINDS
from faststart.mp4.box_scanner import Box
from faststart.mp4.errors import FastStartError, IncompleteBoxError
from faststart.mp4.indexer import BoxIndex, scan_top_level
from faststart.mp4.offset_tables import rewrite_moov_offsets
from faststart.schemas import FastStartReport, FastStartStatus
from faststart.utils.notify import NotificationSink, Reporter
from faststart.utils.streams import AsyncByteStream, OutputTarget

logger = logging.getLogger(__name__)


class MovieFastStart:
    def __init__(
        self,
        notify: NotificationSink | None = None,
        task_name: str = "",
        remove_free_atoms: bool | None = None,
        chunk_size: int | None = None,
        output_progress_log: bool | None = None,
    ) -> None:
        """
        Args:
            notify: Optional observer for messages and copy progress.
            task_name: Prefix added to every message, e.g. the file name.
            remove_free_atoms: Rewrite files whose moov is already in front
                when they carry free boxes. When False such files are only
                reported.
            chunk_size: Bytes per read when copying boxes to the output.
            output_progress_log: Also write copy progress to the log.
        """
        self.notify = notify
        self.task_name = task_name
        self.remove_free_atoms = settings.remove_free_atoms if remove_free_atoms is None else remove_free_atoms
        self.chunk_size = chunk_size or settings.chunk_size
        self.output_progress_log = (
            settings.output_progress_log if output_progress_log is None else output_progress_log
        )

        self.status = FastStartStatus()
        self.output_length = 0
        self.last_exception: Exception | None = None

    @property
    def reporter(self) -> Reporter:
        return Reporter(self.notify, self.task_name, self.output_progress_log, logger)

    def _reset(self) -> None:
        self.status = FastStartStatus()
        self.output_length = 0
        self.last_exception = None

    def report(self, needs_patching: bool, filename: str | None = None) -> FastStartReport:
        return FastStartReport(
            filename=filename,
            needs_patching=needs_patching,
            status=self.status.model_copy(),
            output_length=self.output_length,
        )

    def _fail(self, reporter: Reporter, exc: Exception) -> None:
        self.last_exception = exc
        reporter.exception(exc)

    async def check(self, stream: AsyncByteStream) -> bool:
        """
        Analyze ``stream`` without writing anything.

        Returns:
            True if the file needs patching.
        """
        self._reset()
        reporter = self.reporter
        try:
            return await self._run(stream, None, reporter)
        except Exception as e:
            self._fail(reporter, e)
            return False

    async def process(self, stream: AsyncByteStream, target: OutputTarget) -> bool:
        """
        Rewrite ``stream`` into a new file created by ``target``.

        Returns:
            True if a new file was produced. False for files that need no
            rewrite as well as for failures; ``status`` and
            ``last_exception`` tell them apart.
        """
        self._reset()
        reporter = self.reporter
        try:
            return await self._run(stream, target, reporter)
        except Exception as e:
            self._fail(reporter, e)
            return False

    async def _run(self, stream: AsyncByteStream, target: OutputTarget | None, reporter: Reporter) -> bool:
        reporter.message("Analyzing index of top level atoms...")
        index = await scan_top_level(stream, self.remove_free_atoms, reporter)
        layout = index.layout
        if not layout.is_valid:
            reporter.message("Invalid file.")
            self.status.unsupported = True
            return False

        self.status.has_free_atoms = layout.has_free_atoms
        if layout.moov_first:
            if not layout.has_free_atoms and not layout.has_redundant_tail:
                reporter.message("File already suitable.")
                return False
            if not self.remove_free_atoms:
                reporter.message("File has redundant atoms but ignored.")
                return False
        else:
            self.status.slow_start = True

        if target is None:
            reporter.message("File needs patching.")
            return True

        reporter.message("Patching moov...")
        try:
            moov_data = await self._read_box(stream, layout.moov)
            patched_moov = rewrite_moov_offsets(moov_data, layout.offset_bias, reporter)
        except (FastStartError, OSError) as e:
            self._fail(reporter, e)
            return False

        reporter.message("Writing output file:")
        output = await target.create()
        try:
            try:
                total_length = await self._write_output(stream, output, index, patched_moov, reporter)
                await output.flush()
            finally:
                await output.close()
        except Exception as e:
            self._fail(reporter, e)
            try:
                await target.delete()
            except Exception as delete_error:
                reporter.error(f"Cannot delete incomplete output: {delete_error}")
            return False

        self.output_length = total_length
        reporter.message("Write complete!")
        return True

    async def _read_box(self, stream: AsyncByteStream, box: Box) -> bytes:
        await stream.seek(box.start, os.SEEK_SET)
        data = await stream.read(box.size)
        if len(data) != box.size:
            raise IncompleteBoxError(f"Incomplete atom: {box.type} - {box.size - len(data)} bytes short")
        return data

    async def _write_output(
        self, stream: AsyncByteStream, output, index: BoxIndex, patched_moov: bytes, reporter: Reporter
    ) -> int:
        ftyp = index.layout.ftyp
        reporter.verbose(f"Writing {ftyp.type} at 0 length={ftyp.size}")
        await output.write(await self._read_box(stream, ftyp))
        total_length = ftyp.size

        reporter.verbose(f"Writing moov at {total_length} length={len(patched_moov)}")
        await output.write(patched_moov)
        total_length += len(patched_moov)

        for entry in index.boxes:
            if entry.kind in SKIPPED_KINDS:
                continue
            reporter.verbose(f"Writing {entry.type} at {total_length} length={entry.size}")
            await self._copy_box(stream, output, entry.box, reporter)
            total_length += entry.size
        return total_length

    async def _copy_box(self, stream: AsyncByteStream, output, box: Box, reporter: Reporter) -> None:
        await stream.seek(box.start, os.SEEK_SET)
        remain = box.size
        while remain > 0:
            chunk = await stream.read(min(remain, self.chunk_size))
            if not chunk:
                reporter.error(f"Found Incomplete Atom: {box.type} - {remain} bytes short.")
                raise IncompleteBoxError(f"Incomplete atom: {box.type}")
            await output.write(chunk)
            remain -= len(chunk)
            reporter.progress(box.size - remain, box.size, box.type)
