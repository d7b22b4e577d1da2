"""Converter session: the state machine behind the browser tool."""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum

from .config import PDF_MIME_TYPE, ConversionConfig, settings
from .errors import (
    ConversionError,
    ExportError,
    InvalidInputError,
    InvalidStateError,
    PageNotFoundError,
)
from .export import ExportArtifact, export_images, export_single
from .pdf_pages import FitzEngine, render_pages
from .preview import PreviewBoard
from .storage import BYTES_PER_MB, ResultStore, SourceDocument

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    CONVERTING = "converting"
    CONVERTED = "converted"
    FAILED = "failed"


# Status field values
STATUS_READY = "Ready"
STATUS_LOADED = "File Loaded"
STATUS_CONVERTING = "Converting..."
STATUS_COMPLETE = "Conversion Complete"
STATUS_ERROR = "Error"
STATUS_PREPARING = "Preparing download..."
STATUS_DOWNLOADED = "Download Complete"
STATUS_ZIP_ERROR = "Error creating ZIP"


@dataclass
class IntakePanel:
    """Contents of the drop zone."""

    title: str = "Drag & Drop your PDF file here"
    subtitle: str = "or click to browse files"
    action_label: str = "Browse PDF Files"
    has_file: bool = False


@dataclass
class DisplayState:
    """Everything the browser shows outside the preview tiles."""

    status: str = STATUS_READY
    file_size: str = "0 MB"
    page_count: int = 0
    export_type: str = "-"
    download_label: str = "Download"
    loading_message: str = ""
    loading_visible: bool = False
    stats_visible: bool = False
    preview_visible: bool = False
    convert_enabled: bool = False
    clear_enabled: bool = False
    download_enabled: bool = False
    intake: IntakePanel = field(default_factory=IntakePanel)


class ConverterSession:
    """
    One user's PDF-to-image session.

    Commands: load_file, start_conversion, export, export_page, reset.
    The engine defaults to PyMuPDF; anything with the same
    open/page_count/get_page shape can be passed in.
    """

    def __init__(self, engine=None):
        self.engine = engine or FitzEngine()
        self.document: SourceDocument | None = None
        self.results = ResultStore()
        self.previews = PreviewBoard()
        self.config: ConversionConfig | None = None
        self.state = SessionState.EMPTY
        self.display = DisplayState()
        self.last_error: str | None = None
        # bumped on reset so a detached conversion run stops touching state
        self._run_id = 0
        # every engine call goes through this one worker, across runs
        self._engine_worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pdf-engine")

    # --- File intake ---

    def load_file(self, filename: str, data: bytes, content_type: str | None) -> SourceDocument:
        """
        Accept a PDF upload.

        Raises:
            InvalidInputError: Wrong MIME type, empty or oversized file.
                The session is left untouched.
            InvalidStateError: A conversion is running.
        """
        if content_type != PDF_MIME_TYPE:
            logger.warning(f"Rejected upload {filename!r} with type {content_type!r}")
            raise InvalidInputError("Please drop a PDF file only.")
        if not data:
            raise InvalidInputError("Empty file uploaded. Please select a valid PDF.")
        size_mb = len(data) / BYTES_PER_MB
        if size_mb > settings.max_file_size_mb:
            raise InvalidInputError(
                f"File too large: {size_mb:.1f}MB exceeds {settings.max_file_size_mb}MB limit"
            )
        if self.state == SessionState.CONVERTING:
            raise InvalidStateError("A conversion is already running.")

        if self.document is not None:
            self.document.close()
        self.document = SourceDocument(filename=filename, data=data, content_type=content_type)
        self.state = SessionState.LOADED
        self.last_error = None

        size = self.document.size_mb
        self.display.file_size = f"{size} MB"
        self.display.status = STATUS_LOADED
        self.display.convert_enabled = True
        self.display.clear_enabled = True
        self.display.download_enabled = False
        self.display.intake = IntakePanel(
            title=filename,
            subtitle=f"{size} MB • Ready to convert",
            action_label="Change PDF File",
            has_file=True,
        )

        logger.info(f"Loaded {filename!r} ({size} MB)")
        return self.document

    # --- Conversion ---

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._run_id

    async def _run_engine(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._engine_worker, fn, *args)

    def _set_progress(self, page_number: int, total: int) -> None:
        self.display.loading_message = f"Converting page {page_number} of {total}..."

    async def start_conversion(self, config: ConversionConfig | None = None) -> ResultStore:
        """
        Render every page of the loaded document, one page at a time.

        Results and previews are cleared first. On the first engine error
        the loop stops, pages already rendered are kept and the session
        moves to FAILED.

        Raises:
            InvalidStateError: No file loaded, already converting, or
                already converted (load the file again to re-run).
            ConversionError: The engine could not open or render the PDF.
        """
        if self.state not in (SessionState.LOADED, SessionState.FAILED):
            raise InvalidStateError(f"Cannot convert in state '{self.state.value}'")

        config = config or ConversionConfig()
        document = self.document
        run_id = self._run_id

        self.config = config
        self.state = SessionState.CONVERTING
        self.last_error = None
        self.display.loading_visible = True
        self.display.loading_message = "Loading PDF document..."
        self.display.convert_enabled = False
        self.display.download_enabled = False
        self.display.preview_visible = False
        self.results.clear()
        self.previews.clear()

        t0 = time.perf_counter()
        current_page = None

        def on_page(page_number: int, total: int) -> None:
            nonlocal current_page
            current_page = page_number
            if self._is_current(run_id):
                self._set_progress(page_number, total)

        try:
            if document.handle is None:
                document.handle = await self._run_engine(self.engine.open, document.data)
            if not self._is_current(run_id):
                return self.results

            total = document.handle.page_count
            fmt = config.image_format.upper()
            self.display.page_count = total
            self.display.export_type = f"Single {fmt}" if total == 1 else "ZIP Archive"
            self.display.status = STATUS_CONVERTING
            self.display.stats_visible = True

            async with aclosing(
                render_pages(document.handle, config, on_page=on_page, executor=self._engine_worker)
            ) as pages:
                async for record in pages:
                    if not self._is_current(run_id):
                        logger.info("Session reset during conversion; discarding remaining pages")
                        return self.results
                    self.results.append(record)
                    self.previews.add(record)

        except Exception as e:
            if not self._is_current(run_id):
                return self.results
            self._fail(e, current_page)
            raise ConversionError(f"Error converting PDF: {e}", page_number=current_page) from e
        finally:
            # a reset while converting leaves the handle for this run to close
            if not self._is_current(run_id):
                await self._run_engine(document.close)

        self.state = SessionState.CONVERTED
        self.display.loading_visible = False
        self.display.loading_message = ""
        self.display.preview_visible = True
        self.display.download_enabled = len(self.results) > 0
        self.display.download_label = (
            f"Download {config.image_format.upper()} Image"
            if len(self.results) == 1
            else "Download ZIP Archive"
        )
        self.display.status = STATUS_COMPLETE

        elapsed_ms = round((time.perf_counter() - t0) * 1000, 1)
        logger.info(
            f"Converted {len(self.results)} pages of {document.filename!r} "
            f"to {config.image_format} in {elapsed_ms}ms"
        )
        return self.results

    def _fail(self, error: Exception, page_number: int | None) -> None:
        where = f" on page {page_number}" if page_number else ""
        logger.exception(f"Error converting PDF{where}: {error}")
        self.state = SessionState.FAILED
        self.last_error = str(error)
        self.display.status = STATUS_ERROR
        self.display.loading_message = "Error converting PDF. Please try again."
        self.display.loading_visible = False
        self.display.convert_enabled = True
        self.display.preview_visible = len(self.previews) > 0
        self.display.download_enabled = len(self.results) > 0

    # --- Export ---

    def _require_results(self) -> None:
        if self.state == SessionState.CONVERTING:
            raise InvalidStateError("Wait for the conversion to finish before downloading.")
        if self.state not in (SessionState.CONVERTED, SessionState.FAILED) or not self.results:
            raise InvalidStateError("No converted images to download.")

    @property
    def document_name(self) -> str:
        return self.document.display_name if self.document else ""

    def export(self) -> ExportArtifact:
        """
        Package the results: the image itself for one page, a ZIP
        archive otherwise.

        Raises:
            InvalidStateError: Nothing converted yet, or still converting.
            ExportError: The archive could not be built.
        """
        self._require_results()
        self.display.status = STATUS_PREPARING
        if len(self.results) > 1:
            self.display.loading_message = "Creating ZIP archive..."
            self.display.loading_visible = True

        try:
            artifact = export_images(self.results, self.document_name)
        except ExportError as e:
            logger.exception(f"Error creating ZIP: {e}")
            self.display.status = STATUS_ZIP_ERROR
            self.last_error = str(e)
            raise
        finally:
            self.display.loading_visible = False

        self.display.status = STATUS_DOWNLOADED
        logger.info(f"Prepared download {artifact.filename} ({len(artifact.data)} bytes)")
        return artifact

    def export_page(self, page_number: int) -> ExportArtifact:
        """Export a single converted page by its 1-based number."""
        self._require_results()
        try:
            record = self.results.get(page_number)
        except KeyError:
            raise PageNotFoundError(f"Page {page_number} has not been converted") from None
        return export_single(record, self.document_name)

    # --- Reset ---

    def reset(self) -> None:
        """Drop everything and return to the initial empty state."""
        self._run_id += 1
        if self.document is not None and self.state != SessionState.CONVERTING:
            self.document.close()
        self.document = None
        self.results.clear()
        self.previews.clear()
        self.config = None
        self.last_error = None
        self.state = SessionState.EMPTY
        self.display = DisplayState()
        logger.debug("Session reset")

    def close(self) -> None:
        """Reset and stop the engine worker. The session is unusable afterwards."""
        self.reset()
        self._engine_worker.shutdown(wait=True)
