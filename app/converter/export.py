"""Packaging of converted pages for download."""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import Sequence

from .errors import ExportError, InvalidStateError
from .storage import PageImage, archive_filename

logger = logging.getLogger(__name__)

ZIP_MEDIA_TYPE = "application/zip"


@dataclass(frozen=True)
class ExportArtifact:
    """A file ready to hand to the browser's save mechanism."""

    filename: str
    data: bytes
    media_type: str

    @property
    def is_archive(self) -> bool:
        return self.media_type == ZIP_MEDIA_TYPE


def export_single(record: PageImage, document_name: str) -> ExportArtifact:
    """Export one page image as-is."""
    return ExportArtifact(
        filename=record.filename(document_name),
        data=record.data,
        media_type=record.media_type,
    )


def build_archive(records: Sequence[PageImage], document_name: str) -> bytes:
    """
    Bundle page images into an in-memory ZIP archive.

    Raises:
        ExportError: If two records map to the same entry name or the
            archive cannot be written.
    """
    names = [record.filename(document_name) for record in records]
    if len(set(names)) != len(names):
        raise ExportError("Duplicate file names in archive")

    buffer = BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, record in zip(names, records):
                zf.writestr(name, record.data)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ExportError(f"Error creating ZIP archive: {e}") from e

    return buffer.getvalue()


def export_images(records: Sequence[PageImage], document_name: str) -> ExportArtifact:
    """
    Export the result store: the image itself for a single page, a ZIP
    archive with one entry per page otherwise.
    """
    if not records:
        raise InvalidStateError("No converted images to download.")

    if len(records) == 1:
        return export_single(records[0], document_name)

    logger.info(f"Creating ZIP archive with {len(records)} pages for '{document_name}'")
    return ExportArtifact(
        filename=archive_filename(document_name),
        data=build_archive(records, document_name),
        media_type=ZIP_MEDIA_TYPE,
    )
