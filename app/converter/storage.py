"""In-memory storage for the source document and rendered page images."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Iterator

from .config import FORMAT_EXTENSIONS, FORMAT_MEDIA_TYPES, PDF_MIME_TYPE

BYTES_PER_MB = 1024 * 1024


def display_name_from_filename(filename: str) -> str:
    """Strip a trailing ``.pdf`` (any case) from an uploaded file name."""
    if filename.lower().endswith(".pdf"):
        return filename[: -len(".pdf")]
    return filename


def format_size_mb(size_bytes: int) -> str:
    """Format a byte count as megabytes with two decimals."""
    return f"{size_bytes / BYTES_PER_MB:.2f}"


def page_filename(document_name: str, page_number: int, image_format: str) -> str:
    """File name used for a single exported page."""
    return f"{document_name}_page_{page_number}.{FORMAT_EXTENSIONS[image_format]}"


def archive_filename(document_name: str) -> str:
    """File name used for the ZIP archive of all pages."""
    return f"{document_name}_converted.zip"


def to_data_url(data: bytes, media_type: str) -> str:
    """Encode raw bytes as a base64 data URL."""
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(data_url: str) -> tuple[str, bytes]:
    """
    Decode a base64 data URL.

    Returns:
        Tuple of (media_type, raw bytes).

    Raises:
        ValueError: If the string is not a base64 data URL.
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URL")
    media_type = header[len("data:") : -len(";base64")]
    try:
        return media_type, base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


@dataclass
class SourceDocument:
    """The loaded PDF plus the engine handle opened for it."""

    filename: str
    data: bytes
    content_type: str = PDF_MIME_TYPE
    handle: Any = None

    @property
    def display_name(self) -> str:
        return display_name_from_filename(self.filename)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def size_mb(self) -> str:
        return format_size_mb(self.size_bytes)

    def close(self) -> None:
        """Release the engine handle, if one was opened."""
        if self.handle is not None:
            self.handle.close()
            self.handle = None


@dataclass(frozen=True)
class PageImage:
    """One rendered and encoded page."""

    page_number: int
    data: bytes
    image_format: str
    width: int
    height: int

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"Page numbers start at 1, got {self.page_number}")
        if self.image_format not in FORMAT_MEDIA_TYPES:
            raise ValueError(f"Unknown image format: {self.image_format}")

    @property
    def media_type(self) -> str:
        return FORMAT_MEDIA_TYPES[self.image_format]

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.media_type)

    def filename(self, document_name: str) -> str:
        return page_filename(document_name, self.page_number, self.image_format)


@dataclass
class ResultStore:
    """Insertion-ordered page images for the current conversion run."""

    records: list[PageImage] = field(default_factory=list)

    def append(self, record: PageImage) -> None:
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()

    def get(self, page_number: int) -> PageImage:
        """Look up a record by its 1-based page number."""
        for record in self.records:
            if record.page_number == page_number:
                return record
        raise KeyError(page_number)

    def __getitem__(self, index: int) -> PageImage:
        return self.records[index]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[PageImage]:
        return iter(self.records)
