"""FastAPI gateway for the PDF page converter."""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Literal
from urllib.parse import quote

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from app.converter.config import ConversionConfig, settings
from app.converter.errors import (
    ConversionError,
    ConverterError,
    ExportError,
    InvalidInputError,
    InvalidStateError,
    PageNotFoundError,
)
from app.converter.export import ExportArtifact
from app.converter.session import ConverterSession

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

session: ConverterSession | None = None

ERROR_STATUS = {
    InvalidInputError: 400,
    PageNotFoundError: 404,
    InvalidStateError: 409,
    ConversionError: 422,
    ExportError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the converter session on startup, drop it on shutdown."""
    global session
    session = ConverterSession()
    yield
    session.close()


app = FastAPI(
    title="PDF Page Converter",
    description="Render PDF pages to PNG, JPEG or WEBP images and download them",
    version="0.1.0",
    lifespan=lifespan,
)


class ConvertRequest(BaseModel):
    """Request body for the convert endpoint."""

    image_format: Literal["png", "jpeg", "jpg", "webp"] = Field(
        default=settings.default_format, description="Output image format"
    )
    image_quality: float = Field(
        default=settings.default_quality, ge=0.0, le=1.0, description="Quality for JPEG/WEBP (ignored for PNG)"
    )
    render_scale: float = Field(
        default=settings.default_scale,
        gt=0,
        le=settings.max_render_scale,
        description="Multiplier on the native page size",
    )


class IntakeInfo(BaseModel):
    title: str
    subtitle: str
    action_label: str
    has_file: bool


class StatusResponse(BaseModel):
    """Snapshot of the session and everything the page displays."""

    state: str
    status: str
    file_size: str
    page_count: int
    export_type: str
    download_label: str
    loading_message: str
    loading_visible: bool
    stats_visible: bool
    preview_visible: bool
    convert_enabled: bool
    clear_enabled: bool
    download_enabled: bool
    intake: IntakeInfo
    last_error: str | None = None


class LoadResponse(BaseModel):
    """Response from file intake."""

    filename: str
    document_name: str
    size_mb: str


class ConvertResponse(BaseModel):
    """Response from a finished conversion."""

    num_pages: int
    image_format: str
    status: str


class PageTile(BaseModel):
    page_number: int
    caption: str
    detail: str
    image_format: str
    width: int
    height: int
    image_url: str
    download_path: str


class PagesResponse(BaseModel):
    pages: list[PageTile]


def _raise_http(e: ConverterError) -> None:
    """Translate a converter error into an HTTP error."""
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(e, error_type):
            raise HTTPException(status_code=status_code, detail=str(e)) from e
    raise HTTPException(status_code=500, detail=str(e)) from e


def _status() -> StatusResponse:
    return StatusResponse(
        state=session.state.value,
        last_error=session.last_error,
        **asdict(session.display),
    )


def _download(artifact: ExportArtifact) -> Response:
    """Build an attachment response for the browser's save mechanism."""
    fallback = artifact.filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
    disposition = f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(artifact.filename)}"
    return Response(
        content=artifact.data,
        media_type=artifact.media_type,
        headers={"Content-Disposition": disposition},
    )


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    if not session:
        return {"ok": True, "state": None}
    return {"ok": True, "state": session.state.value, "converted_pages": len(session.results)}


@app.get("/status", response_model=StatusResponse)
async def status():
    """Return the current display state."""
    if not session:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return _status()


@app.post("/load", response_model=LoadResponse)
async def load(file: UploadFile = File(..., description="PDF file to convert")):
    """
    Load a PDF into the session.

    Only uploads declared as application/pdf are accepted; anything else is
    rejected without touching the session.
    """
    data = await file.read()
    try:
        document = session.load_file(file.filename or "document.pdf", data, file.content_type)
    except ConverterError as e:
        logger.warning(f"Load rejected: {e}")
        _raise_http(e)

    return {
        "filename": document.filename,
        "document_name": document.display_name,
        "size_mb": document.size_mb,
    }


@app.post("/convert", response_model=ConvertResponse)
async def convert(req: ConvertRequest):
    """
    Convert every page of the loaded PDF.

    Pages are rendered one at a time; on the first failure the pages already
    converted stay available and the session moves to the failed state.
    """
    try:
        config = ConversionConfig(**req.model_dump())
        results = await session.start_conversion(config)
    except ConverterError as e:
        if isinstance(e, ConversionError):
            logger.warning(f"Conversion failed: {e}")
        _raise_http(e)

    return {
        "num_pages": len(results),
        "image_format": config.image_format,
        "status": session.display.status,
    }


@app.get("/pages", response_model=PagesResponse)
async def pages():
    """List preview tiles for the converted pages."""
    return {
        "pages": [
            {
                "page_number": tile.page_number,
                "caption": tile.caption,
                "detail": tile.detail,
                "image_format": tile.image_format,
                "width": tile.width,
                "height": tile.height,
                "image_url": tile.image_url,
                "download_path": tile.download_path,
            }
            for tile in session.previews.tiles
        ]
    }


@app.get("/pages/{page_number}/download")
async def download_page(page_number: int):
    """Download one converted page."""
    try:
        return _download(session.export_page(page_number))
    except ConverterError as e:
        _raise_http(e)


@app.get("/download")
async def download():
    """Download the single image, or a ZIP archive when there are several pages."""
    try:
        return _download(session.export())
    except ConverterError as e:
        _raise_http(e)


@app.post("/reset", response_model=StatusResponse)
async def reset():
    """Clear the session and return the initial display state."""
    session.reset()
    return _status()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
