"""Gradio UI for the PDF page converter."""

import mimetypes
import os
import tempfile
from io import BytesIO
from pathlib import Path
from urllib.parse import unquote

import gradio as gr
import requests
from PIL import Image

from app.converter.config import settings
from app.converter.storage import from_data_url

API_BASE = os.getenv("API_BASE", f"http://127.0.0.1:{settings.api_port}")
REQUEST_TIMEOUT = 300  # seconds (large documents at high scale are slow)

FORMAT_CHOICES = [("PNG", "png"), ("JPEG", "jpeg"), ("WEBP", "webp")]
QUALITY_CHOICES = [(f"{int(q * 100)}%", q) for q in settings.quality_choices]
SCALE_CHOICES = [(f"{s:g}x", s) for s in settings.scale_choices]

DOWNLOAD_DIR = Path(tempfile.gettempdir()) / "pdf_page_converter"


def _error_detail(r: requests.Response) -> str:
    try:
        return r.json().get("detail", r.text)
    except ValueError:
        return r.text


def filename_from_disposition(header: str | None, default: str) -> str:
    """Pick the download file name out of a Content-Disposition header."""
    if not header:
        return default
    for part in header.split(";"):
        part = part.strip()
        if part.startswith("filename*=UTF-8''"):
            return unquote(part[len("filename*=UTF-8''") :])
    for part in header.split(";"):
        part = part.strip()
        if part.startswith("filename="):
            return part[len("filename=") :].strip('"')
    return default


def format_stats(status: dict) -> str:
    """One-line summary of the stats panel."""
    return (
        f"Pages: {status['page_count']} | Size: {status['file_size']} | "
        f"Export: {status['export_type']} | Status: {status['status']}"
    )


def _controls(status: dict) -> tuple:
    """Stats text plus enabled/disabled updates for the three action buttons."""
    return (
        format_stats(status),
        gr.update(interactive=status["convert_enabled"]),
        gr.update(interactive=status["clear_enabled"]),
        gr.update(interactive=status["download_enabled"], value=status["download_label"]),
    )


def fetch_status() -> dict:
    r = requests.get(f"{API_BASE}/status", timeout=5)
    r.raise_for_status()
    return r.json()


def check_api_health() -> str:
    """Check if the API is reachable."""
    try:
        r = requests.get(f"{API_BASE}/health", timeout=5)
        r.raise_for_status()
        data = r.json()
        return f"✅ API connected | state: {data.get('state')}"
    except requests.RequestException:
        return "❌ API not reachable. Is the API server running?"


def load_pdf(pdf_file):
    """Send the selected file to the API."""
    try:
        if pdf_file is None:
            return ("⚠️ No file selected.",) + _controls(fetch_status())

        content_type = mimetypes.guess_type(pdf_file)[0] or "application/octet-stream"
        with open(pdf_file, "rb") as f:
            r = requests.post(
                f"{API_BASE}/load",
                files={"file": (os.path.basename(pdf_file), f, content_type)},
                timeout=REQUEST_TIMEOUT,
            )
        if r.status_code >= 400:
            message = _error_detail(r)
            gr.Warning(message)
            return (f"⚠️ {message}",) + _controls(fetch_status())

        j = r.json()
        message = f"📄 {j['filename']} | {j['size_mb']} MB • Ready to convert"
        return (message,) + _controls(fetch_status())

    except requests.RequestException as e:
        return (f"❌ Connection error: {e}", gr.update(), gr.update(), gr.update(), gr.update())


def _gallery_items(tiles: list[dict]) -> list[tuple[Image.Image, str]]:
    items = []
    for tile in tiles:
        _, data = from_data_url(tile["image_url"])
        img = Image.open(BytesIO(data))
        items.append((img, f"{tile['caption']} • {tile['detail']}"))
    return items


def convert_pdf(image_format: str, image_quality: float, render_scale: float):
    """Convert the loaded PDF and show the page previews."""
    try:
        r = requests.post(
            f"{API_BASE}/convert",
            json={
                "image_format": image_format,
                "image_quality": float(image_quality),
                "render_scale": float(render_scale),
            },
            timeout=REQUEST_TIMEOUT,
        )
        if r.status_code >= 400:
            message = f"Error converting PDF: {_error_detail(r)}"
            gr.Warning(message)
        else:
            j = r.json()
            message = f"✅ {j['status']} | {j['num_pages']} page(s) as {j['image_format'].upper()}"

        tiles = requests.get(f"{API_BASE}/pages", timeout=REQUEST_TIMEOUT).json()["pages"]
        choices = [(tile["caption"], tile["page_number"]) for tile in tiles]
        return (
            (message,)
            + _controls(fetch_status())
            + (_gallery_items(tiles), gr.update(choices=choices, value=choices[0][1] if choices else None))
        )

    except requests.RequestException as e:
        return (f"❌ Connection error: {e}",) + (gr.update(),) * 6


def _save_download(r: requests.Response, default: str) -> str:
    filename = filename_from_disposition(r.headers.get("content-disposition"), default)
    DOWNLOAD_DIR.mkdir(parents=True, exist_ok=True)
    path = DOWNLOAD_DIR / os.path.basename(filename)
    path.write_bytes(r.content)
    return str(path)


def download_all():
    """Fetch the single image or the ZIP archive."""
    try:
        r = requests.get(f"{API_BASE}/download", timeout=REQUEST_TIMEOUT)
        if r.status_code >= 400:
            message = _error_detail(r)
            gr.Warning(message)
            return (None, f"❌ {message}") + _controls(fetch_status())
        path = _save_download(r, "converted.zip")
        return (path, f"⬇️ {os.path.basename(path)}") + _controls(fetch_status())
    except requests.RequestException as e:
        return (None, f"❌ Connection error: {e}") + (gr.update(),) * 4


def download_page(page_number):
    """Fetch one converted page."""
    if page_number is None:
        return None, "⚠️ No page selected."
    try:
        r = requests.get(f"{API_BASE}/pages/{int(page_number)}/download", timeout=REQUEST_TIMEOUT)
        if r.status_code >= 400:
            message = _error_detail(r)
            gr.Warning(message)
            return None, f"❌ {message}"
        path = _save_download(r, f"page_{int(page_number)}")
        return path, f"⬇️ {os.path.basename(path)}"
    except requests.RequestException as e:
        return None, f"❌ Connection error: {e}"


def clear_all():
    """Reset the converter to its initial state."""
    try:
        r = requests.post(f"{API_BASE}/reset", timeout=REQUEST_TIMEOUT)
        r.raise_for_status()
        status = r.json()
    except requests.RequestException as e:
        return (f"❌ Connection error: {e}",) + (gr.update(),) * 8
    return (
        (status["status"],)
        + _controls(status)
        + ([], gr.update(choices=[], value=None), None, None)
    )


# --- UI Layout ---

with gr.Blocks(title="PDF to Image Converter", theme=gr.themes.Soft()) as demo:
    gr.Markdown(
        f"""
        # 🖼️ PDF to Image Converter
        **PDF → Page Images → Single Image or ZIP Archive**

        *Max file size: {settings.max_file_size_mb}MB*
        """
    )

    api_status = gr.Textbox(label="API Status", interactive=False)
    demo.load(fn=check_api_health, outputs=[api_status])

    # Intake + options
    with gr.Row():
        pdf = gr.File(label="Drag & Drop your PDF file here", file_types=[".pdf"], type="filepath")
        with gr.Column():
            image_format = gr.Dropdown(FORMAT_CHOICES, value=settings.default_format, label="Image Format")
            image_quality = gr.Dropdown(QUALITY_CHOICES, value=settings.default_quality, label="Image Quality")
            resolution = gr.Dropdown(SCALE_CHOICES, value=settings.default_scale, label="Resolution")

    with gr.Row():
        convert_btn = gr.Button("Convert to Images", variant="primary", interactive=False)
        clear_btn = gr.Button("Clear", interactive=False)
        download_btn = gr.Button("Download", interactive=False)

    status_box = gr.Textbox(label="Status", value="Ready", interactive=False)
    stats = gr.Textbox(label="Stats", interactive=False)

    # Preview section
    gr.Markdown("## 🔍 Preview")
    gallery = gr.Gallery(label="Converted Pages", columns=3, height=600, object_fit="contain")
    with gr.Row():
        page_select = gr.Dropdown(choices=[], label="Page", interactive=True)
        page_download_btn = gr.Button("Download Page")
    download_file = gr.File(label="Download", interactive=False)

    controls = [stats, convert_btn, clear_btn, download_btn]

    pdf.upload(fn=load_pdf, inputs=[pdf], outputs=[status_box] + controls)
    convert_btn.click(
        fn=convert_pdf,
        inputs=[image_format, image_quality, resolution],
        outputs=[status_box] + controls + [gallery, page_select],
    )
    download_btn.click(fn=download_all, outputs=[download_file, status_box] + controls)
    page_download_btn.click(fn=download_page, inputs=[page_select], outputs=[download_file, status_box])
    clear_btn.click(
        fn=clear_all,
        outputs=[status_box] + controls + [gallery, page_select, pdf, download_file],
    )
    # removing the file with the picker's own x button resets the session too
    pdf.clear(
        fn=clear_all,
        outputs=[status_box] + controls + [gallery, page_select, pdf, download_file],
    )


if __name__ == "__main__":
    demo.launch(
        server_name=os.getenv("UI_HOST", settings.ui_host),
        server_port=int(os.getenv("UI_PORT", str(settings.ui_port))),
        show_error=True,
    )
