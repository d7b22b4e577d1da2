import requests

from ui import gradio_app
from ui.gradio_app import QUALITY_CHOICES, SCALE_CHOICES, filename_from_disposition, format_stats


def test_filename_prefers_utf8_form():
    header = "attachment; filename=\"r?sum?_converted.zip\"; filename*=UTF-8''r%C3%A9sum%C3%A9_converted.zip"
    assert filename_from_disposition(header, "x") == "résumé_converted.zip"


def test_filename_plain_form():
    assert filename_from_disposition('attachment; filename="invoice_page_1.jpg"', "x") == "invoice_page_1.jpg"


def test_filename_default():
    assert filename_from_disposition(None, "converted.zip") == "converted.zip"
    assert filename_from_disposition("attachment", "converted.zip") == "converted.zip"


def test_format_stats():
    status = {"page_count": 3, "file_size": "1.25 MB", "export_type": "ZIP Archive", "status": "Conversion Complete"}
    assert format_stats(status) == "Pages: 3 | Size: 1.25 MB | Export: ZIP Archive | Status: Conversion Complete"


def test_option_labels():
    assert ("90%", 0.9) in QUALITY_CHOICES
    assert ("1.5x", 1.5) in SCALE_CHOICES


def test_load_without_file_survives_api_outage(monkeypatch):
    def unreachable(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(gradio_app.requests, "get", unreachable)
    outputs = gradio_app.load_pdf(None)

    assert len(outputs) == 5
    assert outputs[0].startswith("❌ Connection error")


def _handlers(event):
    fns = []
    for dep in gradio_app.demo.config["dependencies"]:
        targets = [tuple(target) for target in dep["targets"]]
        if (gradio_app.pdf._id, event) in targets:
            fns.append(gradio_app.demo.fns[dep["id"]].fn)
    return fns


def test_clearing_the_picker_resets_the_session():
    assert _handlers("clear") == [gradio_app.clear_all]
    assert _handlers("upload") == [gradio_app.load_pdf]
