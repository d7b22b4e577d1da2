import zipfile
from io import BytesIO

import pytest

from app.converter.errors import ExportError, InvalidStateError
from app.converter.export import ZIP_MEDIA_TYPE, build_archive, export_images, export_single
from app.converter.storage import PageImage


def _records(n, image_format="png"):
    return [
        PageImage(page_number=i, data=f"image-{i}".encode(), image_format=image_format, width=10, height=10)
        for i in range(1, n + 1)
    ]


def test_single_record_is_exported_directly():
    [record] = _records(1, "jpeg")
    artifact = export_images([record], "invoice")

    assert artifact.filename == "invoice_page_1.jpg"
    assert artifact.data == record.data
    assert artifact.media_type == "image/jpeg"
    assert not artifact.is_archive


def test_several_records_become_a_zip():
    records = _records(3)
    artifact = export_images(records, "report")

    assert artifact.filename == "report_converted.zip"
    assert artifact.media_type == ZIP_MEDIA_TYPE
    with zipfile.ZipFile(BytesIO(artifact.data)) as zf:
        assert zf.namelist() == ["report_page_1.png", "report_page_2.png", "report_page_3.png"]
        assert zf.read("report_page_2.png") == b"image-2"


def test_nothing_to_export():
    with pytest.raises(InvalidStateError):
        export_images([], "empty")


def test_duplicate_entry_names_are_refused():
    [record] = _records(1)
    with pytest.raises(ExportError):
        build_archive([record, record], "dup")


def test_export_single_page_from_many():
    records = _records(3, "webp")
    artifact = export_single(records[1], "slides")
    assert artifact.filename == "slides_page_2.webp"
    assert artifact.data == b"image-2"


def test_archive_write_failure_raises_export_error(monkeypatch):
    def failing_writestr(self, name, data):
        raise OSError("disk full")

    monkeypatch.setattr(zipfile.ZipFile, "writestr", failing_writestr)
    with pytest.raises(ExportError, match="disk full"):
        export_images(_records(2), "report")
