import pytest

from app.converter.storage import (
    PageImage,
    ResultStore,
    SourceDocument,
    archive_filename,
    display_name_from_filename,
    format_size_mb,
    from_data_url,
    page_filename,
)


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("invoice.pdf", "invoice"),
        ("Report.PDF", "Report"),
        ("my.pdf.notes.pdf", "my.pdf.notes"),
        ("scan", "scan"),
    ],
)
def test_display_name(filename, expected):
    assert display_name_from_filename(filename) == expected


def test_size_is_rounded_to_two_decimals():
    assert format_size_mb(1024 * 1024 * 3 // 2) == "1.50"
    assert format_size_mb(1234) == "0.00"
    assert format_size_mb(0) == "0.00"


def test_page_filename_uses_format_extension():
    assert page_filename("invoice", 1, "jpeg") == "invoice_page_1.jpg"
    assert page_filename("report", 12, "png") == "report_page_12.png"
    assert page_filename("a", 3, "webp") == "a_page_3.webp"


def test_filenames_keep_special_characters():
    name = "Q3 résumé (final) #2 & co"
    assert page_filename(name, 2, "png") == f"{name}_page_2.png"
    assert archive_filename(name) == f"{name}_converted.zip"


def test_page_image_data_url():
    record = PageImage(page_number=1, data=b"\x89PNG-bytes", image_format="png", width=10, height=20)
    assert record.data_url.startswith("data:image/png;base64,")
    assert from_data_url(record.data_url) == ("image/png", b"\x89PNG-bytes")


def test_from_data_url_rejects_plain_text():
    with pytest.raises(ValueError):
        from_data_url("hello")
    with pytest.raises(ValueError):
        from_data_url("data:image/png;base64,***")


def test_page_image_validation():
    with pytest.raises(ValueError):
        PageImage(page_number=0, data=b"", image_format="png", width=1, height=1)
    with pytest.raises(ValueError):
        PageImage(page_number=1, data=b"", image_format="gif", width=1, height=1)


def test_result_store_order_and_lookup():
    store = ResultStore()
    for n in (1, 2, 3):
        store.append(PageImage(page_number=n, data=bytes([n]), image_format="png", width=1, height=1))

    assert len(store) == 3
    assert [r.page_number for r in store] == [1, 2, 3]
    assert store[0].page_number == 1
    assert store.get(3).data == b"\x03"
    with pytest.raises(KeyError):
        store.get(4)

    store.clear()
    assert len(store) == 0


def test_source_document_close_releases_handle():
    class Handle:
        closed = False

        def close(self):
            self.closed = True

    handle = Handle()
    document = SourceDocument(filename="a.pdf", data=b"%PDF", handle=handle)
    document.close()
    document.close()

    assert handle.closed
    assert document.handle is None
    assert document.display_name == "a"
    assert document.size_bytes == 4
