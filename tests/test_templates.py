"""Rendering tests for the HTML pages."""

from filedrop.models.upload import UploadOutput, UploadResult
from filedrop.utils.templates import render_template


def _output(file_name="a.txt"):
    upload = UploadResult(
        id="abc12345",
        length=5,
        file_name=file_name,
        content_type="text/plain",
        expiration_date="Mon, 01 Jan 2024 00:30:00 GMT",
    )
    return UploadOutput(url="http://drop.test/abc12345", upload=upload)


def test_upload_fragment_lists_each_upload():
    html = render_template("upload.html", {"uploads": [_output(), _output("b.txt")]})

    assert html.count("<li>") == 2
    assert 'href="http://drop.test/abc12345"' in html
    assert "Mon, 01 Jan 2024 00:30:00 GMT" in html


def test_upload_fragment_escapes_file_names():
    html = render_template("upload.html", {"uploads": [_output("<script>.txt")]})

    assert "<script>" not in html
    assert "&lt;script&gt;.txt" in html


def test_index_renders_curl_examples():
    html = render_template(
        "index.html",
        {"allowed_expiration_times": [(30, "30m"), (60, "1h")], "origin": "http://drop.test"},
    )

    assert "curl -F file=@photo.png http://drop.test" in html
    assert "curl -F expiration=60" in html
