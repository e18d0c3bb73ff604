"""HTTP tests for the file drop endpoints."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from filedrop.api.drop import format_minutes, get_origin, is_terminal_client

CURL = {"User-Agent": "curl/8.5.0"}
BROWSER = {"User-Agent": "Mozilla/5.0 (X11; Linux x86_64) Firefox/128.0"}


def _stored(storage, object_id):
    return storage.objects[f"test-bucket/{object_id}"]


def _upload(client, files, data=None, headers=CURL):
    return client.post("/", files=files, data=data or {}, headers=headers)


class TestUpload:
    def test_terminal_client_gets_plain_urls(self, client, storage):
        resp = _upload(client, [("file", ("a.txt", b"hello", "text/plain"))])

        assert resp.status_code == 201
        assert resp.headers["content-type"].startswith("text/plain")
        lines = resp.text.splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("http://testserver/")
        object_id = lines[0].rsplit("/", 1)[1]
        assert len(object_id) == 8
        assert _stored(storage, object_id)["data"] == b"hello"

    def test_multiple_files_give_one_url_each(self, client, storage):
        resp = _upload(
            client,
            [
                ("file", ("a.txt", b"one", "text/plain")),
                ("file", ("b.txt", b"two", "text/plain")),
            ],
        )

        assert resp.status_code == 201
        assert len(resp.text.splitlines()) == 2
        assert len(storage.objects) == 2

    def test_browser_gets_html_fragment(self, client):
        resp = _upload(client, [("file", ("a.pdf", b"%PDF", "application/pdf"))], headers=BROWSER)

        assert resp.status_code == 201
        assert resp.headers["content-type"].startswith("text/html")
        assert "<ul" in resp.text
        assert "a.pdf" in resp.text
        assert "http://testserver/" in resp.text

    def test_forwarded_headers_build_url(self, client):
        headers = dict(CURL, **{"X-Forwarded-Proto": "https", "X-Forwarded-Host": "drop.example.com"})

        resp = _upload(client, [("file", ("a.txt", b"x", "text/plain"))], headers=headers)

        assert resp.text.startswith("https://drop.example.com/")

    def test_allowed_expiration_is_used(self, client, storage):
        before = datetime.now(timezone.utc)

        resp = _upload(client, [("file", ("a.txt", b"x", "text/plain"))], data={"expiration": "1440"})

        object_id = resp.text.strip().rsplit("/", 1)[1]
        expires = _stored(storage, object_id)["expires"]
        assert timedelta(hours=23, minutes=59) < expires - before <= timedelta(days=1, minutes=1)

    def test_disallowed_expiration_falls_back_to_default(self, client, storage):
        before = datetime.now(timezone.utc)

        resp = _upload(client, [("file", ("a.txt", b"x", "text/plain"))], data={"expiration": "999"})

        assert resp.status_code == 201
        object_id = resp.text.strip().rsplit("/", 1)[1]
        expires = _stored(storage, object_id)["expires"]
        assert timedelta(minutes=29) < expires - before <= timedelta(minutes=31)

    def test_no_files_returns_empty_list(self, client):
        resp = client.post("/", files=[("expiration", (None, "60"))], headers=CURL)

        assert resp.status_code == 201
        assert resp.text == ""

    def test_non_multipart_body_is_rejected(self, client):
        resp = client.post("/", content=b"raw", headers=dict(CURL, **{"Content-Type": "text/plain"}))

        assert resp.status_code == 400
        assert resp.json()["error_code"] == "validation_error"

    def test_oversized_upload_is_rejected(self, client, storage):
        big = b"x" * (10 * 1024 * 1024 + 1)

        resp = _upload(client, [("file", ("big.bin", big, "application/octet-stream"))])

        assert resp.status_code == 413
        assert resp.json()["error_code"] == "upload_too_large"
        assert storage.objects == {}

    def test_truncated_body_is_rejected_and_aborted(self, client, storage):
        body = (
            b"--bnd\r\n"
            b"Content-Disposition: form-data; name=\"file\"; filename=\"a.bin\"\r\n\r\n"
            b"hello world, this body never closes"
        )
        headers = dict(CURL, **{"Content-Type": "multipart/form-data; boundary=bnd"})

        resp = client.post("/", content=body, headers=headers)

        assert resp.status_code == 400
        assert resp.json()["error_code"] == "validation_error"
        assert storage.objects == {}
        assert storage.aborted == ["mock-upload-1"]

    def test_backend_failure_is_internal_error(self, client, storage):
        storage.fail_complete = True

        resp = _upload(client, [("file", ("a.txt", b"x", "text/plain"))])

        assert resp.status_code == 500
        assert resp.json() == {
            "success": False,
            "detail": "Internal server error",
            "error_code": "backend_error",
        }
        assert storage.aborted == ["mock-upload-1"]


class TestDownload:
    def test_round_trip(self, client):
        payload = bytes(range(256)) * 100
        resp = _upload(client, [("file", ("blob.bin", payload, "application/x-custom"))])
        object_id = resp.text.strip().rsplit("/", 1)[1]

        download = client.get(f"/{object_id}")

        assert download.status_code == 200
        assert download.content == payload
        assert download.headers["content-type"] == "application/x-custom"
        assert download.headers["content-length"] == str(len(payload))
        assert download.headers["content-disposition"] == 'attachment; filename="blob.bin"'
        assert "etag" in download.headers

    def test_image_is_served_inline(self, client):
        resp = _upload(client, [("file", ("cat.png", b"\x89PNG", "image/png"))])
        object_id = resp.text.strip().rsplit("/", 1)[1]

        download = client.get(f"/{object_id}")

        assert download.headers["content-type"] == "image/png"
        assert "content-disposition" not in download.headers

    def test_missing_object_is_404(self, client):
        resp = client.get("/doesnotexist")

        assert resp.status_code == 404
        assert resp.json()["detail"] == "Not found"

    def test_expired_object_is_410(self, client, storage):
        storage.put_object("old", b"x", expires=datetime.now(timezone.utc) - timedelta(seconds=1))

        resp = client.get("/old")

        assert resp.status_code == 410
        assert resp.json()["detail"] == "Expired"

    def test_object_without_expiration_is_served(self, client, storage):
        storage.put_object("forever", b"data", content_type=None)

        resp = client.get("/forever")

        assert resp.status_code == 200
        assert resp.content == b"data"
        assert resp.headers["content-type"] == "application/octet-stream"

    def test_reported_expiration_matches_stored(self, client, storage):
        resp = _upload(client, [("file", ("a.txt", b"x", "text/plain"))], headers=BROWSER)

        object_id = next(iter(storage.objects)).split("/", 1)[1]
        stored = _stored(storage, object_id)["expires"]
        assert f"http://testserver/{object_id}" in resp.text
        assert format_datetime(stored, usegmt=True) in resp.text


class TestPages:
    def test_index_lists_expirations(self, client):
        resp = client.get("/")

        assert resp.status_code == 200
        for label in ("30m", "1h", "6h", "1day", "7days"):
            assert f">{label}<" in resp.text

    def test_health_ok(self, client):
        assert client.get("/health").json() == {"status": "healthy", "s3_connection": "ok"}

    def test_health_unreachable(self, client, storage):
        storage.bucket_reachable = False

        resp = client.get("/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "unhealthy"


class TestHelpers:
    @pytest.mark.parametrize(
        "minutes, label",
        [(30, "30m"), (60, "1h"), (90, "1h 30m"), (360, "6h"), (1440, "1day"), (10080, "7days"), (0, "0m")],
    )
    def test_format_minutes(self, minutes, label):
        assert format_minutes(minutes) == label

    def test_origin_defaults(self):
        assert get_origin({}) == "http://localhost"

    def test_origin_prefers_forwarded_host(self):
        headers = {"host": "internal:8080", "x-forwarded-host": "drop.example.com"}
        assert get_origin(headers) == "http://drop.example.com"

    def test_origin_uses_host(self):
        assert get_origin({"host": "internal:8080"}) == "http://internal:8080"

    @pytest.mark.parametrize(
        "headers, expected",
        [
            ({"user-agent": "curl/8.5.0"}, True),
            ({"user-agent": "Wget/1.21"}, True),
            ({"user-agent": "Mozilla/5.0"}, False),
            ({"user-agent": "MOZILLA compatible"}, False),
            ({}, False),
        ],
    )
    def test_is_terminal_client(self, headers, expected):
        assert is_terminal_client(headers) is expected
