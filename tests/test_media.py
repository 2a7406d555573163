from __future__ import annotations

import re

import pytest

from shieldcuisine_api.core.errors import ValidationFailed
from shieldcuisine_api.core.settings import AppSettings, get_app_settings
from shieldcuisine_api.repositories.cms import MediaRepository
from shieldcuisine_api.services.media import MediaService, file_type_for, safe_filename

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.mark.parametrize(
    "mime, expected",
    [
        ("image/png", "image"),
        ("video/mp4", "video"),
        ("audio/mpeg", "audio"),
        ("application/pdf", "document"),
        ("application/x-msdownload", "other"),
        (None, "other"),
    ],
)
def test_file_type_for(mime, expected):
    assert file_type_for(mime) == expected


def test_safe_filename_strips_paths_and_odd_characters():
    name = safe_filename("../../fotos/Menú del día (1).JPG")
    assert re.fullmatch(r"[0-9a-f]{12}-Men-del-d-a-1\.jpg", name)
    assert safe_filename("fotos/plato.png") != safe_filename("fotos/plato.png")


async def test_upload_reports_rejected_files(client, admin_headers):
    files = [
        ("files", ("paella.png", PNG, "image/png")),
        ("files", ("setup.exe", b"MZ\x90\x00", "application/x-msdownload")),
        ("files", ("vacio.pdf", b"", "application/pdf")),
    ]
    res = await client.post("/api/cms/media/upload", files=files, headers=admin_headers)
    assert res.status_code == 201
    body = res.json()

    assert [f["original_name"] for f in body["uploaded"]] == ["paella.png"]
    uploaded = body["uploaded"][0]
    assert uploaded["file_type"] == "image"
    assert uploaded["size"] == len(PNG)
    assert uploaded["title"] == "paella"

    assert {e["filename"] for e in body["errors"]} == {"setup.exe", "vacio.pdf"}

    served = await client.get(uploaded["url"])
    assert served.status_code == 200
    assert served.content == PNG


async def test_upload_to_unknown_category(client, admin_headers):
    res = await client.post(
        "/api/cms/media/upload",
        files=[("files", ("paella.png", PNG, "image/png"))],
        data={"category_id": "00000000-0000-0000-0000-000000000000"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    assert res.json()["uploaded"] == []
    assert res.json()["errors"][0]["message"] == "Media category not found"


async def test_categories_and_filters(client, admin_headers):
    category = await client.post("/api/cms/media/categories", json={"name": "Platos del día"}, headers=admin_headers)
    assert category.status_code == 201
    assert category.json()["slug"] == "platos-del-dia"

    dup = await client.post("/api/cms/media/categories", json={"name": "Platos del dia"}, headers=admin_headers)
    assert dup.status_code == 409

    await client.post(
        "/api/cms/media/upload",
        files=[("files", ("paella.png", PNG, "image/png"))],
        data={"category_id": category.json()["id"]},
        headers=admin_headers,
    )
    await client.post(
        "/api/cms/media/upload",
        files=[("files", ("carta.pdf", b"%PDF-1.4", "application/pdf"))],
        headers=admin_headers,
    )

    images = await client.get("/api/cms/media", params={"file_type": "image"}, headers=admin_headers)
    assert [f["original_name"] for f in images.json()["items"]] == ["paella.png"]
    in_category = await client.get(
        "/api/cms/media", params={"category_id": category.json()["id"]}, headers=admin_headers
    )
    assert in_category.json()["total"] == 1

    # Deleting the category keeps its files
    res = await client.delete(f"/api/cms/media/categories/{category.json()['id']}", headers=admin_headers)
    assert res.status_code == 200
    everything = await client.get("/api/cms/media", headers=admin_headers)
    assert everything.json()["total"] == 2
    assert all(f["category_id"] is None for f in everything.json()["items"])


async def test_delete_file_removes_it(client, admin_headers):
    res = await client.post(
        "/api/cms/media/upload", files=[("files", ("paella.png", PNG, "image/png"))], headers=admin_headers
    )
    media = res.json()["uploaded"][0]

    patched = await client.patch(f"/api/cms/media/{media['id']}", json={"alt": "Paella valenciana"}, headers=admin_headers)
    assert patched.json()["alt"] == "Paella valenciana"

    deleted = await client.delete(f"/api/cms/media/{media['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/cms/media/{media['id']}", headers=admin_headers)).status_code == 404
    assert (await client.get(media["url"])).status_code == 404


async def test_staff_cannot_upload(client, staff_headers):
    res = await client.post(
        "/api/cms/media/upload", files=[("files", ("paella.png", PNG, "image/png"))], headers=staff_headers
    )
    assert res.status_code == 403


class _EndlessUpload:
    """Upload of unknown size that never runs out of data."""

    filename = "camara.mp4"
    content_type = "video/mp4"
    size = None

    def __init__(self) -> None:
        self.bytes_read = 0

    async def read(self, size: int = -1) -> bytes:
        self.bytes_read += size
        return b"\x00" * size


async def test_oversized_upload_stops_reading_at_the_limit():
    settings = AppSettings(MAX_UPLOAD_BYTES=3 * 1024 * 1024)
    upload = _EndlessUpload()
    with pytest.raises(ValidationFailed):
        await MediaService(None, settings)._read_limited(upload, upload.filename)
    assert upload.bytes_read <= settings.MAX_UPLOAD_BYTES + 1024 * 1024


async def test_upload_over_the_size_limit_is_reported(client, admin_headers, monkeypatch):
    monkeypatch.setattr(get_app_settings(), "MAX_UPLOAD_BYTES", len(PNG))
    files = [
        ("files", ("grande.png", PNG + b"\x00", "image/png")),
        ("files", ("paella.png", PNG, "image/png")),
    ]
    res = await client.post("/api/cms/media/upload", files=files, headers=admin_headers)
    body = res.json()
    assert [f["original_name"] for f in body["uploaded"]] == ["paella.png"]
    assert body["errors"][0]["filename"] == "grande.png"
    assert "maximum size" in body["errors"][0]["message"]


async def test_storage_failure_does_not_abort_the_batch(client, admin_headers, monkeypatch):
    original_save = MediaRepository.save
    calls = []

    async def flaky_save(self, entity):
        calls.append(entity.original_name)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        return await original_save(self, entity)

    monkeypatch.setattr(MediaRepository, "save", flaky_save)
    files = [
        ("files", ("primera.png", PNG, "image/png")),
        ("files", ("segunda.png", PNG, "image/png")),
    ]
    res = await client.post("/api/cms/media/upload", files=files, headers=admin_headers)
    assert res.status_code == 201
    body = res.json()
    assert [e["filename"] for e in body["errors"]] == ["primera.png"]
    assert [f["original_name"] for f in body["uploaded"]] == ["segunda.png"]
