from __future__ import annotations

import pytest

from shieldcuisine_api.services.cms import compare_contents, slugify

HERO = {"id": "b1", "type": "heading", "content": {"text": "Bienvenidos", "level": "h1"}}
INTRO = {"id": "b2", "type": "text", "content": {"text": "Cocina mediterránea de temporada."}}
CONTACT = {
    "id": "form-1",
    "type": "contact-form",
    "content": {
        "title": "Reservas",
        "fields": [
            {"name": "nombre", "label": "Nombre", "required": True},
            {"name": "email", "label": "Email", "type": "email", "required": True},
        ],
    },
}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Carta de Otoño", "carta-de-otono"),
        ("  ¿Quiénes somos?  ", "quienes-somos"),
        ("menu__del--dia", "menu-del-dia"),
        ("¡¡!!", ""),
    ],
)
def test_slugify(value, expected):
    assert slugify(value) == expected


def test_compare_contents_by_block_id():
    before = {"blocks": [HERO, INTRO]}
    edited_hero = {**HERO, "content": {"text": "Hola", "level": "h1"}}
    after = {"blocks": [edited_hero, CONTACT]}

    diff = compare_contents(1, "Inicio", before, 2, "Inicio", after)
    assert diff.title_changed is False
    assert [b["id"] for b in diff.added] == ["form-1"]
    assert [b["id"] for b in diff.removed] == ["b2"]
    assert [c.id for c in diff.changed] == ["b1"]
    assert diff.changed[0].after["content"]["text"] == "Hola"


async def _page(client, headers, **values) -> dict:
    payload = {"title": "Inicio", "content": {"blocks": [HERO, INTRO]}}
    payload.update(values)
    res = await client.post("/api/cms/pages", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def test_new_pages_are_drafts_with_derived_slug(client, admin_headers):
    page = await _page(client, admin_headers, title="Nuestra Carta")
    assert page["slug"] == "nuestra-carta"
    assert page["status"] == "draft"
    assert page["published_at"] is None


async def test_slug_clash_is_a_conflict(client, admin_headers):
    await _page(client, admin_headers)
    res = await client.post("/api/cms/pages", json={"title": "Otra", "slug": "Inicio"}, headers=admin_headers)
    assert res.status_code == 409


async def test_unknown_block_type_is_rejected(client, admin_headers):
    res = await client.post(
        "/api/cms/pages",
        json={"title": "Rara", "content": {"blocks": [{"id": "x", "type": "marquee", "content": {}}]}},
        headers=admin_headers,
    )
    assert res.status_code == 422


async def test_staff_cannot_edit_pages(client, staff_headers):
    res = await client.post("/api/cms/pages", json={"title": "Inicio"}, headers=staff_headers)
    assert res.status_code == 403


async def test_updates_keep_version_history(client, admin_headers):
    page = await _page(client, admin_headers)

    res = await client.patch(
        f"/api/cms/pages/{page['id']}",
        json={"title": "Portada", "content": {"blocks": [HERO, CONTACT]}, "version_comment": "Añadir reservas"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["title"] == "Portada"

    versions = (await client.get(f"/api/cms/pages/{page['id']}/versions", headers=admin_headers)).json()
    assert len(versions) == 1
    first = versions[0]
    assert first["version_number"] == 1
    assert first["title"] == "Inicio"
    assert first["comment"] == "Añadir reservas"

    snap = await client.post(f"/api/cms/pages/{page['id']}/versions", json={}, headers=admin_headers)
    assert snap.status_code == 201
    assert snap.json()["version_number"] == 2

    diff = await client.get(
        f"/api/cms/pages/{page['id']}/versions/compare",
        params={"version_a": first["id"], "version_b": snap.json()["id"]},
        headers=admin_headers,
    )
    assert diff.status_code == 200
    assert diff.json()["title_changed"] is True
    assert [b["id"] for b in diff.json()["added"]] == ["form-1"]
    assert [b["id"] for b in diff.json()["removed"]] == ["b2"]

    restored = await client.post(
        f"/api/cms/pages/{page['id']}/versions/{first['id']}/restore", headers=admin_headers
    )
    assert restored.status_code == 200
    assert restored.json()["title"] == "Inicio"
    assert [b["id"] for b in restored.json()["content"]["blocks"]] == ["b1", "b2"]

    versions = (await client.get(f"/api/cms/pages/{page['id']}/versions", headers=admin_headers)).json()
    assert [v["version_number"] for v in versions] == [3, 2, 1]


async def test_metadata_changes_do_not_create_versions(client, admin_headers):
    page = await _page(client, admin_headers)
    await client.patch(f"/api/cms/pages/{page['id']}", json={"featured": True}, headers=admin_headers)
    versions = await client.get(f"/api/cms/pages/{page['id']}/versions", headers=admin_headers)
    assert versions.json() == []


async def test_public_site_only_serves_published_pages(client, tenant_id, admin_headers, other_tenant_id):
    page = await _page(client, admin_headers)
    url = f"/api/cms/public/{tenant_id}/pages/inicio"

    assert (await client.get(url)).status_code == 404

    published = await client.post(f"/api/cms/pages/{page['id']}/publish", headers=admin_headers)
    assert published.json()["status"] == "published"
    assert published.json()["published_at"] is not None

    res = await client.get(url)
    assert res.status_code == 200
    assert res.json()["title"] == "Inicio"
    assert "created_by" not in res.json()

    # Another company does not see it
    assert (await client.get(f"/api/cms/public/{other_tenant_id}/pages/inicio")).status_code == 404

    await client.post(f"/api/cms/pages/{page['id']}/unpublish", headers=admin_headers)
    assert (await client.get(url)).status_code == 404


async def test_contact_form_submission(client, tenant_id, admin_headers):
    page = await _page(client, admin_headers, content={"blocks": [CONTACT]})
    submit_url = f"/api/cms/public/{tenant_id}/forms/submit"
    body = {"form_id": "form-1", "page_id": page["id"], "data": {"nombre": "Ana", "email": "ana@example.com"}}

    # Draft pages do not accept submissions
    assert (await client.post(submit_url, json=body)).status_code == 404

    await client.post(f"/api/cms/pages/{page['id']}/publish", headers=admin_headers)
    res = await client.post(submit_url, json=body, headers={"User-Agent": "pytest-browser"})
    assert res.status_code == 201

    listed = await client.get("/api/cms/form-submissions", headers=admin_headers)
    assert listed.json()["total"] == 1
    submission = listed.json()["items"][0]
    assert submission["data"]["nombre"] == "Ana"
    assert submission["user_agent"] == "pytest-browser"

    stats = await client.get("/api/cms/stats", headers=admin_headers)
    assert stats.json() == {
        "total_pages": 1,
        "published_pages": 1,
        "draft_pages": 0,
        "media_files": 0,
        "form_submissions": 1,
    }


async def test_unknown_company_on_public_routes(client):
    res = await client.get("/api/cms/public/00000000-0000-0000-0000-000000000000/pages/inicio")
    assert res.status_code == 404
    assert res.json()["message"] == "Company not found"
