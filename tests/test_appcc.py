from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from conftest import register_and_login

from shieldcuisine_api.core.errors import ValidationFailed
from shieldcuisine_api.services.appcc import validate_control_data

FRIDGE_FIELDS = [
    {"name": "temperature", "label": "Temperatura", "type": "temperature", "required": True, "min": 0, "max": 5, "unit": "°C"},
    {"name": "door_closed", "label": "Puerta cerrada", "type": "boolean"},
    {"name": "shift", "label": "Turno", "type": "select", "options": ["mañana", "tarde"]},
]


def _future(hours: int = 2) -> str:
    return (datetime.now(tz=timezone.utc) + timedelta(hours=hours)).isoformat()


async def _template(client, headers) -> dict:
    res = await client.post(
        "/api/appcc/templates",
        json={"name": "Cámara frigorífica", "category": "temperatures", "fields": FRIDGE_FIELDS},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


async def _record(client, headers, template_id, location_id, scheduled_for=None) -> dict:
    res = await client.post(
        "/api/appcc/records",
        json={"template_id": template_id, "location_id": location_id, "scheduled_for": scheduled_for or _future()},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


# Field validation


def test_validate_reports_missing_required_labels():
    with pytest.raises(ValidationFailed) as exc:
        validate_control_data(FRIDGE_FIELDS, {"temperature": "  "})
    assert exc.value.details == {"missing": ["Temperatura"]}


def test_validate_coerces_types_and_flags_out_of_range():
    cleaned, out = validate_control_data(
        FRIDGE_FIELDS, {"temperature": "7.5", "door_closed": "sí", "shift": "tarde"}
    )
    assert cleaned == {"temperature": 7.5, "door_closed": True, "shift": "tarde"}
    assert out == ["temperature"]


def test_validate_limits_are_inclusive():
    _, out = validate_control_data(FRIDGE_FIELDS, {"temperature": 5})
    assert out == []


@pytest.mark.parametrize(
    "data",
    [
        {"temperature": "frío"},
        {"temperature": True},
        {"temperature": "nan"},
        {"temperature": "inf"},
        {"temperature": float("-inf")},
        {"temperature": 3, "door_closed": "quizá"},
        {"temperature": 3, "shift": "noche"},
    ],
)
def test_validate_rejects_wrong_types(data):
    with pytest.raises(ValidationFailed):
        validate_control_data(FRIDGE_FIELDS, data)


# Templates


async def test_template_field_names_must_be_unique(client, admin_headers):
    fields = [FRIDGE_FIELDS[0], {**FRIDGE_FIELDS[0], "label": "Otra"}]
    res = await client.post(
        "/api/appcc/templates",
        json={"name": "Duplicada", "category": "temperatures", "fields": fields},
        headers=admin_headers,
    )
    assert res.status_code == 422
    assert res.json()["error"]["type"] == "validation_error"


async def test_only_managers_create_templates(client, staff_headers):
    res = await client.post(
        "/api/appcc/templates", json={"name": "x", "category": "cleaning"}, headers=staff_headers
    )
    assert res.status_code == 403


# Records


async def test_complete_within_limits(client, admin_headers, staff_headers, location_id):
    template = await _template(client, admin_headers)
    record = await _record(client, staff_headers, template["id"], location_id)
    assert record["status"] == "pending"

    res = await client.post(
        f"/api/appcc/records/{record['id']}/complete",
        json={"data": {"temperature": 3.2, "door_closed": True}, "comments": "Todo correcto"},
        headers=staff_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["out_of_range"] == []
    assert body["record"]["status"] == "completed"
    assert body["record"]["completed_at"] is not None
    assert body["record"]["comments"] == "Todo correcto"

    again = await client.post(
        f"/api/appcc/records/{record['id']}/complete", json={"data": {"temperature": 3}}, headers=staff_headers
    )
    assert again.status_code == 409


async def test_missing_required_field_keeps_record_pending(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    record = await _record(client, admin_headers, template["id"], location_id)

    res = await client.post(
        f"/api/appcc/records/{record['id']}/complete", json={"data": {"door_closed": True}}, headers=admin_headers
    )
    assert res.status_code == 400
    assert res.json()["error"]["details"] == {"missing": ["Temperatura"]}

    current = await client.get(f"/api/appcc/records/{record['id']}", headers=admin_headers)
    assert current.json()["status"] == "pending"


async def test_out_of_range_fails_record_and_notifies_admins(client, admin_headers, staff_headers, location_id):
    template = await _template(client, admin_headers)
    record = await _record(client, staff_headers, template["id"], location_id)

    res = await client.post(
        f"/api/appcc/records/{record['id']}/complete", json={"data": {"temperature": 9}}, headers=staff_headers
    )
    assert res.status_code == 200
    assert res.json()["record"]["status"] == "failed"
    assert res.json()["out_of_range"] == ["temperature"]

    admin_inbox = await client.get("/api/notifications", headers=admin_headers)
    items = admin_inbox.json()["items"]
    assert len(items) == 1
    assert items[0]["type"] == "appcc_control"
    assert "Temperatura" in items[0]["message"]
    assert items[0]["display"] == {"icon": "clipboard-check", "color": "green"}

    # The creator of the record is told too
    staff_inbox = await client.get("/api/notifications", headers=staff_headers)
    assert staff_inbox.json()["total"] == 1


async def test_schedule_requires_existing_template_and_location(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    res = await client.post(
        "/api/appcc/records",
        json={
            "template_id": template["id"],
            "location_id": "00000000-0000-0000-0000-000000000000",
            "scheduled_for": _future(),
        },
        headers=admin_headers,
    )
    assert res.status_code == 404
    assert res.json()["message"] == "Location not found"


async def test_dashboard_counts_overdue_as_delayed(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    await _record(client, admin_headers, template["id"], location_id)
    past = (datetime.now(tz=timezone.utc) - timedelta(days=1)).isoformat()
    await _record(client, admin_headers, template["id"], location_id, scheduled_for=past)
    done = await _record(client, admin_headers, template["id"], location_id)
    await client.post(
        f"/api/appcc/records/{done['id']}/complete", json={"data": {"temperature": 2}}, headers=admin_headers
    )

    res = await client.get("/api/appcc/dashboard", headers=admin_headers)
    assert res.status_code == 200
    assert res.json() == {
        "total": 3,
        "pending": 1,
        "completed": 1,
        "delayed": 1,
        "failed": 0,
        "completion_rate": 33.3,
    }


async def test_records_are_isolated_per_company(client, admin_headers, location_id, other_tenant_id):
    template = await _template(client, admin_headers)
    record = await _record(client, admin_headers, template["id"], location_id)

    other = await register_and_login(client, other_tenant_id, "intruso")
    assert (await client.get(f"/api/appcc/records/{record['id']}", headers=other)).status_code == 404
    listed = await client.get("/api/appcc/records", headers=other)
    assert listed.json()["total"] == 0


async def test_export_records_as_csv(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    await _record(client, admin_headers, template["id"], location_id)

    res = await client.get("/api/appcc/reports/records", params={"format": "csv"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "attachment" in res.headers["content-disposition"]
    assert "Cámara frigorífica" in res.text


async def test_export_records_as_pdf(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    await _record(client, admin_headers, template["id"], location_id)

    res = await client.get("/api/appcc/reports/records", params={"format": "pdf"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"] == "application/pdf"
    assert res.content.startswith(b"%PDF")


async def test_update_cannot_complete_a_record(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    record = await _record(client, admin_headers, template["id"], location_id)

    res = await client.patch(
        f"/api/appcc/records/{record['id']}", json={"status": "completed", "data": {}}, headers=admin_headers
    )
    assert res.status_code == 422

    current = await client.get(f"/api/appcc/records/{record['id']}", headers=admin_headers)
    assert current.json()["status"] == "pending"
    assert current.json()["completed_at"] is None


async def test_update_reschedules_open_records_only(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    record = await _record(client, admin_headers, template["id"], location_id)

    res = await client.patch(
        f"/api/appcc/records/{record['id']}",
        json={"status": "delayed", "comments": "Cámara en mantenimiento"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["status"] == "delayed"

    await client.post(
        f"/api/appcc/records/{record['id']}/complete", json={"data": {"temperature": 4}}, headers=admin_headers
    )
    closed = await client.patch(
        f"/api/appcc/records/{record['id']}", json={"comments": "Cambio tardío"}, headers=admin_headers
    )
    assert closed.status_code == 409


async def test_non_finite_reading_is_rejected(client, admin_headers, location_id):
    template = await _template(client, admin_headers)
    record = await _record(client, admin_headers, template["id"], location_id)

    res = await client.post(
        f"/api/appcc/records/{record['id']}/complete", json={"data": {"temperature": "nan"}}, headers=admin_headers
    )
    assert res.status_code == 400

    current = await client.get(f"/api/appcc/records/{record['id']}", headers=admin_headers)
    assert current.json()["status"] == "pending"
