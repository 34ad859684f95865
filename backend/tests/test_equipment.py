from __future__ import annotations

import datetime as dt
import io

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import Session

from hrdesk.services import create_equipment, parse_cost
from hrdesk.store import RecordStore


def _create(client: TestClient, **overrides):
    payload = {
        "serial_number": "C02ABC123",
        "model": "mac_air",
        "assigned_to": "Ana López",
        "insured": True,
        "purchase_date": "2022-01-01",
        "purchase_cost": 25000,
    }
    payload.update(overrides)
    return client.post("/equipment", json=payload)


def test_create_and_read_back(auth_client: TestClient):
    created = _create(auth_client)
    assert created.status_code == 201
    body = created.json()
    assert body["serial_number"] == "C02ABC123"
    assert body["model_label"] == "Mac Air"
    assert body["insured"] is True

    fetched = auth_client.get("/equipment/C02ABC123", params={"as_of": "2024-07-01"})
    assert fetched.status_code == 200
    data = fetched.json()
    assert data["purchase_date"] == "2022-01-01"
    assert data["purchase_cost"] == 25000
    assert data["assigned_to"] == "Ana López"
    assert data["depreciation"]["yearly_depreciation"] == 5000
    assert data["depreciation"]["years_elapsed"] == pytest.approx(2.5)
    assert data["depreciation"]["book_value"] == pytest.approx(12500)
    assert data["depreciation"]["depreciation_by_year"] == [5000, 5000, 0, 0, 0]


@pytest.mark.parametrize(
    "overrides",
    [
        {"serial_number": "   "},
        {"model": "dell"},
        {"purchase_date": None},
    ],
)
def test_create_requires_all_fields(auth_client: TestClient, overrides):
    resp = _create(auth_client, **overrides)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Todos los campos son requeridos"


@pytest.mark.parametrize("cost", [None, 0, 999.99])
def test_create_requires_minimum_cost(auth_client: TestClient, cost):
    resp = _create(auth_client, purchase_cost=cost)
    assert resp.status_code == 400
    assert auth_client.get("/equipment/C02ABC123").status_code == 404


def test_duplicate_serial_is_rejected(auth_client: TestClient):
    assert _create(auth_client).status_code == 201
    duplicate = _create(auth_client, model="lenovo", purchase_cost=1000)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "El número de serie ya existe"
    assert auth_client.get("/equipment/C02ABC123").json()["model"] == "mac_air"


def test_serial_number_is_trimmed(auth_client: TestClient):
    assert _create(auth_client, serial_number="  PF-77  ").status_code == 201
    assert auth_client.get("/equipment/PF-77").status_code == 200


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1500.50", 1500.5),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (12, 12.0),
        ("42abc", 42.0),
        (True, 0.0),
        ("1e400", 0.0),
        (float("nan"), 0.0),
        (float("-inf"), 0.0),
        (10**400, 0.0),
    ],
)
def test_parse_cost(value, expected):
    assert parse_cost(value) == expected


def test_inline_cost_edit(auth_client: TestClient):
    _create(auth_client)
    url = "/equipment/C02ABC123"

    ok = auth_client.patch(url, json={"field": "purchase_cost", "value": "30000"})
    assert ok.status_code == 200
    assert ok.json()["purchase_cost"] == 30000

    unparsable = auth_client.patch(url, json={"field": "purchase_cost", "value": "abc"})
    assert unparsable.status_code == 200
    assert unparsable.json()["purchase_cost"] == 0

    negative = auth_client.patch(url, json={"field": "purchase_cost", "value": -5})
    assert negative.status_code == 400
    assert negative.json()["detail"] == "El costo debe ser mayor a 0"
    assert auth_client.get(url).json()["purchase_cost"] == 0


def test_inline_edits_of_other_fields(auth_client: TestClient):
    _create(auth_client, insured=False)
    url = "/equipment/C02ABC123"

    insured = auth_client.patch(url, json={"field": "insured", "value": "true"})
    assert insured.json()["insured"] is True

    model = auth_client.patch(url, json={"field": "model", "value": "mac_pro"})
    assert model.json()["model_label"] == "Mac Pro"

    assigned = auth_client.patch(url, json={"field": "assigned_to", "value": "  "})
    assert assigned.json()["assigned_to"] is None

    cleared = auth_client.patch(url, json={"field": "purchase_date", "value": ""})
    assert cleared.status_code == 200
    assert cleared.json()["purchase_date"] is None
    assert cleared.json()["depreciation"]["book_value"] == 0


def test_inline_edit_rejections(auth_client: TestClient):
    _create(auth_client)
    url = "/equipment/C02ABC123"

    assert auth_client.patch(url, json={"field": "serial_number", "value": "X"}).status_code == 400
    assert auth_client.patch(url, json={"field": "model", "value": "dell"}).status_code == 400
    assert auth_client.patch(url, json={"field": "purchase_date", "value": "ayer"}).status_code == 400
    assert auth_client.patch("/equipment/missing", json={"field": "insured", "value": True}).status_code == 404

    unchanged = auth_client.get(url).json()
    assert unchanged["model"] == "mac_air"
    assert unchanged["purchase_date"] == "2022-01-01"


def test_depreciation_detail(auth_client: TestClient):
    _create(auth_client, purchase_date="2024-01-01")
    resp = auth_client.get("/equipment/C02ABC123/depreciation")
    assert resp.status_code == 200
    body = resp.json()
    assert body["yearly_depreciation"] == 5000
    assert [(d["year"], d["depreciation"], d["book_value"]) for d in body["details"]] == [
        (1, 5000, 20000),
        (2, 5000, 15000),
        (3, 5000, 10000),
        (4, 5000, 5000),
        (5, 5000, 0),
    ]
    assert auth_client.get("/equipment/missing/depreciation").status_code == 404


def test_search_and_sort(auth_client: TestClient, store: RecordStore):
    _create(auth_client, serial_number="A-1", model="lenovo", assigned_to="Bruno", purchase_cost=1200)
    _create(auth_client, serial_number="B-2", model="mac_air", assigned_to="Ana", purchase_cost=30000)
    _create(auth_client, serial_number="C-3", model="mac_pro", assigned_to=None, purchase_cost=45000)

    by_label = auth_client.get("/equipment", params={"q": "MAC AIR"}).json()
    assert [item["serial_number"] for item in by_label["items"]] == ["B-2"]

    by_person = auth_client.get("/equipment", params={"q": "bru"}).json()
    assert by_person["total"] == 1
    assert by_person["items"][0]["serial_number"] == "A-1"

    by_cost = auth_client.get("/equipment", params={"sort": "purchase_cost", "direction": "desc"}).json()
    assert [item["serial_number"] for item in by_cost["items"]] == ["C-3", "B-2", "A-1"]

    by_assignee = auth_client.get("/equipment", params={"sort": "assigned_to"}).json()
    assert [item["serial_number"] for item in by_assignee["items"]] == ["C-3", "B-2", "A-1"]

    assert auth_client.get("/equipment", params={"sort": "color"}).status_code == 400
    assert auth_client.get("/equipment", params={"direction": "up"}).status_code == 422


def test_export_workbook(auth_client: TestClient):
    _create(auth_client)
    resp = auth_client.get("/equipment/export.xlsx", params={"as_of": "2024-07-01"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    assert "inventario_2024-07-01.xlsx" in resp.headers["content-disposition"]

    workbook = load_workbook(io.BytesIO(resp.content))
    sheet = workbook["Inventario"]
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][0] == "Serie"
    assert rows[1][0] == "C02ABC123"
    assert rows[1][1] == "Mac Air"
    assert rows[1][3] == "Sí"
    assert rows[1][8] == 12500


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_create_rejects_non_finite_cost(auth_client: TestClient, literal):
    body = (
        '{"serial_number": "N-1", "model": "lenovo", "purchase_date": "2022-01-01", '
        f'"purchase_cost": {literal}}}'
    )
    resp = auth_client.post("/equipment", content=body, headers={"Content-Type": "application/json"})
    assert resp.status_code == 422
    assert auth_client.get("/equipment/N-1").status_code == 404


@pytest.mark.parametrize("cost", [float("nan"), float("inf")])
def test_create_service_rejects_non_finite_cost(session: Session, cost):
    with pytest.raises(HTTPException) as excinfo:
        create_equipment(session, "N-2", "lenovo", None, False, dt.date(2022, 1, 1), cost)
    assert excinfo.value.status_code == 400


def test_inline_cost_edit_with_non_finite_values(auth_client: TestClient):
    _create(auth_client)
    url = "/equipment/C02ABC123"

    overflow = auth_client.patch(url, json={"field": "purchase_cost", "value": "1e400"})
    assert overflow.status_code == 200
    assert overflow.json()["purchase_cost"] == 0
    assert overflow.json()["depreciation"]["yearly_depreciation"] == 0

    not_a_number = auth_client.patch(
        url,
        content='{"field": "purchase_cost", "value": NaN}',
        headers={"Content-Type": "application/json"},
    )
    assert not_a_number.status_code == 200
    assert not_a_number.json()["purchase_cost"] == 0

    listed = auth_client.get("/equipment", params={"as_of": "2024-07-01"}).json()["items"][0]
    assert listed["depreciation"]["book_value"] == 0
    assert listed["depreciation"]["years_elapsed"] == 0
    assert listed["depreciation"]["depreciation_by_year"] == [0, 0, 0, 0, 0]


def test_error_details_are_spanish(auth_client: TestClient):
    assert auth_client.get("/equipment/missing").json()["detail"] == "Registro no encontrado"
    assert auth_client.get("/records/equipos_ti").json()["detail"] == "Tabla desconocida"
    assert auth_client.get("/equipment", params={"sort": "color"}).json()["detail"] == "No se puede ordenar por color"
    auth_client.headers.pop("Authorization")
    assert auth_client.get("/equipment").json()["detail"] == "No autenticado"
