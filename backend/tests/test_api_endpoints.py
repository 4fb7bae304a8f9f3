"""API endpoint tests using FastAPI TestClient."""


# ── Root / health ────────────────────────────────────────────


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "Smart Garden API"
    assert "docs" in data


def test_health_sets_request_id(client):
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}
    assert r.headers["X-Request-ID"] == "abc-123"
    assert r.headers["X-Content-Type-Options"] == "nosniff"


def test_check_db_connection(client):
    r = client.get("/check-db-connection")
    assert r.status_code == 200
    assert r.json() == {"connected": True}


def test_reset_database(client):
    client.post("/delete-tooltype", json={"name": "Hose"})
    r = client.post("/reset-database")
    assert r.status_code == 200
    assert r.json()["success"] is True

    names = [row[0] for row in client.get("/tooltypetable").json()["data"]]
    assert "Hose" in names


# ── Tables ───────────────────────────────────────────────────


def test_get_gardentable(client):
    r = client.get("/gardentable")
    assert r.status_code == 200
    data = r.json()["data"]
    assert len(data) == 5
    assert data[0][:2] == [1, "Campus Greenhouse"]


def test_get_postalcodetable_records(client):
    data = client.get("/postalcodetable").json()["data"]
    assert data[0].keys() == {"postal_code", "city", "province"}


def test_unknown_table_is_404(client):
    assert client.get("/demotable").status_code == 404


# ── Garden insert ────────────────────────────────────────────


GARDEN = {
    "garden_id": 42,
    "name": "Rain Garden",
    "postal_code": "M5V2T6",
    "street_name": "Spadina Avenue",
    "house_number": 12,
    "owner_id": 5,
}


def test_insert_garden(client):
    r = client.post("/insert-gardentable", json=GARDEN)
    assert r.status_code == 200
    assert r.json()["success"] is True

    rows = client.get("/gardentable").json()["data"]
    assert [42, "Rain Garden", "M5V2T6", "Spadina Avenue", 12, 5] in rows
    locations = client.get("/locationtable").json()["data"]
    assert ["M5V2T6", 12, "Spadina Avenue"] in locations


def test_insert_garden_unknown_owner(client):
    r = client.post("/insert-gardentable", json={**GARDEN, "owner_id": 77})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert "Owner ID" in body["message"]


def test_insert_garden_duplicate(client):
    r = client.post("/insert-gardentable", json={**GARDEN, "garden_id": 1})
    assert r.status_code == 400
    assert r.json()["message"] == "Garden ID already exists"


def test_insert_garden_schema_error(client):
    r = client.post("/insert-gardentable", json={**GARDEN, "house_number": "twelve"})
    assert r.status_code == 422


# ── Plant update / selection ─────────────────────────────────


def test_update_plant(client):
    r = client.post("/update-plant", json={"plant_id": 3, "fieldsToUpdate": {"is_ready": 1, "type_name": "Basil"}})
    assert r.status_code == 200
    plant = next(row for row in client.get("/planttable").json()["data"] if row[0] == 3)
    assert plant[4] == 1
    assert plant[5] == "Basil"


def test_update_plant_without_fields(client):
    r = client.post("/update-plant", json={"plant_id": 3, "fieldsToUpdate": {}})
    assert r.status_code == 400
    assert r.json()["message"] == "No fields to update"


def test_update_plant_missing(client):
    r = client.post("/update-plant", json={"plant_id": 999, "fieldsToUpdate": {"radius": 1.0}})
    assert r.status_code == 404


def test_update_plant_rejects_unknown_field(client):
    r = client.post("/update-plant", json={"plant_id": 1, "fieldsToUpdate": {"plant_id": 5}})
    assert r.status_code == 422


def test_select_planttable(client):
    filters = [
        {"column": "type_name", "value": "lettuce", "logic": None},
        {"column": "section_id", "value": "4", "logic": "AND"},
    ]
    r = client.post("/select-planttable", json={"filters": filters})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert [row[0] for row in body["rows"]] == [10]


def test_select_planttable_bad_connective(client):
    filters = [
        {"column": "plant_id", "value": 1},
        {"column": "plant_id", "value": 2, "logic": "UNION"},
    ]
    r = client.post("/select-planttable", json={"filters": filters})
    assert r.status_code == 400


# ── Tool types ───────────────────────────────────────────────


def test_delete_tooltype(client):
    r = client.post("/delete-tooltype", json={"name": "Pruner"})
    assert r.status_code == 200
    assert r.json()["deleted"] == 1
    tools = client.get("/tooltable").json()["data"]
    assert all(tool[1] != "Pruner" for tool in tools)


def test_delete_tooltype_missing(client):
    r = client.post("/delete-tooltype", json={"name": "Pruner2"})
    assert r.status_code == 404
    assert r.json()["message"] == "Tool type not found"


# ── Reports ──────────────────────────────────────────────────


def test_project_garden(client):
    r = client.post("/project-garden", json={"columns": ["garden_id", "name"]})
    assert r.status_code == 200
    body = r.json()
    assert body["columns"] == ["garden_id", "name"]
    assert body["rows"][0] == [1, "Campus Greenhouse"]


def test_project_garden_rejects_unknown_column(client):
    r = client.post("/project-garden", json={"columns": ["name", "1 FROM Person"]})
    assert r.status_code == 400


def test_join_plant_planttype(client):
    r = client.post("/join-plant-planttype", json={"plantTypeName": "Carrot"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert len(data) == 1
    assert data[0]["plant_id"] == 4


def test_plant_groupby_type(client):
    data = client.get("/plant-groupby-type").json()["data"]
    assert data[0] == {"type_name": "Basil", "plant_count": 2}


def test_sections_with_all_plant_types(client):
    data = client.get("/sections-with-all-plant-types").json()["data"]
    assert [row["section_id"] for row in data] == [1]


def test_sections_above_avg_diversity(client):
    data = client.get("/sections-above-avg-diversity").json()["data"]
    assert data[0]["diversity"] == 5


def test_sections_high_water_usage(client):
    data = client.get("/sections-high-water-usage").json()["data"]
    assert [row["section_id"] for row in data] == [1, 3]


# ── Error bodies ─────────────────────────────────────────────


def test_unavailable_pool_is_503(client):
    from smartgarden.database import get_pool
    from smartgarden.errors import ConnectivityFailure
    from smartgarden.main import app

    def _no_pool():
        raise ConnectivityFailure("Connection pool is not initialised")

    app.dependency_overrides[get_pool] = _no_pool
    r = client.get("/gardentable")
    assert r.status_code == 503
    assert r.json() == {
        "success": False,
        "message": "Connection pool is not initialised",
        "error": "connectivity",
    }
