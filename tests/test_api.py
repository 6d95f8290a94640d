import pytest
from fastapi.testclient import TestClient

from backend import create_app
from settings import Settings
from storage import MemoryStorage


@pytest.fixture
def client():
    app = create_app(Settings(storage="memory", rounding_minutes=15), storage=MemoryStorage())
    with TestClient(app) as c:
        for employee in [
            {"employeeId": 15, "firstName": "Harold", "lastName": "Z", "positions": ["Server"]},
            {"employeeId": 29, "firstName": "Deblyn", "lastName": "N", "positions": ["Busser"]},
        ]:
            assert c.post("/api/employees", json=employee).status_code == 201
        yield c


def shift_body(**extra):
    body = {
        "date": "2024-03-01",
        "type": "Dinner",
        "creditCardTips": 80,
        "houseTips": 20,
        "cashTips": 20,
        "employees": [
            {"employeeId": 15, "position": "Server", "clockIn": "17:00", "clockOut": "20:00"},
            {"employeeId": 29, "position": "Busser", "pointValue": 0.5, "clockIn": "18:00", "clockOut": "20:00"},
        ],
    }
    body.update(extra)
    return body


def test_root(client):
    assert client.get("/").json() == {"message": "Tip Splitter API"}


def test_setup_is_seeded(client):
    setup = client.get("/api/setup").json()
    assert setup["restaurant"]["name"] == "My Restaurant"
    assert {p["name"]: p["pointValue"] for p in setup["positions"]}["Busser"] == 0.55


def test_duplicate_employee_number_conflicts(client):
    response = client.post("/api/employees", json={
        "employeeId": 15, "firstName": "X", "lastName": "Y", "positions": ["Server"],
    })
    assert response.status_code == 409
    assert response.json()["detail"] == "Employee ID already exists"


def test_employee_without_positions_is_unprocessable(client):
    response = client.post("/api/employees", json={
        "employeeId": 40, "firstName": "X", "lastName": "Y", "positions": [],
    })
    assert response.status_code == 422


def test_missing_employee_is_404(client):
    assert client.get("/api/employees/999").status_code == 404
    assert client.delete("/api/employees/999").status_code == 404


def test_calculate_tips(client):
    response = client.post("/api/calculate-tips", json=shift_body())
    assert response.status_code == 200

    data = response.json()
    assert data["state"] == "calculated"
    assert [r["name"] for r in data["results"]] == ["Harold Z", "Deblyn N"]
    assert [r["digitalTips"] for r in data["results"]] == pytest.approx([75.0, 25.0])
    assert [r["cashTips"] for r in data["results"]] == pytest.approx([15.0, 5.0])
    assert data["validation"]["digitalOk"] and data["validation"]["cashOk"]
    assert client.get("/api/shifts").json() == []


def test_calculate_rejects_zero_points_and_incomplete_input(client):
    zero = shift_body(employees=[
        {"employeeId": 15, "position": "Server", "pointValue": 0, "clockIn": "17:00", "clockOut": "20:00"},
    ])
    response = client.post("/api/calculate-tips", json=zero)
    assert response.status_code == 400
    assert response.json()["detail"] == "Total points cannot be zero"

    response = client.post("/api/calculate-tips", json=shift_body(employees=[]))
    assert response.status_code == 400

    response = client.post("/api/shifts", json=shift_body(creditCardTips=0, houseTips=0, cashTips=0))
    assert response.status_code == 400


def test_shift_lifecycle(client):
    created = client.post("/api/shifts", json=shift_body())
    assert created.status_code == 201
    shift_id = created.json()["shift"]["id"]

    listed = client.get("/api/shifts").json()
    assert [(s["id"], s["employeeCount"]) for s in listed] == [(shift_id, 2)]

    editable = client.get(f"/api/shifts/{shift_id}/edit").json()
    assert editable["state"] == "edited"
    assert editable["employees"][0]["availablePositions"] == ["Server"]

    body = shift_body(cashTips=30)
    body["employees"] = body["employees"][:1]
    updated = client.put(f"/api/shifts/{shift_id}", json=body)
    assert updated.status_code == 200
    assert len(updated.json()["results"]) == 1

    fetched = client.get(f"/api/shifts/{shift_id}").json()
    assert len(fetched["lines"]) == 1
    assert fetched["results"][0]["cashTips"] == pytest.approx(30.0)
    assert fetched["results"][0]["digitalTips"] == pytest.approx(100.0)

    assert client.delete(f"/api/shifts/{shift_id}").status_code == 204
    assert client.get(f"/api/shifts/{shift_id}").status_code == 404
    assert client.delete(f"/api/shifts/{shift_id}").status_code == 404


def test_update_missing_shift_is_404(client):
    assert client.put("/api/shifts/404", json=shift_body()).status_code == 404


def test_list_shifts_since(client):
    client.post("/api/shifts", json=shift_body(date="2024-01-10"))
    client.post("/api/shifts", json=shift_body(date="2024-03-01"))

    recent = client.get("/api/shifts", params={"since": "2024-02-01"}).json()
    assert [s["date"] for s in recent] == ["2024-03-01"]


def test_export_csv(client):
    shift_id = client.post("/api/shifts", json=shift_body()).json()["shift"]["id"]

    response = client.get(f"/api/shifts/{shift_id}/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="tip-distribution-2024-03-01-Dinner.csv"' in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0].startswith("Employee ID,Name,Position")
    assert lines[1] == "15,Harold Z,Server,3.00,3.00,75.00,15.00,90.00"


def test_setup_sync_round_trip(client):
    setup = client.get("/api/setup").json()
    setup["restaurant"]["name"] = "Trattoria"
    setup["shiftTypes"] = [t for t in setup["shiftTypes"] if t["name"] != "Brunch"]
    setup["positions"].append({"name": "Host", "pointValue": 0.4})

    saved = client.post("/api/setup", json=setup).json()
    assert saved["restaurant"]["name"] == "Trattoria"
    assert [t["name"] for t in saved["shiftTypes"]] == ["Lunch", "Dinner"]
    assert saved["positions"][-1]["name"] == "Host"


def test_position_crud(client):
    created = client.post("/api/positions", json={"name": "Host", "pointValue": 0.4})
    assert created.status_code == 201
    position_id = created.json()["id"]

    assert client.post("/api/positions", json={"name": "Host"}).status_code == 409
    assert client.put(f"/api/positions/{position_id}", json={"name": "Host", "pointValue": 0.5}).json()["pointValue"] == 0.5
    assert client.delete(f"/api/positions/{position_id}").status_code == 204
    assert client.get(f"/api/positions/{position_id}").status_code == 404


def test_rejected_setup_leaves_data_alone(client):
    before = client.get("/api/setup").json()

    duplicate = dict(before, restaurant={"name": "Trattoria"})
    duplicate["positions"] = before["positions"] + [{"name": "Server", "pointValue": 0.9}]
    assert client.post("/api/setup", json=duplicate).status_code == 409

    unknown = dict(before, restaurant={"name": "Trattoria"})
    unknown["positions"] = before["positions"][1:] + [{"id": 999, "name": "Sommelier", "pointValue": 0.8}]
    assert client.post("/api/setup", json=unknown).status_code == 404

    assert client.get("/api/setup").json() == before
