from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from cuidamos.app.deps import db_session
from cuidamos.app.main import app as default_app, create_app


def _client() -> TestClient:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    def _session():
        with Session(engine) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[db_session] = _session
    return TestClient(app)


def _as(principal_id: str, email: str) -> dict:
    return {"X-Principal-Id": principal_id, "X-Principal-Email": email}


COORD = _as("u-coord", "coord@cuidamos.org")
CARLA = _as("u-carla", "carla@cuidamos.org")
STRANGER = _as("u-nobody", "nobody@cuidamos.org")


def test_app_title():
    assert default_app.title == "Cuidamos API"


def test_router_tags_present():
    tags = {tag for route in default_app.routes for tag in getattr(route, "tags", [])}
    assert {"organizations", "patients", "shifts", "plans", "audit"}.issubset(tags)


def test_identity_is_required():
    client = _client()
    assert client.get("/plans/").status_code == 401
    assert client.get("/audit/logs").status_code == 401


def test_caregiver_completion_follows_the_roster():
    client = _client()
    org = client.post("/organizations/", json={"name": "Casa Rosa"}, headers=COORD).json()
    base = f"/organizations/{org['id']}"

    resp = client.post(
        f"{base}/members",
        json={"email": "Carla@Cuidamos.org", "name": "Carla", "role": "caregiver", "color": "#f97316"},
        headers=COORD,
    )
    assert resp.status_code == 201
    carla_id = resp.json()["id"]

    patient_id = client.post(f"{base}/patients", json={"name": "Rosa"}, headers=COORD).json()["id"]
    resp = client.post(
        f"{base}/shifts",
        json={
            "patient_id": patient_id,
            "caregiver_id": carla_id,
            "date": "2024-06-01",
            "start_time": "08:00",
            "end_time": "16:00",
        },
        headers=COORD,
    )
    assert resp.status_code == 201
    assert resp.json()["caregiver_color"] == "#f97316"
    assert resp.json()["patient_name"] == "Rosa"

    on_shift = client.post(
        f"{base}/patients/{patient_id}/tasks",
        json={"title": "Ducha", "date": "2024-06-01"},
        headers=COORD,
    ).json()
    off_shift = client.post(
        f"{base}/patients/{patient_id}/tasks",
        json={"title": "Paseo", "date": "2024-06-02"},
        headers=COORD,
    ).json()

    me = client.get(f"{base}/me", headers=CARLA).json()
    assert me["id"] == carla_id
    assert me["linked_principal_id"] == "u-carla"

    resp = client.post(f"{base}/patients/{patient_id}/tasks/{on_shift['id']}/toggle", headers=CARLA)
    assert resp.status_code == 200
    assert resp.json()["completed"] is True
    assert resp.json()["completed_by"] == carla_id

    resp = client.post(f"{base}/patients/{patient_id}/tasks/{off_shift['id']}/toggle", headers=CARLA)
    assert resp.status_code == 403

    check = client.get(
        f"{base}/permissions/complete",
        params={"patient_id": patient_id, "date": "2024-06-01"},
        headers=CARLA,
    ).json()
    assert check["allowed"] is True
    check = client.get(
        f"{base}/permissions/complete",
        params={"patient_id": patient_id, "date": "2024-06-02"},
        headers=CARLA,
    ).json()
    assert check["allowed"] is False

    denied = client.get("/audit/logs", params={"actor_id": carla_id, "allowed": False}, headers=COORD).json()
    assert [log["action"] for log in denied] == ["complete_task"]


def test_role_gates_and_permission_bundle():
    client = _client()
    org = client.post("/organizations/", json={"name": "Casa"}, headers=COORD).json()
    base = f"/organizations/{org['id']}"
    client.post(f"{base}/members", json={"email": "carla@cuidamos.org", "role": "caregiver"}, headers=COORD)

    assert client.post(f"{base}/patients", json={"name": "Rosa"}, headers=CARLA).status_code == 403
    assert client.get(f"{base}/patients", headers=CARLA).status_code == 200
    assert client.get(f"{base}/patients", headers=STRANGER).status_code == 403
    assert client.get(f"{base}/me", headers=STRANGER).status_code == 403

    bundle = client.get(f"{base}/permissions", headers=CARLA).json()
    assert bundle["role"] == "caregiver"
    assert bundle["flags"]["can_view_patients"] is True
    assert bundle["flags"]["can_create_patient"] is False

    assert client.get("/organizations/missing/me", headers=COORD).status_code == 404


def test_member_removal_deactivates_by_default():
    client = _client()
    org = client.post("/organizations/", json={"name": "Casa"}, headers=COORD).json()
    base = f"/organizations/{org['id']}"
    carla_id = client.post(
        f"{base}/members", json={"email": "carla@cuidamos.org", "role": "caregiver"}, headers=COORD
    ).json()["id"]

    assert client.delete(f"{base}/members/{carla_id}", headers=COORD).status_code == 204
    members = {m["id"]: m for m in client.get(f"{base}/members", headers=COORD).json()}
    assert members[carla_id]["active"] is False
    assert client.get(f"{base}/me", headers=CARLA).status_code == 403

    dup = client.post(f"{base}/members", json={"email": "carla@cuidamos.org", "role": "nurse"}, headers=COORD)
    assert dup.status_code == 409


def test_plan_sharing_over_http():
    client = _client()
    owner = _as("u-owner", "owner@example.com")
    guest = _as("u-guest", "guest@example.com")

    plan = client.post("/plans/", json={"name": "Plan de mamá"}, headers=owner).json()
    assert plan["state"] == "private"

    assert client.post(f"/plans/{plan['id']}/invites", headers=guest).status_code == 403
    invite = client.post(f"/plans/{plan['id']}/invites", headers=owner).json()

    assert client.post("/plans/join", json={"code": invite["code"]}, headers=owner).status_code == 400
    joined = client.post("/plans/join", json={"code": invite["code"].lower()}, headers=guest)
    assert joined.status_code == 200
    assert joined.json()["collaborator_emails"] == ["guest@example.com"]
    assert joined.json()["state"] == "shareable"

    assert [p["id"] for p in client.get("/plans/", headers=guest).json()] == [plan["id"]]
    assert client.post("/plans/join", json={"code": "NOPE22"}, headers=guest).status_code == 400

    assert client.post(f"/plans/{plan['id']}/leave", headers=owner).status_code == 400
    assert client.delete(f"/plans/{plan['id']}", headers=guest).status_code == 403
    assert client.post(f"/plans/{plan['id']}/leave", headers=guest).status_code == 204
    assert client.get(f"/plans/{plan['id']}", headers=guest).status_code == 404

    assert client.delete(f"/plans/{plan['id']}", headers=owner).status_code == 204
    assert client.get(f"/plans/{plan['id']}", headers=owner).status_code == 404


def test_completion_check_follows_new_shifts():
    client = _client()
    org = client.post("/organizations/", json={"name": "Casa"}, headers=COORD).json()
    base = f"/organizations/{org['id']}"
    carla_id = client.post(
        f"{base}/members", json={"email": "carla@cuidamos.org", "name": "Carla", "role": "caregiver"}, headers=COORD
    ).json()["id"]
    patient_id = client.post(f"{base}/patients", json={"name": "Rosa"}, headers=COORD).json()["id"]
    query = {"patient_id": patient_id, "date": "2024-06-01"}

    assert client.get(f"{base}/permissions/complete", params=query, headers=CARLA).json()["allowed"] is False

    shift = client.post(
        f"{base}/shifts",
        json={
            "patient_id": patient_id,
            "caregiver_id": carla_id,
            "date": "2024-06-01",
            "start_time": "22:00",
            "end_time": "06:00",
        },
        headers=COORD,
    ).json()
    assert client.get(f"{base}/permissions/complete", params=query, headers=CARLA).json()["allowed"] is True
    next_day = {"patient_id": patient_id, "date": "2024-06-02"}
    assert client.get(f"{base}/permissions/complete", params=next_day, headers=CARLA).json()["allowed"] is False

    assert client.delete(f"{base}/shifts/{shift['id']}", headers=COORD).status_code == 204
    assert client.get(f"{base}/permissions/complete", params=query, headers=CARLA).json()["allowed"] is False


def test_required_fields_cannot_be_patched_to_null():
    client = _client()
    owner = _as("u-owner", "owner@example.com")
    plan = client.post("/plans/", json={"name": "Plan de mamá"}, headers=owner).json()
    task = client.post(
        f"/plans/{plan['id']}/tasks", json={"title": "Ducha", "date": "2024-06-01"}, headers=owner
    ).json()

    assert client.patch(f"/plans/{plan['id']}", json={"name": None}, headers=owner).status_code == 422
    assert client.patch(f"/plans/{plan['id']}", json={"name": ""}, headers=owner).status_code == 422
    resp = client.patch(f"/plans/{plan['id']}/tasks/{task['id']}", json={"title": None}, headers=owner)
    assert resp.status_code == 422
    resp = client.patch(f"/plans/{plan['id']}/tasks/{task['id']}", json={"date": None}, headers=owner)
    assert resp.status_code == 422

    renamed = client.patch(f"/plans/{plan['id']}", json={"description": None}, headers=owner)
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Plan de mamá"

    org = client.post("/organizations/", json={"name": "Casa"}, headers=COORD).json()
    base = f"/organizations/{org['id']}"
    patient_id = client.post(f"{base}/patients", json={"name": "Rosa"}, headers=COORD).json()["id"]
    assert client.patch(f"{base}/patients/{patient_id}", json={"name": None}, headers=COORD).status_code == 422
    assert client.get(f"{base}/patients/{patient_id}", headers=COORD).json()["name"] == "Rosa"
