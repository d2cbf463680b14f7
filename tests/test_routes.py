"""
API tests for the validation routes, backed by an in-memory SQLite session.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldguard.database import Base, get_db
from fieldguard.main import app


CONSTRAINTS = {
    "email": [
        {
            "validator": "StringValidator",
            "config": {"validationType": "isEmail", "formatOptions": {"case": "lower"}},
        },
    ],
    "amount": [
        {
            "validator": "NumberValidator",
            "config": {"validationType": "min", "validationArgs": [0], "formatOptions": {"decimals": 2}},
        },
    ],
}


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Fieldguard API is running"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestRecordValidation:

    def test_valid_record(self, client):
        response = client.post("/records/validate", json={
            "values": {"email": "Jane@Example.com", "amount": "12.5"},
            "constraints": CONSTRAINTS,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["valid"] is True
        assert body["values"] == {"email": "jane@example.com", "amount": "12.50"}
        assert body["verdicts"] == {"email": True, "amount": True}
        assert body["infos"] == {"email": ["String has been formatted"]}

    def test_invalid_record(self, client):
        response = client.post("/records/validate", json={
            "values": {"email": "nope", "amount": "-1"},
            "constraints": CONSTRAINTS,
        })
        body = response.json()
        assert body["valid"] is False
        assert body["errors"] == {
            "email": ["Please enter a valid email address"],
            "amount": ["Value must be at least 0"],
        }

    def test_bad_constraint(self, client):
        response = client.post("/records/validate", json={
            "values": {"email": "x"},
            "constraints": {"email": [{"validator": "ColourValidator"}]},
        })
        assert response.status_code == 422


class TestBatchValidation:

    def test_batch_and_logs(self, client):
        response = client.post("/batches/validate", json={
            "records": [
                {"email": "A@B.com", "amount": "5"},
                {"email": "bad", "amount": "7"},
            ],
            "constraints": CONSTRAINTS,
        })
        assert response.status_code == 201
        body = response.json()
        assert body["records_processed"] == 2
        assert body["records_valid"] == 1
        assert body["records_invalid"] == 1
        assert body["records"][0]["values"] == {"email": "a@b.com", "amount": "5.00"}

        logs = client.get(f"/batches/{body['job_id']}/logs")
        assert logs.status_code == 200
        entries = logs.json()
        assert {entry["action"] for entry in entries} == {"set_value", "add_error", "add_info"}
        assert all(entry["job_id"] == body["job_id"] for entry in entries)

    def test_empty_batch(self, client):
        response = client.post("/batches/validate", json={"records": [], "constraints": CONSTRAINTS})
        assert response.status_code == 400

    def test_unknown_batch(self, client):
        assert client.get("/batches/missing/logs").status_code == 404


class TestBadConstraintRequests:

    def test_unknown_validation_type(self, client):
        response = client.post("/records/validate", json={
            "values": {"email": "x"},
            "constraints": {"email": [{"validator": "StringValidator",
                                       "config": {"validationType": "bogus"}}]},
        })
        assert response.status_code == 200
        assert response.json()["verdicts"] == {"email": True}

    def test_bad_arguments(self, client):
        response = client.post("/records/validate", json={
            "values": {"name": "Ada", "code": "abc"},
            "constraints": {
                "name": [{"validator": "StringValidator",
                          "config": {"validationType": "hasLength", "validationArgs": ["3", "20"]}}],
                "code": [{"validator": "StringValidator",
                          "config": {"validationType": "matchesPattern", "validationArgs": "([a-z"}}],
            },
        })
        assert response.status_code == 200
        assert response.json()["verdicts"] == {"name": True, "code": False}

    def test_out_of_range_relative_date(self, client):
        response = client.post("/records/validate", json={
            "values": {"d": "now+10000years"},
            "constraints": {"d": [{"validator": "DateValidator"}]},
        })
        assert response.status_code == 200
        assert response.json()["errors"] == {"d": ["Please enter a valid date"]}

    def test_bad_format_options(self, client):
        response = client.post("/records/validate", json={
            "values": {"amount": "5"},
            "constraints": {"amount": [{"validator": "NumberValidator",
                                        "config": {"formatOptions": {"decimals": "two"}}}]},
        })
        assert response.status_code == 422

    def test_normalize_phone(self, client):
        response = client.post("/records/validate", json={
            "values": {"primary_phone": "650-253-0000"},
            "constraints": {"primary_phone": [{"validator": "StringValidator",
                                               "config": {"type": "normalizePhone"}}]},
        })
        assert response.json()["values"] == {"primary_phone": "+16502530000"}
