import datetime
import os

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from compliance_service.core.config import settings
from compliance_service.database import Base, get_db
from compliance_service.main import app, log_audit_event

AUTH_SECRET_KEY = os.getenv("AUTH_SECRET_KEY", "a_very_secret_key_that_should_be_in_an_env_var")
AUTH_ALGORITHM = "HS256"
OWNER_ID = "founder@example.com"
ADMIN_ID = "admin@example.com"
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
REGISTRATION_DATE = datetime.date(2023, 5, 10)
CURRENT_YEAR = datetime.date.today().year

engine = create_async_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine, class_=AsyncSession, expire_on_commit=False
)


def get_auth_headers(user_id: str = OWNER_ID, role: str = "Startup", service_code: str | None = None) -> dict[str, str]:
    claims = {"sub": user_id, "role": role}
    if service_code:
        claims["service_code"] = service_code
    token = jwt.encode(claims, AUTH_SECRET_KEY, algorithm=AUTH_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


OWNER = get_auth_headers()
ADMIN = get_auth_headers(ADMIN_ID, role="Admin")
CA_USER = get_auth_headers("ca@example.com", role="CA", service_code="CA-001")
CS_USER = get_auth_headers("cs@example.com", role="CS", service_code="CS-001")


async def override_get_db():
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db
client = TestClient(app)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)


def create_rule(**overrides) -> dict:
    payload = {
        "country_code": "IN",
        "country_name": "India",
        "company_type": "Private Limited Company",
        "compliance_name": "Annual Return Filing",
        "frequency": "annual",
        "verification_required": "both",
    }
    payload.update(overrides)
    response = client.post("/compliance-rules", json=payload, headers=ADMIN)
    assert response.status_code == 201, response.text
    return response.json()


def create_startup(**overrides) -> dict:
    payload = {
        "name": "Acme Robotics",
        "country_of_registration": "India",
        "company_type": "Private Limited Company",
        "registration_date": REGISTRATION_DATE.isoformat(),
        "ca_service_code": "CA-001",
        "cs_service_code": "CS-001",
    }
    payload.update(overrides)
    response = client.post("/startups", json=payload, headers=OWNER)
    assert response.status_code == 201, response.text
    return response.json()


def seed_rules() -> tuple[dict, dict]:
    first_year = create_rule(
        compliance_name="Certificate of Incorporation",
        frequency="first-year",
        verification_required="CS",
    )
    annual = create_rule()
    return first_year, annual


def list_tasks(startup_id: int, headers=OWNER, **params) -> list[dict]:
    response = client.get(f"/startups/{startup_id}/compliance/tasks", headers=headers, params=params)
    assert response.status_code == 200, response.text
    return response.json()


def find_task(tasks: list[dict], rule_id: int, year: int, entity: str = "parent") -> dict:
    return next(
        task for task in tasks
        if task["rule_id"] == rule_id and task["year"] == year and task["entity_identifier"] == entity
    )


def test_health_and_metrics():
    assert client.get("/health").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "compliance_task_status_updates" in metrics.text


def test_create_startup_requires_startup_role_and_valid_dates():
    payload = {"name": "Acme", "country_of_registration": "India"}
    assert client.post("/startups", json=payload).status_code == 401
    assert client.post("/startups", json=payload, headers=CA_USER).status_code == 403

    future = (datetime.date.today() + datetime.timedelta(days=30)).isoformat()
    response = client.post("/startups", json={**payload, "registration_date": future}, headers=OWNER)
    assert response.status_code == 422

    startup = create_startup()
    assert startup["user_id"] == OWNER_ID
    assert startup["compliance_status"] == "Pending"
    assert startup["subsidiaries"] == []


def test_other_users_cannot_view_startup():
    startup = create_startup()
    stranger = get_auth_headers("someone@example.com")
    other_ca = get_auth_headers("ca2@example.com", role="CA", service_code="CA-999")

    assert client.get(f"/startups/{startup['id']}", headers=stranger).status_code == 403
    assert client.get(f"/startups/{startup['id']}", headers=other_ca).status_code == 403
    assert client.get(f"/startups/{startup['id']}", headers=CA_USER).status_code == 200
    assert client.get("/startups/999", headers=OWNER).status_code == 404


def test_tasks_are_generated_per_period_and_sorted():
    first_year, annual = seed_rules()
    startup = create_startup()

    tasks = list_tasks(startup["id"])

    assert len(tasks) == 1 + (CURRENT_YEAR - REGISTRATION_DATE.year + 1)
    assert tasks[0]["task_id"] == f"rule_{first_year['id']}_{startup['id']}_2023"
    assert tasks[0]["frequency"] == "first-year"
    assert tasks[0]["ca_required"] is False
    assert tasks[0]["cs_required"] is True
    assert [task["year"] for task in tasks[1:]] == list(range(CURRENT_YEAR, 2022, -1))
    assert all(task["persisted"] is False for task in tasks)
    assert find_task(tasks, annual["id"], 2023)["entity_display_name"] == "Parent Company (IN)"


def test_grouped_tasks_include_subsidiaries_with_titles():
    seed_rules()
    create_rule(country_code="US", country_name="United States", company_type="C-Corporation",
                compliance_name="Franchise Tax", verification_required="CA")
    startup = create_startup()
    response = client.post(
        f"/startups/{startup['id']}/subsidiaries",
        json={"country": "United States", "company_type": "C-Corporation", "registration_date": "2024-02-01"},
        headers=OWNER,
    )
    assert response.status_code == 201

    groups = client.get(f"/startups/{startup['id']}/compliance/tasks/grouped", headers=OWNER).json()

    assert [group["entity_identifier"] for group in groups] == ["parent", "sub-0"]
    assert groups[1]["entity_display_name"] == "Subsidiary 0 (US)"
    assert groups[1]["ca_title"] == "CPA"
    assert groups[1]["country_name"] == "United States"
    assert len(groups[1]["tasks"]) == CURRENT_YEAR - 2024 + 1
    assert groups[1]["tasks"][0]["task_id"].startswith("rule_3_")


def test_sync_inserts_missing_tasks_only():
    seed_rules()
    startup = create_startup()
    expected = 1 + (CURRENT_YEAR - REGISTRATION_DATE.year + 1)

    first = client.post(f"/startups/{startup['id']}/compliance/sync", headers=OWNER).json()
    assert first == {"generated": expected, "created": expected, "deleted": 0}

    second = client.post(f"/startups/{startup['id']}/compliance/sync", headers=OWNER).json()
    assert second["created"] == 0
    assert all(task["persisted"] for task in list_tasks(startup["id"]))


def test_cs_user_verifies_first_year_task(mocker):
    mock_log = mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    first_year, _ = seed_rules()
    startup = create_startup()
    task_id = f"rule_{first_year['id']}_{startup['id']}_2023"

    response = client.patch(
        f"/startups/{startup['id']}/compliance/tasks/{task_id}/status",
        json={"status": "Verified"},
        headers=CS_USER,
    )

    assert response.status_code == 200, response.text
    payload = response.json()
    assert payload["task"]["cs_status"] == "Verified"
    assert payload["task"]["persisted"] is True
    assert payload["overall_status"] == "Pending"

    mock_log.assert_awaited_once()
    call_args = mock_log.call_args.kwargs
    assert call_args["action"] == "compliance.task.status.updated"
    assert call_args["details"]["column"] == "cs"
    assert call_args["details"]["to_status"] == "Verified"


def test_status_update_permission_rules(mocker):
    mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    first_year, annual = seed_rules()
    startup = create_startup()
    first_year_task = f"rule_{first_year['id']}_{startup['id']}_2023"
    url = f"/startups/{startup['id']}/compliance/tasks/{first_year_task}/status"

    assert client.patch(url, json={"status": "Verified"}, headers=OWNER).status_code == 403
    assert client.patch(url, json={"status": "Verified"}, headers=CA_USER).status_code == 400
    assert client.patch(url, json={"status": "Compliant"}, headers=CS_USER).status_code == 422

    missing = f"/startups/{startup['id']}/compliance/tasks/rule_999_1_2023/status"
    assert client.patch(missing, json={"status": "Verified"}, headers=CS_USER).status_code == 404


def test_entity_code_must_match_verifier(mocker):
    mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    _, annual = seed_rules()
    startup = create_startup()
    client.post(
        f"/startups/{startup['id']}/subsidiaries",
        json={
            "country": "India",
            "company_type": "Private Limited Company",
            "registration_date": "2024-01-15",
            "ca_code": "CA-OTHER",
        },
        headers=OWNER,
    )
    sub_task = f"rule_{annual['id']}_{startup['id']}_sub-0_2024"
    parent_task = f"rule_{annual['id']}_{startup['id']}_2024"

    blocked = client.patch(
        f"/startups/{startup['id']}/compliance/tasks/{sub_task}/status",
        json={"status": "Verified"},
        headers=CA_USER,
    )
    allowed = client.patch(
        f"/startups/{startup['id']}/compliance/tasks/{parent_task}/status",
        json={"status": "Verified"},
        headers=CA_USER,
    )

    assert blocked.status_code == 403
    assert allowed.status_code == 200


def test_subsidiary_verifier_sees_startup_and_verifies_only_its_entity(mocker):
    mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    _, annual = seed_rules()
    startup = create_startup()
    client.post(
        f"/startups/{startup['id']}/subsidiaries",
        json={
            "country": "India",
            "company_type": "Private Limited Company",
            "registration_date": "2024-01-15",
            "ca_code": "CA-SUB",
        },
        headers=OWNER,
    )
    subsidiary_ca = get_auth_headers("ca-sub@example.com", role="CA", service_code="CA-SUB")
    base = f"/startups/{startup['id']}/compliance/tasks"

    assert client.get(f"/startups/{startup['id']}", headers=subsidiary_ca).status_code == 200
    sub_task = f"rule_{annual['id']}_{startup['id']}_sub-0_2024"
    parent_task = f"rule_{annual['id']}_{startup['id']}_2024"
    assert client.patch(f"{base}/{sub_task}/status", json={"status": "Verified"}, headers=subsidiary_ca).status_code == 200
    assert client.patch(f"{base}/{parent_task}/status", json={"status": "Verified"}, headers=subsidiary_ca).status_code == 403

    dashboard = client.get("/dashboard/startups", headers=subsidiary_ca).json()
    assert [item["id"] for item in dashboard] == [startup["id"]]


def test_rejection_marks_startup_non_compliant(mocker):
    mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    _, annual = seed_rules()
    startup = create_startup()
    task_id = f"rule_{annual['id']}_{startup['id']}_2023"

    response = client.patch(
        f"/startups/{startup['id']}/compliance/tasks/{task_id}/status",
        json={"status": "Rejected"},
        headers=CA_USER,
    )

    assert response.status_code == 200
    assert response.json()["overall_status"] == "Non-Compliant"
    assert client.get(f"/startups/{startup['id']}", headers=OWNER).json()["compliance_status"] == "Non-Compliant"

    rejected = list_tasks(startup["id"], status="Rejected")
    assert [task["task_id"] for task in rejected] == [task_id]

    summary = client.get(f"/startups/{startup['id']}/compliance/summary", headers=OWNER).json()
    assert summary["rejected_tasks"] == 1
    assert summary["overall_status"] == "Non-Compliant"
    assert summary["first_year_completed"] is False


def test_regenerate_resets_statuses_but_keeps_tasks_when_nothing_generated(mocker):
    mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    first_year, annual = seed_rules()
    startup = create_startup()
    task_id = f"rule_{first_year['id']}_{startup['id']}_2023"
    client.patch(
        f"/startups/{startup['id']}/compliance/tasks/{task_id}/status",
        json={"status": "Verified"},
        headers=CS_USER,
    )

    assert client.post(f"/startups/{startup['id']}/compliance/regenerate", headers=CA_USER).status_code == 403
    result = client.post(f"/startups/{startup['id']}/compliance/regenerate", headers=OWNER).json()
    assert result["deleted"] == result["generated"]
    assert find_task(list_tasks(startup["id"]), first_year["id"], 2023)["cs_status"] == "Pending"

    for rule in (first_year, annual):
        assert client.delete(f"/compliance-rules/{rule['id']}", headers=ADMIN).status_code == 204
    empty = client.post(f"/startups/{startup['id']}/compliance/regenerate", headers=OWNER).json()
    assert empty == {"generated": 0, "created": 0, "deleted": 0}
    assert len(list_tasks(startup["id"])) == result["generated"]


def test_failed_regenerate_keeps_stored_statuses(mocker):
    mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    first_year, _ = seed_rules()
    startup = create_startup()
    task_id = f"rule_{first_year['id']}_{startup['id']}_2023"
    verified = client.patch(
        f"/startups/{startup['id']}/compliance/tasks/{task_id}/status",
        json={"status": "Verified"},
        headers=CS_USER,
    )
    assert verified.status_code == 200

    mocker.patch(
        "compliance_service.crud.insert_missing_checks",
        new_callable=mocker.AsyncMock,
        side_effect=RuntimeError("insert failed"),
    )
    failing_client = TestClient(app, raise_server_exceptions=False)
    response = failing_client.post(f"/startups/{startup['id']}/compliance/regenerate", headers=OWNER)
    assert response.status_code == 500

    task = find_task(list_tasks(startup["id"]), first_year["id"], 2023)
    assert task["cs_status"] == "Verified"
    assert task["persisted"] is True
    assert all(item["persisted"] for item in list_tasks(startup["id"]))


def test_uploads_are_verified_and_attached(mocker):
    mock_log = mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    first_year, _ = seed_rules()
    startup = create_startup()
    task_id = f"rule_{first_year['id']}_{startup['id']}_2023"
    url = f"/startups/{startup['id']}/compliance/tasks/{task_id}/uploads"
    document = {
        "file_name": "incorporation.pdf",
        "file_url": "https://files.example.com/incorporation.pdf",
        "file_size": 200 * 1024,
        "file_type": "application/pdf",
    }

    assert client.post(url, json=document, headers=CA_USER).status_code == 403
    bad = client.post(url, json={**document, "file_name": "setup.exe"}, headers=OWNER)
    assert bad.status_code == 422

    response = client.post(url, json=document, headers=OWNER)
    assert response.status_code == 201, response.text
    upload = response.json()
    assert upload["verification_status"] == "verified"
    assert upload["uploaded_by"] == OWNER_ID
    mock_log.assert_awaited_once()

    assert len(client.get(url, headers=CS_USER).json()) == 1
    task = find_task(list_tasks(startup["id"]), first_year["id"], 2023)
    assert [item["id"] for item in task["uploads"]] == [upload["id"]]

    deleted = client.delete(f"/startups/{startup['id']}/compliance/uploads/{upload['id']}", headers=OWNER)
    assert deleted.status_code == 204
    assert client.get(url, headers=OWNER).json() == []


def test_rule_management_is_admin_only_and_bulk_reports_errors():
    payload = {
        "country_code": "SG",
        "country_name": "Singapore",
        "company_type": "Private Limited",
        "compliance_name": "Annual Return",
        "frequency": "annual",
        "verification_required": "CS",
    }
    assert client.post("/compliance-rules", json=payload, headers=OWNER).status_code == 403

    result = client.post(
        "/compliance-rules/bulk",
        json=[{**payload, "frequency": "firstYear", "compliance_name": "Constitution"}, {"country_code": "SG"}],
        headers=ADMIN,
    ).json()
    assert result["success"] == 1
    assert [error["row"] for error in result["errors"]] == [2]

    rules = client.get("/compliance-rules", params={"country_code": "sg"}, headers=OWNER).json()
    assert [(rule["compliance_name"], rule["frequency"]) for rule in rules] == [("Constitution", "first-year")]

    updated = client.patch(f"/compliance-rules/{rules[0]['id']}", json={"cs_type": "Company Secretary"}, headers=ADMIN)
    assert updated.json()["cs_type"] == "Company Secretary"

    setup = client.post(
        "/compliance-rules/countries",
        json={"country_code": "np", "country_name": "Nepal", "ca_types": ["Chartered Accountant"]},
        headers=ADMIN,
    )
    assert setup.status_code == 201
    assert setup.json()[0]["compliance_name"] == "Country Setup - CA Type"

    countries = client.get("/compliance-rules/countries", headers=OWNER).json()
    assert [country["country_code"] for country in countries] == ["NP", "SG"]
    assert client.get("/compliance-rules/company-types", params={"country_code": "SG"}, headers=OWNER).json() == [
        "Private Limited"
    ]
    assert client.get("/compliance-rules/ca-types", headers=OWNER).json() == ["Chartered Accountant"]
    assert client.get("/compliance-rules/cs-types", headers=OWNER).json() == ["Company Secretary"]


def test_bulk_upload_reports_non_string_fields_per_row():
    row = {
        "country_code": "IN",
        "country_name": "India",
        "company_type": "Private Limited Company",
        "compliance_name": "Board Meeting",
        "verification_required": "CS",
    }

    response = client.post(
        "/compliance-rules/bulk",
        json=[{**row, "frequency": 5}, {**row, "frequency": "annual"}, {**row, "frequency": "quarterly", "compliance_name": 7}],
        headers=ADMIN,
    )

    assert response.status_code == 200, response.text
    result = response.json()
    assert result["success"] == 1
    assert [error["row"] for error in result["errors"]] == [1, 3]
    assert result["errors"][0]["data"]["frequency"] == 5

    rules = client.get("/compliance-rules", params={"country_code": "IN"}, headers=OWNER).json()
    assert [(rule["compliance_name"], rule["frequency"]) for rule in rules] == [("Board Meeting", "annual")]


def test_rule_submission_review_and_promotion(mocker):
    mock_log = mocker.patch("compliance_service.main.log_audit_event", new_callable=mocker.AsyncMock)
    submission = {
        "company_name": "Acme Robotics",
        "company_type": "Private Limited Company",
        "operation_type": "parent",
        "country_code": "IN",
        "country_name": "India",
        "compliance_name": "Board Meeting Minutes",
        "frequency": "quarterly",
        "verification_required": "CS",
        "justification": "Required by the Companies Act",
    }
    created = client.post("/rule-submissions", json=submission, headers=CS_USER)
    assert created.status_code == 201
    submission_id = created.json()["id"]
    assert created.json()["status"] == "pending"
    assert created.json()["submitted_by_role"] == "CS"

    assert len(client.get("/rule-submissions/mine", headers=CS_USER).json()) == 1
    assert client.get("/rule-submissions/mine", headers=OWNER).json() == []
    assert client.get("/rule-submissions", headers=CS_USER).status_code == 403

    reviewed = client.patch(
        f"/rule-submissions/{submission_id}/status",
        json={"status": "under_review", "review_notes": "Checking the act"},
        headers=ADMIN,
    )
    assert reviewed.json()["status"] == "under_review"
    assert reviewed.json()["reviewed_by_user_id"] == ADMIN_ID

    promoted = client.post(f"/rule-submissions/{submission_id}/approve", headers=ADMIN)
    assert promoted.status_code == 201
    assert promoted.json()["compliance_name"] == "Board Meeting Minutes"
    mock_log.assert_awaited_once()
    assert client.post(f"/rule-submissions/{submission_id}/approve", headers=ADMIN).status_code == 409

    stats = client.get("/rule-submissions/stats", headers=ADMIN).json()
    assert stats == {"total": 1, "pending": 0, "under_review": 0, "approved": 1, "rejected": 0}

    assert client.delete(f"/rule-submissions/{submission_id}", headers=ADMIN).status_code == 204
    assert client.get("/rule-submissions", headers=ADMIN).json() == []


def test_assignment_flow_and_dashboard():
    startup = create_startup(ca_service_code=None, cs_service_code=None)
    advisor = get_auth_headers("ca-advisor@example.com", role="CA", service_code="CA-777")

    assert client.get(f"/startups/{startup['id']}/compliance/tasks", headers=advisor).status_code == 403
    assert client.post(f"/startups/{startup['id']}/assignments", headers=OWNER).status_code == 403

    requested = client.post(f"/startups/{startup['id']}/assignments", json={"notes": "Happy to help"}, headers=advisor)
    assert requested.status_code == 201
    assignment = requested.json()
    assert assignment["status"] == "pending"
    assert client.post(f"/startups/{startup['id']}/assignments", headers=advisor).status_code == 409

    pending = client.get(f"/startups/{startup['id']}/assignments/pending", headers=OWNER).json()
    assert [item["id"] for item in pending] == [assignment["id"]]
    assert client.post(f"/assignments/{assignment['id']}/approve", headers=advisor).status_code == 403

    approved = client.post(f"/assignments/{assignment['id']}/approve", headers=OWNER)
    assert approved.json()["status"] == "active"
    assert client.post(f"/assignments/{assignment['id']}/reject", headers=OWNER).status_code == 409

    assert client.get(f"/startups/{startup['id']}/compliance/tasks", headers=advisor).status_code == 200
    dashboard = client.get("/dashboard/startups", headers=advisor).json()
    assert [(item["id"], item["compliance_status"]) for item in dashboard] == [(startup["id"], "Pending")]

    stats = client.get("/dashboard/stats", headers=advisor).json()
    assert stats["total_startups"] == 1
    assert stats["pending_review"] == 1
    assert stats["active_assignments"] == 1
    assert stats["pending_requests"] == 0
    assert client.get("/dashboard/stats", headers=OWNER).status_code == 403

    removed = client.delete(f"/assignments/{assignment['id']}", headers=advisor)
    assert removed.json()["status"] == "removed"
    assert client.get("/dashboard/startups", headers=advisor).json() == []


@pytest.mark.asyncio
async def test_audit_event_is_skipped_without_url(mocker):
    mock_post = mocker.patch("compliance_service.main.post_json_with_retry", new_callable=mocker.AsyncMock)
    mocker.patch.object(settings, "AUDIT_SERVICE_URL", "")

    assert await log_audit_event("user-1", "compliance.tasks.regenerated", {}) is None
    mock_post.assert_not_called()


@pytest.mark.asyncio
async def test_audit_event_failures_do_not_propagate(mocker):
    mocker.patch.object(settings, "AUDIT_SERVICE_URL", "http://audit.test/audit-events")
    mock_post = mocker.patch(
        "compliance_service.main.post_json_with_retry",
        new_callable=mocker.AsyncMock,
        return_value={"id": "evt-9"},
    )

    assert await log_audit_event("user-1", "compliance.upload.created", {"task_id": "rule_1_1_2024"}) == "evt-9"
    assert mock_post.call_args.kwargs["json_body"]["action"] == "compliance.upload.created"

    mock_post.side_effect = httpx.ConnectError("audit service down")
    assert await log_audit_event("user-1", "compliance.upload.created", {}) is None
