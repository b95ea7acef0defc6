from datetime import date

import pytest
from fastapi import status

HR_HEADERS = {"X-User-Id": "hr-1", "X-User-Role": "hr_admin"}
MANAGER_HEADERS = {"X-User-Id": "mgr-1", "X-User-Role": "manager"}
EMPLOYEE_HEADERS = {"X-User-Id": "emp-1", "X-User-Role": "employee"}


@pytest.fixture
def leave_setup(client, make_employee, make_leave_type):
    employee = make_employee()
    sick = make_leave_type("Sick Leave", 10)
    response = client.post(
        "/api/leave/balances/initialize",
        json={"employee_id": employee.id, "year": 2024},
        headers=HR_HEADERS
    )
    assert response.status_code == 200
    return employee, sick


def _submit(client, employee, leave_type, start, end):
    return client.post(
        "/api/leave/requests",
        json={
            "employee_id": employee.id,
            "leave_type_id": leave_type.id,
            "start_date": start,
            "end_date": end,
            "reason": "family",
        },
        headers=EMPLOYEE_HEADERS
    )


# --- Identity ---

def test_missing_identity_is_unauthorized(client):
    response = client.post("/api/leave/types", json={"name": "Study", "default_days_per_year": 3})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["code"] == "AUTH_FAILED"


def test_unknown_role_is_unauthorized(client):
    response = client.get("/api/payroll/runs", headers={"X-User-Id": "x", "X-User-Role": "superuser"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_employee_cannot_manage_leave_types_or_payroll(client):
    response = client.post(
        "/api/leave/types", json={"name": "Study", "default_days_per_year": 3}, headers=EMPLOYEE_HEADERS
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "PERMISSION_DENIED"

    response = client.get("/api/payroll/runs", headers=MANAGER_HEADERS)
    assert response.status_code == status.HTTP_403_FORBIDDEN


# --- Leave types ---

def test_leave_type_lifecycle(client):
    response = client.post(
        "/api/leave/types",
        json={"name": "Study Leave", "default_days_per_year": 3, "max_consecutive_days": 2},
        headers=HR_HEADERS
    )
    assert response.status_code == status.HTTP_201_CREATED
    created = response.json()
    assert created["is_active"] is True

    duplicate = client.post(
        "/api/leave/types", json={"name": "Study Leave", "default_days_per_year": 1}, headers=HR_HEADERS
    )
    assert duplicate.status_code == status.HTTP_409_CONFLICT

    response = client.post(f"/api/leave/types/{created['id']}/deactivate", headers=HR_HEADERS)
    assert response.json()["is_active"] is False
    assert client.get("/api/leave/types").json() == []
    assert len(client.get("/api/leave/types", params={"include_inactive": True}).json()) == 1


def test_leave_type_payload_is_validated(client):
    response = client.post(
        "/api/leave/types", json={"name": "", "default_days_per_year": -1}, headers=HR_HEADERS
    )
    assert response.status_code == 422
    assert {e["field"] for e in response.json()["errors"]} == {"name", "default_days_per_year"}


# --- Ledger ---

def test_initialize_is_idempotent_over_http(client, leave_setup):
    employee, sick = leave_setup
    response = client.post(
        "/api/leave/balances/initialize",
        json={"employee_id": employee.id, "year": 2024},
        headers=HR_HEADERS
    )
    assert response.status_code == 200
    assert response.json() == []

    balances = client.get(f"/api/leave/balances/{employee.id}", params={"year": 2024}).json()
    assert len(balances) == 1
    assert balances[0]["remaining_days"] == 10


def test_initialize_for_inactive_employee_fails(client, make_employee, make_leave_type):
    make_leave_type()
    employee = make_employee(status="terminated")
    response = client.post(
        "/api/leave/balances/initialize",
        json={"employee_id": employee.id, "year": 2024},
        headers=HR_HEADERS
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["errors"][0]["code"] == "VALIDATION_ERROR"


def test_missing_balance_is_not_found(client):
    response = client.get("/api/leave/balances/1/1/2024")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_calculate_days(client):
    response = client.get(
        "/api/leave/calculate-days", params={"start_date": "2024-03-04", "end_date": "2024-03-10"}
    )
    assert response.json()["days"] == 5

    response = client.get(
        "/api/leave/calculate-days", params={"start_date": "2024-03-10", "end_date": "2024-03-04"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


# --- Requests ---

def test_leave_request_flow(client, leave_setup):
    employee, sick = leave_setup
    first = _submit(client, employee, sick, "2024-03-04", "2024-03-06")
    second = _submit(client, employee, sick, "2024-03-11", "2024-03-20")
    assert first.status_code == status.HTTP_201_CREATED
    assert (first.json()["days"], second.json()["days"]) == (3, 8)

    response = client.post(
        f"/api/leave/requests/{first.json()['id']}/approve", json={"comments": "ok"}, headers=MANAGER_HEADERS
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["decided_by"] == "mgr-1"

    response = client.post(f"/api/leave/requests/{second.json()['id']}/approve", json={}, headers=HR_HEADERS)
    assert response.status_code == status.HTTP_409_CONFLICT
    error = response.json()["errors"][0]
    assert error["code"] == "INSUFFICIENT_BALANCE"
    assert error["details"]["remaining"] == 7

    assert client.get(f"/api/leave/requests/{second.json()['id']}").json()["status"] == "pending"
    balance = client.get(f"/api/leave/balances/{employee.id}/{sick.id}/2024").json()
    assert (balance["used_days"], balance["remaining_days"]) == (3, 7)

    history = client.get(f"/api/leave/balances/{employee.id}/{sick.id}/2024/history").json()
    assert [h["entry_type"] for h in history] == ["initialize", "debit"]


def test_employee_cannot_approve(client, leave_setup):
    employee, sick = leave_setup
    leave = _submit(client, employee, sick, "2024-03-04", "2024-03-04").json()
    response = client.post(f"/api/leave/requests/{leave['id']}/approve", json={}, headers=EMPLOYEE_HEADERS)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_cancel_and_revoke(client, leave_setup):
    employee, sick = leave_setup
    pending = _submit(client, employee, sick, "2024-03-04", "2024-03-04").json()
    approved = _submit(client, employee, sick, "2024-03-11", "2024-03-12").json()
    client.post(f"/api/leave/requests/{approved['id']}/approve", json={}, headers=HR_HEADERS)

    response = client.post(f"/api/leave/requests/{pending['id']}/cancel", headers=EMPLOYEE_HEADERS)
    assert response.json()["status"] == "cancelled"

    response = client.post(f"/api/leave/requests/{approved['id']}/cancel", headers=EMPLOYEE_HEADERS)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["errors"][0]["code"] == "INVALID_STATE"

    response = client.post(f"/api/leave/requests/{approved['id']}/revoke", headers=MANAGER_HEADERS)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(f"/api/leave/requests/{approved['id']}/revoke", headers=HR_HEADERS)
    assert response.json()["status"] == "cancelled"
    balance = client.get(f"/api/leave/balances/{employee.id}/{sick.id}/2024").json()
    assert balance["remaining_days"] == 10

    statuses = {r["id"]: r["status"] for r in client.get("/api/leave/requests", params={"employee_id": employee.id}).json()}
    assert statuses == {pending["id"]: "cancelled", approved["id"]: "cancelled"}


def test_unknown_request_is_not_found(client):
    assert client.get("/api/leave/requests/999").status_code == status.HTTP_404_NOT_FOUND


# --- Payroll ---

@pytest.fixture
def salaried(make_employee, make_component, assign_salary):
    employee = make_employee()
    assign_salary(employee, make_component("Basic"), "21000")
    assign_salary(employee, make_component("Professional Tax", "deduction"), "200")
    return employee


def test_payroll_run_flow(client, salaried, mark_attendance):
    # Present on every weekday of February 2024 (21 weekdays)
    for day in range(1, 30):
        current = date(2024, 2, day)
        if current.weekday() < 5:
            mark_attendance(salaried, current)

    response = client.post("/api/payroll/process", json={"month": 2, "year": 2024}, headers=HR_HEADERS)
    assert response.status_code == status.HTTP_201_CREATED
    run = response.json()
    assert run["status"] == "draft"
    assert run["total_payout"] == 20800.0
    line = run["employee_payrolls"][0]
    assert (line["working_days"], line["days_worked"], line["loss_of_pay_days"]) == (21, 21, 0)

    conflict = client.post("/api/payroll/process", json={"month": 2, "year": 2024}, headers=HR_HEADERS)
    assert conflict.status_code == status.HTTP_409_CONFLICT
    assert conflict.json()["errors"][0]["code"] == "CONFLICT"

    response = client.post(f"/api/payroll/runs/{run['id']}/finalize", headers=HR_HEADERS)
    assert response.json()["status"] == "finalized"

    again = client.post(f"/api/payroll/runs/{run['id']}/finalize", headers=HR_HEADERS)
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json()["errors"][0]["code"] == "INVALID_STATE"

    delete = client.delete(f"/api/payroll/runs/{run['id']}", headers=HR_HEADERS)
    assert delete.status_code == status.HTTP_409_CONFLICT

    history = client.get(f"/api/payroll/employees/{salaried.id}/history", headers=HR_HEADERS).json()
    assert history[0]["run_status"] == "finalized"
    assert history[0]["net_salary"] == 20800.0


def test_process_replays_with_idempotency_key(client, salaried):
    headers = {**HR_HEADERS, "Idempotency-Key": "feb-2024"}
    first = client.post("/api/payroll/process", json={"month": 2, "year": 2024}, headers=headers)
    second = client.post("/api/payroll/process", json={"month": 2, "year": 2024}, headers=headers)

    assert second.status_code == status.HTTP_201_CREATED
    assert second.json()["id"] == first.json()["id"]
    assert len(client.get("/api/payroll/runs", headers=HR_HEADERS).json()) == 1


def test_delete_draft_run(client, salaried):
    run = client.post("/api/payroll/process", json={"month": 2, "year": 2024}, headers=HR_HEADERS).json()

    response = client.delete(f"/api/payroll/runs/{run['id']}", headers=HR_HEADERS)
    assert response.json()["success"] is True
    assert client.get(f"/api/payroll/runs/{run['id']}", headers=HR_HEADERS).status_code == 404


def test_process_rejects_invalid_month(client):
    response = client.post("/api/payroll/process", json={"month": 13, "year": 2024}, headers=HR_HEADERS)
    assert response.status_code == 422
