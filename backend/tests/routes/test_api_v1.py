"""Integration API (``/api/v1``) authenticated with bearer API keys."""

from agenda.models import ApiUsageLog, Appointment, AppointmentStatus

from ..factories import at, make_appointment, make_service, make_store
from .conftest import bearer

APPOINTMENTS = "/api/v1/appointments"


def _payload(service, **overrides):
    values = {
        "serviceId": service.id,
        "date": "2030-01-07T14:00:00-03:00",
        "clientName": "Joana Souza",
        "clientEmail": "joana@example.com",
        "clientPhone": "11977776666",
    }
    values.update(overrides)
    return values


class TestAuthentication:
    def test_missing_key(self, client):
        response = client.get(APPOINTMENTS)
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_API_KEY"

    def test_wrong_scheme(self, client, store_key):
        response = client.get(APPOINTMENTS, headers={"Authorization": f"Token {store_key.token}"})
        assert response.status_code == 401

    def test_unknown_key(self, client):
        response = client.get(APPOINTMENTS, headers=bearer("sk_" + "0" * 64))
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_API_KEY"

    def test_missing_permission(self, client, issue_key, store, service):
        reader = issue_key({"appointments": ["read"]}, store_id=store.id)
        response = client.post(APPOINTMENTS, json=_payload(service), headers=bearer(reader.token))
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "PERMISSION_DENIED"
        assert body["details"] == {"resource": "appointments", "action": "create"}

    def test_hourly_rate_limit(self, client, issue_key, store):
        limited = issue_key({"services": ["read"]}, store_id=store.id, rate_limit=2)
        headers = bearer(limited.token)
        assert client.get("/api/v1/services", headers=headers).status_code == 200
        assert client.get("/api/v1/services", headers=headers).status_code == 200

        response = client.get("/api/v1/services", headers=headers)
        assert response.status_code == 429
        assert response.json()["code"] == "RATE_LIMIT_EXCEEDED"

    def test_calls_are_audited(self, client, db, auth, store_key):
        client.get(APPOINTMENTS, headers={**auth, "User-Agent": "crm-sync/2.1"})
        client.get(f"{APPOINTMENTS}/01HZZZZZZZZZZZZZZZZZZZZZZZ", headers=auth)

        db.expire_all()
        rows = db.query(ApiUsageLog).order_by(ApiUsageLog.status_code).all()
        assert [(row.method, row.status_code) for row in rows] == [("GET", 200), ("GET", 404)]
        assert all(row.api_key_id == store_key.api_key.id for row in rows)
        assert rows[0].path == APPOINTMENTS
        assert rows[0].user_agent == "crm-sync/2.1"

    def test_rejected_keys_are_not_audited(self, client, db):
        client.get(APPOINTMENTS, headers=bearer("sk_nope"))
        db.expire_all()
        assert db.query(ApiUsageLog).count() == 0


class TestAppointments:
    def test_create(self, client, db, auth, service, store_key):
        response = client.post(APPOINTMENTS, json=_payload(service), headers=auth)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["source"] == "api"
        assert body["local_time"] == "14:00"
        assert body["client_phone"] == "5511977776666"

        db.expire_all()
        stored = db.get(Appointment, body["id"])
        assert stored.api_key_id == store_key.api_key.id

    def test_naive_date_is_store_local(self, client, auth, service):
        response = client.post(
            APPOINTMENTS, json=_payload(service, date="2030-01-07T16:00:00"), headers=auth
        )
        assert response.status_code == 201
        assert response.json()["local_time"] == "16:00"

    def test_auto_confirm_key(self, client, issue_key, store, service):
        key = issue_key({"appointments": ["create"]}, store_id=store.id, auto_confirm=True)
        response = client.post(APPOINTMENTS, json=_payload(service), headers=bearer(key.token))
        assert response.json()["status"] == "CONFIRMED"

    def test_conflict(self, client, db, auth, service):
        make_appointment(db, service, at(13, 30))
        response = client.post(APPOINTMENTS, json=_payload(service), headers=auth)
        assert response.status_code == 409
        assert response.json()["code"] == "TIME_SLOT_UNAVAILABLE"

    def test_service_outside_key_scope(self, client, db, auth):
        foreign = make_service(db, make_store(db, "concorrente"))
        response = client.post(APPOINTMENTS, json=_payload(foreign), headers=auth)
        assert response.status_code == 404

    def test_list_with_filters(self, client, db, auth, service):
        make_appointment(db, service, at(12, 0), client_email="a@example.com")
        make_appointment(db, service, at(14, 0), client_email="b@example.com")
        make_appointment(db, service, at(16, 0), status=AppointmentStatus.CANCELLED)

        response = client.get(APPOINTMENTS, params={"status": "confirmed"}, headers=auth)
        assert response.json()["total"] == 2

        response = client.get(
            APPOINTMENTS,
            params={"clientEmail": "b@example.com", "serviceId": service.id},
            headers=auth,
        )
        assert [item["client_email"] for item in response.json()["items"]] == ["b@example.com"]

        response = client.get(
            APPOINTMENTS,
            params={"startDate": "2030-01-07T13:00:00", "endDate": "2030-01-07T15:00:00"},
            headers=auth,
        )
        assert [item["local_time"] for item in response.json()["items"]] == ["14:00"]

    def test_list_limit_is_capped(self, client, auth):
        response = client.get(APPOINTMENTS, params={"limit": 500}, headers=auth)
        assert response.status_code == 200
        assert response.json()["limit"] == 100

    def test_get_outside_scope_is_not_found(self, client, db, auth):
        foreign = make_service(db, make_store(db, "concorrente"))
        hidden = make_appointment(db, foreign, at(14, 0))
        response = client.get(f"{APPOINTMENTS}/{hidden.id}", headers=auth)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_put_reschedules_edits_and_confirms(self, client, db, auth, service):
        pending = make_appointment(db, service, at(14, 0), status=AppointmentStatus.PENDING)
        response = client.put(
            f"{APPOINTMENTS}/{pending.id}",
            json={
                "date": "2030-01-07T16:00:00-03:00",
                "notes": "Cliente pediu horário mais tarde",
                "status": "CONFIRMED",
            },
            headers=auth,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["local_time"] == "16:00"
        assert body["notes"] == "Cliente pediu horário mais tarde"
        assert body["status"] == "CONFIRMED"

    def test_put_without_changes(self, client, db, auth, service):
        booked = make_appointment(db, service, at(14, 0))
        response = client.put(f"{APPOINTMENTS}/{booked.id}", json={}, headers=auth)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_put_invalid_transition(self, client, db, auth, service):
        booked = make_appointment(db, service, at(14, 0), status=AppointmentStatus.COMPLETED)
        response = client.put(
            f"{APPOINTMENTS}/{booked.id}", json={"status": "PENDING"}, headers=auth
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE_TRANSITION"

    def test_delete_cancels_and_frees_the_slot(self, client, db, auth, service):
        booked = make_appointment(db, service, at(14, 0))
        response = client.delete(f"{APPOINTMENTS}/{booked.id}", headers=auth)
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        rebook = client.post(APPOINTMENTS, json=_payload(service), headers=auth)
        assert rebook.status_code == 201

    def test_delete_twice(self, client, db, auth, service):
        booked = make_appointment(db, service, at(14, 0))
        client.delete(f"{APPOINTMENTS}/{booked.id}", headers=auth)
        response = client.delete(f"{APPOINTMENTS}/{booked.id}", headers=auth)
        assert response.status_code == 409


class TestCatalogAndStatus:
    def test_services_list(self, client, db, auth, store, service):
        make_service(db, store, name="Inativo", active=False)
        response = client.get("/api/v1/services", headers=auth)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["price"] == "80.00"

        response = client.get(
            "/api/v1/services", params={"includeInactive": "true"}, headers=auth
        )
        assert response.json()["total"] == 2

    def test_service_detail(self, client, auth, service):
        response = client.get(f"/api/v1/services/{service.id}", headers=auth)
        assert response.status_code == 200
        assert response.json()["duration"] == 90

    def test_status_reports_key_binding(self, client, auth, store, store_key):
        response = client.get("/api/v1/status", headers=auth)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["api_key"]["id"] == store_key.api_key.id
        assert body["api_key"]["scope"] == "store"
        assert body["api_key"]["store_id"] == store.id
        assert body["permissions"] == {
            "appointments": ["create", "delete", "read", "update"],
            "services": ["read"],
        }
