"""
Tests for the offline-aware data client: cache refresh, queued writes,
replay and subscriptions.
"""
import pytest

from core.errors import AuthenticationRequired, AuthorizationDenied, OfflineQueued
from models.patient import Patient
from services.sync_service import MAX_RETRIES

from tests.conftest import make_client


def test_online_create_returns_canonical_entity(client_a, patient_data, clinic_a):
    patient = client_a.create("patients", patient_data)

    assert isinstance(patient, Patient)
    assert patient.clinic_id == clinic_a[0]
    assert patient.created_at is not None


def test_online_list_refreshes_cache(client_a, patient_data):
    client_a.create("patients", patient_data)

    client_a.list("patients")

    cached = client_a.cache.get_cached_entities("patients")
    assert [row["name"] for row in cached] == ["Asha"]
    assert client_a.cache.get_last_sync_time() is not None


def test_offline_list_serves_cache(client_a, patient_data):
    client_a.create("patients", patient_data)
    client_a.list("patients")
    client_a.monitor.set_online(False)

    patients = client_a.list("patients")

    assert [p.name for p in patients] == ["Asha"]
    assert isinstance(patients[0], Patient)


def test_offline_list_without_cache_is_empty(client_a):
    client_a.monitor.set_online(False)
    assert client_a.list("visits") == []


def test_offline_create_is_queued_then_replayed(client_a, patient_data):
    client_a.list("patients")
    client_a.monitor.set_online(False)

    result = client_a.create("patients", patient_data)

    assert isinstance(result, OfflineQueued)
    assert result.type == "create"
    assert result.entity == "patients"
    assert len(client_a.queue) == 1
    # Optimistic row is visible while offline
    assert [p.id for p in client_a.list("patients")] == [result.entity_id]

    client_a.monitor.set_online(True)
    report = client_a.drain()

    assert len(report.succeeded) == 1
    assert len(client_a.queue) == 0
    live = client_a.list("patients")
    assert [p.id for p in live] == [result.entity_id]
    assert live[0].name == "Asha"


def test_offline_update_and_delete_replay(client_a, patient_data):
    patient = client_a.create("patients", patient_data)
    client_a.list("patients")
    client_a.monitor.set_online(False)

    client_a.update("patients", patient.id, {"age": 40})
    assert client_a.list("patients")[0].age == 40

    client_a.delete("patients", patient.id)
    assert client_a.list("patients") == []

    client_a.monitor.set_online(True)
    report = client_a.drain()

    assert len(report.succeeded) == 2
    assert client_a.list("patients") == []


def test_replay_that_keeps_failing_is_dropped(client_a):
    client_a.monitor.set_online(False)
    # Missing required columns: the backend will reject this on every attempt
    client_a.create("patients", {"name": "Incomplete"})
    client_a.monitor.set_online(True)

    for _ in range(MAX_RETRIES):
        client_a.drain()

    assert len(client_a.queue) == 0


def test_offline_write_without_session_raises(make_context, store, monitor):
    client = make_client(make_context(None), store, "nobody", monitor)
    monitor.set_online(False)

    with pytest.raises(AuthenticationRequired):
        client.create("patients", {"name": "X"})
    assert len(client.queue) == 0


def test_offline_write_without_profile_is_denied(make_unonboarded, store, monitor, patient_data):
    client = make_client(make_unonboarded(), store, "unonboarded", monitor)
    monitor.set_online(False)

    with pytest.raises(AuthorizationDenied) as exc_info:
        client.create("patients", patient_data)
    assert exc_info.type is AuthorizationDenied
    assert len(client.queue) == 0


def test_offline_delete_by_receptionist_is_denied(client_a, clinic_a, make_member, store, monitor, patient_data):
    patient = client_a.create("patients", patient_data)
    client_a.list("patients")
    receptionist = make_client(make_member(clinic_a[0], "receptionist"), store, clinic_a[0], monitor)
    monitor.set_online(False)

    with pytest.raises(AuthorizationDenied):
        receptionist.delete("patients", patient.id)

    assert len(receptionist.queue) == 0
    assert [p.id for p in receptionist.list("patients")] == [patient.id]


def test_offline_write_outside_specialist_track_is_denied(clinic_a, make_member, store, monitor, patient_data):
    client = make_client(make_member(clinic_a[0], "gynecologist"), store, clinic_a[0], monitor)
    monitor.set_online(False)

    with pytest.raises(AuthorizationDenied):
        client.create("patients", patient_data)
    assert len(client.queue) == 0

    # Own track is queued and stamped with it
    result = client.create("patients", {k: v for k, v in patient_data.items() if k != "doctor_mode"})
    assert isinstance(result, OfflineQueued)
    assert client.queue.all()[0]["payload"]["doctor_mode"] == "gynecology"


def test_subscribers_are_notified(client_a, patient_data):
    events = []
    unsubscribe = client_a.subscribe("patients", lambda event, data: events.append(event))

    patient = client_a.create("patients", patient_data)
    client_a.update("patients", patient.id, {"age": 33})
    client_a.monitor.set_online(False)
    client_a.delete("patients", patient.id)
    unsubscribe()
    client_a.monitor.set_online(True)
    client_a.drain()

    assert events == ["created", "updated", "queued"]


def test_clinics_do_not_share_cache(client_a, client_b, patient_data):
    client_a.create("patients", patient_data)
    client_a.list("patients")

    client_b.monitor.set_online(False)
    assert client_b.list("patients") == []


def test_filtered_offline_read_uses_cached_list(client_a, patient_data):
    asha = client_a.create("patients", patient_data)
    client_a.create("patients", dict(patient_data, name="Bina"))
    client_a.list("patients")
    client_a.monitor.set_online(False)

    assert [p.name for p in client_a.list("patients", filters={"id": asha.id})] == ["Asha"]
    assert client_a.get("patients", asha.id).name == "Asha"
