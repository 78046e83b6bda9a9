"""
Unit tests for the local key-value store and the record stores built on it.
"""

from datetime import datetime, timedelta, timezone

import pytest

from eldersync.core.exceptions import NotFound, StoreFailure
from eldersync.models import (
    Alert,
    AlertType,
    HistoryRecord,
    PatientCreate,
    PatientMetrics,
    PatientUpdate,
)
from eldersync.storage import AlertLog, HistoryLog, PatientStore, UserStorage
from eldersync.storage.logs import history_key, new_record_id
from eldersync.storage.patient_store import patient_key

BASE = datetime(2024, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


class TestLocalKeyValueStore:
    """Tests for the filesystem backend."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, store):
        assert await store.get("user:u1:patient:p1") is None

        await store.set("user:u1:patient:p1", {"name": "Maria"})
        assert await store.get("user:u1:patient:p1") == {"name": "Maria"}

        await store.set("user:u1:patient:p1", {"name": "Maria Silva"})
        assert await store.get("user:u1:patient:p1") == {"name": "Maria Silva"}

        await store.delete("user:u1:patient:p1")
        assert await store.get("user:u1:patient:p1") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_silent(self, store):
        await store.delete("device:does-not-exist")

    @pytest.mark.asyncio
    async def test_prefix_scan_matches_only_prefix(self, store):
        await store.set("alert:p1:a", {"n": 1})
        await store.set("alert:p1:b", {"n": 2})
        await store.set("alert:p10:c", {"n": 3})
        await store.set("metrics:p1:x", {"n": 4})

        assert await store.get_by_prefix("alert:p1:") == {
            "alert:p1:a": {"n": 1},
            "alert:p1:b": {"n": 2},
        }
        assert await store.get_by_prefix("alert:p2:") == {}

    @pytest.mark.asyncio
    async def test_keys_with_unsafe_characters(self, store):
        await store.set("account_email:Carer@Example.com", "u1")
        await store.set("odd/key with spaces", [1, 2])

        assert await store.get("account_email:Carer@Example.com") == "u1"
        assert await store.get("odd/key with spaces") == [1, 2]

    @pytest.mark.asyncio
    async def test_batch_operations(self, store):
        await store.mset(["k:1", "k:2", "k:3"], [1, 2, 3])
        assert await store.mget(["k:3", "k:missing", "k:1"]) == [3, 1]

        await store.mdel(["k:1", "k:2"])
        assert await store.get_by_prefix("k:") == {"k:3": 3}

    @pytest.mark.asyncio
    async def test_mset_rejects_mismatched_lengths(self, store):
        with pytest.raises(ValueError):
            await store.mset(["k:1"], [1, 2])

    @pytest.mark.asyncio
    async def test_corrupt_file_raises_store_failure(self, store):
        await store.set("broken", {"ok": True})
        store._get_full_path("broken").write_text("{not json", encoding="utf-8")

        with pytest.raises(StoreFailure):
            await store.get("broken")


class TestPatientStore:
    """Tests for patient CRUD."""

    @pytest.fixture
    def patients(self, store):
        return PatientStore(store)

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_zero_metrics(self, patients, store):
        patient = await patients.create("u1", PatientCreate(name="Maria", age=82))

        assert patient.id
        assert patient.last_update is not None
        assert patient.metrics == PatientMetrics()

        stored = await store.get(patient_key("u1", patient.id))
        assert stored["name"] == "Maria"
        assert stored["metrics"]["stepCount"] == 0
        assert len(stored["metrics"]["circadianPattern"]) == 24

    @pytest.mark.asyncio
    async def test_extra_fields_are_kept(self, patients):
        created = await patients.create(
            "u1",
            PatientCreate.model_validate({"name": "Jose", "age": 90, "room": "12B"}),
        )
        loaded = await patients.get("u1", created.id)
        assert loaded.model_dump()["room"] == "12B"

    @pytest.mark.asyncio
    async def test_patients_are_scoped_per_user(self, patients):
        created = await patients.create("u1", PatientCreate(name="Maria"))

        assert [p.id for p in await patients.list("u1")] == [created.id]
        assert await patients.list("u2") == []
        with pytest.raises(NotFound):
            await patients.get("u2", created.id)

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, patients):
        created = await patients.create("u1", PatientCreate(name="Maria", age=82))

        updated = await patients.update("u1", created.id, PatientUpdate(age=83))

        assert updated.id == created.id
        assert updated.name == "Maria"
        assert updated.age == 83

    @pytest.mark.asyncio
    async def test_update_missing_patient(self, patients):
        with pytest.raises(NotFound):
            await patients.update("u1", "nope", PatientUpdate(age=70))

    @pytest.mark.asyncio
    async def test_delete(self, patients):
        created = await patients.create("u1", PatientCreate(name="Maria"))
        await patients.delete("u1", created.id)

        assert await patients.find("u1", created.id) is None
        with pytest.raises(NotFound):
            await patients.delete("u1", created.id)

    @pytest.mark.asyncio
    async def test_legacy_record_is_readable(self, patients, store):
        await store.set(patient_key("u1", "old"), {
            "id": "old",
            "name": "Ana",
            "metrics": {
                "stepCount": "n/a",
                "fallsDetected": True,
                "fallsTimestamp": "05/01/2024, 14:30:00",
                "circadianPattern": [1, 2, 3],
            },
        })

        patient = await patients.get("u1", "old")

        assert patient.metrics.step_count == 0
        assert patient.metrics.falls_detected is True
        assert patient.metrics.falls_timestamp == datetime(2024, 1, 5, 14, 30, 0)
        assert patient.metrics.circadian_pattern == [0.0] * 24


class TestAlertLog:
    """Tests for alert storage and acknowledgement."""

    @pytest.fixture
    def alerts(self, store):
        return AlertLog(store)

    @pytest.mark.asyncio
    async def test_list_newest_first(self, alerts):
        for offset, alert_id in enumerate(["a1", "a2", "a3"]):
            await alerts.append("p1", Alert(
                id=alert_id,
                type=AlertType.FALL_DETECTED,
                timestamp=BASE + timedelta(minutes=offset),
            ))
        await alerts.append("p2", Alert(id="other", type=AlertType.FALL_DETECTED, timestamp=BASE))

        listed = await alerts.list("p1")
        assert [alert.id for alert in listed] == ["a3", "a2", "a1"]

    @pytest.mark.asyncio
    async def test_extend_stores_batch(self, alerts):
        await alerts.extend("p1", [
            Alert(id="a1", type=AlertType.FALL_DETECTED, timestamp=BASE),
            Alert(id="a2", type=AlertType.PROLONGED_INACTIVITY, timestamp=BASE + timedelta(minutes=1)),
        ])
        await alerts.extend("p1", [])

        assert [alert.id for alert in await alerts.list("p1")] == ["a2", "a1"]

    @pytest.mark.asyncio
    async def test_acknowledge(self, alerts):
        await alerts.append("p1", Alert(
            id="a1",
            type=AlertType.PROLONGED_INACTIVITY,
            timestamp=BASE,
            duration=45,
        ))

        acknowledged = await alerts.acknowledge("p1", "a1")

        assert acknowledged.acknowledged is True
        assert acknowledged.duration == 45
        assert (await alerts.list("p1"))[0].acknowledged is True

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_alert(self, alerts):
        with pytest.raises(NotFound):
            await alerts.acknowledge("p1", "missing")

    @pytest.mark.asyncio
    async def test_record_without_id_takes_key_suffix(self, alerts, store):
        await store.set("alert:p1:1704103200000", {
            "type": "fall_detected",
            "timestamp": BASE.isoformat(),
            "acknowledged": False,
        })

        listed = await alerts.list("p1")
        assert listed[0].id == "1704103200000"


class TestHistoryLog:
    """Tests for the reading history."""

    def _record(self, minutes: int) -> HistoryRecord:
        return HistoryRecord(
            device_id="d1",
            patient_id="p1",
            timestamp=BASE + timedelta(minutes=minutes),
            metrics={"stepCount": minutes},
        )

    @pytest.mark.asyncio
    async def test_append_returns_unique_ids(self, store):
        history = HistoryLog(store)
        first = await history.append(self._record(0))
        second = await history.append(self._record(0))

        assert first != second
        assert first.startswith(str(int(BASE.timestamp() * 1000)))
        assert await store.get(history_key("p1", first)) is not None

    @pytest.mark.asyncio
    async def test_page_is_newest_first_with_total(self, store):
        history = HistoryLog(store, page_size=3)
        for minutes in range(5):
            await history.append(self._record(minutes))

        page, total = await history.list("p1")

        assert total == 5
        assert [record.metrics["stepCount"] for record in page] == [4, 3, 2]

    @pytest.mark.asyncio
    async def test_default_page_size_is_100(self, store):
        history = HistoryLog(store)
        for minutes in range(105):
            await history.append(self._record(minutes))

        page, total = await history.list("p1")

        assert len(page) == 100
        assert total == 105
        assert page[0].metrics["stepCount"] == 104

    @pytest.mark.asyncio
    async def test_empty_history(self, store):
        assert await HistoryLog(store).list("p1") == ([], 0)

    def test_record_id_format(self):
        record_id = new_record_id(BASE)
        millis, suffix = record_id.split("-")
        assert millis == str(int(BASE.timestamp() * 1000))
        assert len(suffix) == 8


class TestUserStorage:
    """Tests for caregiver accounts."""

    @pytest.mark.asyncio
    async def test_lookup_by_email_is_case_insensitive(self, store):
        users = UserStorage(store)
        await users.create_user("u1", "Carer@Example.com", "hash", "Carer")

        account = await users.get_user_by_email("carer@example.com")

        assert account["id"] == "u1"
        assert account["hashedPassword"] == "hash"
        assert await users.get_user_by_email("other@example.com") is None
