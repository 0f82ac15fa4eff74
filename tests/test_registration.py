"""Tests for point registration orchestration."""
import asyncio

import pytest

from conftest import attempt
from pontoflex.core.constants import EMPLOYEES_TABLE, REGISTRATIONS_TABLE, WORK_LOCATIONS_TABLE
from pontoflex.offline import ErrorKind
from pontoflex.registration import (
    OfflineValidationPolicy,
    RegistrationRequest,
    RegistrationType,
    check_company_locations,
    fetch_day_registrations,
    find_matching_location,
    register_point,
)

OFFICE = (-23.5505, -46.6333)
# ~1.1 km north of the office
FAR_AWAY = (-23.5405, -46.6333)


def request(**kwargs) -> RegistrationRequest:
    return RegistrationRequest(
        employee_id=kwargs.pop("employee_id", "emp-1"),
        company_id=kwargs.pop("company_id", "company-1"),
        registration_type=kwargs.pop("registration_type", RegistrationType.ENTRY),
        **kwargs,
    )


@pytest.fixture
def office(remote):
    """emp-1 works at OFFICE with a 100 m radius; ext-1 is external."""
    remote.tables[EMPLOYEES_TABLE] = [
        {"id": "emp-1", "local_trabalho_id": "loc-1", "is_externo": False},
        {"id": "ext-1", "local_trabalho_id": "loc-1", "is_externo": True},
        {"id": "emp-2", "local_trabalho_id": "loc-2", "is_externo": False},
    ]
    remote.tables[WORK_LOCATIONS_TABLE] = [
        {"id": "loc-1", "nome": "Matriz", "latitude": OFFICE[0], "longitude": OFFICE[1],
         "raio_metros": 100, "ativo": True, "empresa_id": "company-1"},
        {"id": "loc-2", "nome": "Filial", "latitude": OFFICE[0], "longitude": OFFICE[1],
         "raio_metros": None, "ativo": True, "empresa_id": "company-1"},
    ]
    return remote


class TestOfflineRegistration:

    def test_offline_registration_is_queued(self, queue, remote):
        outcome = asyncio.run(register_point(queue, request(verification_method="facial")))

        assert outcome.success
        assert outcome.offline
        assert outcome.record["is_offline"] is True
        assert outcome.record["hora_registro"] == "14:32:07"

        items = asyncio.run(queue.get_queue())
        assert items[0].offline_id == outcome.record["id"]
        assert items[0].auth_method.value == "biometric"
        assert remote.insert_log == []

    def test_offline_skips_validation(self, queue, office):
        """Duplicate and geofence checks are not applied offline."""
        async def scenario():
            first = await register_point(queue, request(latitude=FAR_AWAY[0], longitude=FAR_AWAY[1]))
            second = await register_point(queue, request(latitude=FAR_AWAY[0], longitude=FAR_AWAY[1]))
            return first, second, await queue.size()

        first, second, size = asyncio.run(scenario())
        assert first.success and second.success
        assert size == 2

    def test_reject_policy_refuses_offline(self, queue):
        outcome = asyncio.run(register_point(queue, request(), policy=OfflineValidationPolicy.REJECT))

        assert not outcome.success
        assert outcome.error == "Offline registrations are disabled"
        assert asyncio.run(queue.size()) == 0

    def test_reject_policy_from_feature_flag(self, queue, monkeypatch):
        import pontoflex.config.features as features
        monkeypatch.setattr(features, "FEATURE_OFFLINE_REJECT", True)

        outcome = asyncio.run(register_point(queue, request()))
        assert not outcome.success


class TestOnlineRegistration:

    @pytest.fixture(autouse=True)
    def online(self, network):
        asyncio.run(network.set_connected(True))

    def test_direct_insert(self, queue, remote):
        outcome = asyncio.run(register_point(queue, request(notes="ok")))

        assert outcome.success
        assert not outcome.offline
        row = remote.rows(REGISTRATIONS_TABLE)[0]
        assert row["tipo_registro"] == "entrada"
        assert row["data_registro"] == "2026-03-02"
        assert row["hora_registro"] == "14:32:07"
        assert row["metodo_autenticacao"] == "senha"
        assert row["observacoes"] == "ok"
        assert row["localizacao_gps"] is None
        assert outcome.record["id"] == row["id"]

    def test_duplicate_same_type_same_day_rejected(self, queue, remote):
        async def scenario():
            first = await register_point(queue, request())
            second = await register_point(queue, request())
            third = await register_point(queue, request(registration_type=RegistrationType.EXIT))
            return first, second, third

        first, second, third = asyncio.run(scenario())

        assert first.success
        assert not second.success
        assert second.error == "Registration already exists for this type today"
        assert third.success
        assert len(remote.rows(REGISTRATIONS_TABLE)) == 2

    def test_inside_geofence(self, queue, office):
        outcome = asyncio.run(register_point(queue, request(latitude=OFFICE[0], longitude=OFFICE[1])))

        assert outcome.location_valid
        assert outcome.distance_m == pytest.approx(0.0, abs=0.01)
        row = office.rows(REGISTRATIONS_TABLE)[0]
        assert row["local_valido"] is True
        assert row["localizacao_gps"] == f"POINT({OFFICE[1]} {OFFICE[0]})"

    def test_outside_geofence_is_recorded_invalid(self, queue, office):
        outcome = asyncio.run(register_point(queue, request(latitude=FAR_AWAY[0], longitude=FAR_AWAY[1])))

        assert outcome.success
        assert not outcome.location_valid
        assert outcome.distance_m == pytest.approx(1112, rel=0.01)
        assert office.rows(REGISTRATIONS_TABLE)[0]["local_valido"] is False

    def test_external_employee_always_valid(self, queue, office):
        outcome = asyncio.run(register_point(
            queue, request(employee_id="ext-1", latitude=FAR_AWAY[0], longitude=FAR_AWAY[1]),
        ))

        assert outcome.location_valid
        assert outcome.distance_m == pytest.approx(1112, rel=0.01)

    def test_unset_radius_defaults_to_50m(self, queue, office):
        # ~44 m and ~67 m north of the office
        near = asyncio.run(register_point(queue, request(
            employee_id="emp-2", latitude=OFFICE[0] + 0.0004, longitude=OFFICE[1],
        )))
        far = asyncio.run(register_point(queue, request(
            employee_id="emp-2", registration_type=RegistrationType.EXIT,
            latitude=OFFICE[0] + 0.0006, longitude=OFFICE[1],
        )))

        assert near.location_valid
        assert not far.location_valid

    def test_transport_failure_falls_back_to_queue(self, queue, remote):
        """A failed direct write is reported as an offline success and synced later."""
        remote.fail_when(lambda row: row.get("tipo_registro") == "entrada", times=1)

        async def scenario():
            outcome = await register_point(queue, request())
            await queue.wait_idle()
            return outcome, await queue.size()

        outcome, size = asyncio.run(scenario())

        assert outcome.success
        assert outcome.offline
        # queued item drained right away because the network reports connected
        assert size == 0
        assert remote.rows(REGISTRATIONS_TABLE)[0]["is_offline"] is True

    def test_permanent_failure_is_reported(self, queue, remote):
        remote.fail_when(lambda row: True, kind=ErrorKind.PERMANENT, message="violates foreign key")

        outcome = asyncio.run(register_point(queue, request()))

        assert not outcome.success
        assert outcome.error == "violates foreign key"
        assert asyncio.run(queue.size()) == 0

    def test_remote_unreachable_during_duplicate_check_queues(self, queue, remote):
        remote.online = False

        async def scenario():
            outcome = await register_point(queue, request())
            await queue.wait_idle()
            return outcome, await queue.size()

        outcome, size = asyncio.run(scenario())
        assert outcome.offline
        assert size == 1


class TestFetchDayRegistrations:

    def test_merges_confirmed_and_pending_sorted(self, queue, remote, clock):
        remote.tables[REGISTRATIONS_TABLE] = [
            {"id": "srv-1", "funcionario_id": "emp-1", "data_registro": "2026-03-02",
             "hora_registro": "08:00:00", "tipo_registro": "entrada"},
            {"id": "srv-2", "funcionario_id": "emp-1", "data_registro": "2026-03-02",
             "hora_registro": "18:00:00", "tipo_registro": "saida"},
            {"id": "srv-3", "funcionario_id": "emp-9", "data_registro": "2026-03-02",
             "hora_registro": "09:00:00", "tipo_registro": "entrada"},
        ]

        async def scenario():
            pending = await queue.enqueue(attempt("emp-1"))
            await queue.enqueue(attempt("emp-2"))
            return pending, await fetch_day_registrations(queue, "emp-1")

        pending, rows = asyncio.run(scenario())

        assert [r["id"] for r in rows] == ["srv-1", pending.offline_id, "srv-2"]
        assert rows[1]["is_offline"] is True
        assert rows[1]["tipo_registro"] == "Senha"

    def test_offline_read_returns_pending_only(self, queue, remote):
        remote.online = False

        async def scenario():
            await queue.enqueue(attempt("emp-1"))
            return await fetch_day_registrations(queue, "emp-1", "2026-03-02")

        rows = asyncio.run(scenario())
        assert len(rows) == 1
        assert rows[0]["is_offline"] is True


class TestWorkLocations:

    def test_no_locations_is_unrestricted(self):
        result = find_matching_location(*OFFICE, [])
        assert result["inside"] is True
        assert result["location_name"] == "unrestricted"

    def test_inactive_locations_ignored(self):
        locations = [{"nome": "Old", "latitude": 0.0, "longitude": 0.0, "raio_metros": 10, "ativo": False}]
        assert find_matching_location(*OFFICE, locations)["inside"] is True

    def test_first_matching_location(self):
        locations = [
            {"nome": "Far", "latitude": FAR_AWAY[0], "longitude": FAR_AWAY[1], "raio_metros": 100, "ativo": True},
            {"nome": "Matriz", "latitude": OFFICE[0], "longitude": OFFICE[1], "raio_metros": 100, "ativo": True},
        ]
        result = find_matching_location(*OFFICE, locations)
        assert result == {"inside": True, "location_name": "Matriz", "distance_m": 0}

    def test_outside_every_location(self):
        locations = [{"nome": "Matriz", "latitude": OFFICE[0], "longitude": OFFICE[1], "raio_metros": 100}]
        assert find_matching_location(*FAR_AWAY, locations)["inside"] is False

    def test_company_locations_lookup(self, office):
        result = asyncio.run(check_company_locations(office, "company-1", *OFFICE))
        assert result["location_name"] == "Matriz"
