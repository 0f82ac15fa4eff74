"""Point registration: validation, direct write, and offline fallback.

Online registrations are checked for a same-day duplicate and against the
employee's work-location geofence, then written straight to the remote
store. When the device is offline, or the write fails at the transport
level, the event goes to the offline queue and the caller gets a
provisional record instead of an error.

Offline registrations are NOT validated. Whether they are accepted is the
OfflineValidationPolicy in force.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from pontoflex.config import features
from pontoflex.core.constants import (
    EMPLOYEES_TABLE,
    REFERENCE_DATE_FORMAT,
    REFERENCE_TIME_FORMAT,
    REGISTRATIONS_TABLE,
    WORK_LOCATIONS_TABLE,
)
from pontoflex.core.receipt import emit_receipt
from pontoflex.geo import has_coordinates, haversine_distance, within_geofence
from pontoflex.offline.models import AuthMethod, PendingRegistration, RegistrationAttempt
from pontoflex.offline.queue import OfflineQueue
from pontoflex.offline.remote import ErrorKind, RemoteError, RemoteStore

logger = logging.getLogger("pontoflex.registration")


class RegistrationType(str, Enum):
    ENTRY = "entrada"
    LUNCH_OUT = "saida_almoco"
    LUNCH_RETURN = "retorno_almoco"
    EXIT = "saida"


class OfflineValidationPolicy(str, Enum):
    """What happens to a registration attempted while offline."""
    ACCEPT_UNVALIDATED = "accept_unvalidated"  # queue it, skip duplicate and geofence checks
    REJECT = "reject"  # refuse it; the employee must retry online


@dataclass
class RegistrationRequest:
    employee_id: str
    company_id: str
    registration_type: RegistrationType
    verification_method: str = "senha"  # senha | facial | fallback_senha
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    facial_confidence: Optional[float] = None
    notes: Optional[str] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class RegistrationOutcome:
    success: bool
    record: Optional[dict] = None
    error: Optional[str] = None
    offline: bool = False
    distance_m: Optional[float] = None
    location_valid: bool = True


@dataclass
class GeofenceCheck:
    distance_m: Optional[float] = None
    location_valid: bool = True


def current_policy() -> OfflineValidationPolicy:
    if features.FEATURE_OFFLINE_REJECT:
        return OfflineValidationPolicy.REJECT
    return OfflineValidationPolicy.ACCEPT_UNVALIDATED


def _provisional_record(pending: PendingRegistration) -> dict:
    return {
        "id": pending.offline_id,
        "data_registro": pending.reference_date,
        "hora_registro": pending.reference_time,
        "is_offline": True,
    }


async def _queue_offline(queue: OfflineQueue, request: RegistrationRequest) -> RegistrationOutcome:
    # Photos are not queued; they are too large for the local store.
    pending = await queue.enqueue(RegistrationAttempt(
        employee_id=request.employee_id,
        company_id=request.company_id,
        auth_method=AuthMethod.from_verification(request.verification_method),
        latitude=request.latitude,
        longitude=request.longitude,
    ))
    emit_receipt("registration", {
        "tenant_id": request.company_id,
        "employee_id": request.employee_id,
        "status": "queued_offline",
        "offline_id": pending.offline_id,
    })
    return RegistrationOutcome(success=True, record=_provisional_record(pending), offline=True)


async def check_geofence(
    remote: RemoteStore,
    employee_id: str,
    latitude: float,
    longitude: float,
    default_radius_m: float,
) -> GeofenceCheck:
    """Distance from the employee's work location and whether it is allowed.

    External employees are always valid; the distance is still computed
    when they have a location assigned.
    """
    employees = await remote.select(EMPLOYEES_TABLE, {"id": employee_id})
    employee = employees[0] if employees else {}

    location = None
    location_id = employee.get("local_trabalho_id")
    if location_id:
        locations = await remote.select(WORK_LOCATIONS_TABLE, {"id": location_id})
        location = locations[0] if locations else None

    if not has_coordinates(location):
        return GeofenceCheck()

    distance = haversine_distance(latitude, longitude, location["latitude"], location["longitude"])
    if employee.get("is_externo"):
        return GeofenceCheck(distance_m=distance, location_valid=True)

    valid = within_geofence(distance, location.get("raio_metros"), default_radius_m)
    return GeofenceCheck(distance_m=distance, location_valid=valid)


async def register_point(
    queue: OfflineQueue,
    request: RegistrationRequest,
    policy: Optional[OfflineValidationPolicy] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> RegistrationOutcome:
    """Register a clock event, falling back to the offline queue.

    Args:
        queue: Offline queue; its remote store and network provider are used
        request: The clock event
        policy: Offline policy; defaults to the one set by feature flags
        clock: Wall clock; defaults to the queue's clock

    Returns:
        RegistrationOutcome. A queued registration is a success with
        offline=True.
    """
    policy = policy or current_policy()
    clock = clock or queue.clock
    remote = queue.remote

    status = await queue.network.get_status()
    if not status.connected:
        if policy is OfflineValidationPolicy.REJECT:
            emit_receipt("registration", {
                "tenant_id": request.company_id,
                "employee_id": request.employee_id,
                "status": "rejected_offline",
            })
            return RegistrationOutcome(success=False, error="Offline registrations are disabled")
        return await _queue_offline(queue, request)

    now = clock()
    reference_date = now.strftime(REFERENCE_DATE_FORMAT)
    reference_time = now.strftime(REFERENCE_TIME_FORMAT)
    registration_type = RegistrationType(request.registration_type).value

    try:
        existing = await remote.select(REGISTRATIONS_TABLE, {
            "funcionario_id": request.employee_id,
            "data_registro": reference_date,
            "tipo_registro": registration_type,
        })
    except RemoteError as e:
        if e.kind == ErrorKind.TRANSPORT:
            logger.warning(f"Duplicate check failed at transport level, queueing: {e.message}")
            return await _queue_offline(queue, request)
        logger.warning(f"Duplicate check failed, continuing: {e.message}")
        existing = []

    if existing:
        emit_receipt("registration", {
            "tenant_id": request.company_id,
            "employee_id": request.employee_id,
            "status": "duplicate",
        })
        return RegistrationOutcome(success=False, error="Registration already exists for this type today")

    geofence = GeofenceCheck()
    if request.has_location:
        try:
            geofence = await check_geofence(
                remote,
                request.employee_id,
                request.latitude,
                request.longitude,
                queue.config.default_radius_m,
            )
        except RemoteError as e:
            if e.kind == ErrorKind.TRANSPORT:
                logger.warning(f"Geofence lookup failed at transport level, queueing: {e.message}")
                return await _queue_offline(queue, request)
            logger.warning(f"Geofence lookup failed, accepting location: {e.message}")

    row = {
        "funcionario_id": request.employee_id,
        "empresa_id": request.company_id,
        "data_registro": reference_date,
        "hora_registro": reference_time,
        "timestamp_registro": now.isoformat(),
        "tipo_registro": registration_type,
        "localizacao_gps": (
            f"POINT({request.longitude} {request.latitude})" if request.has_location else None
        ),
        "latitude": request.latitude,
        "longitude": request.longitude,
        "distancia_metros": geofence.distance_m,
        "local_valido": geofence.location_valid,
        "metodo_autenticacao": request.verification_method,
        "confianca_facial": request.facial_confidence,
        "observacoes": request.notes,
    }

    result = await remote.insert(REGISTRATIONS_TABLE, row)
    if not result.ok:
        error = result.error or RemoteError(ErrorKind.UNKNOWN, "insert failed without error")
        if error.kind == ErrorKind.TRANSPORT:
            logger.warning(f"Direct write failed at transport level, queueing: {error.message}")
            return await _queue_offline(queue, request)
        emit_receipt("registration", {
            "tenant_id": request.company_id,
            "employee_id": request.employee_id,
            "status": "failed",
            "error": error.message,
        })
        return RegistrationOutcome(success=False, error=error.message)

    emit_receipt("registration", {
        "tenant_id": request.company_id,
        "employee_id": request.employee_id,
        "status": "online",
        "location_valid": geofence.location_valid,
    })
    return RegistrationOutcome(
        success=True,
        record=result.row,
        distance_m=geofence.distance_m,
        location_valid=geofence.location_valid,
    )


async def fetch_day_registrations(
    queue: OfflineQueue,
    employee_id: str,
    reference_date: Optional[str] = None,
) -> list[dict]:
    """Confirmed rows for the day merged with pending offline items.

    A transport failure on the remote read is expected offline and falls
    back to the pending items alone.

    Returns:
        Rows sorted by hora_registro
    """
    reference_date = reference_date or queue.clock().strftime(REFERENCE_DATE_FORMAT)

    try:
        rows = await queue.remote.select(
            REGISTRATIONS_TABLE,
            {"funcionario_id": employee_id, "data_registro": reference_date},
            order="hora_registro.asc",
        )
    except RemoteError as e:
        if e.kind != ErrorKind.TRANSPORT:
            logger.error(f"Could not fetch registrations: {e.message}")
        rows = []

    pending = [p.to_display_row() for p in await queue.pending_for(employee_id, reference_date)]
    return sorted(list(rows) + pending, key=lambda r: r.get("hora_registro") or "")


def find_matching_location(
    latitude: float,
    longitude: float,
    locations: list[dict],
) -> dict:
    """First active work location whose radius contains the point.

    With no active locations registered any point is accepted.
    """
    active = [loc for loc in locations if loc.get("ativo", True)]
    if not active:
        return {"inside": True, "location_name": "unrestricted", "distance_m": None}

    for location in active:
        if not has_coordinates(location):
            continue
        distance = haversine_distance(latitude, longitude, location["latitude"], location["longitude"])
        if distance <= location.get("raio_metros", 0):
            return {
                "inside": True,
                "location_name": location.get("nome"),
                "distance_m": round(distance),
            }

    return {"inside": False, "location_name": None, "distance_m": None}


async def check_company_locations(
    remote: RemoteStore,
    company_id: str,
    latitude: float,
    longitude: float,
) -> dict:
    """find_matching_location over the company's active work locations."""
    locations = await remote.select(WORK_LOCATIONS_TABLE, {"empresa_id": company_id, "ativo": True})
    return find_matching_location(latitude, longitude, locations)
