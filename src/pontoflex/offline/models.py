"""Records held by the offline registration queue."""
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from pontoflex.core.constants import REFERENCE_DATE_FORMAT, REFERENCE_TIME_FORMAT


class AuthMethod(str, Enum):
    """Verification path that produced a clock event."""
    BIOMETRIC = "biometric"
    PASSWORD = "password"

    @property
    def remote_label(self) -> str:
        """Value stored in the remote tipo_registro column."""
        return "Facial" if self is AuthMethod.BIOMETRIC else "Senha"

    @classmethod
    def from_verification(cls, method: str) -> "AuthMethod":
        """Map 'facial' / 'senha' / 'fallback_senha' to an AuthMethod."""
        return cls.BIOMETRIC if method == "facial" else cls.PASSWORD


@dataclass
class RegistrationAttempt:
    """What the caller knows when a clock event is attempted."""
    employee_id: str
    company_id: str
    auth_method: AuthMethod
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photo_url: Optional[str] = None


@dataclass
class PendingRegistration:
    """One clock event waiting to be written to the remote store.

    reference_date / reference_time are stamped when the employee acted and
    never change afterwards, however late the sync happens.
    """
    offline_id: str
    employee_id: str
    company_id: str
    reference_date: str
    reference_time: str
    auth_method: AuthMethod
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photo_url: Optional[str] = None
    is_offline: bool = True
    queued_at: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None

    @classmethod
    def from_attempt(cls, attempt: RegistrationAttempt, now: datetime) -> "PendingRegistration":
        """Build a fresh pending item stamped with the attempt time."""
        return cls(
            offline_id=str(uuid.uuid4()),
            employee_id=attempt.employee_id,
            company_id=attempt.company_id,
            reference_date=now.strftime(REFERENCE_DATE_FORMAT),
            reference_time=now.strftime(REFERENCE_TIME_FORMAT),
            auth_method=AuthMethod(attempt.auth_method),
            latitude=attempt.latitude,
            longitude=attempt.longitude,
            photo_url=attempt.photo_url,
            queued_at=now.isoformat(),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["auth_method"] = self.auth_method.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PendingRegistration":
        return cls(
            offline_id=data["offline_id"],
            employee_id=data["employee_id"],
            company_id=data["company_id"],
            reference_date=data["reference_date"],
            reference_time=data["reference_time"],
            auth_method=AuthMethod(data["auth_method"]),
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            photo_url=data.get("photo_url"),
            is_offline=True,
            queued_at=data.get("queued_at"),
            attempts=data.get("attempts") or 0,
            last_error=data.get("last_error"),
        )

    def to_remote_row(self, synced_at: str) -> dict:
        """Row for the remote registrations table."""
        return {
            "funcionario_id": self.employee_id,
            "empresa_id": self.company_id,
            "data_registro": self.reference_date,
            "hora_registro": self.reference_time,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "foto_url": self.photo_url,
            "tipo_registro": self.auth_method.remote_label,
            "is_offline": True,
            "server_sync_at": synced_at,
        }

    def to_display_row(self) -> dict:
        """Provisional row merged with server rows for same-day display."""
        return {
            "id": self.offline_id,
            "funcionario_id": self.employee_id,
            "data_registro": self.reference_date,
            "hora_registro": self.reference_time,
            "tipo_registro": self.auth_method.remote_label,
            "is_offline": True,
        }


@dataclass
class DeadLetter:
    """A pending item the remote store rejected permanently."""
    registration: PendingRegistration
    error_kind: str
    error_message: str
    failed_at: str

    def to_dict(self) -> dict:
        return {
            "registration": self.registration.to_dict(),
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "failed_at": self.failed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DeadLetter":
        return cls(
            registration=PendingRegistration.from_dict(data["registration"]),
            error_kind=data["error_kind"],
            error_message=data["error_message"],
            failed_at=data["failed_at"],
        )


@dataclass
class DrainResult:
    """Outcome of one drain pass."""
    batch_id: Optional[str] = None
    attempted: int = 0
    synced: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    dead: list[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "attempted": self.attempted,
            "synced_count": len(self.synced),
            "retained_count": len(self.retained),
            "dead_count": len(self.dead),
            "skipped": self.skipped,
        }
