"""
PontoFlex - offline point registration for time and attendance

Clock events are never lost: when the device is offline, or a write to
the remote store fails in transit, the event is queued locally with the
time the employee acted and synced when connectivity returns.
"""

__version__ = "1.0.0"

from pontoflex.core.receipt import dual_hash, emit_receipt, StopRule
from pontoflex.offline import (
    AuthMethod,
    OfflineQueue,
    PendingRegistration,
    RegistrationAttempt,
)
from pontoflex.registration import (
    OfflineValidationPolicy,
    RegistrationRequest,
    RegistrationType,
    fetch_day_registrations,
    register_point,
)

__all__ = [
    "dual_hash",
    "emit_receipt",
    "StopRule",
    "AuthMethod",
    "OfflineQueue",
    "PendingRegistration",
    "RegistrationAttempt",
    "OfflineValidationPolicy",
    "RegistrationRequest",
    "RegistrationType",
    "fetch_day_registrations",
    "register_point",
    "__version__",
]
