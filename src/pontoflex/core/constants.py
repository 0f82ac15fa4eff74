"""PontoFlex constants and thresholds.

All magic numbers live here. No exceptions.
"""

# Local store keys (single owner: pontoflex.offline.queue)
PENDING_SYNC_KEY = "pending_ponto_registrations"
DEAD_LETTER_KEY = "dead_ponto_registrations"
LAST_SYNC_KEY = "last_ponto_sync"

# Remote tables
REGISTRATIONS_TABLE = "registros_ponto"
EMPLOYEES_TABLE = "funcionarios"
WORK_LOCATIONS_TABLE = "locais_trabalho"

# Geofence
EARTH_RADIUS_M = 6_371_000
DEFAULT_GEOFENCE_RADIUS_M = 50

# Connectivity probe
DEFAULT_PROBE_HOST = "1.1.1.1"
DEFAULT_PROBE_PORT = 443
DEFAULT_PROBE_TIMEOUT_S = 3.0
DEFAULT_PROBE_INTERVAL_S = 5.0

# Remote REST client
DEFAULT_REQUEST_TIMEOUT_S = 15.0
TRANSPORT_HTTP_STATUSES = (408, 429)  # plus every 5xx

# Queue maintenance
DEFAULT_STALE_DAYS = 7
DEFAULT_PEEK = 10

# Date/time formats stamped on pending registrations
REFERENCE_DATE_FORMAT = "%Y-%m-%d"
REFERENCE_TIME_FORMAT = "%H:%M:%S"

# Stored auth_method values (pontoflex.offline.models.AuthMethod)
AUTH_METHOD_VALUES = ("biometric", "password")
