"""Feature flags for PontoFlex.

Deployment sequence:
1. DRAIN_ON_ENQUEUE (drain right after queueing when online)
2. DEAD_LETTER (route permanent remote errors out of the retry loop)
3. OFFLINE_REJECT (refuse unvalidated offline registrations)
"""

# Drain immediately after enqueue when the network reports connected
FEATURE_DRAIN_ON_ENQUEUE = True

# Permanent remote errors move items to the dead-letter list.
# When off, every failure is retried on the next drain.
FEATURE_DEAD_LETTER_ENABLED = True

# Offline registrations skip duplicate and geofence checks. When on,
# they are refused instead of queued unvalidated.
FEATURE_OFFLINE_REJECT = False
