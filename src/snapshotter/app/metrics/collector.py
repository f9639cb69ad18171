"""Prometheus metrics definitions for the snapshot operator."""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================
# Disk creation from a snapshot takes seconds to tens of minutes (1s ~ 1h)
_BUCKETS_PROVISION = (
    1, 2, 5, 10, 20,
    30, 60, 120, 300, 600,
    1200, 1800, 3600,
)  # 13 buckets

# =============================================================================
# Watch Metrics
# =============================================================================

WATCH_EVENTS_TOTAL = Counter(
    "snapshotter_watch_events_total",
    "Workload watch events received",
    ["type"],  # ADDED, MODIFIED, DELETED, BOOKMARK, ERROR
)

WATCH_RESTARTS_TOTAL = Counter(
    "snapshotter_watch_restarts_total",
    "Watch subscriptions restarted",
    ["reason"],  # ended, error
)

WORKLOADS_IGNORED_TOTAL = Counter(
    "snapshotter_workloads_ignored_total",
    "Workload events dropped for invalid provisioning intent",
    ["reason"],  # missing_annotation, claim_not_found
)

# =============================================================================
# Provisioning Metrics
# =============================================================================

PROVISION_TOTAL = Counter(
    "snapshotter_provision_total",
    "Provisioning attempts by outcome",
    ["status"],  # success, error, timeout
)

PROVISION_DURATION = Histogram(
    "snapshotter_provision_duration_seconds",
    "Duration of a provisioning attempt (disk lookup to PV created)",
    buckets=_BUCKETS_PROVISION,
)

DISK_CREATES_TOTAL = Counter(
    "snapshotter_disk_creates_total",
    "Persistent disk insert requests",
    ["source"],  # snapshot, empty
)

PROVISIONS_IN_FLIGHT = Gauge(
    "snapshotter_provisions_in_flight",
    "Snapshot names currently marked in the processing registry",
)

# =============================================================================
# Deletion Metrics
# =============================================================================

CLAIM_DELETES_TOTAL = Counter(
    "snapshotter_claim_deletes_total",
    "PVC deletions by outcome",
    ["outcome"],  # deleted, absent, error, abandoned
)

DELETES_DEFERRED_TOTAL = Counter(
    "snapshotter_deletes_deferred_total",
    "PVC deletions deferred until provisioning clears",
)
