"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (snapshot-operator)
- component: Component name (reconciler, host, restore, snapshot)
- event: Event type (provision_complete, operation_failed, etc.)
- trace_id: Per-attempt correlation ID
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- job: Workload (Job) name
- namespace: Workload namespace
- snapshot: Source snapshot name
- pd_name / pvc_name / pv_name: Derived resource names
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Watch events
    WATCH_STARTED = "watch_started"
    WATCH_FAILED = "watch_failed"
    WATCH_ENDED = "watch_ended"
    WORKLOAD_CHANGED = "workload_changed"
    WORKLOAD_DELETED = "workload_deleted"
    WORKLOAD_IGNORED = "workload_ignored"
    BOOKMARK_RECEIVED = "bookmark_received"

    # Provisioning events
    PROVISION_STARTED = "provision_started"
    PROVISION_SKIPPED = "provision_skipped"
    PROVISION_COMPLETE = "provision_complete"
    PROVISION_SLOW = "provision_slow"
    DISK_CREATE_REQUESTED = "disk_create_requested"
    DISK_POLLING = "disk_polling"
    DISK_READY = "disk_ready"
    CLAIM_CREATED = "claim_created"
    VOLUME_CREATED = "volume_created"

    # Deletion events
    CLAIM_DELETED = "claim_deleted"
    CLAIM_ALREADY_ABSENT = "claim_already_absent"
    DELETE_DEFERRED = "delete_deferred"

    # Snapshot tool events
    FILESYSTEM_SYNCED = "filesystem_synced"
    SNAPSHOT_REQUESTED = "snapshot_requested"
    SNAPSHOT_CREATED = "snapshot_created"

    # Generic operation events
    OPERATION_STARTED = "operation_started"
    OPERATION_FAILED = "operation_failed"
    OPERATION_TIMEOUT = "operation_timeout"
    OPERATION_SUCCESS = "operation_success"

    # Lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"


class ErrorClass(StrEnum):
    """Error classification for structured error logging.

    Use these in the 'error_class' extra field to enable
    filtering by error type and setting up alerts.
    """

    RETRYABLE = "retryable"  # Transient (network timeout, 5xx, quota)
    PERMANENT = "permanent"  # Not retryable (invalid input, forbidden)
    UNKNOWN = "unknown"  # Cannot classify
    TIMEOUT = "timeout"  # Timeout error


class Component(StrEnum):
    """Component identifiers for log filtering."""

    RECONCILER = "reconciler"
    HOST = "host"
    DISK = "disk"  # Cloud Disk Client
    CLUSTER = "cluster"  # Cluster Resource Client
    RESTORE = "restore"
    SNAPSHOT = "snapshot"
