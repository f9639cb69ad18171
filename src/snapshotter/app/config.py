"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GcpConfig(BaseSettings):
    """Google Cloud project where disks are created and snapshots live."""

    model_config = SettingsConfigDict(env_prefix="GCP_")

    project: str = Field(default="")


class OperatorConfig(BaseSettings):
    """Reconciler and control loop configuration.

    Intervals are in seconds. A timeout of None (env value `null`) disables the bound.
    """

    model_config = SettingsConfigDict(env_prefix="OPERATOR_", env_parse_none_str="null")

    # Watch scope and workload annotations
    label_selector: str = Field(default="dfuse.io/snapshot-operator=true")
    source_annotation: str = Field(default="dfuse.io/snapshot-source")
    zone_annotation: str = Field(default="dfuse.io/snapshot-to-zone")
    empty_disk_suffix: str = Field(default="empty-disk")

    # Control loop
    restart_delay: float = Field(default=10.0)  # seconds between watch subscriptions

    # Disk readiness polling
    readiness_poll_interval: float = Field(default=10.0)
    readiness_timeout: float | None = Field(default=1800.0)  # 30 minutes

    # Deferred claim deletion while provisioning is in flight
    delete_poll_interval: float = Field(default=3.0)
    delete_wait_timeout: float | None = Field(default=3600.0)  # 1 hour

    # Used when not running inside the cluster (`kubectl proxy`)
    kube_proxy_url: str = Field(default="http://localhost:8001")


class DiskConfig(BaseSettings):
    """Persistent disk creation parameters."""

    model_config = SettingsConfigDict(env_prefix="DISK_")

    size_margin_gb: int = Field(default=50)  # added on top of the snapshot size
    empty_disk_size_gb: int = Field(default=50)
    disk_type: str = Field(default="pd-ssd")
    fs_type: str = Field(default="ext4")
    description_prefix: str = Field(default="created by snapshotter, from ")


class RestoreConfig(BaseSettings):
    """Restore tool timing configuration."""

    model_config = SettingsConfigDict(env_prefix="RESTORE_")

    disk_delete_retries: int = Field(default=20)
    disk_delete_retry_interval: float = Field(default=5.0)  # seconds
    pod_delete_grace: float = Field(default=15.0)  # seconds (wait for disk detach)


class SnapshotConfig(BaseSettings):
    """Snapshot tool configuration.

    Snapshots are named <namespace>-<tag>-<block number, 10 digits>. The disk
    is the one behind the pod's last volume claim starting with prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SNAPSHOT_")

    tag: str = Field(default="")
    namespace: str = Field(default="")
    prefix: str = Field(default="")
    archive: bool = Field(default=False)  # ARCHIVE instead of STANDARD storage

    sync_settle: float = Field(default=10.0)  # seconds between filesystem sync and snapshot
    settle_after: float = Field(default=10.0)  # seconds to wait after the snapshot request
    timeout: float = Field(default=300.0)  # whole operation, 5 minutes


class MetricsConfig(BaseSettings):
    """Prometheus metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=True)
    port: int = Field(default=9090)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Standard fields added to all logs:
    - schema_version: Log schema version for backwards compatibility
    - service: Service name (snapshot-operator)

    Rate limiting:
    - Prevents log storms from repeated messages
    - ERROR logs bypass rate limiting (always logged)
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    slow_threshold_ms: float = Field(default=300000.0)  # provisioning slower than 5 min warns
    rate_limit_per_minute: int = Field(default=100)
    service_name: str = Field(default="snapshot-operator")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SNAPSHOTTER_",
        env_nested_delimiter="__",
        env_parse_none_str="null",
    )

    gcp: GcpConfig = Field(default_factory=GcpConfig)
    operator: OperatorConfig = Field(default_factory=OperatorConfig)
    disk: DiskConfig = Field(default_factory=DiskConfig)
    restore: RestoreConfig = Field(default_factory=RestoreConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
