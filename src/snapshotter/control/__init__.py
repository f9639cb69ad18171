"""Control layer - reconciliation of job events into disks and volumes."""

from snapshotter.control.host import ControlLoopHost
from snapshotter.control.reconciler import Reconciler
from snapshotter.control.registry import ProcessingRegistry

__all__ = ["ControlLoopHost", "ProcessingRegistry", "Reconciler"]
