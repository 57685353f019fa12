"""Pure domain helpers shared by the pipeline (no I/O)."""

from order_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
