"""Execution tracking, job launching and scheduling."""

from order_batch.services.launcher import JobLauncher
from order_batch.services.repository import JobRepository
from order_batch.services.scheduler import JobScheduler

__all__ = ["JobLauncher", "JobRepository", "JobScheduler"]
