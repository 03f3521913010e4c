"""
Workers for background payment processing.

- PayoutExecutor: Executes due payouts to connected accounts

The Celery entry points live in payments.tasks.
"""

from payments.workers.payout_executor import PayoutExecutor

__all__ = ["PayoutExecutor"]
