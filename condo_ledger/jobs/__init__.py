"""Scheduled jobs."""

from condo_ledger.jobs.reserve_fund_job import run_monthly_appropriation

__all__ = ["run_monthly_appropriation"]
