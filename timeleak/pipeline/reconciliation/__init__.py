"""
Reconciliation package.

Turns raw transition events into per-package usage times and launch counts.
"""

from .service import ReconciledUsage, UsageEventReconciler

__all__ = ["ReconciledUsage", "UsageEventReconciler"]
