"""
Period Reconciler

Reconciles bank transactions against recurring obligations (bills and
income streams) and budgets across weekly, monthly and bi-monthly periods.

DESIGN PRINCIPLES:
1. Every derived view is recomputed from scratch, never patched
2. Money is Decimal and is rounded to cents at every boundary
3. Pure calculation modules know nothing about storage
4. Every recompute is audited and idempotent
"""

__version__ = "1.0.0"
__author__ = "Period Reconciler Team"
