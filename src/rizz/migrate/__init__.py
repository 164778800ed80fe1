"""Additive schema migration."""

from rizz.migrate.reconciler import MigrationPlan, plan_migration, reconcile
from rizz.migrate.runner import apply_migration

__all__ = ["MigrationPlan", "apply_migration", "plan_migration", "reconcile"]
