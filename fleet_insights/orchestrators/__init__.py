"""Orchestration layer combining the analytics services."""

from .fleet_orchestrator import (
    DashboardSnapshot,
    FleetAnalyticsOrchestrator,
    OrchestratorConfig,
)

__all__ = [
    "DashboardSnapshot",
    "FleetAnalyticsOrchestrator",
    "OrchestratorConfig",
]
