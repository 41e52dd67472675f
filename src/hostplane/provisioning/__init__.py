"""Provisioning of upstream resources for the platform."""

from hostplane.provisioning.reconciler import ProvisioningReconciler, build_token_payload
from hostplane.provisioning.state import (
    AccessCredential,
    DispatchNamespace,
    ProvisioningState,
    ReportEntry,
    RouteSet,
    StepOutcome,
)

__all__ = [
    "AccessCredential",
    "DispatchNamespace",
    "ProvisioningReconciler",
    "ProvisioningState",
    "ReportEntry",
    "RouteSet",
    "StepOutcome",
    "build_token_payload",
]
