"""Project-specific exception types."""

from __future__ import annotations


class FusionCIError(RuntimeError):
    """Base error for domain-level fusionci failures."""


class PreconditionFailure(FusionCIError):
    """Raised when inputs (paths, identifiers, config) are unusable."""


class ProvisioningFailure(FusionCIError):
    """Raised when a hypervisor operation reports failure."""


class ReadinessTimeout(FusionCIError):
    """Raised when the guest never accepted an SSH round trip."""


class ProvisioningCancelled(FusionCIError):
    """Raised when provisioning was cancelled from outside."""


class DeadlineExceeded(ProvisioningCancelled):
    """Raised when the overall provisioning deadline has passed."""
