# ign2kvm/orchestrator/__init__.py
from .provisioner import IgnitionProvisioner

__all__ = ["IgnitionProvisioner"]
