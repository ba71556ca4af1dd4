# ign2kvm/config/__init__.py
from .config_loader import Config, ProvisionConfig

__all__ = ["Config", "ProvisionConfig"]
