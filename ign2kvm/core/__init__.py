# ign2kvm/core/__init__.py
from .exceptions import CommandError, Ign2KvmError
from .runner import CommandRunner, CommandSpec

__all__ = ["CommandError", "CommandRunner", "CommandSpec", "Ign2KvmError"]
