"""Core functionality"""
from .ssh_manager import SSHManager
from .executor import CommandExecutor, TIMED_OUT_OUTPUT

__all__ = ["SSHManager", "CommandExecutor", "TIMED_OUT_OUTPUT"]
