"""Run data science projects inside prebuilt containers."""

from dsbox.utils.ports import AllocationResult, check_port_free, find_available_port

__version__ = "0.1.0"

__all__ = ["AllocationResult", "check_port_free", "find_available_port", "__version__"]
