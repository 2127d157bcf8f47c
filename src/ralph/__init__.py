"""ralph — supervise a coding agent across fresh-context iterations."""

__version__ = "0.3.0"
