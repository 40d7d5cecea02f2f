"""Natural-language to shell command generator."""

__version__ = "0.1.0"
