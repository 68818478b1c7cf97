"""Campus club activity lifecycle and enrollment service."""

__version__ = "0.1.0"
