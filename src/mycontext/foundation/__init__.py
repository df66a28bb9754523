"""Foundation: logging setup shared by the CLI and library callers."""

from mycontext.foundation.logging import configure_logging

__all__ = ["configure_logging"]
