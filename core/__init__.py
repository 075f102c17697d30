"""Core business logic for the opportunity planner.

This package contains all computation, upstream interaction, and domain
logic. It has ZERO dependency on any web framework.
"""

__version__ = "0.3.0"
