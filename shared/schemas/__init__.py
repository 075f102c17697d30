"""Pydantic v2 schemas shared between API, worker, and core."""

from .opportunities import *  # noqa: F401,F403
from .plans import *  # noqa: F401,F403
from .jobs import *  # noqa: F401,F403
