"""Virtual-user load harness for mongo-loadsim.

Runs a user-supplied iteration function across concurrent virtual users for a
duration or iteration count, evaluates named checks and reports run metrics.
"""

from __future__ import annotations

__all__ = []
