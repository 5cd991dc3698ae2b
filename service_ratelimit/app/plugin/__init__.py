"""
The RateLimit permit plugin.

- annotations: annotation keys and the limit/query reader
- occupancy: counting Pods that hold a slot
- marker: write-once admission marking
- ratelimit: the permit decision
"""

from .ratelimit import NAME, RateLimitArgs, RateLimitPlugin, new

__all__ = ["NAME", "RateLimitArgs", "RateLimitPlugin", "new"]
