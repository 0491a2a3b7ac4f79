"""Core configuration, constants and errors.

Import what you need from `gameday_briefing.core.config` and
`gameday_briefing.core.constants` to avoid heavy side effects at import time.
"""

__all__ = ["config", "constants", "errors"]
