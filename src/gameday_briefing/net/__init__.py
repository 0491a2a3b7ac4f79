"""Rate-limited, retrying HTTP access shared by every source."""

__all__ = ["clock", "rate_limiter", "request_queue", "transport"]
