"""NFL gameday briefing: schedule and news aggregation into paginated sections."""

__version__ = "0.1.0"
