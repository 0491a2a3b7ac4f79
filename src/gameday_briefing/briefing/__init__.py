"""Pagination, briefing assembly and the per-run orchestration."""

__all__ = ["assembler", "runner"]
