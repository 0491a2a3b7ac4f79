"""Schedule resolution across the structured API and scraped fallbacks."""

__all__ = ["kickoff", "resolver", "sources"]
