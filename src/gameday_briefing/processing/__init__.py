"""News collection, classification, dedupe and the optional enhancer."""

__all__ = [
    "aggregator",
    "articles",
    "classifier",
    "cleaning",
    "dedupe",
    "enhancer",
    "formatting",
    "parsing",
]
