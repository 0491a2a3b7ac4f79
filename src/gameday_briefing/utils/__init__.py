from .common import (
    canonical_url,
    clean_text,
    clean_text_ws,
    jaccard,
    parse_datetime_utc,
    source_from_url,
    split_sentences,
    struct_time_to_utc,
)

__all__ = [
    "canonical_url",
    "clean_text",
    "clean_text_ws",
    "jaccard",
    "parse_datetime_utc",
    "source_from_url",
    "split_sentences",
    "struct_time_to_utc",
]
