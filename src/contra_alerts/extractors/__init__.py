from .chain import PostingExtractor, ensure_authenticated, extract
from .markup import MarkupCardExtractor
from .relay import RelayRecordExtractor, typename_counts

__all__ = [
    "PostingExtractor",
    "MarkupCardExtractor",
    "RelayRecordExtractor",
    "ensure_authenticated",
    "extract",
    "typename_counts",
]
