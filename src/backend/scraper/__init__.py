from .media_extractor import ExtractionContext, decode_document, extract, extract_json
from .tweet_detail import TweetDetailClient

__all__ = [
    "ExtractionContext",
    "TweetDetailClient",
    "decode_document",
    "extract",
    "extract_json",
]
