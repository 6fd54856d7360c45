"""Core search, parsing and loading functionality."""

from .cache_store import Cache, CacheStorage, CachedResponse
from .codec import TranslationPair, decode_line
from .dictionary import DictionaryHandle, DictionarySnapshot, DictionaryStats
from .engine import SearchEngine, SearchResult
from .equiv import EquivalenceTable
from .loader import DictionaryLoader
from .lru import LRUCache
from .pattern import SearchPattern, clean_search_term, make_search_pattern

__all__ = [
    "Cache",
    "CacheStorage",
    "CachedResponse",
    "TranslationPair",
    "decode_line",
    "DictionaryHandle",
    "DictionarySnapshot",
    "DictionaryStats",
    "SearchEngine",
    "SearchResult",
    "EquivalenceTable",
    "DictionaryLoader",
    "LRUCache",
    "SearchPattern",
    "clean_search_term",
    "make_search_pattern",
]
