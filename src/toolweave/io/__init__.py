"""IO - serialization codecs and result caching."""

from .cache import CacheEntry, ResultCache, make_key
from .codec import canonical, decode, encode, encode_line

__all__ = ["CacheEntry", "ResultCache", "make_key", "canonical", "decode", "encode", "encode_line"]
