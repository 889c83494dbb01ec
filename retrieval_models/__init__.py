from . import kgram_index
from . import query
from . import searcher

__all__ = [
    "kgram_index",
    "query",
    "searcher",
]
