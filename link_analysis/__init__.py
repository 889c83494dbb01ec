from . import link_graph
from . import pagerank
from . import hits

__all__ = [
    "link_graph",
    "pagerank",
    "hits",
]
