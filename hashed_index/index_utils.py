import logging

from hashed_index.config import IndexConfig
from hashed_index.in_memory_index import InMemoryIndex
from hashed_index.persistent_index import PersistentHashedIndex
from hashed_index.scalable_index import PersistentScalableHashedIndex
from hashed_index.structures import IndexBase

logger = logging.getLogger(__name__)

INDEX_KINDS = {
    "memory": InMemoryIndex,
    "persistent": PersistentHashedIndex,
    "scalable": PersistentScalableHashedIndex,
}


def build_index(kind: str | None = None, index_dir: str | None = None, **kwargs) -> IndexBase:
    """
    Picks an index backend. Without an explicit `kind` an existing index in
    `index_dir` is reopened with the backend it was written by.
    """
    if kind is None and index_dir is not None:
        config = IndexConfig.read(index_dir)
        kind = config.kind if config is not None else "scalable"
    elif kind is None:
        kind = "memory"

    if kind not in INDEX_KINDS:
        raise ValueError(f"Invalid index kind {kind}, expected one of {list(INDEX_KINDS)}")

    if kind == "memory":
        logger.info("Building index in memory")
        return InMemoryIndex()

    if index_dir is None:
        raise ValueError(f"Index kind {kind} needs an index directory")

    if kind == "persistent":
        kwargs.pop("max_tokens", None)

    logger.info(f"Building {kind} index in {index_dir}")
    return INDEX_KINDS[kind](index_dir, **kwargs)
