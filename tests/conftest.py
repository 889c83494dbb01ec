import pytest

from hashed_index.in_memory_index import InMemoryIndex
from hashed_index.indexer import Indexer

EXAMPLE_DOCS = {
    0: ("davisWiki/cat.f", "the cat sat"),
    1: ("davisWiki/dog.f", "the dog sat"),
}


def index_documents(index, docs: dict[int, tuple[str, str]], kgram_index=None):
    indexer = Indexer(index, kgram_index)
    for doc_id, (name, text) in docs.items():
        indexer.process_document(doc_id, name, text.split())

    return index


@pytest.fixture
def example_index():
    return index_documents(InMemoryIndex(), EXAMPLE_DOCS)
