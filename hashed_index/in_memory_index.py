import logging

from hashed_index.structures import IndexBase, PostingsList

logger = logging.getLogger(__name__)


class InMemoryIndex(IndexBase):
    def __init__(self):
        super().__init__()
        self.index: dict[str, PostingsList] = {}

    def __len__(self):
        return len(self.index)

    def __getitem__(self, term: str) -> PostingsList | None:
        return self.get_postings(term)

    def insert(self, term: str, doc_id: int, offset: int):
        postings_list = self.index.get(term)
        if postings_list is None:
            postings_list = PostingsList()
            self.index[term] = postings_list

        postings_list.add(doc_id, offset)

    def get_postings(self, term: str) -> PostingsList | None:
        return self.index.get(term)

    def terms(self) -> list[str]:
        return list(self.index.keys())

    def clear(self):
        self.index = {}

    def cleanup(self):
        logger.debug(f"In-memory index holds {len(self)} terms, nothing to write")
