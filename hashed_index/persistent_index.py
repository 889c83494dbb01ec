import os
import logging

from hashed_index.config import IndexConfig
from hashed_index.doc_info import DocInfo
from hashed_index.in_memory_index import InMemoryIndex
from hashed_index.structures import IndexBase, PostingsList
from hashed_index.segment.constants import DOCINFO_FNAME, FINAL, TABLE_SIZE
from hashed_index.segment.segment_reader import SegmentReader
from hashed_index.segment.segment_writer import write_segment

logger = logging.getLogger(__name__)

# Reads retried when merges replace the generations being read
READ_ATTEMPTS = 3


class PersistentHashedIndex(IndexBase):
    kind = "persistent"

    def __init__(self, index_dir: str, table_size: int = TABLE_SIZE):
        """
        Buffers the whole index in memory and writes it as the canonical
        segment on `cleanup`. An existing index in `index_dir` is opened with
        the table size recorded in its config.
        """
        super().__init__()
        self.index_dir = index_dir
        os.makedirs(self.index_dir, exist_ok=True)

        config = IndexConfig.read(self.index_dir)
        if config is not None and config.table_size != table_size:
            logger.info(
                f"Using table size {config.table_size} recorded in {self.index_dir}"
            )
            table_size = config.table_size

        self.table_size = table_size
        self.buffer = InMemoryIndex()
        self._readers: dict[int | str, SegmentReader] = {}

        doc_info = DocInfo.read(os.path.join(self.index_dir, DOCINFO_FNAME))
        self.doc_names = doc_info.doc_names
        self.doc_lengths = doc_info.doc_lengths

    def __len__(self):
        return len(self.buffer)

    def config(self) -> IndexConfig:
        return IndexConfig(kind=self.kind, table_size=self.table_size)

    def insert(self, term: str, doc_id: int, offset: int):
        self.buffer.insert(term, doc_id, offset)

    def readable_generations(self) -> list[int | str]:
        """Generations whose union holds everything written to disk so far"""
        if SegmentReader.exists(self.index_dir, FINAL):
            return [FINAL]

        return []

    def latest_generation(self) -> int | str | None:
        generations = self.readable_generations()
        if not generations:
            return None

        return generations[-1]

    def get_reader(self, generation: int | str) -> SegmentReader:
        reader = self._readers.get(generation)
        if reader is None:
            reader = SegmentReader(self.index_dir, generation, self.table_size)
            self._readers[generation] = reader

        return reader

    def _drop_readers(self, keep: list[int | str]):
        for generation in list(self._readers):
            if generation not in keep:
                self._readers.pop(generation).close()

    def get_postings(self, term: str) -> PostingsList | None:
        for _ in range(READ_ATTEMPTS):
            generations = self.readable_generations()
            if not generations:
                return self.buffer.get_postings(term)

            self._drop_readers(generations)
            try:
                result = None
                for generation in generations:
                    postings = self.get_reader(generation).get_postings(term)
                    if postings is None:
                        continue

                    result = postings if result is None else result.merge(postings)

                return result
            except FileNotFoundError as e:
                # a merge retired one of the generations after they were listed
                logger.debug(f"Generation gone while reading '{term}': {e}")

        raise FileNotFoundError(f"No stable set of generations to read in {self.index_dir}")

    def write_doc_info(self):
        DocInfo(self.doc_names, self.doc_lengths).write(
            os.path.join(self.index_dir, DOCINFO_FNAME)
        )

    def write_index(self):
        self.write_doc_info()
        self.close_reader()

        logger.info(f"Writing {len(self.buffer)} terms to {self.index_dir}")
        write_segment(self.index_dir, FINAL, self.buffer.index, self.table_size)
        self.config().write(self.index_dir)

    def close_reader(self):
        for reader in self._readers.values():
            reader.close()
        self._readers = {}

    def cleanup(self):
        if len(self.buffer) == 0 and SegmentReader.exists(self.index_dir, FINAL):
            logger.info(f"Nothing new to write to {self.index_dir}")
            return

        self.write_index()
        self.buffer.clear()
