import os
import struct
import logging
import marisa_trie

from hashed_index.structures import PostingsList
from hashed_index.segment.constants import (
    ENTRY_SIZE,
    SIZE_KEY,
    TABLE_SIZE,
    home_slot,
    segment_filenames,
    term_hash,
)
from utils.file_utils import open_readonly

logger = logging.getLogger(__name__)


class SegmentReader:
    def __init__(
        self,
        index_dir: str,
        generation: int | str,
        table_size: int = TABLE_SIZE,
        keep_in_memory: bool = True,
    ):
        self.index_dir = index_dir
        self.generation = generation
        self.table_size = table_size

        dictionary_fname, data_fname, terms_fname = segment_filenames(generation)
        self.dictionary_path = os.path.join(index_dir, dictionary_fname)
        self.data_path = os.path.join(index_dir, data_fname)
        self.terms_path = os.path.join(index_dir, terms_fname)

        self.dictionary = open_readonly(self.dictionary_path, keep_in_memory)
        self.data = open_readonly(self.data_path, keep_in_memory)

        expected_size = self.table_size * ENTRY_SIZE
        if len(self.dictionary) != expected_size:
            raise ValueError(
                f"Dictionary {self.dictionary_path} holds {len(self.dictionary)} bytes, "
                f"expected {expected_size} for a table of {self.table_size} slots"
            )

        self._terms = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @staticmethod
    def exists(index_dir: str, generation: int | str) -> bool:
        """A segment is complete once its vocabulary has been written"""
        return all(
            os.path.exists(os.path.join(index_dir, fname))
            for fname in segment_filenames(generation)
        )

    def read_entry(self, slot: int) -> tuple[int, int, int]:
        return struct.unpack(
            SIZE_KEY["entry"], self.dictionary.read(slot * ENTRY_SIZE, ENTRY_SIZE)
        )

    def read_record(self, pointer: int, length: int) -> tuple[str, str]:
        record = self.data.read(pointer, length).decode("utf-8")
        separator = record.rfind(";")
        if separator == -1:
            raise ValueError(
                f"Record at {pointer} in {self.data_path} has no term separator"
            )

        return record[:separator], record[separator + 1 :]

    def get_postings(self, term: str) -> PostingsList | None:
        hash_value = term_hash(term)
        slot = home_slot(hash_value, self.table_size)
        start_slot = slot

        while True:
            stored_hash, pointer, length = self.read_entry(slot)
            if stored_hash == 0:
                return None

            if stored_hash == hash_value:
                try:
                    stored_term, postings = self.read_record(pointer, length)
                except (ValueError, UnicodeDecodeError) as e:
                    logger.error(f"Skipping slot {slot} of {self.dictionary_path}: {e}")
                else:
                    if stored_term == term:
                        return PostingsList.deserialize(postings)

                    logger.debug(
                        f"Hash collision between '{term}' and '{stored_term}' at slot {slot}"
                    )

            slot = (slot + 1) % self.table_size
            if slot == start_slot:
                return None

    def iter_slots(self):
        """Yields (term, postings_text) for every occupied slot in slot order"""
        for slot in range(self.table_size):
            stored_hash, pointer, length = self.read_entry(slot)
            if stored_hash == 0:
                continue

            try:
                yield self.read_record(pointer, length)
            except (ValueError, UnicodeDecodeError) as e:
                logger.error(f"Skipping slot {slot} of {self.dictionary_path}: {e}")

    def terms(self) -> marisa_trie.Trie | None:
        if self._terms is None and os.path.exists(self.terms_path):
            self._terms = marisa_trie.Trie()
            self._terms.load(self.terms_path)

        return self._terms

    def close(self):
        self.dictionary.close()
        self.data.close()
        self._terms = None
