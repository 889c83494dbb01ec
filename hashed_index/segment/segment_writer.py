import os
import mmap
import time
import shutil
import struct
import logging
import filelock
import marisa_trie

from hashed_index.structures import PostingsList
from hashed_index.segment.constants import (
    DATA_HEADER,
    ENTRY_SIZE,
    SIZE_KEY,
    TABLE_SIZE,
    home_slot,
    segment_filenames,
    term_hash,
)

logger = logging.getLogger(__name__)


class SegmentFullError(IndexError):
    pass


class SegmentWriter:
    def __init__(
        self, index_dir: str, generation: int | str, table_size: int = TABLE_SIZE
    ):
        """
        Writes one segment generation: a dictionary file, a data file and the
        vocabulary trie of the segment.

        `dictionary{generation}`:
            - `table_size` fixed slots of ENTRY_SIZE bytes
            - slot: hash (int32), data pointer (int64), record length (int32)
            - a zero hash marks an empty slot

        `data{generation}`:
            - DATA_HEADER followed by `term;~doc_id,offset,...~doc_id,...` records
            - records are not separated, the dictionary keeps their byte length

        `terms{generation}.fst`:
            - marisa trie with every term in the segment

        Files are written under a `.temp` suffix and moved into place on close,
        the vocabulary last, so a segment whose vocabulary exists is complete.
        """
        self.index_dir = index_dir
        self.generation = generation
        self.table_size = table_size

        dictionary_fname, data_fname, terms_fname = segment_filenames(generation)
        self.dictionary_path = os.path.join(index_dir, dictionary_fname)
        self.data_path = os.path.join(index_dir, data_fname)
        self.terms_path = os.path.join(index_dir, terms_fname)

        self.free = len(DATA_HEADER)
        self.collisions = 0
        self.terms: list[str] = []

        self.dictionary = None
        self.f_dictionary = None
        self.f_data = None
        self.locks = []
        self.start = time.time()

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_value, traceback):
        self.close(commit=exc_type is None)

    def __len__(self):
        return len(self.terms)

    def open(self):
        self.locks = [
            filelock.FileLock(path + ".lock")
            for path in (self.dictionary_path, self.data_path, self.terms_path)
        ]
        logger.debug(f"Locking {self.dictionary_path} and {self.data_path}")
        for lock in self.locks:
            lock.acquire()

        self.f_dictionary = open(self.dictionary_path + ".temp", "w+b")
        self.f_dictionary.truncate(self.table_size * ENTRY_SIZE)
        self.dictionary = mmap.mmap(
            self.f_dictionary.fileno(), 0, access=mmap.ACCESS_WRITE
        )

        self.f_data = open(self.data_path + ".temp", "wb")
        self.f_data.write(DATA_HEADER)

        return self

    def write(self, term: str, postings: PostingsList | str) -> int:
        """
        Appends the record of `term` to the data file and points a dictionary slot at it.
        Returns the number of collisions seen while probing for the slot.
        """
        if self.dictionary is None:
            raise ValueError(f"Segment {self.generation} is not open")

        if isinstance(postings, PostingsList):
            postings = postings.serialize()

        record = f"{term};{postings}".encode("utf-8")
        hash_value = term_hash(term)

        collisions = self._write_entry(hash_value, self.free, len(record))
        self.f_data.write(record)
        self.free += len(record)
        self.terms.append(term)

        return collisions

    def _write_entry(self, hash_value: int, pointer: int, length: int) -> int:
        slot = home_slot(hash_value, self.table_size)
        start_slot = slot
        collisions = 0
        while struct.unpack_from(SIZE_KEY["hash"], self.dictionary, slot * ENTRY_SIZE)[0]:
            collisions += 1
            slot = (slot + 1) % self.table_size
            if slot == start_slot:
                raise SegmentFullError(
                    f"Dictionary of segment {self.generation} is full ({self.table_size} slots)"
                )

        struct.pack_into(
            SIZE_KEY["entry"],
            self.dictionary,
            slot * ENTRY_SIZE,
            hash_value,
            pointer,
            length,
        )
        self.collisions += collisions
        return collisions

    def close(self, commit: bool = True):
        if self.dictionary is None:
            return

        self.dictionary.flush()
        self.dictionary.close()
        self.f_dictionary.close()
        self.f_data.flush()
        os.fsync(self.f_data.fileno())
        self.f_data.close()
        self.dictionary = None

        try:
            if commit:
                shutil.move(self.dictionary_path + ".temp", self.dictionary_path)
                shutil.move(self.data_path + ".temp", self.data_path)
                marisa_trie.Trie(self.terms).save(self.terms_path)
                logger.info(
                    f"Written segment {self.generation} with {len(self.terms)} terms, "
                    f"{self.free} bytes of data and {self.collisions} collisions "
                    f"in {time.time() - self.start:.2f}s"
                )
            else:
                logger.error(f"Discarding partially written segment {self.generation}")
                os.remove(self.dictionary_path + ".temp")
                os.remove(self.data_path + ".temp")
        finally:
            for lock in self.locks:
                lock.release()
            logger.debug(f"Unlocked {self.dictionary_path} and {self.data_path}")


def write_segment(
    index_dir: str,
    generation: int | str,
    postings: dict[str, PostingsList],
    table_size: int = TABLE_SIZE,
) -> SegmentWriter:
    with SegmentWriter(index_dir, generation, table_size=table_size) as writer:
        for term, postings_list in postings.items():
            writer.write(term, postings_list)

    return writer
