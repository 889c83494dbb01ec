import os
import re
import logging
import threading

from hashed_index.config import IndexConfig
from hashed_index.persistent_index import PersistentHashedIndex
from hashed_index.segment.constants import FINAL, MAX_TOKENS, TABLE_SIZE, TERMS_FNAME
from hashed_index.segment.segment_merger import MergeScheduler, SegmentMerger
from hashed_index.segment.segment_reader import SegmentReader
from hashed_index.segment.segment_writer import write_segment

logger = logging.getLogger(__name__)

GENERATION_PATTERN = re.compile(rf"^{TERMS_FNAME}(\d+)\.fst$")


class PersistentScalableHashedIndex(PersistentHashedIndex):
    kind = "scalable"

    def __init__(
        self,
        index_dir: str,
        table_size: int = TABLE_SIZE,
        max_tokens: int = MAX_TOKENS,
    ):
        """
        Keeps at most `max_tokens` tokens in memory. A full buffer is written
        as a new generation and folded into the accumulated head generation
        by a background merge while indexing continues in a fresh buffer.

        `head` is the generation that holds everything flushed so far. It may
        still be waiting in the merge queue when the next flush is scheduled
        against it, which the in-order merge worker allows.

        `live` lists the complete generations whose union holds everything
        flushed so far. Queries read all of them until the merges fold them
        into one.
        """
        super().__init__(index_dir, table_size)
        self.max_tokens = max_tokens
        self.tokens = 0

        self.generation = self._first_free_generation()
        self.head: int | None = None
        self.live: list[int | str] = []
        self._live_lock = threading.Lock()

        self.merger = SegmentMerger(self.index_dir, self.table_size)
        self.scheduler = MergeScheduler(self.merger)

    def config(self) -> IndexConfig:
        return IndexConfig(
            kind=self.kind, table_size=self.table_size, max_tokens=self.max_tokens
        )

    def _completed_generations(self) -> list[int]:
        generations = []
        for f in os.listdir(self.index_dir):
            match = GENERATION_PATTERN.match(f)
            if match is None:
                continue

            generation = int(match.group(1))
            if SegmentReader.exists(self.index_dir, generation):
                generations.append(generation)

        return sorted(generations)

    def _first_free_generation(self) -> int:
        generations = self._completed_generations()
        if generations:
            logger.warning(
                f"Found leftover generations {generations} in {self.index_dir}, they are not part of this index"
            )
            return generations[-1] + 1

        return 0

    def _next_generation(self) -> int:
        generation = self.generation
        self.generation += 1
        return generation

    def readable_generations(self) -> list[int | str]:
        with self._live_lock:
            live = list(self.live)

        if live:
            return live

        return super().readable_generations()

    def _on_merged(self, older: int | str, newer: int | str, output: int | str):
        with self._live_lock:
            self.live = [g for g in self.live if g not in (older, newer)] + [output]
            logger.debug(f"Queries now read generations {self.live}")

    def insert(self, term: str, doc_id: int, offset: int):
        self.buffer.insert(term, doc_id, offset)
        self.tokens += 1

        if self.tokens >= self.max_tokens:
            self.flush()

    def _write_buffer(self) -> int:
        generation = self._next_generation()
        logger.info(
            f"Flushing {self.tokens} tokens and {len(self.buffer)} terms as generation {generation}"
        )
        write_segment(self.index_dir, generation, self.buffer.index, self.table_size)
        with self._live_lock:
            self.live.append(generation)

        self.buffer.clear()
        self.tokens = 0
        return generation

    def flush(self):
        if len(self.buffer) == 0:
            return

        generation = self._write_buffer()
        if self.head is None:
            self.head = generation
            return

        output = self._next_generation()
        logger.info(
            f"Scheduling merge of generations {self.head} and {generation} into {output}"
        )
        self.scheduler.submit(self.head, generation, output, on_merged=self._on_merged)
        self.head = output

    def cleanup(self):
        """Collapses every outstanding generation into the canonical segment"""
        self.close_reader()

        if len(self.buffer) > 0:
            generation = self._write_buffer()
            if self.head is None:
                self.scheduler.submit_promote(generation)
            else:
                logger.info(
                    f"Scheduling final merge of generations {self.head} and {generation}"
                )
                self.scheduler.submit(
                    self.head, generation, FINAL, on_merged=self._on_merged
                )
        elif self.head is not None:
            self.scheduler.submit_promote(self.head)
        else:
            logger.info(f"Nothing new to write to {self.index_dir}")

        self.head = None
        self.write_doc_info()
        self.config().write(self.index_dir)

        try:
            self.scheduler.wait()
        finally:
            with self._live_lock:
                self.live = []
            self.close_reader()

        self.merger.post_merge_cleanup()

    def close(self):
        self.close_reader()
        self.scheduler.shutdown()
