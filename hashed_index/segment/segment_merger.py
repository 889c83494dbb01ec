import os
import time
import shutil
import logging
import threading
import filelock
import concurrent.futures

from typing import Callable

from hashed_index.structures import PostingsList
from hashed_index.segment.constants import FINAL, TABLE_SIZE, segment_filenames
from hashed_index.segment.segment_reader import SegmentReader
from hashed_index.segment.segment_writer import SegmentWriter

logger = logging.getLogger(__name__)


class SegmentMerger:
    def __init__(self, index_dir: str, table_size: int = TABLE_SIZE):
        self.index_dir = index_dir
        self.table_size = table_size

    def _paths(self, generation: int | str) -> list[str]:
        return [
            os.path.join(self.index_dir, fname)
            for fname in segment_filenames(generation)
        ]

    def merge(
        self, older: int | str, newer: int | str, output: int | str
    ) -> SegmentWriter:
        """
        Folds the `older` and `newer` segments into `output`.

        The older dictionary is scanned slot by slot. A term that the newer
        vocabulary also holds is merged with the newer postings and dropped
        from the pending set, so it is written once. Terms only present in the
        newer segment are appended at the end.
        """
        start = time.time()
        logger.info(f"Merging segments {older} and {newer} into {output}")

        locks = [filelock.FileLock(path + ".lock") for path in self._paths(older)]
        locks += [filelock.FileLock(path + ".lock") for path in self._paths(newer)]

        logger.debug(f"Locking segments {older} and {newer}")
        for lock in locks:
            lock.acquire()

        merged = 0
        try:
            with SegmentReader(
                self.index_dir, older, self.table_size, keep_in_memory=False
            ) as older_reader, SegmentReader(
                self.index_dir, newer, self.table_size, keep_in_memory=False
            ) as newer_reader:
                pending = set(newer_reader.terms() or [])

                with SegmentWriter(self.index_dir, output, self.table_size) as writer:
                    for term, postings in older_reader.iter_slots():
                        if term in pending:
                            postings_list = PostingsList.deserialize(postings)
                            postings_list.merge(newer_reader.get_postings(term))
                            writer.write(term, postings_list)
                            pending.discard(term)
                            merged += 1
                        else:
                            writer.write(term, postings)

                    for term in sorted(pending):
                        postings_list = newer_reader.get_postings(term)
                        if postings_list is None:
                            logger.error(
                                f"Term '{term}' is in the vocabulary of segment {newer} but not in its dictionary"
                            )
                            continue

                        writer.write(term, postings_list)
        finally:
            for lock in locks:
                lock.release()
            logger.debug(f"Unlocked segments {older} and {newer}")

        logger.info(
            f"Merged segments {older} and {newer} into {output}: {len(writer)} terms, "
            f"{merged} in both, in {time.time() - start:.2f}s"
        )
        return writer

    def promote(self, generation: int | str):
        """Renames a lone generation to the canonical segment file names"""
        if generation == FINAL:
            return

        for source, target in zip(self._paths(generation), self._paths(FINAL)):
            lock = filelock.FileLock(target + ".lock")
            with lock:
                shutil.move(source, target)

        logger.info(f"Promoted segment {generation} to the canonical segment")

    def retire(self, *generations: int | str):
        for generation in generations:
            if generation == FINAL:
                raise ValueError("The canonical segment cannot be retired")

            for path in self._paths(generation):
                if os.path.exists(path):
                    logger.debug(f"Removing {path}")
                    os.remove(path)

            logger.info(f"Retired segment {generation}")

    def post_merge_cleanup(self):
        logger.info("Removing temporary files and lock files")
        for f in os.listdir(self.index_dir):
            path = os.path.join(self.index_dir, f)
            if not os.path.exists(path):
                continue

            if f.endswith(".lock") or f.endswith(".temp"):
                logger.debug(f"Removing {f}")
                os.remove(path)


class MergeScheduler:
    """
    Runs merges one after the other on a single background worker.

    The worker consumes tasks in submission order, so a merge never reads a
    generation produced by a later task. `_gate` is shared by every scheduler
    in the process and is held for the whole of a merge.
    """

    _gate = threading.Semaphore(1)

    def __init__(self, merger: SegmentMerger):
        self.merger = merger
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="segment-merge"
        )
        self.futures: list[concurrent.futures.Future] = []

    def __len__(self):
        return sum(1 for future in self.futures if not future.done())

    def _merge(
        self,
        older: int | str,
        newer: int | str,
        output: int | str,
        on_merged: Callable[[int | str, int | str, int | str], None] | None,
    ):
        with self._gate:
            self.merger.merge(older, newer, output)
            # readers switch to the output before its parents are removed
            if on_merged is not None:
                on_merged(older, newer, output)
            self.merger.retire(older, newer)

    def _promote(self, generation: int | str):
        with self._gate:
            self.merger.promote(generation)

    def _track(self, future: concurrent.futures.Future) -> concurrent.futures.Future:
        # finished tasks are dropped unless they failed, wait() reports those
        self.futures = [
            f for f in self.futures if not f.done() or f.exception() is not None
        ]
        self.futures.append(future)
        return future

    def submit(
        self,
        older: int | str,
        newer: int | str,
        output: int | str,
        on_merged: Callable[[int | str, int | str, int | str], None] | None = None,
    ) -> concurrent.futures.Future:
        """
        Schedules `merge(older, newer, output)`. `on_merged` runs on the
        worker once `output` is complete and before `older` and `newer` are retired.
        """
        return self._track(
            self.executor.submit(self._merge, older, newer, output, on_merged)
        )

    def submit_promote(self, generation: int | str) -> concurrent.futures.Future:
        return self._track(self.executor.submit(self._promote, generation))

    def wait(self):
        """Blocks until every submitted task is done and re-raises the first failure"""
        futures, self.futures = self.futures, []
        errors = []
        for future in concurrent.futures.as_completed(futures):
            error = future.exception()
            if error is not None:
                logger.error(f"Merge task failed: {error}")
                errors.append(error)

        if errors:
            raise errors[0]

    def shutdown(self):
        try:
            self.wait()
        finally:
            self.executor.shutdown(wait=True)
