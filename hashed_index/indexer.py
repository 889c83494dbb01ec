import os
import re
import time
import logging

from typing import Callable, Iterable, Iterator

from hashed_index.structures import IndexBase

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[\w']+")


def tokenize_file(path: str) -> Iterator[str]:
    """Lower-cased word tokens of a text file, read line by line"""
    with open(path, "r", encoding="utf-8", errors="ignore") as f:
        for line in f:
            for token in TOKEN_PATTERN.findall(line.lower()):
                token = token.strip("'")
                if token:
                    yield token


def list_documents(directory: str) -> list[str]:
    paths = []
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for f in sorted(files):
            if f.startswith("."):
                continue

            paths.append(os.path.join(root, f))

    return paths


class Indexer:
    def __init__(self, index: IndexBase, kgram_index=None):
        self.index = index
        self.kgram_index = kgram_index
        self.seen_terms: set[str] = set()

    def process_document(self, doc_id: int, name: str, tokens: Iterable[str]) -> int:
        """Inserts every token of a document at its position and returns the document length"""
        offset = 0
        for token in tokens:
            self.index.insert(token, doc_id, offset)
            offset += 1

            if self.kgram_index is not None and token not in self.seen_terms:
                self.seen_terms.add(token)
                self.kgram_index.insert(token)

        self.index.doc_names[doc_id] = name
        self.index.doc_lengths[doc_id] = offset
        return offset

    def process_files(
        self,
        paths: list[str],
        tokenize: Callable[[str], Iterable[str]] = tokenize_file,
        start_doc_id: int = 0,
    ) -> int:
        start = time.time()
        tokens = 0
        for doc_id, path in enumerate(paths, start=start_doc_id):
            tokens += self.process_document(doc_id, path, tokenize(path))

            if (doc_id - start_doc_id + 1) % 1000 == 0:
                logger.info(f"Indexed {doc_id - start_doc_id + 1} documents")

        logger.info(
            f"Indexed {len(paths)} documents and {tokens} tokens in {time.time() - start:.2f}s"
        )
        return tokens
