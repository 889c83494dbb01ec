import bisect
import logging

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class Posting:
    doc_id: int
    score: float = 0.0
    offsets: list[int] = field(default_factory=list)

    def insert_offset(self, offset: int):
        idx = bisect.bisect_left(self.offsets, offset)
        if idx < len(self.offsets) and self.offsets[idx] == offset:
            return

        self.offsets.insert(idx, offset)

    def __repr__(self):
        return f"Posting({self.doc_id}, score={self.score:.4f}, offsets={self.offsets})"


class PostingsList:
    """
    Postings of a single term, sorted ascending by doc_id with unique doc_ids.

    `_doc_ids` mirrors the doc_id of each posting so that lookups and inserts
    are a bisect away.

    Serialised form (the postings half of a data-store record):
        ~<doc_id>,<offset>,<offset>,...~<doc_id>,...
    """

    def __init__(self, postings: list[Posting] | None = None):
        self.postings: list[Posting] = []
        self._doc_ids: list[int] = []

        for posting in postings or []:
            entry = self.add_posting(posting.doc_id)
            entry.score = posting.score
            for offset in posting.offsets:
                entry.insert_offset(offset)

    def __len__(self):
        return len(self.postings)

    def __iter__(self):
        return iter(self.postings)

    def __getitem__(self, idx: int) -> Posting:
        return self.postings[idx]

    def __contains__(self, doc_id: int):
        return self.get_entry(doc_id) is not None

    def __eq__(self, other):
        if not isinstance(other, PostingsList):
            return NotImplemented

        if self._doc_ids != other._doc_ids:
            return False

        return all(
            a.offsets == b.offsets for a, b in zip(self.postings, other.postings)
        )

    def __repr__(self):
        preview = self.postings[:10]
        suffix = ", ..." if len(self.postings) > 10 else ""
        return f"PostingsList({len(self)}, {preview}{suffix})"

    def doc_ids(self) -> list[int]:
        return list(self._doc_ids)

    def get_entry(self, doc_id: int) -> Posting | None:
        idx = bisect.bisect_left(self._doc_ids, doc_id)
        if idx < len(self._doc_ids) and self._doc_ids[idx] == doc_id:
            return self.postings[idx]

        return None

    def add_posting(self, doc_id: int) -> Posting:
        """Finds or creates the posting for `doc_id` without touching its offsets"""
        idx = bisect.bisect_left(self._doc_ids, doc_id)
        if idx < len(self._doc_ids) and self._doc_ids[idx] == doc_id:
            return self.postings[idx]

        posting = Posting(doc_id)
        self._doc_ids.insert(idx, doc_id)
        self.postings.insert(idx, posting)
        return posting

    def add(self, doc_id: int, offset: int):
        self.add_posting(doc_id).insert_offset(offset)

    def set_score(self, doc_id: int, score: float):
        posting = self.get_entry(doc_id)
        if posting is not None:
            posting.score = score

    def merge(self, other: "PostingsList | None") -> "PostingsList":
        """
        Folds every (doc_id, offset) pair of `other` into this list.
        Postings in `other` without offsets still contribute their doc_id.
        """
        if other is None:
            return self

        for posting in other.postings:
            entry = self.add_posting(posting.doc_id)
            for offset in posting.offsets:
                entry.insert_offset(offset)

        return self

    def ranked(self) -> list[Posting]:
        """Postings by descending score. `sorted` is stable so ties keep doc_id order"""
        return sorted(self.postings, key=lambda x: x.score, reverse=True)

    def serialize(self) -> str:
        parts = []
        for posting in self.postings:
            parts.append(f"~{posting.doc_id},")
            parts.extend(f"{offset}," for offset in posting.offsets)

        return "".join(parts)

    @staticmethod
    def deserialize(record: str) -> "PostingsList":
        """
        Accepts the postings text or a whole `term;~...` record.
        Postings that fail to parse are logged and skipped.
        """
        postings_list = PostingsList()
        if not record:
            return postings_list

        # postings text never holds ';' so the last one ends the term
        separator = record.rfind(";")
        if separator != -1:
            record = record[separator + 1 :]

        for chunk in record.split("~")[1:]:
            values = [x for x in chunk.split(",") if x != ""]
            if not values:
                continue

            try:
                doc_id = int(values[0])
                offsets = [int(x) for x in values[1:]]
            except ValueError:
                logger.error(f"Skipping malformed posting '~{chunk}'")
                continue

            entry = postings_list.add_posting(doc_id)
            for offset in offsets:
                entry.insert_offset(offset)

        return postings_list


class IndexBase(ABC):
    """
    Capability shared by every index backend.

    `doc_names` and `doc_lengths` are filled by the indexer and persisted by
    the backends that write to disk.
    """

    def __init__(self):
        self.doc_names: dict[int, str] = {}
        self.doc_lengths: dict[int, int] = {}

    @abstractmethod
    def insert(self, term: str, doc_id: int, offset: int):
        pass

    @abstractmethod
    def get_postings(self, term: str) -> PostingsList | None:
        pass

    @abstractmethod
    def cleanup(self):
        pass

    def get_document_frequency(self, term: str) -> int:
        postings = self.get_postings(term)
        if postings is None:
            return 0

        return len(postings)

    def get_document_count(self) -> int:
        return len(self.doc_lengths)
