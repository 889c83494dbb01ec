import re
import logging

logger = logging.getLogger(__name__)

START = "^"
END = "$"


class KGramIndex:
    """
    Maps every k-gram of `^term$` to the sorted ids of the terms holding it.
    Used to expand wildcard query terms into index terms.
    """

    def __init__(self, k: int = 2):
        if k <= 0:
            raise ValueError(f"K-gram index needs a positive k, got {k}")

        self.k = k
        self.index: dict[str, list[int]] = {}
        self.id2term: dict[int, str] = {}
        self.term2id: dict[str, int] = {}

    def __len__(self):
        return len(self.id2term)

    def kgrams(self, text: str) -> list[str]:
        return [text[i : i + self.k] for i in range(len(text) - self.k + 1)]

    def insert(self, term: str):
        if term in self.term2id:
            return

        term_id = len(self.id2term)
        self.id2term[term_id] = term
        self.term2id[term] = term_id

        # ids only grow so appending keeps every list sorted
        for kgram in set(self.kgrams(f"{START}{term}{END}")):
            self.index.setdefault(kgram, []).append(term_id)

    def get_postings(self, kgram: str) -> list[int]:
        return self.index.get(kgram, [])

    def get_term_by_id(self, term_id: int) -> str | None:
        return self.id2term.get(term_id)

    def get_id_by_term(self, term: str) -> int | None:
        return self.term2id.get(term)

    @staticmethod
    def intersect(p1: list[int], p2: list[int]) -> list[int]:
        result = []
        i = j = 0
        while i < len(p1) and j < len(p2):
            if p1[i] == p2[j]:
                result.append(p1[i])
                i += 1
                j += 1
            elif p1[i] < p2[j]:
                i += 1
            else:
                j += 1

        return result

    def expand(self, pattern: str) -> list[str]:
        """
        Index terms matching a pattern where `*` stands for any run of characters.
        Candidates come from the k-grams of the literal parts and are checked
        against the full pattern.
        """
        if "*" not in pattern:
            return [pattern] if pattern in self.term2id else []

        kgrams = []
        for part in f"{START}{pattern}{END}".split("*"):
            kgrams.extend(self.kgrams(part))

        if kgrams:
            candidates = self.get_postings(kgrams[0])
            for kgram in kgrams[1:]:
                if not candidates:
                    break
                candidates = self.intersect(candidates, self.get_postings(kgram))
        else:
            candidates = list(self.id2term.keys())

        matcher = re.compile(
            "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$",
            re.DOTALL,
        )
        terms = [
            self.id2term[term_id]
            for term_id in candidates
            if matcher.match(self.id2term[term_id])
        ]

        logger.debug(f"Wildcard {pattern} expanded to {len(terms)} terms")
        return terms
