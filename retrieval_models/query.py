import logging

from enum import Enum
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Iterable

from hashed_index.structures import Posting, PostingsList

logger = logging.getLogger(__name__)

# Weight of the original query terms in relevance feedback
ALPHA = 0.2
# Weight of the terms taken from documents marked relevant
BETA = 1 - ALPHA


class QueryType(Enum):
    INTERSECTION = "intersection"
    PHRASE = "phrase"
    RANKED = "ranked"


class RankingType(Enum):
    TF_IDF = "tf_idf"
    PAGERANK = "pagerank"
    COMBINATION = "combination"
    HITS = "hits"


@dataclass
class QueryTerm:
    term: str
    weight: float = 1.0


class Query:
    def __init__(self, terms: list[QueryTerm] | None = None):
        self.terms: list[QueryTerm] = terms if terms is not None else []

    @staticmethod
    def from_string(query: str) -> "Query":
        return Query([QueryTerm(term) for term in query.split()])

    def __len__(self):
        return len(self.terms)

    def __iter__(self):
        return iter(self.terms)

    def __repr__(self):
        return f"Query({[(t.term, round(t.weight, 4)) for t in self.terms]})"

    def size(self) -> int:
        return len(self.terms)

    def length(self) -> float:
        """Manhattan length of the query vector"""
        return sum(t.weight for t in self.terms)

    def copy(self) -> "Query":
        return Query([QueryTerm(t.term, t.weight) for t in self.terms])

    def relevance_feedback(
        self,
        results: PostingsList | list[Posting],
        doc_is_relevant: list[bool],
        doc_tokens: Callable[[int], Iterable[str]],
        alpha: float = ALPHA,
        beta: float = BETA,
    ) -> "Query":
        """
        Rocchio expansion in place: the query vector is normalised by its
        length and scaled by `alpha`, then `beta` times the term counts of
        every result marked relevant are added. `doc_tokens(doc_id)` supplies
        the tokens of a result.
        """
        length = self.length()
        weights: dict[str, float] = {}
        for t in self.terms:
            weight = t.weight / length if length > 0 else 0.0
            weights[t.term] = weights.get(t.term, 0.0) + alpha * weight

        for posting, relevant in zip(results, doc_is_relevant):
            if not relevant:
                continue

            counts = Counter(doc_tokens(posting.doc_id))
            for term, count in counts.items():
                weights[term] = weights.get(term, 0.0) + beta * count

        self.terms = [QueryTerm(term, weight) for term, weight in weights.items()]
        logger.info(f"Relevance feedback expanded the query to {len(self.terms)} terms")
        return self
