import time
import logging
import numpy as np

from numba import jit

from hashed_index.structures import IndexBase, Posting, PostingsList
from link_analysis.hits import HITSScores
from retrieval_models.kgram_index import KGramIndex
from retrieval_models.query import Query, QueryTerm, QueryType, RankingType

logger = logging.getLogger(__name__)

TFIDF_WEIGHT = 0.4
LINK_WEIGHT = 0.6


@jit(nopython=True, cache=True)
def adjacent_offsets(offsets1, offsets2):
    """
    Offsets of `offsets2` that directly follow an offset of `offsets1`.
    Both arrays are sorted ascending without duplicates.
    """
    matches = np.empty(min(len(offsets1), len(offsets2)), dtype=np.int64)
    i = 0
    j = 0
    n = 0
    while i < len(offsets1) and j < len(offsets2):
        if offsets2[j] == offsets1[i] + 1:
            matches[n] = offsets2[j]
            n += 1
            i += 1
            j += 1
        elif offsets1[i] + 1 < offsets2[j]:
            i += 1
        else:
            j += 1

    return matches[:n]


class Searcher:
    def __init__(
        self,
        index: IndexBase,
        kgram_index: KGramIndex | None = None,
        link_ranker=None,
        hits_ranker=None,
        tfidf_weight: float = TFIDF_WEIGHT,
        link_weight: float = LINK_WEIGHT,
        link_ranking: RankingType = RankingType.PAGERANK,
    ):
        """
        `link_ranker` provides `score(doc_id) -> float` for PageRank style
        ranking and `hits_ranker` provides `rank(doc_ids) -> PostingsList`.
        `link_ranking` picks the link score of combination ranking, PAGERANK
        or HITS.
        """
        if link_ranking not in (RankingType.PAGERANK, RankingType.HITS):
            raise ValueError(f"Invalid link ranking {link_ranking}")

        self.index = index
        self.kgram_index = kgram_index
        self.link_ranker = link_ranker
        self.hits_ranker = hits_ranker
        self.tfidf_weight = tfidf_weight
        self.link_weight = link_weight
        self.link_ranking = link_ranking

    def search(
        self,
        query: Query,
        query_type: QueryType,
        ranking_type: RankingType = RankingType.TF_IDF,
    ) -> PostingsList | list[Posting] | None:
        """
        Boolean queries return a PostingsList ordered by doc_id, ranked queries
        a list of postings by descending score. A query without terms has no
        result and returns None.
        """
        if query.size() == 0:
            return None

        start = time.time()
        if any("*" in t.term for t in query.terms):
            result = self._search_wildcard(query, query_type, ranking_type)
        else:
            result = self._search(query, query_type, ranking_type)

        logger.debug(
            f"{query_type.value} query {query} matched {len(result)} documents "
            f"in {time.time() - start:.4f}s"
        )
        return result

    def _search(
        self, query: Query, query_type: QueryType, ranking_type: RankingType
    ) -> PostingsList | list[Posting]:
        if query_type == QueryType.INTERSECTION:
            return self.intersection_search(self._postings(query))

        if query_type == QueryType.PHRASE:
            return self.phrase_search(self._postings(query))

        if ranking_type == RankingType.TF_IDF:
            return self.ranked_search_tfidf(query)
        if ranking_type == RankingType.PAGERANK:
            return self.ranked_search_pagerank(query)
        if ranking_type == RankingType.COMBINATION:
            return self.ranked_search_combination(query)
        if ranking_type == RankingType.HITS:
            return self.ranked_search_hits(query)

        raise ValueError(f"Invalid ranking type {ranking_type}")

    def _postings(self, query: Query) -> list[PostingsList | None]:
        return [self.index.get_postings(t.term) for t in query.terms]

    def intersection_search(
        self, postings_lists: list[PostingsList | None]
    ) -> PostingsList:
        """Documents holding every term, with the offsets of the first term"""
        if not postings_lists or any(p is None for p in postings_lists):
            return PostingsList()

        result = PostingsList(postings_lists[0].postings)
        for other in postings_lists[1:]:
            result = self._intersect(result, other)
            if len(result) == 0:
                break

        return result

    @staticmethod
    def _intersect(list1: PostingsList, list2: PostingsList) -> PostingsList:
        result = PostingsList()
        i = j = 0
        while i < len(list1) and j < len(list2):
            doc_id1 = list1[i].doc_id
            doc_id2 = list2[j].doc_id
            if doc_id1 == doc_id2:
                posting = result.add_posting(doc_id1)
                posting.offsets = list(list1[i].offsets)
                i += 1
                j += 1
            elif doc_id1 < doc_id2:
                i += 1
            else:
                j += 1

        return result

    def phrase_search(self, postings_lists: list[PostingsList | None]) -> PostingsList:
        """
        Documents where the terms occur at consecutive offsets. Each posting
        keeps the offsets of the last term of the phrase.
        """
        if not postings_lists or any(p is None for p in postings_lists):
            return PostingsList()

        result = PostingsList(postings_lists[0].postings)
        for other in postings_lists[1:]:
            result = self._phrase_step(result, other)
            if len(result) == 0:
                break

        return result

    @staticmethod
    def _phrase_step(list1: PostingsList, list2: PostingsList) -> PostingsList:
        result = PostingsList()
        i = j = 0
        while i < len(list1) and j < len(list2):
            doc_id1 = list1[i].doc_id
            doc_id2 = list2[j].doc_id
            if doc_id1 == doc_id2:
                matches = adjacent_offsets(
                    np.asarray(list1[i].offsets, dtype=np.int64),
                    np.asarray(list2[j].offsets, dtype=np.int64),
                )
                if len(matches) > 0:
                    posting = result.add_posting(doc_id1)
                    posting.offsets = matches.tolist()
                i += 1
                j += 1
            elif doc_id1 < doc_id2:
                i += 1
            else:
                j += 1

        return result

    def _tfidf_scores(self, query: Query) -> tuple[np.ndarray, np.ndarray]:
        doc_count = self.index.get_document_count()

        term_postings = []
        max_doc_id = -1
        for t in query.terms:
            postings = self.index.get_postings(t.term)
            if postings is None or len(postings) == 0:
                continue

            doc_ids = np.array(postings.doc_ids(), dtype=np.int64)
            max_doc_id = max(max_doc_id, int(doc_ids[-1]))
            term_postings.append((t.weight, postings, doc_ids))

        size = max(doc_count, max_doc_id + 1)
        scores = np.zeros(size, dtype=np.float64)
        if doc_count == 0:
            return scores, np.zeros(0, dtype=np.int64)

        for weight, postings, doc_ids in term_postings:
            idf = np.log(doc_count / len(postings))
            tf = np.array([len(p.offsets) for p in postings], dtype=np.float64)
            np.add.at(scores, doc_ids, weight * tf * idf)

        lengths = np.zeros(size, dtype=np.float64)
        for doc_id, length in self.index.doc_lengths.items():
            if 0 <= doc_id < size:
                lengths[doc_id] = length

        has_length = lengths > 0
        scores[has_length] /= lengths[has_length]

        matched = np.nonzero(scores > 0)[0]
        order = np.argsort(-scores[matched], kind="stable")
        return scores, matched[order]

    def ranked_search_tfidf(self, query: Query) -> list[Posting]:
        scores, doc_ids = self._tfidf_scores(query)
        return [Posting(int(doc_id), float(scores[doc_id])) for doc_id in doc_ids]

    def _require_link_ranker(self):
        if self.link_ranker is None:
            raise ValueError("Link based ranking needs a link ranker")

    def ranked_search_pagerank(self, query: Query) -> list[Posting]:
        """Documents matching the query, ordered by link score alone"""
        self._require_link_ranker()

        results = self.ranked_search_tfidf(query)
        for posting in results:
            posting.score = self.link_ranker.score(posting.doc_id)

        return sorted(results, key=lambda x: x.score, reverse=True)

    def _require_hits_ranker(self):
        if self.hits_ranker is None:
            raise ValueError("HITS ranking needs a HITS ranker")

    def ranked_search_combination(self, query: Query) -> list[Posting]:
        """tfidf_weight * tf-idf + link_weight * the PageRank or HITS score"""
        if self.link_ranking == RankingType.HITS:
            self._require_hits_ranker()
            link_scores = HITSScores(self.hits_ranker.rank(self.union(query).doc_ids()))
        else:
            self._require_link_ranker()
            link_scores = self.link_ranker

        results = self.ranked_search_tfidf(query)
        for posting in results:
            posting.score = (
                self.tfidf_weight * posting.score
                + self.link_weight * link_scores.score(posting.doc_id)
            )

        return sorted(results, key=lambda x: x.score, reverse=True)

    def union(self, query: Query) -> PostingsList:
        """Every document holding at least one term, without offsets"""
        result = PostingsList()
        for t in query.terms:
            postings = self.index.get_postings(t.term)
            if postings is None:
                continue

            for posting in postings:
                result.add_posting(posting.doc_id)

        return result

    def ranked_search_hits(self, query: Query) -> list[Posting]:
        self._require_hits_ranker()

        base = self.union(query)
        return self.hits_ranker.rank(base.doc_ids()).ranked()

    def _expand(self, term: str) -> list[str]:
        if "*" not in term:
            return [term]

        if self.kgram_index is None:
            logger.warning(f"No k-gram index to expand {term}")
            return []

        return self.kgram_index.expand(term)

    def _search_wildcard(
        self, query: Query, query_type: QueryType, ranking_type: RankingType
    ) -> PostingsList | list[Posting]:
        if query_type in (QueryType.INTERSECTION, QueryType.PHRASE):
            postings_lists = []
            for t in query.terms:
                postings = None
                for term in self._expand(t.term):
                    term_postings = self.index.get_postings(term)
                    if term_postings is None:
                        continue

                    if postings is None:
                        postings = PostingsList().merge(term_postings)
                    else:
                        postings.merge(term_postings)

                postings_lists.append(postings)

            if query_type == QueryType.INTERSECTION:
                return self.intersection_search(postings_lists)

            return self.phrase_search(postings_lists)

        weights: dict[str, float] = {}
        for t in query.terms:
            for term in self._expand(t.term):
                weights[term] = weights.get(term, 0.0) + t.weight

        expanded = Query([QueryTerm(term, weight) for term, weight in weights.items()])
        logger.info(f"Wildcard query {query} rewritten to {expanded}")
        if expanded.size() == 0:
            return []

        return self._search(expanded, query_type, ranking_type)
