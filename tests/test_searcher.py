import math
import numpy as np
import pytest

from conftest import index_documents
from hashed_index.in_memory_index import InMemoryIndex
from hashed_index.persistent_index import PersistentHashedIndex
from hashed_index.structures import PostingsList
from link_analysis.hits import HITSRanker, HITSScores
from link_analysis.link_graph import TranslationContext
from retrieval_models.kgram_index import KGramIndex
from retrieval_models.query import Query, QueryType, RankingType
from retrieval_models.searcher import Searcher, adjacent_offsets

RANKED_DOCS = {
    0: ("davisWiki/a.f", "the cat sat"),
    1: ("davisWiki/b.f", "the dog sat"),
    2: ("davisWiki/c.f", "cat cat"),
}


class FixedLinkScores:
    def __init__(self, scores):
        self.scores = scores

    def score(self, doc_id):
        return self.scores.get(doc_id, 0.0)


def search(searcher, text, query_type, ranking_type=RankingType.TF_IDF):
    return searcher.search(Query.from_string(text), query_type, ranking_type)


def test_adjacent_offsets():
    matches = adjacent_offsets(
        np.array([0, 3, 7, 9], dtype=np.int64), np.array([1, 2, 8, 11], dtype=np.int64)
    )
    assert matches.tolist() == [1, 8]
    assert adjacent_offsets(
        np.array([], dtype=np.int64), np.array([1], dtype=np.int64)
    ).tolist() == []


def test_intersection(example_index):
    searcher = Searcher(example_index)

    result = search(searcher, "the sat", QueryType.INTERSECTION)
    assert result.doc_ids() == [0, 1]
    assert result.get_entry(0).offsets == [0]

    assert search(searcher, "cat dog", QueryType.INTERSECTION).doc_ids() == []
    assert len(search(searcher, "the bird", QueryType.INTERSECTION)) == 0


def test_phrase(example_index):
    searcher = Searcher(example_index)

    result = search(searcher, "the cat", QueryType.PHRASE)
    assert result.doc_ids() == [0]
    assert result.get_entry(0).offsets == [1]

    assert search(searcher, "the cat sat", QueryType.PHRASE).doc_ids() == [0]
    assert search(searcher, "cat the", QueryType.PHRASE).doc_ids() == []
    assert search(searcher, "the bird", QueryType.PHRASE).doc_ids() == []


def test_single_term_query_does_not_alias_the_index(example_index):
    result = search(Searcher(example_index), "sat", QueryType.INTERSECTION)
    result.add(7, 0)

    assert example_index.get_postings("sat").doc_ids() == [0, 1]


def test_empty_query_has_no_result(example_index):
    searcher = Searcher(example_index)

    assert searcher.search(Query(), QueryType.INTERSECTION) is None
    assert searcher.search(Query.from_string("  "), QueryType.RANKED) is None


def test_ranked_tfidf():
    index = index_documents(InMemoryIndex(), RANKED_DOCS)
    results = search(Searcher(index), "cat", QueryType.RANKED)

    idf = math.log(3 / 2)
    assert [p.doc_id for p in results] == [2, 0]
    assert results[0].score == pytest.approx(2 * idf / 2)
    assert results[1].score == pytest.approx(idf / 3)


def test_ranked_tfidf_drops_terms_in_every_document():
    index = index_documents(
        InMemoryIndex(), {0: ("a", "x y"), 1: ("b", "x"), 2: ("c", "x z")}
    )
    searcher = Searcher(index)

    assert search(searcher, "x", QueryType.RANKED) == []
    assert [p.doc_id for p in search(searcher, "x y bird", QueryType.RANKED)] == [0]


def test_ranked_combination_and_pagerank():
    index = index_documents(InMemoryIndex(), RANKED_DOCS)
    link_scores = {0: 0.9, 2: 0.1}
    searcher = Searcher(index, link_ranker=FixedLinkScores(link_scores))

    tfidf = {p.doc_id: p.score for p in search(searcher, "cat", QueryType.RANKED)}
    combined = search(searcher, "cat", QueryType.RANKED, RankingType.COMBINATION)

    for posting in combined:
        expected = 0.4 * tfidf[posting.doc_id] + 0.6 * link_scores[posting.doc_id]
        assert posting.score == pytest.approx(expected)
    assert combined[0].score >= combined[1].score

    by_link = search(searcher, "cat", QueryType.RANKED, RankingType.PAGERANK)
    assert [p.doc_id for p in by_link] == [0, 2]
    assert by_link[0].score == 0.9


def test_ranked_combination_with_hits(tmp_path):
    links = tmp_path / "links.txt"
    links.write_text("10;12\n")
    titles = tmp_path / "titles.txt"
    titles.write_text("10;a.f\n11;b.f\n12;c.f\n")

    index = index_documents(InMemoryIndex(), RANKED_DOCS)
    ranker = HITSRanker(str(links), str(titles), TranslationContext(index.doc_names))
    searcher = Searcher(index, hits_ranker=ranker, link_ranking=RankingType.HITS)

    tfidf = {p.doc_id: p.score for p in search(searcher, "cat", QueryType.RANKED)}
    hits = {p.doc_id: p.score for p in ranker.rank([0, 2])}
    assert hits == pytest.approx({0: 1.0, 2: 1.0})

    combined = search(searcher, "cat", QueryType.RANKED, RankingType.COMBINATION)
    assert [p.doc_id for p in combined] == [2, 0]
    for posting in combined:
        expected = 0.4 * tfidf[posting.doc_id] + 0.6 * hits[posting.doc_id]
        assert posting.score == pytest.approx(expected)


def test_hits_scores_default_to_zero():
    ranked = PostingsList()
    ranked.add_posting(3)
    ranked.set_score(3, 0.25)

    assert HITSScores(ranked).score(3) == 0.25
    assert HITSScores(ranked).score(4) == 0.0


def test_hits_combination_without_hits_ranker_raises(example_index):
    searcher = Searcher(example_index, link_ranking=RankingType.HITS)

    with pytest.raises(ValueError):
        search(searcher, "cat", QueryType.RANKED, RankingType.COMBINATION)

    with pytest.raises(ValueError):
        Searcher(example_index, link_ranking=RankingType.TF_IDF)


def test_link_ranking_without_ranker_raises(example_index):
    with pytest.raises(ValueError):
        search(Searcher(example_index), "cat", QueryType.RANKED, RankingType.COMBINATION)


def test_union(example_index):
    union = Searcher(example_index).union(Query.from_string("cat dog bird"))

    assert union.doc_ids() == [0, 1]
    assert union.get_entry(0).offsets == []


def test_ranked_hits_single_document(example_index, tmp_path):
    links = tmp_path / "links.txt"
    links.write_text("10;\n11;12\n")
    titles = tmp_path / "titles.txt"
    titles.write_text("10;cat.f\n11;dog.f\n")

    ranker = HITSRanker(str(links), str(titles), TranslationContext(example_index.doc_names))
    searcher = Searcher(example_index, hits_ranker=ranker)

    results = search(searcher, "cat", QueryType.RANKED, RankingType.HITS)
    assert [p.doc_id for p in results] == [0]
    assert results[0].score == pytest.approx(2.0)


def test_wildcard_queries():
    kgram_index = KGramIndex()
    index = index_documents(
        InMemoryIndex(),
        {0: ("a", "the cat sat"), 1: ("b", "the car sat"), 2: ("c", "a dog ran")},
        kgram_index,
    )
    searcher = Searcher(index, kgram_index=kgram_index)

    assert search(searcher, "ca* sat", QueryType.INTERSECTION).doc_ids() == [0, 1]
    assert search(searcher, "the ca*", QueryType.PHRASE).doc_ids() == [0, 1]
    assert search(searcher, "*t sat", QueryType.PHRASE).doc_ids() == [0]
    assert search(searcher, "zz*", QueryType.INTERSECTION).doc_ids() == []

    ranked = search(searcher, "r*", QueryType.RANKED)
    assert [p.doc_id for p in ranked] == [2]


def test_search_over_persistent_index(tmp_path):
    index = PersistentHashedIndex(str(tmp_path), table_size=53)
    index_documents(index, RANKED_DOCS)
    index.cleanup()

    searcher = Searcher(PersistentHashedIndex(str(tmp_path)))
    assert search(searcher, "the sat", QueryType.INTERSECTION).doc_ids() == [0, 1]
    assert search(searcher, "the cat", QueryType.PHRASE).doc_ids() == [0]
    assert [p.doc_id for p in search(searcher, "cat", QueryType.RANKED)] == [2, 0]
