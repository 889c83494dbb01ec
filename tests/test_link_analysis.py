import numpy as np
import pytest

from link_analysis.hits import HITSRanker, normalize
from link_analysis.link_graph import LinkGraph, TranslationContext, read_titles
from link_analysis.pagerank import EPSILON, PageRank, PageRankScores


def write_links(tmp_path, text, name="links.txt"):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


def test_link_graph_from_file(tmp_path):
    path = write_links(tmp_path, "a;b,c\nb;c,c\n\nbroken line\nc;\n")
    graph = LinkGraph.from_file(path)

    assert graph.labels == ["a", "b", "c"]
    assert graph.out_links == {0: {1, 2}, 1: {2}}
    assert graph.out_degree.tolist() == [2, 1, 0]
    assert not graph.truncated

    indptr, indices = graph.to_csr()
    assert indptr.tolist() == [0, 2, 3, 3]
    assert indices.tolist() == [1, 2, 2]


def test_link_graph_truncation_is_reported(tmp_path):
    path = write_links(tmp_path, "a;b,c\nd;e\n")
    graph = LinkGraph.from_file(path, max_docs=3)

    assert graph.truncated
    assert len(graph) == 3
    assert "d" not in graph


def test_link_graph_missing_file(tmp_path):
    graph = LinkGraph.from_file(str(tmp_path / "missing.txt"))

    assert len(graph) == 0
    assert not graph.truncated


def test_link_graph_keeps_edges_touching_root_set(tmp_path):
    path = write_links(tmp_path, "1;2,3\n4;1,5\n6;7\n")
    graph = LinkGraph.from_file(path, keep={"1"})

    assert set(graph.labels) == {"1", "2", "3", "4"}
    edges = {
        (graph.labels[s], graph.labels[t])
        for s, targets in graph.out_links.items()
        for t in targets
    }
    assert edges == {("1", "2"), ("1", "3"), ("4", "1")}


def test_translation_context(tmp_path):
    titles_path = tmp_path / "titles.txt"
    titles_path.write_text("10;A.f\n11;B.f\nx;C.f\n")
    titles = read_titles(str(titles_path))
    assert titles == {"10": "A.f", "11": "B.f"}

    doc_names = {0: "davisWiki/A.f", 1: "davisWiki\\B.f", 2: "davisWiki/D.f"}
    translation = TranslationContext(doc_names, titles)

    assert translation.label_of(0) == "10"
    assert translation.label_of(1) == "11"
    assert translation.label_of(2) is None
    assert translation.label_of(5) is None
    assert translation.doc_of("11") == 1
    assert translation.doc_of("99") is None

    untitled = TranslationContext(doc_names)
    assert untitled.label_of(0) == "A.f"
    assert untitled.doc_of("D.f") == 2


def test_power_iteration_two_node_cycle(tmp_path):
    pagerank = PageRank(LinkGraph.from_file(write_links(tmp_path, "a;b\nb;a\n")))
    ranks = pagerank.power_iteration()

    assert ranks == pytest.approx([0.5, 0.5], abs=EPSILON)
    assert pagerank.scores()["a"] == pytest.approx(0.5, abs=EPSILON)


def test_power_iteration_with_dangling_node(tmp_path):
    pagerank = PageRank(LinkGraph.from_file(write_links(tmp_path, "a;b,c\nb;c\n")))
    ranks = pagerank.power_iteration()

    assert ranks.sum() == pytest.approx(1.0)
    assert [label for label, _ in pagerank.top(3)] == ["c", "b", "a"]


def test_power_iteration_empty_graph():
    assert len(PageRank(LinkGraph()).power_iteration()) == 0


@pytest.mark.parametrize("method", ["monte_carlo_end_point", "monte_carlo_complete_path"])
def test_monte_carlo_two_node_cycle(tmp_path, method):
    pagerank = PageRank(LinkGraph.from_file(write_links(tmp_path, "a;b\nb;a\n")))
    ranks = getattr(pagerank, method)(walks_per_node=5000, seed=42)

    assert ranks.sum() == pytest.approx(1.0)
    assert ranks == pytest.approx([0.5, 0.5], abs=0.03)


def test_monte_carlo_approximates_power_iteration(tmp_path):
    path = write_links(tmp_path, "a;b,c\nb;c\nc;a\nd;c\n")
    exact = PageRank(LinkGraph.from_file(path)).power_iteration()
    estimate = PageRank(LinkGraph.from_file(path)).monte_carlo_end_point(
        walks_per_node=5000, seed=7
    )

    assert np.abs(exact - estimate).max() < 0.03


def test_pagerank_scores_translate_doc_ids():
    translation = TranslationContext({0: "wiki/a", 1: "wiki/zzz"})
    scores = PageRankScores({"a": 0.7}, translation)

    assert scores.score(0) == 0.7
    assert scores.score(1) == 0.0
    assert scores.score(2) == 0.0


def test_normalize_zero_vector():
    assert normalize(np.zeros(4)).tolist() == [0.5, 0.5, 0.5, 0.5]
    assert normalize(np.array([3.0, 4.0])).tolist() == pytest.approx([0.6, 0.8])


def test_hits_hubs_and_authorities(tmp_path):
    path = write_links(tmp_path, "0;1,2\n1;2\n")
    ranker = HITSRanker(path, None, TranslationContext({}))
    hubs, authorities = ranker.rank_all()

    assert max(hubs, key=hubs.get) == "0"
    assert max(authorities, key=authorities.get) == "2"
    assert hubs["2"] == pytest.approx(0.0, abs=1e-3)
    assert sum(v * v for v in hubs.values()) == pytest.approx(1.0)


def test_hits_rank_translates_and_drops_unknown_documents(tmp_path):
    links = write_links(tmp_path, "0;1,2\n1;2\n3;4\n")
    titles = tmp_path / "titles.txt"
    titles.write_text("0;a.f\n1;b.f\n3;d.f\n")
    translation = TranslationContext({0: "w/a.f", 1: "w/b.f", 5: "w/e.f"})

    result = HITSRanker(links, str(titles), translation).rank([0, 5])

    # node 2 has no title and doc 5 has no node
    assert result.doc_ids() == [0, 1]
    assert result.get_entry(0).score > 0
