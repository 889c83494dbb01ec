import logging

from hashed_index.structures import IndexBase, PostingsList
from hashed_index.index_utils import build_index

logger = logging.getLogger(__name__)


class Index(IndexBase):
    def __init__(self, kind: str | None = None, index_dir: str | None = None, **kwargs):
        self.kind = kind
        self.index_dir = index_dir
        self.index = build_index(kind, index_dir, **kwargs)

    @property
    def doc_names(self) -> dict[int, str]:
        return self.index.doc_names

    @property
    def doc_lengths(self) -> dict[int, int]:
        return self.index.doc_lengths

    def __getitem__(self, term: str) -> PostingsList | None:
        return self.get_postings(term)

    def insert(self, term: str, doc_id: int, offset: int):
        self.index.insert(term, doc_id, offset)

    def get_postings(self, term: str) -> PostingsList | None:
        return self.index.get_postings(term)

    def get_document_frequency(self, term: str) -> int:
        return self.index.get_document_frequency(term)

    def get_document_count(self) -> int:
        return self.index.get_document_count()

    def cleanup(self):
        self.index.cleanup()

    def close(self):
        close = getattr(self.index, "close", None)
        if close is not None:
            close()


if __name__ == "__main__":
    import argparse
    import time

    from constants.index import INDEX_PARAMS, LINKS_FILE, TITLES_FILE
    from hashed_index.indexer import Indexer, list_documents
    from link_analysis.hits import HITSRanker
    from link_analysis.link_graph import LinkGraph, TranslationContext
    from link_analysis.pagerank import PageRank, PageRankScores
    from retrieval_models.kgram_index import KGramIndex
    from retrieval_models.query import Query, QueryType, RankingType
    from retrieval_models.searcher import Searcher

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser()
    parser.add_argument("--index-dir", type=str, default=INDEX_PARAMS["index_dir"])
    parser.add_argument("--kind", type=str, default=None, choices=["memory", "persistent", "scalable"])
    parser.add_argument("--documents", type=str, default=None)
    parser.add_argument("--table-size", type=int, default=INDEX_PARAMS["table_size"])
    parser.add_argument("--max-tokens", type=int, default=INDEX_PARAMS["max_tokens"])
    parser.add_argument("--links", type=str, default=LINKS_FILE)
    parser.add_argument("--titles", type=str, default=TITLES_FILE)
    parser.add_argument("--link-ranking", type=str, default="pagerank", choices=["pagerank", "hits"])
    args = parser.parse_args()

    index = Index(
        kind=args.kind,
        index_dir=args.index_dir,
        table_size=args.table_size,
        max_tokens=args.max_tokens,
    )
    kgram_index = KGramIndex()

    if args.documents is not None:
        start = time.time()
        Indexer(index, kgram_index).process_files(list_documents(args.documents))
        index.cleanup()
        print(f"Indexed in {time.time() - start:.2f}s")

    translation = TranslationContext(index.doc_names)
    pagerank = PageRank(LinkGraph.from_file(args.links))
    searcher = Searcher(
        index,
        kgram_index=kgram_index if len(kgram_index) > 0 else None,
        link_ranker=PageRankScores(pagerank.scores(), translation),
        hits_ranker=HITSRanker(args.links, args.titles, TranslationContext(index.doc_names)),
        link_ranking=RankingType(args.link_ranking),
    )

    print(f"DocumentCount={index.get_document_count()}")

    query_types = {
        "i": (QueryType.INTERSECTION, RankingType.TF_IDF),
        "p": (QueryType.PHRASE, RankingType.TF_IDF),
        "r": (QueryType.RANKED, RankingType.TF_IDF),
        "pr": (QueryType.RANKED, RankingType.PAGERANK),
        "c": (QueryType.RANKED, RankingType.COMBINATION),
        "h": (QueryType.RANKED, RankingType.HITS),
    }

    while True:
        line = input(
            "Enter a query prefixed by its type: i (intersection), p (phrase), r (tf-idf), "
            "pr (pagerank), c (combination), h (hits). Press q to quit: "
        )
        if line.strip() == "q":
            break

        prefix, _, text = line.partition(" ")
        if prefix not in query_types:
            print(f"Invalid query type: {prefix}")
            continue

        query_type, ranking_type = query_types[prefix]
        start = time.time()
        try:
            result = searcher.search(Query.from_string(text), query_type, ranking_type)
        except ValueError as e:
            logger.error(f"Error: {e}")
            continue

        print(f"Time taken: {time.time() - start:.4f}s")
        if result is None:
            print("Empty query")
            continue

        for posting in list(result)[:10]:
            print(f"{index.doc_names.get(posting.doc_id, posting.doc_id)}: {posting.score:.5f}")
        print(f"{len(result)} results")

    index.close()
