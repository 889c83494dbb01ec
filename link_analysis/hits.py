import time
import logging
import numpy as np

from hashed_index.structures import PostingsList
from link_analysis.link_graph import MAX_NUMBER_OF_DOCS, LinkGraph, TranslationContext

logger = logging.getLogger(__name__)

MAX_NUMBER_OF_STEPS = 1000

# Convergence criterion on the largest change of any hub or authority score
EPSILON = 0.001


def normalize(vector: np.ndarray) -> np.ndarray:
    """L2 normalisation. A zero vector becomes the uniform unit vector"""
    norm = np.linalg.norm(vector)
    if norm == 0:
        return np.full(len(vector), 1.0 / np.sqrt(len(vector)))

    return vector / norm


class HITSRanker:
    def __init__(
        self,
        links_path: str,
        titles_path: str | None,
        translation: TranslationContext,
        max_docs: int = MAX_NUMBER_OF_DOCS,
    ):
        """
        Hub and authority scores over the link graph in `links_path`, whose
        node ids differ from the doc_ids of the term index. `translation`
        maps between the two, using the `<node_id>;<title>` lines of
        `titles_path` when given.
        """
        self.links_path = links_path
        self.translation = translation
        self.max_docs = max_docs
        if titles_path is not None:
            self.translation.load_titles(titles_path)

        self.hub_scores: dict[str, float] = {}
        self.authority_scores: dict[str, float] = {}

    def iterate(
        self,
        graph: LinkGraph,
        max_steps: int = MAX_NUMBER_OF_STEPS,
        epsilon: float = EPSILON,
    ) -> tuple[np.ndarray, np.ndarray]:
        n = len(graph)
        if n == 0:
            self.hub_scores = {}
            self.authority_scores = {}
            return np.zeros(0), np.zeros(0)

        start = time.time()
        sources, targets = graph.edges()

        hubs = np.zeros(n, dtype=np.float64)
        authorities = np.zeros(n, dtype=np.float64)
        hubs_prime = np.ones(n, dtype=np.float64)
        authorities_prime = np.ones(n, dtype=np.float64)

        step = 0
        while step < max_steps and (
            np.max(np.abs(hubs - hubs_prime)) > epsilon
            or np.max(np.abs(authorities - authorities_prime)) > epsilon
        ):
            step += 1
            hubs, authorities = hubs_prime, authorities_prime
            hubs_prime = normalize(
                np.bincount(sources, weights=authorities[targets], minlength=n)
            )
            authorities_prime = normalize(
                np.bincount(targets, weights=hubs[sources], minlength=n)
            )

        logger.info(
            f"HITS over {n} documents took {step} steps and {time.time() - start:.2f}s"
        )

        self.hub_scores = dict(zip(graph.labels, hubs_prime.tolist()))
        self.authority_scores = dict(zip(graph.labels, authorities_prime.tolist()))
        return hubs_prime, authorities_prime

    def rank(self, base_doc_ids: list[int]) -> PostingsList:
        """
        Scores the graph around the base documents with hub + authority.
        The result holds term index doc_ids; graph nodes without one are dropped.
        """
        root = set()
        for doc_id in base_doc_ids:
            label = self.translation.label_of(doc_id)
            if label is None:
                logger.debug(f"Document {doc_id} has no node in the link graph")
                continue

            root.add(label)

        if len(root) < len(base_doc_ids):
            logger.info(
                f"{len(base_doc_ids) - len(root)} of {len(base_doc_ids)} documents are not in the link graph"
            )

        graph = LinkGraph.from_file(self.links_path, self.max_docs, keep=root)
        for label in sorted(root):
            graph.add_node(label)

        hubs, authorities = self.iterate(graph)

        result = PostingsList()
        for label, score in zip(graph.labels, (hubs + authorities).tolist()):
            doc_id = self.translation.doc_of(label)
            if doc_id is None:
                continue

            result.add_posting(doc_id)
            result.set_score(doc_id, score)

        return result

    def rank_all(self) -> tuple[dict[str, float], dict[str, float]]:
        """Hub and authority scores of every document in the link file"""
        self.iterate(LinkGraph.from_file(self.links_path, self.max_docs))
        return self.hub_scores, self.authority_scores

    @staticmethod
    def top(scores: dict[str, float], k: int = 30) -> list[tuple[str, float]]:
        return sorted(scores.items(), key=lambda x: x[1], reverse=True)[:k]


class HITSScores:
    """hub + authority of the documents HITS ranked, 0 for the rest"""

    def __init__(self, ranked: PostingsList):
        self.ranked = ranked

    def score(self, doc_id: int) -> float:
        posting = self.ranked.get_entry(doc_id)
        if posting is None:
            return 0.0

        return posting.score


if __name__ == "__main__":
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser()
    parser.add_argument("--links", type=str, required=True)
    parser.add_argument("--titles", type=str, default=None)
    parser.add_argument("--top", type=int, default=30)
    args = parser.parse_args()

    ranker = HITSRanker(args.links, args.titles, TranslationContext({}))
    hubs, authorities = ranker.rank_all()

    print("Hubs")
    for label, score in HITSRanker.top(hubs, args.top):
        print(f"{label}: {score:.5g}")

    print("Authorities")
    for label, score in HITSRanker.top(authorities, args.top):
        print(f"{label}: {score:.5g}")
