import time
import logging
import numpy as np

from numba import jit

from link_analysis.link_graph import LinkGraph, TranslationContext

logger = logging.getLogger(__name__)

# Probability that the surfer gets bored and jumps to a random document
BORED = 0.15

# Convergence criterion on the largest per-document change between iterations
EPSILON = 0.0001

MAX_ITERATIONS = 1000


@jit(nopython=True, cache=True)
def end_point_walks(indptr, indices, walks_per_node, bored, seed):
    """
    `walks_per_node` walks from every node. A walk stops with probability
    `bored` at each step and the node it stops on is counted.
    """
    if seed >= 0:
        np.random.seed(seed)

    n = len(indptr) - 1
    counts = np.zeros(n, dtype=np.float64)
    for start in range(n):
        for _ in range(walks_per_node):
            node = start
            while np.random.random() >= bored:
                degree = indptr[node + 1] - indptr[node]
                if degree == 0:
                    node = np.random.randint(0, n)
                else:
                    node = indices[indptr[node] + np.random.randint(0, degree)]

            counts[node] += 1

    return counts / (n * walks_per_node)


@jit(nopython=True, cache=True)
def complete_path_walks(indptr, indices, walks_per_node, bored, seed):
    """
    `walks_per_node` walks from every node counting every node visited.
    A walk also stops on a node without out-links.
    """
    if seed >= 0:
        np.random.seed(seed)

    n = len(indptr) - 1
    counts = np.zeros(n, dtype=np.float64)
    total = 0
    for start in range(n):
        for _ in range(walks_per_node):
            node = start
            counts[node] += 1
            total += 1
            while np.random.random() >= bored:
                degree = indptr[node + 1] - indptr[node]
                if degree == 0:
                    break

                node = indices[indptr[node] + np.random.randint(0, degree)]
                counts[node] += 1
                total += 1

    return counts / total


class PageRank:
    def __init__(self, graph: LinkGraph, bored: float = BORED):
        self.graph = graph
        self.bored = bored
        self.ranks: np.ndarray | None = None

    def __len__(self):
        return len(self.graph)

    def _transition(self, x: np.ndarray, sources, targets, out_degree, dangling):
        """
        x·P where a dangling row of P is uniform and any other row i gives
        `bored / n` to every document plus `(1 - bored) / out(i)` to each out-link.
        """
        n = len(x)
        p1 = 1.0 / n
        p2 = self.bored * p1

        result = np.full(n, p1 * x[dangling].sum() + p2 * x[~dangling].sum())
        result += np.bincount(
            targets,
            weights=x[sources] * (1 - self.bored) / out_degree[sources],
            minlength=n,
        )
        return result

    def power_iteration(
        self, max_iterations: int = MAX_ITERATIONS, epsilon: float = EPSILON
    ) -> np.ndarray:
        n = len(self.graph)
        if n == 0:
            self.ranks = np.zeros(0, dtype=np.float64)
            return self.ranks

        start = time.time()
        sources, targets = self.graph.edges()
        out_degree = self.graph.out_degree.astype(np.float64)
        dangling = out_degree == 0

        x = np.zeros(n, dtype=np.float64)
        x_prime = np.zeros(n, dtype=np.float64)
        x_prime[0] = 1.0

        iterations = 0
        while np.max(np.abs(x - x_prime)) > epsilon and iterations < max_iterations:
            iterations += 1
            x = x_prime
            x_prime = self._transition(x, sources, targets, out_degree, dangling)

        if iterations >= max_iterations:
            logger.warning(f"PageRank did not converge in {max_iterations} iterations")

        logger.info(
            f"PageRank over {n} documents took {iterations} iterations and {time.time() - start:.2f}s"
        )
        self.ranks = x_prime
        return self.ranks

    def monte_carlo_end_point(
        self, walks_per_node: int = 1, seed: int | None = None
    ) -> np.ndarray:
        """Share of walks ending in each document"""
        if len(self.graph) == 0:
            self.ranks = np.zeros(0, dtype=np.float64)
            return self.ranks

        indptr, indices = self.graph.to_csr()
        self.ranks = end_point_walks(
            indptr, indices, walks_per_node, self.bored, -1 if seed is None else seed
        )
        return self.ranks

    def monte_carlo_complete_path(
        self, walks_per_node: int = 1, seed: int | None = None
    ) -> np.ndarray:
        """Share of all visits made to each document"""
        if len(self.graph) == 0:
            self.ranks = np.zeros(0, dtype=np.float64)
            return self.ranks

        indptr, indices = self.graph.to_csr()
        self.ranks = complete_path_walks(
            indptr, indices, walks_per_node, self.bored, -1 if seed is None else seed
        )
        return self.ranks

    def scores(self) -> dict[str, float]:
        if self.ranks is None:
            self.power_iteration()

        return {label: float(score) for label, score in zip(self.graph.labels, self.ranks)}

    def top(self, k: int = 30) -> list[tuple[str, float]]:
        scores = self.scores()
        return sorted(scores.items(), key=lambda x: x[1], reverse=True)[:k]


class PageRankScores:
    """Link scores of term index documents, 0 for documents outside the graph"""

    def __init__(self, scores: dict[str, float], translation: TranslationContext):
        self._scores = scores
        self.translation = translation

    def score(self, doc_id: int) -> float:
        label = self.translation.label_of(doc_id)
        if label is None:
            return 0.0

        return self._scores.get(label, 0.0)


if __name__ == "__main__":
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser()
    parser.add_argument("--links", type=str, required=True)
    parser.add_argument(
        "--method",
        type=str,
        default="power",
        choices=["power", "end-point", "complete-path"],
    )
    parser.add_argument("--walks-per-node", type=int, default=1)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--top", type=int, default=30)
    args = parser.parse_args()

    pagerank = PageRank(LinkGraph.from_file(args.links))
    if args.method == "power":
        pagerank.power_iteration()
    elif args.method == "end-point":
        pagerank.monte_carlo_end_point(args.walks_per_node, args.seed)
    else:
        pagerank.monte_carlo_complete_path(args.walks_per_node, args.seed)

    for label, score in pagerank.top(args.top):
        print(f"{label}: {score:.5f}")
