import os
import re
import logging
import numpy as np

logger = logging.getLogger(__name__)

# Documents the link graph keeps in memory
MAX_NUMBER_OF_DOCS = 2_000_000


def file_name(path: str) -> str:
    """`davisWiki/hello.f` -> `hello.f`"""
    return re.split(r"[\\/]", path)[-1]


class LinkGraph:
    """
    Directed graph over documents named by labels from a link file.
    Nodes get dense indices in the order they are first seen.
    """

    def __init__(self, max_docs: int = MAX_NUMBER_OF_DOCS):
        self.max_docs = max_docs
        self.labels: list[str] = []
        self.index_of: dict[str, int] = {}
        self.out_links: dict[int, set[int]] = {}
        self.truncated = False

    def __len__(self):
        return len(self.labels)

    def __contains__(self, label: str):
        return label in self.index_of

    def add_node(self, label: str) -> int | None:
        """Index of `label`, or None once the graph is full"""
        idx = self.index_of.get(label)
        if idx is not None:
            return idx

        if len(self.labels) >= self.max_docs:
            if not self.truncated:
                logger.warning(
                    f"Link graph is full at {self.max_docs} documents, ignoring the rest of the input"
                )
            self.truncated = True
            return None

        idx = len(self.labels)
        self.labels.append(label)
        self.index_of[label] = idx
        return idx

    def add_edge(self, source: int, target: int):
        self.out_links.setdefault(source, set()).add(target)

    @property
    def out_degree(self) -> np.ndarray:
        degree = np.zeros(len(self), dtype=np.int64)
        for source, targets in self.out_links.items():
            degree[source] = len(targets)

        return degree

    def edges(self) -> tuple[np.ndarray, np.ndarray]:
        """(sources, targets) of every edge, grouped by ascending source"""
        sources = []
        targets = []
        for source in sorted(self.out_links):
            for target in sorted(self.out_links[source]):
                sources.append(source)
                targets.append(target)

        return np.array(sources, dtype=np.int64), np.array(targets, dtype=np.int64)

    def to_csr(self) -> tuple[np.ndarray, np.ndarray]:
        """(indptr, indices) so that the out-links of node i are indices[indptr[i]:indptr[i + 1]]"""
        _, targets = self.edges()
        indptr = np.zeros(len(self) + 1, dtype=np.int64)
        indptr[1:] = np.cumsum(self.out_degree)
        return indptr, targets

    @staticmethod
    def from_file(
        path: str, max_docs: int = MAX_NUMBER_OF_DOCS, keep: set[str] | None = None
    ) -> "LinkGraph":
        """
        Reads lines of `<label>;<out_label>,<out_label>,...`.

        With `keep`, only the documents in `keep` and their neighbours enter
        the graph, along with the edges that touch a document in `keep`.
        """
        graph = LinkGraph(max_docs)
        if not os.path.exists(path):
            logger.error(f"Link file {path} not found")
            return graph

        with open(path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                separator = line.find(";")
                if separator == -1:
                    logger.error(f"Skipping malformed line {line_no} in {path}: {line}")
                    continue

                label = line[:separator]
                targets = [t for t in line[separator + 1 :].split(",") if t]
                source_kept = keep is None or label in keep

                source = graph.add_node(label) if source_kept else None
                if graph.truncated:
                    break

                for target_label in targets:
                    if not source_kept and target_label not in keep:
                        continue

                    if source is None:
                        source = graph.add_node(label)
                    target = graph.add_node(target_label)
                    if source is None or target is None:
                        break

                    graph.add_edge(source, target)

                if graph.truncated:
                    break

        logger.info(
            f"Read {len(graph)} documents and {sum(len(t) for t in graph.out_links.values())} links from {path}"
        )
        return graph


def read_titles(path: str) -> dict[str, str]:
    """Lines of `<node_id>;<title>` as node id -> title"""
    titles = {}
    if not os.path.exists(path):
        logger.error(f"Titles file {path} not found")
        return titles

    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.rstrip("\n")
            if not line:
                continue

            node_id, separator, title = line.partition(";")
            node_id = node_id.strip()
            if not separator or not node_id.isdigit():
                logger.error(f"Skipping malformed line {line_no} in {path}: {line}")
                continue

            titles[node_id] = title

    logger.info(f"Read {len(titles)} titles from {path}")
    return titles


class TranslationContext:
    """
    Maps doc_ids of the term index to labels of the link graph and back.

    A document is matched through the file name of its path. Without titles
    the file name is the label, otherwise the label is the node id that the
    titles map to that file name.
    """

    def __init__(self, doc_names: dict[int, str], titles: dict[str, str] | None = None):
        self.doc_names = doc_names
        self.doc_id_by_title = {file_name(name): doc_id for doc_id, name in doc_names.items()}

        self.titles: dict[str, str] = {}
        self.node_by_title: dict[str, str] = {}
        if titles:
            self.set_titles(titles)

    def set_titles(self, titles: dict[str, str]):
        self.titles = dict(titles)
        self.node_by_title = {title: node_id for node_id, title in self.titles.items()}

    def load_titles(self, path: str):
        self.set_titles(read_titles(path))

    def label_of(self, doc_id: int) -> str | None:
        name = self.doc_names.get(doc_id)
        if name is None:
            return None

        title = file_name(name)
        if not self.titles:
            return title

        return self.node_by_title.get(title)

    def doc_of(self, label: str) -> int | None:
        title = self.titles.get(label) if self.titles else label
        if title is None:
            return None

        return self.doc_id_by_title.get(title)
