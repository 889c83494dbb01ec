import os
import logging
import filelock

from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class DocInfo:
    """
    Document names and lengths (in tokens), persisted one document per line:
        <doc_id>;<name>;<length>
    """

    doc_names: dict[int, str] = field(default_factory=dict)
    doc_lengths: dict[int, int] = field(default_factory=dict)

    def __len__(self):
        return len(self.doc_names)

    def update(self, doc_id: int, name: str, length: int):
        self.doc_names[doc_id] = name
        self.doc_lengths[doc_id] = length

    @staticmethod
    def read(path: str) -> "DocInfo":
        doc_info = DocInfo()
        if not os.path.exists(path):
            logger.info(f"No document info at {path}. Starting with an empty one")
            return doc_info

        with open(path, encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.rstrip("\n")
                if not line:
                    continue

                values = line.split(";")
                if len(values) < 3:
                    logger.error(f"Skipping malformed line {line_no} in {path}: {line}")
                    continue

                try:
                    doc_id = int(values[0])
                    length = int(values[-1])
                except ValueError:
                    logger.error(f"Skipping malformed line {line_no} in {path}: {line}")
                    continue

                # names may carry ';' so keep everything between the id and length
                doc_info.update(doc_id, ";".join(values[1:-1]), length)

        logger.info(f"Loaded {len(doc_info)} documents from {path}")
        return doc_info

    def write(self, path: str, append: bool = False):
        lock = filelock.FileLock(path + ".lock")
        logger.debug(f"Locking {path}")
        with lock:
            with open(path, "a" if append else "w", encoding="utf-8") as f:
                for doc_id, name in self.doc_names.items():
                    f.write(f"{doc_id};{name};{self.doc_lengths.get(doc_id, 0)}\n")

        logger.debug(f"Unlocked {path}")
        logger.info(f"Written {len(self)} documents to {path}")
