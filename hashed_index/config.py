import os
import json
import logging

from dataclasses import dataclass, asdict

from hashed_index.segment.constants import CONFIG_FNAME, MAX_TOKENS, TABLE_SIZE

logger = logging.getLogger(__name__)


@dataclass
class IndexConfig:
    """Settings an index was written with, kept in `<index_dir>/config.json`"""

    kind: str = "scalable"
    table_size: int = TABLE_SIZE
    max_tokens: int = MAX_TOKENS

    def write(self, index_dir: str):
        with open(os.path.join(index_dir, CONFIG_FNAME), "w") as f:
            json.dump(asdict(self), f)

    @staticmethod
    def read(index_dir: str) -> "IndexConfig | None":
        path = os.path.join(index_dir, CONFIG_FNAME)
        if not os.path.exists(path):
            return None

        try:
            with open(path, "r") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Ignoring unreadable index config {path}: {e}")
            return None

        return IndexConfig(
            kind=config.get("kind", "scalable"),
            table_size=int(config.get("table_size", TABLE_SIZE)),
            max_tokens=int(config.get("max_tokens", MAX_TOKENS)),
        )
