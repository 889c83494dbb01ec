import os
from dotenv import load_dotenv

from hashed_index.segment.constants import TABLE_SIZE as DEFAULT_TABLE_SIZE
from hashed_index.segment.constants import MAX_TOKENS as DEFAULT_MAX_TOKENS

load_dotenv()

INDEX_DIR = os.getenv("INDEX_DIR", "index")
TABLE_SIZE = int(os.getenv("TABLE_SIZE", DEFAULT_TABLE_SIZE))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", DEFAULT_MAX_TOKENS))

LINKS_FILE = os.getenv("LINKS_FILE", "linksDavis.txt")
TITLES_FILE = os.getenv("TITLES_FILE", "davisTitles.txt")

INDEX_PARAMS = {
    "index_dir": INDEX_DIR,
    "table_size": TABLE_SIZE,
    "max_tokens": MAX_TOKENS,
}
