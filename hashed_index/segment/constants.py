import hashlib
import struct

# The dictionary hash table on disk can fit this many entries
TABLE_SIZE = 611953

# Tokens held in memory before the scalable index flushes a generation
MAX_TOKENS = 7_000_000

SIZE_KEY = {
    "entry": "<iqi",  # hash, data pointer, record length
    "hash": "<i",
}

READ_SIZE_KEY = {
    "<iqi": 16,
    "<i": 4,
}

ENTRY_SIZE = READ_SIZE_KEY[SIZE_KEY["entry"]]

# Written at the start of every data file so that pointer 0 never addresses a record
DATA_HEADER = b"0"

DICTIONARY_FNAME = "dictionary"
DATA_FNAME = "data"
TERMS_FNAME = "terms"
DOCINFO_FNAME = "docInfo"
CONFIG_FNAME = "config.json"

# Generation name of the canonical, fully merged segment
FINAL = "final"


def term_hash(term: str) -> int:
    """
    Stable signed 32-bit hash of the term's UTF-8 bytes.
    0 marks an empty dictionary slot so it is never returned.
    """
    digest = hashlib.blake2b(term.encode("utf-8"), digest_size=4).digest()
    value = struct.unpack(SIZE_KEY["hash"], digest)[0]
    return value if value != 0 else 1


def home_slot(hash_value: int, table_size: int = TABLE_SIZE) -> int:
    return hash_value % table_size


def segment_filenames(generation: int | str) -> tuple[str, str, str]:
    """(dictionary, data, terms) file names for a generation; FINAL maps to the canonical names"""
    if generation == FINAL:
        return DICTIONARY_FNAME, DATA_FNAME, f"{TERMS_FNAME}.fst"

    return (
        f"{DICTIONARY_FNAME}{generation}",
        f"{DATA_FNAME}{generation}",
        f"{TERMS_FNAME}{generation}.fst",
    )
