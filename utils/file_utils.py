import os
import mmap
import logging
import psutil

logger = logging.getLogger(__name__)


class MMappedFile:
    def __init__(self, path: str):
        self.path = path
        self.data = None

    def load(self):
        with open(self.path, "rb") as f:
            self.data = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)

        return self

    def read(self, position: int, size: int) -> bytes:
        if self.data is None:
            raise ValueError(f"File {self.path} not loaded")

        return self.data[position : position + size]

    def __len__(self):
        return 0 if self.data is None else len(self.data)

    def close(self):
        if self.data is not None:
            self.data.close()
        self.data = None


class InMemoryFile:
    def __init__(self, path: str):
        self.path = path
        self.data = None

    def load(self):
        with open(self.path, "rb") as f:
            self.data = f.read()

        return self

    def read(self, position: int, size: int) -> bytes:
        if self.data is None:
            raise ValueError(f"File {self.path} not loaded")

        return self.data[position : position + size]

    def __len__(self):
        return 0 if self.data is None else len(self.data)

    def close(self):
        self.data = None


def is_space_available(path: str, max_size: int = 1024 * 1024 * 1024) -> bool:
    file_size = os.path.getsize(path)
    available_memory = psutil.virtual_memory().available
    available_memory = min(available_memory, max_size)

    return file_size < available_memory


def open_readonly(path: str, keep_in_memory: bool = True) -> MMappedFile | InMemoryFile:
    """
    Loads small files into memory and memory-maps the rest.
    Empty files cannot be mapped so they are always read into memory.
    """
    if os.path.getsize(path) == 0 or (keep_in_memory and is_space_available(path)):
        logger.debug(f"Loading {path} into memory")
        return InMemoryFile(path).load()

    logger.debug(f"Loading {path} into mmap")
    return MMappedFile(path).load()
