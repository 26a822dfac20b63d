"""
Result Cache

Content-keyed caching of expensive results. Keys are derived from the inputs
(dataset and pathway fingerprints plus configuration tokens), and storage is a
backend injected by the caller.
"""

from pathlib import Path
from typing import Any, Callable, Dict, Optional
import hashlib
import logging
import os
import pickle
import tempfile

from ..data.omics import OmicsDataset
from ..data.pathways import PathwayCollection

logger = logging.getLogger(__name__)


class MemoryCacheBackend:
    """In-process dictionary storage."""

    def __init__(self):
        self._store: Dict[str, Any] = {}

    def load(self, key: str) -> Optional[Any]:
        return self._store.get(key)

    def save(self, key: str, value: Any) -> None:
        self._store[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def clear(self) -> None:
        self._store.clear()


class PickleCacheBackend:
    """One pickle file per entry, named <key>.pkl, in a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.pkl"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "rb") as f:
            return pickle.load(f)

    def save(self, key: str, value: Any) -> None:
        """Write the entry atomically; a failed dump keeps the previous entry."""
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                pickle.dump(value, f)
            Path(tmp).replace(self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def __contains__(self, key: str) -> bool:
        return self._path(key).exists()

    def clear(self) -> None:
        for path in self.directory.glob("*.pkl"):
            path.unlink()


class ResultCache:
    """
    Load-or-compute cache over a storage backend.

    Example:
        >>> cache = ResultCache(PickleCacheBackend("cache/"))
        >>> key = cache.key_for(dataset, pathways, "module")
        >>> batch = cache.get_or_compute(key, lambda: runner.run(dataset, pathways))
    """

    def __init__(self, backend: Optional[Any] = None):
        """
        Initialize cache.

        Args:
            backend: Object with load(key), save(key, value) and __contains__
                (in-memory storage if None)
        """
        self.backend = backend if backend is not None else MemoryCacheBackend()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(dataset: OmicsDataset, pathways: PathwayCollection, *extra: Any) -> str:
        """SHA-256 key over dataset content, pathway content and extra tokens."""
        digest = hashlib.sha256()
        digest.update(dataset.fingerprint().encode())
        digest.update(pathways.fingerprint().encode())
        for token in extra:
            digest.update(b"\x1f")
            digest.update(repr(token).encode())
        return digest.hexdigest()

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        """Return the cached value for `key`, computing and storing it on a miss."""
        if key in self.backend:
            self.hits += 1
            logger.info(f"Cache hit: {key[:12]}")
            return self.backend.load(key)

        self.misses += 1
        logger.info(f"Cache miss: {key[:12]}, computing")
        value = compute()
        self.backend.save(key, value)
        return value
