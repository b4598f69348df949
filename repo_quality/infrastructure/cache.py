"""Two-tier (memory + JSON files) cache for analysis results."""
import json
import logging
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
from repo_quality.domain.models import CacheStats


logger = logging.getLogger(__name__)

DEFAULT_TTL = 24 * 60 * 60  # seconds

_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with its creation time and time-to-live (both in seconds)."""
    data: Any
    timestamp: float
    ttl: float

    def is_valid(self, now: Optional[float] = None) -> bool:
        current = time.time() if now is None else now
        return current - self.timestamp < self.ttl


def safe_filename(key: str) -> str:
    """Replace path-unsafe characters in a key with underscores."""
    return _UNSAFE_FILENAME_CHARS.sub("_", key)


class TwoTierCache:
    """Key-value cache with TTL, checked in memory first and then on disk.

    Expired entries are evicted lazily on access. The disk tier is optional:
    when the directory cannot be created or written, the cache degrades to
    memory only and logs a warning instead of failing.
    """

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        default_ttl: float = DEFAULT_TTL,
        encoder: Optional[Callable[[Any], Any]] = None,
        decoder: Optional[Callable[[Any], Any]] = None
    ):
        """Initialize the cache.

        Args:
            directory: Directory for persisted entries (None for memory only)
            default_ttl: TTL in seconds used when set() is called without one
            encoder: Converts a value into JSON-serializable data for disk
            decoder: Rebuilds a value from data read back from disk
        """
        self._memory: Dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._encoder = encoder or (lambda value: value)
        self._decoder = decoder or (lambda data: data)
        self._directory: Optional[Path] = None

        if directory:
            path = Path(directory)
            try:
                path.mkdir(parents=True, exist_ok=True)
                self._directory = path
            except OSError as e:
                logger.warning(f"Failed to create cache directory {path}: {e}. Using memory only")

    @property
    def persistent(self) -> bool:
        return self._directory is not None

    @staticmethod
    def repository_key(owner: str, name: str) -> str:
        """Get the cache key for a repository.

        GitHub owner and repository names are case-insensitive, so the key
        is lowercased.
        """
        return f"repo:{owner}/{name}".lower()

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None on a miss.

        A valid disk entry is promoted into memory. When neither tier holds
        a valid entry, stale copies are removed from both.
        """
        entry = self._memory.get(key)
        if entry is not None and entry.is_valid():
            return entry.data

        if self._directory is not None:
            entry = self._read_from_disk(key)
            if entry is not None and entry.is_valid():
                self._memory[key] = entry
                return entry.data

        self.delete(key)
        return None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            data=value,
            timestamp=time.time(),
            ttl=ttl if ttl is not None else self._default_ttl
        )

        self._memory[key] = entry

        if self._directory is not None:
            self._write_to_disk(key, entry)

    def delete(self, key: str) -> None:
        self._memory.pop(key, None)

        if self._directory is not None:
            try:
                self._file_path(key).unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to delete cache file for {key}: {e}")

    def clear(self) -> None:
        """Remove every entry from both tiers and recreate the cache directory."""
        self._memory.clear()

        if self._directory is not None:
            try:
                shutil.rmtree(self._directory, ignore_errors=True)
                self._directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Failed to clear disk cache: {e}")

    def get_stats(self) -> CacheStats:
        disk_items = 0
        total_size = 0

        if self._directory is not None and self._directory.exists():
            try:
                for path in self._directory.iterdir():
                    if path.is_file():
                        disk_items += 1
                        total_size += path.stat().st_size
            except OSError as e:
                logger.warning(f"Failed to get cache stats: {e}")

        return CacheStats(
            memory_items=len(self._memory),
            disk_items=disk_items,
            total_size=total_size
        )

    def _file_path(self, key: str) -> Path:
        return self._directory / f"{safe_filename(key)}.json"

    def _write_to_disk(self, key: str, entry: CacheEntry) -> None:
        try:
            payload = {
                "data": self._encoder(entry.data),
                "timestamp": entry.timestamp,
                "ttl": entry.ttl,
            }
            self._file_path(key).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save cache entry {key} to disk: {e}")

    def _read_from_disk(self, key: str) -> Optional[CacheEntry]:
        path = self._file_path(key)
        if not path.exists():
            return None

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry(
                data=self._decoder(payload["data"]),
                timestamp=float(payload["timestamp"]),
                ttl=float(payload["ttl"])
            )
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load cache entry {key} from disk: {e}")
            return None
