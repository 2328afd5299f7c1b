"""
Categorized fuzzing corpus loaded from the packaged assets directory.

String corpora are indexed by line length so the substitution resolver can pick
entries satisfying length constraints; file corpora keep raw bytes and a MIME type.
"""
import logging
import threading
import time
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from routefuzz.core.config import settings
from routefuzz.core.errors import UnrecognizedAssetError

logger = logging.getLogger(__name__)


ASSETS: Dict[str, Dict[str, List[str]]] = {
    "string": {
        "generic": [
            "Fuzzing/UnixAttacks.fuzzdb.txt",
            "Fuzzing/big-list-of-naughty-strings.txt",
            "Fuzzing/Command-Injection-commix.txt",
        ],
        "sql": [
            "Fuzzing/Generic-SQLi.txt",
            "Fuzzing/Polyglots/SQLi-Polyglots.txt",
        ],
        "noSql": [
            "Fuzzing/NoSQL.txt",
        ],
        "JSON": [
            "Fuzzing/JSON.Fuzzing.txt",
        ],
        "XSS": [
            "Fuzzing/Polyglots/XSS-Polyglot-Ultimate-0xsobky.txt",
            "Fuzzing/Polyglots/XSS-Polyglots.txt",
        ],
        "URI": [
            "Fuzzing/URI-XSS.fuzzdb.txt",
        ],
        "userAgent": [
            "Fuzzing/UserAgents.fuzz.txt",
        ],
    },
    "file": {
        "image": [
            "Payloads/Images/lottapixel.jpg",
            "Payloads/Images/uber.gif",
        ],
        "zip": [
            "Payloads/Zip-Bombs/zip-bomb.zip",
        ],
    },
}

MIME_TYPES = {
    ".zip": "application/zip",
    ".gif": "image/gif",
}


@dataclass(frozen=True)
class PayloadFile:
    """A binary payload."""
    name: str
    mime: str
    data: bytes


StringBuckets = Dict[int, List[str]]
FileEntries = Dict[str, PayloadFile]


@dataclass
class Corpus:
    """Merged view over the requested corpus categories."""
    string: Optional[StringBuckets] = None
    file: Optional[FileEntries] = None

    @cached_property
    def lengths(self) -> List[int]:
        """Ascending list of available string lengths."""
        return sorted(self.string) if self.string else []

    @property
    def min_length(self) -> Optional[int]:
        return self.lengths[0] if self.lengths else None

    @property
    def max_length(self) -> Optional[int]:
        return self.lengths[-1] if self.lengths else None


class CorpusStore:
    """Loads corpus categories from disk and caches them per name."""

    def __init__(self, assets_dir: Optional[Union[str, Path]] = None, assets: Optional[Dict] = None):
        """
        Initialize store.

        Args:
            assets_dir: Directory the asset paths are relative to
            assets: Registry of category -> name -> relative paths
        """
        self.assets_dir = Path(assets_dir or settings.ASSETS_DIR)
        self.assets = assets or ASSETS
        self._cache: Dict[str, Dict[str, Union[StringBuckets, FileEntries]]] = {"string": {}, "file": {}}
        self._lock = threading.Lock()

    def load(self, keys: Union[str, Iterable[str]]) -> Corpus:
        """
        Load the requested corpus keys.

        Args:
            keys: "all", "<category>.all" or "<category>.<name>" entries

        Returns:
            Corpus with string buckets merged by length and files merged by name
        """
        if isinstance(keys, str):
            keys = [keys]

        strings: Dict[str, StringBuckets] = {}
        files: Dict[str, FileEntries] = {}

        for key in keys:
            if key == "all":
                for name in self.assets["string"]:
                    strings[name] = self.load_strings(name)
                for name in self.assets["file"]:
                    files[name] = self.load_files(name)
                continue

            category, _, name = key.partition(".")
            if category == "string":
                loader, target = self.load_strings, strings
            elif category == "file":
                loader, target = self.load_files, files
            else:
                raise UnrecognizedAssetError(f"Unrecognized path {key}", details={"key": key})

            if name == "all":
                for asset_name in self.assets[category]:
                    target[asset_name] = loader(asset_name)
            else:
                target[name] = loader(name)

        corpus = Corpus()
        if strings:
            corpus.string = {}
            for buckets in strings.values():
                for length, entries in buckets.items():
                    if length in corpus.string:
                        corpus.string[length] = corpus.string[length] + entries
                    else:
                        corpus.string[length] = entries
        if files:
            corpus.file = {}
            for entries in files.values():
                corpus.file.update(entries)

        return corpus

    def load_strings(self, name: str) -> StringBuckets:
        """Load one string corpus, bucketed by line length."""
        with self._lock:
            cached = self._cache["string"].get(name)
            if cached is not None:
                return cached

            if name not in self.assets["string"]:
                raise UnrecognizedAssetError(f"Unrecognized string payload {name}", details={"name": name})

            started = time.perf_counter()
            buckets: StringBuckets = {}
            for relative in self.assets["string"][name]:
                text = self._read(relative).decode("utf-8")
                for line in text.split("\n"):
                    if not line.strip() or line.startswith("#"):
                        continue
                    buckets.setdefault(len(line), []).append(line)

            logger.debug(f"Loaded string corpus {name}: {sum(map(len, buckets.values()))} entries "
                         f"in {time.perf_counter() - started:.4f}s")
            self._cache["string"][name] = buckets
            return buckets

    def load_files(self, name: str) -> FileEntries:
        """Load one file corpus keyed by base filename."""
        with self._lock:
            cached = self._cache["file"].get(name)
            if cached is not None:
                return cached

            if name not in self.assets["file"]:
                raise UnrecognizedAssetError(f"Unrecognized file payload {name}", details={"name": name})

            entries: FileEntries = {}
            for relative in self.assets["file"][name]:
                path = Path(relative)
                entries[path.name] = PayloadFile(
                    name=path.name,
                    mime=MIME_TYPES.get(path.suffix, "image/jpeg"),
                    data=self._read(relative),
                )

            logger.debug(f"Loaded file corpus {name}: {', '.join(entries)}")
            self._cache["file"][name] = entries
            return entries

    def available(self) -> Dict[str, List[str]]:
        """Registered categories and names."""
        return {category: list(names) for category, names in self.assets.items()}

    def clear(self):
        with self._lock:
            self._cache = {"string": {}, "file": {}}

    def _read(self, relative: str) -> bytes:
        return (self.assets_dir / relative).read_bytes()


default_store = CorpusStore()


def load_corpus(keys: Union[str, Iterable[str]]) -> Corpus:
    """Load corpus keys through the process-wide store."""
    return default_store.load(keys)


def available_assets() -> Dict[str, List[str]]:
    return default_store.available()
