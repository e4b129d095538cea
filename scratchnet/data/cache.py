"""Offline-first download cache for dataset files."""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, MutableMapping, Sequence

MANIFEST_NAME = "manifest.json"


class CacheError(RuntimeError):
    """Raised when a dataset file cannot be fetched or fails verification."""


def default_cache_dir() -> Path:
    env_dir = os.environ.get("SCRATCHNET_CACHE_DIR")
    return Path(env_dir) if env_dir else Path.home() / ".cache" / "scratchnet"


def offline_requested(offline: bool | None = None) -> bool:
    """Resolve offline mode from the argument, then ``SCRATCHNET_DATA_OFFLINE``."""

    if offline is not None:
        return bool(offline)
    return os.environ.get("SCRATCHNET_DATA_OFFLINE", "1") == "1"


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    digest = hashlib.new(algorithm)
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


def sha256sum(path: Path) -> str:
    return file_digest(path, "sha256")


def checksum_matches(path: Path, checksum: str) -> bool:
    """Compare ``path`` against ``checksum``.

    ``checksum`` is ``"<algorithm>:<hex>"`` (for example ``"md5:..."``); a bare
    hex string is taken as sha256.
    """

    algorithm, sep, expected = checksum.partition(":")
    if not sep:
        algorithm, expected = "sha256", checksum
    return file_digest(path, algorithm.lower()) == expected.lower()


@dataclass
class CacheManifest:
    """JSON record of every file the cache has produced, keyed by asset name."""

    cache_dir: Path = field(default_factory=default_cache_dir)
    entries: MutableMapping[str, Mapping[str, object]] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._path = self.cache_dir / MANIFEST_NAME
        if self._path.exists():
            try:
                self.entries = json.loads(self._path.read_text())
            except json.JSONDecodeError:
                self.entries = {}

    def record(self, name: str, metadata: Mapping[str, object]) -> None:
        snapshot = dict(metadata)
        snapshot.setdefault("recorded_at", time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))
        self.entries[name] = snapshot
        self._path.write_text(json.dumps(self.entries, indent=2, sort_keys=True))

    def get(self, name: str) -> Mapping[str, object] | None:
        return self.entries.get(name)


def fetch(
    name: str,
    filename: str,
    *,
    mirrors: Sequence[str] = (),
    checksum: str | None = None,
    offline: bool | None = None,
    offline_builder: Callable[[Path], None] | None = None,
    cache_dir: str | Path | None = None,
    retries: int = 2,
    manifest: CacheManifest | None = None,
) -> tuple[Path, Mapping[str, object]]:
    """Return a local path for ``filename``.

    Offline mode materialises the file with ``offline_builder``.  Otherwise a
    cached copy is reused when its checksum still matches, and each mirror is
    tried in turn (``mirror + filename``) with ``retries`` extra attempts.
    """

    root = Path(cache_dir) if cache_dir is not None else default_cache_dir()
    manifest = manifest or CacheManifest(root)

    if offline_requested(offline):
        if offline_builder is None:
            raise CacheError(f"Offline mode requested for {name!r} but no fixture builder given")
        path = root / "offline" / filename
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            offline_builder(path)
        record = _make_record(name, "offline-fixture", path, None, mode="offline")
        manifest.record(name, record)
        return path, record

    target = root / filename
    if target.exists():
        if checksum is None or checksum_matches(target, checksum):
            record = _make_record(name, str(target), target, checksum, mode="cache")
            manifest.record(name, record)
            return target, record
        target.unlink()

    last_error: Exception | None = None
    for mirror in mirrors:
        url = mirror.rstrip("/") + "/" + filename
        for attempt in range(retries + 1):
            try:
                _download(url, target)
                record = _make_record(name, url, target, checksum, mode="download")
                manifest.record(name, record)
                return target, record
            except (OSError, CacheError) as exc:
                last_error = exc
                target.unlink(missing_ok=True)
                time.sleep(min(2**attempt, 5))
    raise CacheError(f"Failed to fetch {name!r} from {len(mirrors)} mirror(s): {last_error}")


def _download(url: str, target: Path) -> None:
    import urllib.request

    target.parent.mkdir(parents=True, exist_ok=True)
    # Stream into a sibling file so an interrupted transfer never lands at target.
    partial = target.with_name(target.name + ".part")
    try:
        with urllib.request.urlopen(url, timeout=60) as response, partial.open("wb") as handle:
            shutil.copyfileobj(response, handle)
        partial.replace(target)
    finally:
        partial.unlink(missing_ok=True)


def _make_record(
    name: str,
    source: str,
    path: Path,
    checksum: str | None,
    *,
    mode: str,
) -> Mapping[str, object]:
    if checksum and not checksum_matches(path, checksum):
        raise CacheError(f"Checksum mismatch for {name!r}: {path} does not match {checksum}")
    digest = sha256sum(path)
    return {
        "name": name,
        "source": source,
        "local_path": str(path),
        "checksum": digest,
        "mode": mode,
    }


__all__ = [
    "CacheError",
    "CacheManifest",
    "checksum_matches",
    "default_cache_dir",
    "fetch",
    "offline_requested",
    "sha256sum",
]
