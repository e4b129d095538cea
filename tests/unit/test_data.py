import gzip
import json
import struct

import numpy as np
import pytest

from scratchnet.data import DatasetError, available_datasets, get_dataset, load_images
from scratchnet.data import cache
from scratchnet.data.cache import (
    CacheError,
    CacheManifest,
    checksum_matches,
    fetch,
    offline_requested,
    sha256sum,
)
from scratchnet.data.idx import read_idx_images, write_idx_images, write_idx_labels
from scratchnet.data.mnist import FILES, fixture_arrays
from scratchnet.data.utils import deterministic_split


def test_idx_pair_round_trip(tmp_path):
    pixels, labels = fixture_arrays(5)
    images_path = write_idx_images(tmp_path / "images-idx3-ubyte", pixels)
    labels_path = write_idx_labels(tmp_path / "labels-idx1-ubyte", labels)

    header = images_path.read_bytes()[:16]
    assert struct.unpack(">iiii", header) == (2051, 5, 28, 28)
    images = load_images(images_path, labels_path)
    assert [image.label for image in images] == labels.tolist()
    assert images[2].pixels == pixels[2].tobytes()


def test_gzip_files_are_read_transparently(tmp_path):
    pixels, labels = fixture_arrays(3)
    images_path = write_idx_images(tmp_path / "train-images.gz", pixels)
    labels_path = write_idx_labels(tmp_path / "train-labels.gz", labels)
    with gzip.open(images_path, "rb") as handle:
        assert handle.read(4) == struct.pack(">i", 2051)
    assert len(load_images(images_path, labels_path, limit=2)) == 2


def test_bad_magic(tmp_path):
    labels_path = write_idx_labels(tmp_path / "labels", [1, 2, 3])
    with pytest.raises(DatasetError, match="magic"):
        read_idx_images(labels_path)


def test_wrong_dimensions_and_truncation(tmp_path):
    odd = tmp_path / "odd"
    odd.write_bytes(struct.pack(">iiii", 2051, 1, 27, 28) + bytes(27 * 28))
    with pytest.raises(DatasetError):
        read_idx_images(odd)

    short = tmp_path / "short"
    short.write_bytes(struct.pack(">iiii", 2051, 2, 28, 28) + bytes(100))
    with pytest.raises(DatasetError):
        read_idx_images(short)


def test_count_mismatch(tmp_path):
    pixels, labels = fixture_arrays(3)
    images_path = write_idx_images(tmp_path / "images", pixels)
    labels_path = write_idx_labels(tmp_path / "labels", labels[:2])
    with pytest.raises(DatasetError, match="mismatch"):
        load_images(images_path, labels_path)


def test_missing_file(tmp_path):
    with pytest.raises(DatasetError):
        load_images(tmp_path / "nope", tmp_path / "nope-either")


def test_fixture_arrays_are_stable():
    pixels, labels = fixture_arrays(12)
    again, labels_again = fixture_arrays(12)
    assert pixels.dtype == np.uint8 and pixels.shape == (12, 784)
    assert np.array_equal(pixels, again)
    assert labels.tolist() == [(i * 7) % 10 for i in range(12)]
    assert np.array_equal(labels, labels_again)


def test_offline_requested(monkeypatch):
    monkeypatch.delenv("SCRATCHNET_DATA_OFFLINE", raising=False)
    assert offline_requested() is True
    monkeypatch.setenv("SCRATCHNET_DATA_OFFLINE", "0")
    assert offline_requested() is False
    assert offline_requested(True) is True


def test_offline_fetch_builds_once_and_records(tmp_path):
    calls = []

    def builder(path):
        calls.append(path)
        path.write_bytes(b"fixture")

    for _ in range(2):
        path, record = fetch("demo/file", "file.bin", offline=True, offline_builder=builder, cache_dir=tmp_path)
    assert len(calls) == 1
    assert path == tmp_path / "offline" / "file.bin"
    assert record["mode"] == "offline"
    assert record["checksum"] == sha256sum(path)

    manifest = json.loads((tmp_path / "manifest.json").read_text())
    assert manifest["demo/file"]["local_path"] == str(path)
    assert CacheManifest(tmp_path).get("demo/file")["mode"] == "offline"


def test_offline_fetch_without_builder(tmp_path):
    with pytest.raises(CacheError):
        fetch("demo/file", "file.bin", offline=True, cache_dir=tmp_path)


def test_online_fetch_reuses_verified_cache(tmp_path):
    target = tmp_path / "file.bin"
    target.write_bytes(b"cached")
    digest = sha256sum(target)
    path, record = fetch("demo/file", "file.bin", offline=False, checksum=digest, cache_dir=tmp_path)
    assert path == target
    assert record["mode"] == "cache"


def test_online_fetch_without_mirrors_fails(tmp_path):
    (tmp_path / "file.bin").write_bytes(b"stale")
    with pytest.raises(CacheError):
        fetch("demo/file", "file.bin", offline=False, checksum="0" * 64, cache_dir=tmp_path)
    assert not (tmp_path / "file.bin").exists()


def test_deterministic_split():
    split = deterministic_split(100, val_split=0.2, seed=3)
    again = deterministic_split(100, val_split=0.2, seed=3)
    assert split.sizes == {"train": 80, "val": 20}
    assert np.array_equal(split.val, again.val)
    assert not set(split.train.tolist()) & set(split.val.tolist())
    with pytest.raises(ValueError):
        deterministic_split(10, val_split=1.0)


def test_mnist_fixture_through_registry(tmp_path):
    assert "mnist" in available_datasets()
    spec = get_dataset("mnist", offline=True, cache_dir=tmp_path, val_split=0.1, seed=0)
    assert spec.splits == {"train": 230, "val": 26, "test": 64}
    assert spec.num_features == 784 and spec.num_classes == 10
    assert all(0 <= image.label < 10 for image in spec.train + spec.val + spec.test)
    assert spec.provenance["train_images"]["mode"] == "offline"

    limited = get_dataset("mnist", offline=True, cache_dir=tmp_path, val_split=0.1, max_items=50)
    assert len(limited.train) + len(limited.val) == 50


def test_unknown_dataset():
    with pytest.raises(KeyError):
        get_dataset("cifar")


def test_checksum_matches_supports_algorithm_prefix(tmp_path):
    path = tmp_path / "blob"
    path.write_bytes(b"abc")
    assert checksum_matches(path, "md5:900150983cd24fb0d6963f7d28e17f72")
    assert checksum_matches(path, "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad")
    assert not checksum_matches(path, "md5:" + "0" * 32)


def test_corrupt_download_is_rejected_and_removed(tmp_path, monkeypatch):
    attempts = []

    def fake_download(url, target):
        attempts.append(url)
        target.write_bytes(b"not a gzip archive")

    monkeypatch.setattr(cache, "_download", fake_download)
    monkeypatch.setattr(cache.time, "sleep", lambda seconds: None)
    with pytest.raises(CacheError):
        fetch(
            "demo/file",
            "file.gz",
            mirrors=["https://a.example/", "https://b.example/"],
            checksum="md5:" + "0" * 32,
            offline=False,
            cache_dir=tmp_path,
            retries=1,
        )
    assert attempts == ["https://a.example/file.gz"] * 2 + ["https://b.example/file.gz"] * 2
    assert not (tmp_path / "file.gz").exists()


def test_mnist_online_refetches_corrupt_cached_archive(tmp_path, monkeypatch):
    assert all(checksum.startswith("md5:") for _, checksum in FILES.values())
    filename = FILES["train_images"][0]
    (tmp_path / filename).write_bytes(b"truncated")
    fetched = []

    def fake_download(url, target):
        fetched.append(url)
        target.write_bytes(b"still wrong")

    monkeypatch.setattr(cache, "_download", fake_download)
    monkeypatch.setattr(cache.time, "sleep", lambda seconds: None)
    with pytest.raises(CacheError):
        get_dataset("mnist", offline=False, cache_dir=tmp_path)
    assert fetched and all(url.endswith(filename) for url in fetched)
    assert not (tmp_path / filename).exists()


def test_interrupted_download_leaves_no_file(tmp_path, monkeypatch):
    import urllib.request

    class _Interrupted:
        def __init__(self):
            self.sent = False

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def read(self, size=-1):
            if self.sent:
                raise OSError("connection reset")
            self.sent = True
            return b"partial"

    monkeypatch.setattr(urllib.request, "urlopen", lambda url, timeout: _Interrupted())
    target = tmp_path / "file.gz"
    with pytest.raises(OSError):
        cache._download("https://a.example/file.gz", target)
    assert not target.exists()
    assert not (tmp_path / "file.gz.part").exists()
