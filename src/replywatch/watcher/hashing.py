"""Content digests used to compare screen snapshots for equality."""

from __future__ import annotations

import hashlib
from pathlib import Path

from replywatch.domain.models import CapturedFrame, Snapshot
from replywatch.errors import ConfigurationError

CHUNK_SIZE = 1 << 16


class ContentHasher:
    """Computes fixed-size digests of byte buffers and files.

    Any ``hashlib`` algorithm works; identical bytes always produce
    identical digests, and a single differing byte changes the digest.
    """

    def __init__(self, algorithm: str = "sha256") -> None:
        try:
            hashlib.new(algorithm)
        except ValueError as e:
            raise ConfigurationError(f"Unknown hash algorithm: {algorithm}") from e
        self._algorithm = algorithm

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @property
    def digest_size(self) -> int:
        return hashlib.new(self._algorithm).digest_size

    def digest(self, data: bytes) -> bytes:
        return hashlib.new(self._algorithm, data).digest()

    def digest_file(self, path: Path | str) -> bytes:
        h = hashlib.new(self._algorithm)
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                h.update(chunk)
        return h.digest()

    def snapshot(self, frame: CapturedFrame) -> Snapshot:
        """Digest a captured frame's artifact into a Snapshot."""
        return Snapshot(
            digest=self.digest_file(frame.path),
            captured_at=frame.timestamp,
            source_path=frame.path,
        )
