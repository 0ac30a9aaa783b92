"""On-disk state: model files, trained-document registry and verdict log."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .config import VerdictLogConfig
from .model import ClassifierModel, load_model
from .types import Verdict

LOGGER = logging.getLogger(__name__)
MODEL_SUFFIX = ".ssnb"
SPAM_LABEL = "spam"
HAM_LABEL = "ham"


class Store:
    """High-level helper responsible for the on-disk state layout."""

    def __init__(self, root_dir: Path, *, verdict_log: VerdictLogConfig | None = None) -> None:
        verdict_log = verdict_log or VerdictLogConfig()
        self.root_dir = root_dir.expanduser()
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self._data_dir = self.root_dir / "data"
        self._trained = TrainedDocumentRegistry(self.root_dir / "trained_documents.txt")
        log_dir = self.root_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        self._verdict_log_path = log_dir / "verdicts.log"
        self._verdict_logger: VerdictLogger | None = None
        if verdict_log.enabled:
            self._verdict_logger = VerdictLogger(
                self._verdict_log_path,
                max_bytes=verdict_log.rotation.max_bytes,
                backups=verdict_log.rotation.backups,
            )

    def model_path(self, name: str) -> Path:
        return self._data_dir / f"{name}{MODEL_SUFFIX}"

    def load_model(self, name: str) -> ClassifierModel:
        """Return the persisted model, or an empty one when none was saved yet.

        Corrupt files are never replaced silently: the decoding error propagates.
        """

        path = self.model_path(name)
        if not path.exists():
            LOGGER.info("No saved model '%s'; starting empty.", name)
            return ClassifierModel()
        return load_model(path)

    def save_model(self, name: str, model: ClassifierModel) -> Path:
        path = self.model_path(name)
        model.save_file(path)
        return path

    def log_verdict(self, source: str, verdict: Verdict, *, token_count: int) -> None:
        """Append a classification outcome for later analysis."""

        if self._verdict_logger is None:
            return
        record = VerdictRecord(
            timestamp=datetime.now(timezone.utc),
            source=source,
            is_spam=verdict.is_spam,
            probability=verdict.probability,
            token_count=token_count,
        )
        self._verdict_logger.append(record)

    @property
    def trained_documents(self) -> TrainedDocumentRegistry:
        return self._trained

    @property
    def verdict_log_path(self) -> Path:
        return self._verdict_log_path


def document_digest(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


class TrainedDocumentRegistry:
    """Append-only registry of document digests and the label they were trained with."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._seen = self._load_existing()

    @property
    def path(self) -> Path:
        return self._path

    def label(self, digest: str) -> str | None:
        """Return the most recently recorded label for ``digest``."""

        with self._lock:
            return self._seen.get(digest)

    def add(self, digest: str, label: str) -> bool:
        """Record a trained document.

        Returns True when the registry changed (new document or new label),
        and False when the existing entry already matches ``label``.
        """

        digest = digest.strip()
        label = label.strip()
        if not digest or not label:
            return False
        with self._lock:
            if self._seen.get(digest) == label:
                return False
            self._seen[digest] = label
            self._append_record(digest, label)
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._seen)

    def reset(self) -> None:
        """Forget every document and delete the backing file."""

        with self._lock:
            self._seen.clear()
            self._path.unlink(missing_ok=True)

    def _append_record(self, digest: str, label: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(f"{digest}\t{label}\n")

    def _load_existing(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        contents: dict[str, str] = {}
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if "\t" not in stripped:
                    continue
                digest, label = stripped.split("\t", 1)
                if digest and label:
                    contents[digest] = label
        return contents


@dataclass(frozen=True)
class VerdictRecord:
    """JSON serialisable representation of a classification event."""

    timestamp: datetime
    source: str
    is_spam: bool
    probability: float
    token_count: int

    def to_json(self) -> str:
        payload = {
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "is_spam": self.is_spam,
            "probability": self.probability,
            "token_count": self.token_count,
        }
        return json.dumps(payload, separators=(",", ":"))


class VerdictLogger:
    """Appends :class:`VerdictRecord` JSON lines, rotating by size.

    When a write would push the live file past ``max_bytes`` the file is
    shifted to ``.1`` (older backups move up one, the one beyond ``backups``
    is dropped). ``max_bytes=0`` never rotates and ``backups=0`` discards the
    full file instead of keeping it.
    """

    def __init__(self, path: Path, *, max_bytes: int = 5_000_000, backups: int = 3) -> None:
        if max_bytes < 0 or backups < 0:
            raise ValueError("max_bytes and backups must not be negative")
        self._path = path
        self._max_bytes = max_bytes
        self._backups = backups
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def backup_paths(self) -> list[Path]:
        """Rotated files that currently exist, newest first."""

        candidates = (self._backup_path(index) for index in range(1, self._backups + 1))
        return [path for path in candidates if path.exists()]

    def append(self, record: VerdictRecord) -> None:
        line = (record.to_json() + "\n").encode("utf-8")
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            if self._needs_rotation(len(line)):
                self._rotate()
            with self._path.open("ab") as handle:
                handle.write(line)

    def _needs_rotation(self, incoming: int) -> bool:
        if self._max_bytes == 0:
            return False
        try:
            size = self._path.stat().st_size
        except FileNotFoundError:
            return False
        return size > 0 and size + incoming > self._max_bytes

    def _rotate(self) -> None:
        if self._backups == 0:
            self._path.unlink(missing_ok=True)
            return
        self._backup_path(self._backups).unlink(missing_ok=True)
        for index in range(self._backups - 1, 0, -1):
            older = self._backup_path(index)
            if older.exists():
                older.replace(self._backup_path(index + 1))
        self._path.replace(self._backup_path(1))
        LOGGER.debug("Rotated verdict log %s", self._path)

    def _backup_path(self, index: int) -> Path:
        return self._path.with_name(f"{self._path.name}.{index}")


__all__ = [
    "Store",
    "TrainedDocumentRegistry",
    "VerdictLogger",
    "VerdictRecord",
    "document_digest",
    "SPAM_LABEL",
    "HAM_LABEL",
]
