"""Training from plain-text documents and spam/ham corpus directories."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .model import ClassifierModel
from .store import HAM_LABEL, SPAM_LABEL, TrainedDocumentRegistry, document_digest

LOGGER = logging.getLogger(__name__)
LABELS = (SPAM_LABEL, HAM_LABEL)


@dataclass(frozen=True)
class TrainingResult:
    """Outcome of training a single document."""

    status: str
    label: str
    path: Path
    token_count: int = 0
    reason: str | None = None
    previous_label: str | None = None


def split_tokens(text: str) -> list[str]:
    """Whitespace tokenisation; no other preprocessing is applied."""

    return text.split()


def read_document(path: Path) -> tuple[bytes, list[str]]:
    """Return the raw bytes of a document and its tokens."""

    content = path.read_bytes()
    return content, split_tokens(content.decode("utf-8", errors="replace"))


class Trainer:
    """Feeds labelled documents into a model, skipping ones already trained.

    Trained documents are staged and only written to the registry by
    :meth:`commit`, which callers invoke once the model has been persisted.
    With ``fresh=True`` the registry is not consulted, for retraining an
    empty model from scratch.
    """

    def __init__(
        self,
        model: ClassifierModel,
        *,
        registry: TrainedDocumentRegistry | None = None,
        fresh: bool = False,
    ) -> None:
        self._model = model
        self._registry = registry
        self._fresh = fresh
        self._pending: dict[str, str] = {}

    @property
    def pending(self) -> dict[str, str]:
        """Digests trained since the last commit, mapped to their label."""

        return dict(self._pending)

    def train_file(self, path: Path, label: str) -> TrainingResult:
        """Train one document file under ``label`` ("spam" or "ham")."""

        if label not in LABELS:
            raise ValueError(f"label must be one of {LABELS}, got {label!r}")
        try:
            content, tokens = read_document(path)
        except OSError as exc:
            LOGGER.error("Failed to read document for training (%s): %s", path, exc)
            return TrainingResult(status="read_error", label=label, path=path, reason=str(exc))

        digest = document_digest(content)
        previous = self._previous_label(digest)
        if previous == label:
            LOGGER.debug("Skipping %s; already trained as %s", path, label)
            return TrainingResult(
                status="skipped_duplicate",
                label=label,
                path=path,
                token_count=len(tokens),
                reason="already_trained",
                previous_label=previous,
            )
        if previous is not None:
            LOGGER.warning(
                "Document %s was trained as %s and is now labelled %s; "
                "earlier counts are kept.",
                path,
                previous,
                label,
            )

        self._model.train(tokens, label == SPAM_LABEL)
        self._pending[digest] = label
        return TrainingResult(
            status="trained",
            label=label,
            path=path,
            token_count=len(tokens),
            previous_label=previous,
        )

    def train_corpus(self, corpus_dir: Path) -> list[TrainingResult]:
        """Train every file below ``corpus_dir/spam`` and ``corpus_dir/ham``."""

        results: list[TrainingResult] = []
        for label in LABELS:
            directory = corpus_dir / label
            if not directory.is_dir():
                LOGGER.debug("Skipping missing corpus directory %s", directory)
                continue
            for candidate in _iter_files(directory):
                results.append(self.train_file(candidate, label))
        trained = sum(1 for result in results if result.status == "trained")
        LOGGER.info(
            "Processed %d document(s) from %s, trained %d.",
            len(results),
            corpus_dir,
            trained,
        )
        return results

    def commit(self) -> int:
        """Record staged documents in the registry; returns how many were written.

        In fresh mode the registry is cleared first so it matches the new model.
        """

        if self._registry is None:
            self._pending.clear()
            return 0
        if self._fresh:
            self._registry.reset()
            self._fresh = False
        written = sum(
            1 for digest, label in self._pending.items() if self._registry.add(digest, label)
        )
        self._pending.clear()
        return written

    def _previous_label(self, digest: str) -> str | None:
        staged = self._pending.get(digest)
        if staged is not None:
            return staged
        if self._registry is None or self._fresh:
            return None
        return self._registry.label(digest)


def _iter_files(directory: Path) -> Iterable[Path]:
    return sorted(
        path for path in directory.rglob("*") if path.is_file() and not path.name.startswith(".")
    )


__all__ = ["Trainer", "TrainingResult", "read_document", "split_tokens", "LABELS"]
