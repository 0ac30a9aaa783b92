"""Set-of-words Naive Bayes spam classifier."""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

import numpy as np
from scipy.special import expit

from .codec import ModelCounts, decode, encode
from .locking import ReadWriteLock
from .types import Explanation, Indicator, ModelStats, TokenDetail, Verdict

LOGGER = logging.getLogger(__name__)

COLD_START_VERDICT = Verdict(is_spam=False, probability=0.5)
TOP_INDICATORS = 3


class ModelNotTrainedError(RuntimeError):
    """Raised when an explanation is requested from an untrained model."""


class ClassifierModel:
    """Online spam/ham classifier over document token sets.

    A document counts once per distinct token. Conditional probabilities use
    add-one smoothing and are always derived from the raw counts, so a saved
    and reloaded model reproduces every result exactly.
    """

    def __init__(self) -> None:
        self._spam_documents = 0
        self._ham_documents = 0
        self._word_spam_counts: dict[str, int] = {}
        self._word_ham_counts: dict[str, int] = {}
        self._lock = ReadWriteLock()

    def train(self, tokens: Iterable[str], is_spam: bool) -> None:
        """Record one labelled document."""

        document = unique_tokens(tokens)
        with self._lock.write_locked():
            if is_spam:
                self._spam_documents += 1
                counts = self._word_spam_counts
            else:
                self._ham_documents += 1
                counts = self._word_ham_counts
            for token in document:
                counts[token] = counts.get(token, 0) + 1
        LOGGER.debug(
            "Trained %s document with %d distinct token(s)",
            "spam" if is_spam else "ham",
            len(document),
        )

    def is_spam(self, tokens: Iterable[str]) -> Verdict:
        """Return the verdict and spam probability for a document."""

        document = unique_tokens(tokens)
        with self._lock.read_locked():
            if not self._is_trained():
                return COLD_START_VERDICT
            spam_probs, ham_probs = self._conditional_probabilities(document)
            posterior = self._posterior_spam(spam_probs, ham_probs)
        return Verdict(is_spam=posterior >= 0.5, probability=posterior)

    def explain(self, tokens: Iterable[str]) -> Explanation:
        """Break a verdict down into priors, posteriors and per-token evidence."""

        document = unique_tokens(tokens)
        with self._lock.read_locked():
            if not self._is_trained():
                raise ModelNotTrainedError("cannot explain a verdict before any training")
            prior_spam, prior_ham = self._priors()
            spam_probs, ham_probs = self._conditional_probabilities(document)
            posterior = self._posterior_spam(spam_probs, ham_probs)

        contributions = np.log(spam_probs) - np.log(ham_probs)
        details = tuple(
            TokenDetail(
                token=token,
                spam_probability=float(spam_probs[index]),
                ham_probability=float(ham_probs[index]),
                contribution=float(contributions[index]),
            )
            for index, token in enumerate(document)
        )
        return Explanation(
            is_spam=posterior >= 0.5,
            probability=posterior,
            prior_spam=prior_spam,
            prior_ham=prior_ham,
            posterior_spam=posterior,
            posterior_ham=1.0 - posterior,
            details=details,
            top_spam_indicators=_top_indicators(details, spam=True),
            top_ham_indicators=_top_indicators(details, spam=False),
        )

    def stats(self) -> ModelStats:
        with self._lock.read_locked():
            return ModelStats(
                spam_documents=self._spam_documents,
                ham_documents=self._ham_documents,
                spam_vocabulary=len(self._word_spam_counts),
                ham_vocabulary=len(self._word_ham_counts),
            )

    def is_trained(self) -> bool:
        with self._lock.read_locked():
            return self._is_trained()

    def counts(self) -> ModelCounts:
        """Return a consistent copy of the raw counts."""

        with self._lock.read_locked():
            return ModelCounts(
                spam_documents=self._spam_documents,
                ham_documents=self._ham_documents,
                word_spam_counts=dict(self._word_spam_counts),
                word_ham_counts=dict(self._word_ham_counts),
            )

    def save(self, sink: BinaryIO) -> None:
        """Write the raw counts to a binary stream."""

        with self._lock.read_locked():
            payload = encode(
                ModelCounts(
                    spam_documents=self._spam_documents,
                    ham_documents=self._ham_documents,
                    word_spam_counts=self._word_spam_counts,
                    word_ham_counts=self._word_ham_counts,
                )
            )
        sink.write(payload)

    def save_file(self, path: Path) -> None:
        """Atomically replace ``path`` with the serialised model."""

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            with tmp_path.open("wb") as handle:
                self.save(handle)
            tmp_path.replace(path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)
        LOGGER.debug("Saved model to %s", path)

    @classmethod
    def load(cls, source: BinaryIO) -> ClassifierModel:
        """Build a new model from a stream written by :meth:`save`."""

        counts = decode(source.read())
        model = cls()
        model._spam_documents = counts.spam_documents
        model._ham_documents = counts.ham_documents
        model._word_spam_counts = dict(counts.word_spam_counts)
        model._word_ham_counts = dict(counts.word_ham_counts)
        return model

    def _is_trained(self) -> bool:
        return self._spam_documents + self._ham_documents > 0

    def _priors(self) -> tuple[float, float]:
        total = self._spam_documents + self._ham_documents
        prior_spam = self._spam_documents / total
        return prior_spam, 1.0 - prior_spam

    def _conditional_probabilities(
        self,
        document: tuple[str, ...],
    ) -> tuple[np.ndarray, np.ndarray]:
        size = len(document)
        spam_counts = np.fromiter(
            (self._word_spam_counts.get(token, 0) for token in document),
            dtype=np.float64,
            count=size,
        )
        ham_counts = np.fromiter(
            (self._word_ham_counts.get(token, 0) for token in document),
            dtype=np.float64,
            count=size,
        )
        spam_probs = (spam_counts + 1.0) / (self._spam_documents + 2)
        ham_probs = (ham_counts + 1.0) / (self._ham_documents + 2)
        return spam_probs, ham_probs

    def _posterior_spam(self, spam_probs: np.ndarray, ham_probs: np.ndarray) -> float:
        prior_spam, prior_ham = self._priors()
        log_spam = _safe_log(prior_spam) + float(np.sum(np.log(spam_probs)))
        log_ham = _safe_log(prior_ham) + float(np.sum(np.log(ham_probs)))
        # Logistic of the log-score difference; both scores cannot be -inf.
        return float(expit(log_spam - log_ham))


def new_model() -> ClassifierModel:
    """Return an empty classifier."""

    return ClassifierModel()


def load_model(path: Path) -> ClassifierModel:
    """Read a model file written by :meth:`ClassifierModel.save_file`."""

    with path.open("rb") as handle:
        model = ClassifierModel.load(handle)
    LOGGER.debug("Loaded model from %s", path)
    return model


def unique_tokens(tokens: Iterable[str]) -> tuple[str, ...]:
    """Distinct non-empty tokens in first-seen order."""

    return tuple(dict.fromkeys(token for token in tokens if token))


def _safe_log(value: float) -> float:
    if value <= 0.0:
        return -math.inf
    return math.log(value)


def _top_indicators(details: tuple[TokenDetail, ...], *, spam: bool) -> tuple[Indicator, ...]:
    if spam:
        candidates = [detail for detail in details if detail.contribution > 0]
        candidates.sort(key=lambda detail: detail.contribution, reverse=True)
        return tuple(
            Indicator(token=detail.token, probability=detail.spam_probability)
            for detail in candidates[:TOP_INDICATORS]
        )
    candidates = [detail for detail in details if detail.contribution < 0]
    candidates.sort(key=lambda detail: detail.contribution)
    return tuple(
        Indicator(token=detail.token, probability=detail.ham_probability)
        for detail in candidates[:TOP_INDICATORS]
    )


__all__ = [
    "ClassifierModel",
    "ModelNotTrainedError",
    "COLD_START_VERDICT",
    "new_model",
    "load_model",
    "unique_tokens",
]
