"""Immutable result structures returned by the classifier."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class Verdict:
    """Classification result for a single document."""

    is_spam: bool
    probability: float

    def __iter__(self) -> Iterator[bool | float]:
        # Allows ``is_spam, probability = model.is_spam(tokens)``.
        yield self.is_spam
        yield self.probability


@dataclass(frozen=True)
class TokenDetail:
    """Evidence contributed by one distinct token."""

    token: str
    spam_probability: float
    ham_probability: float
    contribution: float


@dataclass(frozen=True)
class Indicator:
    """A token that pushed the verdict, annotated with its class probability."""

    token: str
    probability: float

    def __str__(self) -> str:
        return f"{self.token} ({self.probability:.2f})"


@dataclass(frozen=True)
class Explanation:
    """Breakdown of how a verdict was reached."""

    is_spam: bool
    probability: float
    prior_spam: float
    prior_ham: float
    posterior_spam: float
    posterior_ham: float
    details: tuple[TokenDetail, ...]
    top_spam_indicators: tuple[Indicator, ...]
    top_ham_indicators: tuple[Indicator, ...]

    @property
    def verdict(self) -> Verdict:
        return Verdict(is_spam=self.is_spam, probability=self.probability)


@dataclass(frozen=True)
class ModelStats:
    """Point-in-time counters of a classifier model."""

    spam_documents: int
    ham_documents: int
    spam_vocabulary: int
    ham_vocabulary: int

    @property
    def total_documents(self) -> int:
        return self.spam_documents + self.ham_documents


__all__ = [
    "Verdict",
    "TokenDetail",
    "Indicator",
    "Explanation",
    "ModelStats",
]
