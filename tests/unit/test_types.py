from __future__ import annotations

import dataclasses

import pytest

from spamsift.types import Explanation, Indicator, ModelStats, Verdict


def test_verdict_unpacks_like_a_pair() -> None:
    is_spam, probability = Verdict(is_spam=True, probability=0.75)

    assert is_spam is True
    assert probability == 0.75


def test_verdict_is_immutable() -> None:
    verdict = Verdict(is_spam=False, probability=0.5)

    with pytest.raises(dataclasses.FrozenInstanceError):
        verdict.is_spam = True  # type: ignore[misc]


def test_indicator_renders_two_decimals() -> None:
    assert str(Indicator(token="WIN", probability=0.666)) == "WIN (0.67)"


def test_explanation_verdict_matches_fields() -> None:
    explanation = Explanation(
        is_spam=False,
        probability=0.25,
        prior_spam=0.5,
        prior_ham=0.5,
        posterior_spam=0.25,
        posterior_ham=0.75,
        details=(),
        top_spam_indicators=(),
        top_ham_indicators=(),
    )

    assert explanation.verdict == Verdict(is_spam=False, probability=0.25)


def test_model_stats_total() -> None:
    assert ModelStats(2, 3, 10, 12).total_documents == 5
