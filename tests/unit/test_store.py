from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from spamsift.codec import CorruptDataError
from spamsift.config import RotationConfig, VerdictLogConfig
from spamsift.model import ClassifierModel
from spamsift.store import (
    Store,
    TrainedDocumentRegistry,
    VerdictLogger,
    VerdictRecord,
    document_digest,
)
from spamsift.types import Verdict


def test_missing_model_loads_empty(tmp_path):
    store = Store(tmp_path / "state")

    model = store.load_model("default")

    assert model.is_trained() is False


def test_save_and_load_model(tmp_path):
    store = Store(tmp_path / "state")
    model = ClassifierModel()
    model.train(["cash", "now"], True)
    model.train(["lunch"], False)

    path = store.save_model("default", model)

    assert path == tmp_path / "state" / "data" / "default.ssnb"
    restored = store.load_model("default")
    assert restored.counts() == model.counts()


def test_models_are_namespaced_by_name(tmp_path):
    store = Store(tmp_path / "state")
    first = ClassifierModel()
    first.train(["a"], True)
    store.save_model("first", first)
    store.save_model("second", ClassifierModel())

    assert store.load_model("first").stats().spam_documents == 1
    assert store.load_model("second").stats().spam_documents == 0


def test_corrupt_model_file_is_reported_not_replaced(tmp_path):
    store = Store(tmp_path / "state")
    path = store.save_model("default", ClassifierModel())
    path.write_bytes(b"not a model")

    with pytest.raises(CorruptDataError):
        store.load_model("default")
    assert path.read_bytes() == b"not a model"


def test_trained_document_registry_persists(tmp_path):
    path = tmp_path / "state" / "trained_documents.txt"
    registry = TrainedDocumentRegistry(path)
    digest = document_digest(b"free money")

    assert registry.add(digest, "spam")
    assert registry.label(digest) == "spam"
    assert not registry.add(digest, "spam")

    assert registry.add(digest, "ham")
    assert registry.label(digest) == "ham"

    reloaded = TrainedDocumentRegistry(path)
    assert reloaded.label(digest) == "ham"
    assert len(reloaded) == 1


def test_trained_document_registry_ignores_blank_entries(tmp_path):
    registry = TrainedDocumentRegistry(tmp_path / "ids.txt")

    assert not registry.add("  ", "spam")
    assert not registry.add("abc", " ")
    assert len(registry) == 0


def test_trained_document_registry_reset(tmp_path):
    path = tmp_path / "ids.txt"
    registry = TrainedDocumentRegistry(path)
    registry.add("abc", "spam")

    registry.reset()

    assert len(registry) == 0
    assert not path.exists()
    assert registry.snapshot() == {}


def test_log_verdict_writes_json_lines(tmp_path):
    store = Store(tmp_path / "state")

    store.log_verdict("mail.txt", Verdict(is_spam=True, probability=0.92), token_count=7)

    payload = store.verdict_log_path.read_text(encoding="utf-8").strip()
    data = json.loads(payload)
    assert data["source"] == "mail.txt"
    assert data["is_spam"] is True
    assert data["probability"] == 0.92
    assert data["token_count"] == 7
    assert "timestamp" in data


def test_verdict_log_can_be_disabled(tmp_path):
    store = Store(tmp_path / "state", verdict_log=VerdictLogConfig(enabled=False))

    store.log_verdict("mail.txt", Verdict(is_spam=False, probability=0.1), token_count=1)

    assert not store.verdict_log_path.exists()


def _record() -> VerdictRecord:
    return VerdictRecord(
        timestamp=datetime.now(timezone.utc),
        source="<text>",
        is_spam=True,
        probability=0.9,
        token_count=3,
    )


def test_verdict_logger_rotates(tmp_path):
    logger = VerdictLogger(tmp_path / "verdicts.log", max_bytes=50, backups=2)
    record = _record()

    for _ in range(6):
        logger.append(record)

    assert (tmp_path / "verdicts.log.1").exists()
    assert (tmp_path / "verdicts.log.2").exists()
    assert not (tmp_path / "verdicts.log.3").exists()
    assert logger.backup_paths() == [tmp_path / "verdicts.log.1", tmp_path / "verdicts.log.2"]


def test_verdict_logger_without_backups_starts_over(tmp_path):
    path = tmp_path / "verdicts.log"
    logger = VerdictLogger(path, max_bytes=50, backups=0)

    for _ in range(3):
        logger.append(_record())

    assert len(path.read_text(encoding="utf-8").splitlines()) == 1
    assert logger.backup_paths() == []
    assert not (tmp_path / "verdicts.log.1").exists()


def test_verdict_logger_zero_max_bytes_never_rotates(tmp_path):
    path = tmp_path / "verdicts.log"
    logger = VerdictLogger(path, max_bytes=0, backups=2)

    for _ in range(5):
        logger.append(_record())

    assert len(path.read_text(encoding="utf-8").splitlines()) == 5
    assert logger.backup_paths() == []


def test_verdict_logger_rejects_negative_limits(tmp_path):
    with pytest.raises(ValueError):
        VerdictLogger(tmp_path / "verdicts.log", max_bytes=-1)


def test_store_applies_verdict_log_rotation(tmp_path):
    store = Store(
        tmp_path / "state",
        verdict_log=VerdictLogConfig(rotation=RotationConfig(max_bytes=50, backups=1)),
    )

    for _ in range(4):
        store.log_verdict("mail.txt", Verdict(is_spam=True, probability=0.9), token_count=2)

    log_dir = tmp_path / "state" / "logs"
    assert (log_dir / "verdicts.log.1").exists()
    assert not (log_dir / "verdicts.log.2").exists()
    assert len(store.verdict_log_path.read_text(encoding="utf-8").splitlines()) == 1
