from __future__ import annotations

from pathlib import Path

import pytest

from spamsift.model import ClassifierModel

SPAM_DOCUMENTS = (["$$$"], ["WIN"], ["CASH"])
HAM_DOCUMENTS = (["hello"], ["meeting"], ["report"])


@pytest.fixture
def scenario_model() -> ClassifierModel:
    """Model trained on the three-spam/three-ham reference documents."""

    model = ClassifierModel()
    for document in SPAM_DOCUMENTS:
        model.train(document, True)
    for document in HAM_DOCUMENTS:
        model.train(document, False)
    return model


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests in this package as integration."""

    package_root = Path(__file__).resolve().parent
    integration_mark = pytest.mark.integration
    for item in items:
        try:
            path = Path(item.fspath).resolve()
        except OSError:
            continue
        if package_root in path.parents:
            item.add_marker(integration_mark)
