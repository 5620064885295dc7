"""Shared fixtures."""

import pytest

from nodepulse.edge.models import MetricDocument
from tests.helpers import make_document


@pytest.fixture
def document() -> MetricDocument:
    return make_document()
