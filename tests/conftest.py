from unittest.mock import MagicMock

import pytest


@pytest.fixture
def gateway():
    """A MutationGateway stand-in; tests set return values per call."""
    return MagicMock()


@pytest.fixture
def notices():
    """Collects (message, kind) pairs passed to a notifier."""
    return []


@pytest.fixture
def notify(notices):
    def _notify(message, kind='info'):
        notices.append((message, kind))
    return _notify
