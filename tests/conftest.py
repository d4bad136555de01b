import os

import pytest


_JIRA_ENV = ("JIRA_BASE_URL", "JIRA_USER", "JIRA_API_TOKEN")


def pytest_configure(config):
    os.environ.setdefault("ISSUEUPDATER_JIRA_TIMEOUT_SECONDS", "2")
    os.environ.setdefault("ISSUEUPDATER_SEARCH_PAGE_SIZE", "50")
    os.environ.setdefault("ISSUEUPDATER_APPLY_FIXED_VERSIONS", "false")


@pytest.fixture(autouse=True)
def _isolate_jira_env(monkeypatch):
    for name in _JIRA_ENV:
        monkeypatch.delenv(name, raising=False)
    yield
