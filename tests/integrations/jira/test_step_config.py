from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from issueupdater.integrations.jira.config import ConfigurationError, StepConfig, load_step_config
from issueupdater.substitution import UpdateTemplates
from issueupdater.updater import FailurePolicy


def _write(path: Path, content: str) -> None:
    path.write_text(dedent(content).strip() + "\n", encoding="utf-8")


def test_load_step_config_reads_all_fields(tmp_path):
    path = tmp_path / "issue_updater.yaml"
    _write(
        path,
        """
        rest_api_url: " https://jira.example.com/rest/api/2 "
        user_name: builder
        password: secret
        jql: project=$PROJECT and status=Resolved
        workflow_action_name: Close Issue
        comment: Released in build $BUILD_NUMBER
        custom_field_id: customfield_10010
        custom_field_value: $BUILD_NUMBER
        fixed_versions: $VERSION, $NEXT_VERSION
        fail_if_jql_fails: true
        fail_if_no_issues_returned: true
        """,
    )
    config = load_step_config(str(path))

    assert config.rest_api_url == "https://jira.example.com/rest/api/2"
    assert config.templates() == UpdateTemplates(
        jql="project=$PROJECT and status=Resolved",
        workflow_action_name="Close Issue",
        comment="Released in build $BUILD_NUMBER",
        custom_field_value="$BUILD_NUMBER",
        fixed_versions="$VERSION, $NEXT_VERSION",
    )
    assert config.failure_policy() == FailurePolicy(
        fail_if_jql_fails=True,
        fail_if_no_issues_returned=True,
        fail_if_no_jira_connection=False,
    )
    assert config.fixed_version_settings().resetting_fixed_versions is False


def test_connection_settings_fall_back_to_environment(monkeypatch):
    monkeypatch.setenv("JIRA_BASE_URL", "https://jira.example.com/rest/api/2")
    monkeypatch.setenv("JIRA_USER", "ci-bot")
    monkeypatch.setenv("JIRA_API_TOKEN", "token-123")

    config = StepConfig(jql="project=ABC")
    assert config.rest_api_url == "https://jira.example.com/rest/api/2"
    assert config.user_name == "ci-bot"
    assert config.password == "token-123"

    explicit = StepConfig(user_name="builder")
    assert explicit.user_name == "builder"


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "issue_updater.yaml"
    _write(
        path,
        """
        jql: project=ABC
        fail_if_everything: true
        """,
    )
    with pytest.raises(ConfigurationError):
        load_step_config(str(path))


def test_missing_or_non_mapping_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_step_config(str(tmp_path / "absent.yaml"))

    path = tmp_path / "list.yaml"
    _write(path, "- jql: project=ABC")
    with pytest.raises(ConfigurationError):
        load_step_config(str(path))
