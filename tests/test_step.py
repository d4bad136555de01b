import logging
from unittest.mock import MagicMock

from issueupdater.integrations.jira.config import StepConfig
from issueupdater.integrations.jira.types import IssueSummary, IssueSummaryList
from issueupdater.step import collect_variables, run_update_step


def _config(**overrides):
    values = {
        "rest_api_url": "https://jira.example.com/rest/api/2",
        "user_name": "builder",
        "password": "secret",
        "jql": "project=$PROJECT and fixVersion=$VERSION",
        "workflow_action_name": "$ACTION",
        "comment": "Fixed in $JOB_NAME #$BUILD_NUMBER",
        "custom_field_id": "customfield_10010",
        "custom_field_value": "$BUILD_NUMBER",
    }
    values.update(overrides)
    return StepConfig(**values)


def test_collect_variables_reads_process_environment(monkeypatch):
    monkeypatch.setenv("BUILD_NUMBER", "99")
    variables = collect_variables(parameters={"VERSION": "2.0"})
    assert variables["BUILD_NUMBER"] == "99"
    assert variables["VERSION"] == "2.0"


def test_run_update_step_resolves_templates_before_updating(caplog):
    caplog.set_level(logging.INFO)
    issue = IssueSummary.model_validate({"key": "ABC-1", "fields": {"summary": "Crash on save"}})
    client = MagicMock()
    client.find_issues_by_jql.return_value = IssueSummaryList(total=1, issues=[issue])

    passed = run_update_step(
        _config(),
        environment={"PROJECT": "ABC", "VERSION": "1.0", "JOB_NAME": "nightly", "BUILD_NUMBER": "17"},
        parameters={"VERSION": "2.0", "ACTION": "Close Issue"},
        client=client,
    )

    assert passed is True
    client.find_issues_by_jql.assert_called_once_with("project=ABC and fixVersion=2.0")
    client.update_issue_status.assert_called_once_with(issue, "Close Issue")
    client.add_issue_comment.assert_called_once_with(issue, "Fixed in nightly #17")
    client.update_issue_field.assert_called_once_with(issue, "customfield_10010", "17")
    assert "JIRA Update Results Recorder" in caplog.text
    assert "Updating ABC-1" in caplog.text


def test_run_update_step_applies_failure_policy():
    client = MagicMock()
    client.find_issues_by_jql.return_value = IssueSummaryList(total=0, issues=[])

    assert run_update_step(_config(), environment={}, client=client) is True
    assert run_update_step(_config(fail_if_no_issues_returned=True), environment={}, client=client) is False
    client.find_issues_by_jql.assert_called_with("project=$PROJECT and fixVersion=$VERSION")
