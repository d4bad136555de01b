import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Protocol, Sequence

from issueupdater.integrations.jira.client import (
    JiraDependencyTimeout,
    JiraDependencyUnavailable,
)
from issueupdater.integrations.jira.types import IssueSummary, IssueSummaryList
from issueupdater.substitution import ResolvedContext
from issueupdater.versions import VersionCache, resolve_fixed_version_ids

logger = logging.getLogger(__name__)
BUILD_LOG_NAME = "issueupdater.build"


class IssueTracker(Protocol):
    """
    The calls the updater makes against the issue tracker.

    Any exception from find_issues_by_jql counts as a failed query; the
    connection policy only applies to JiraDependencyTimeout and
    JiraDependencyUnavailable.
    """

    def find_issues_by_jql(self, jql: Optional[str]) -> IssueSummaryList:
        ...

    def update_issue_status(self, issue: IssueSummary, action_name: Optional[str]) -> Any:
        ...

    def add_issue_comment(self, issue: IssueSummary, comment: Optional[str]) -> Any:
        ...

    def update_issue_field(self, issue: IssueSummary, field_id: Optional[str], value: Optional[str]) -> Any:
        ...


class UpdateState(str, Enum):
    IDLE = "IDLE"
    QUERY_ISSUED = "QUERY_ISSUED"
    QUERY_FAILED = "QUERY_FAILED"
    QUERY_OK = "QUERY_OK"
    ISSUES_EMPTY = "ISSUES_EMPTY"
    ISSUES_FOUND = "ISSUES_FOUND"
    UPDATING_ISSUES = "UPDATING_ISSUES"
    ABORTED = "ABORTED"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True)
class FailurePolicy:
    """Independent switches; any combination may be set."""

    fail_if_jql_fails: bool = False
    fail_if_no_issues_returned: bool = False
    fail_if_no_jira_connection: bool = False


@dataclass(frozen=True)
class FixedVersionSettings:
    resetting_fixed_versions: bool = False
    create_non_existing_fixed_versions: bool = False


class IssueUpdater:
    """
    Runs one batch update: query, then transition, comment and custom field
    for every matching issue, one issue at a time.

    Query failures and empty results are turned into a verdict according to
    the FailurePolicy. Errors raised while updating an issue are not caught:
    the batch stops at the first failing issue and the error reaches the caller.
    """

    def __init__(
        self,
        client: IssueTracker,
        policy: Optional[FailurePolicy] = None,
        *,
        custom_field_id: Optional[str] = None,
        build_log: Optional[logging.Logger] = None,
        apply_fixed_versions: bool = False,
        fixed_versions: Optional[FixedVersionSettings] = None,
    ):
        self.client = client
        self.policy = policy or FailurePolicy()
        self.custom_field_id = custom_field_id
        self.build_log = build_log or logging.getLogger(BUILD_LOG_NAME)
        self.apply_fixed_versions = apply_fixed_versions
        self.fixed_versions = fixed_versions or FixedVersionSettings()

    def perform(self, context: ResolvedContext) -> bool:
        """Returns True when the pipeline may continue, False to fail the build."""
        log = self.build_log
        self._transition(UpdateState.IDLE, context)

        self._transition(UpdateState.QUERY_ISSUED, context)
        issues: Sequence[IssueSummary] = []
        try:
            issues = self.client.find_issues_by_jql(context.jql).issues
        except Exception as exc:
            self._transition(UpdateState.QUERY_FAILED, context, error=str(exc))
            log.error("Jira could not execute your JQL, '%s': %s", context.jql, exc)
            if self.policy.fail_if_no_jira_connection and isinstance(
                exc, (JiraDependencyTimeout, JiraDependencyUnavailable)
            ):
                log.error("Checkbox 'Fail this build if Jira cannot be reached' checked, failing build")
                self._transition(UpdateState.ABORTED, context, reason="no_jira_connection")
                return False
            if self.policy.fail_if_jql_fails:
                log.error("Checkbox 'Fail this build if the JQL fails' checked, failing build")
                self._transition(UpdateState.ABORTED, context, reason="jql_failed")
                return False
        else:
            self._transition(UpdateState.QUERY_OK, context, issue_count=len(issues))

        if not issues:
            self._transition(UpdateState.ISSUES_EMPTY, context)
            log.info(
                "Your JQL, '%s' did not return any issues. No issues will be updated during this build.",
                context.jql,
            )
            if self.policy.fail_if_no_issues_returned:
                log.error("Checkbox 'Fail this build if no issues are matched' checked, failing build")
                self._transition(UpdateState.ABORTED, context, reason="no_issues_returned")
                return False
            self._transition(UpdateState.COMPLETED, context, updated=0)
            return True

        self._transition(UpdateState.ISSUES_FOUND, context, issue_count=len(issues))
        if not context.workflow_action_name:
            log.info("No workflow action was specified, thus no status update will be made for any of the matching issues.")
        if not context.comment:
            log.info("No comment was specified, thus no comment will be added to any of the matching issues.")
        log.info("Using JQL: %s", context.jql)
        log.info("The selected issues (%d in total) are:", len(issues))

        cache = VersionCache()
        self._transition(UpdateState.UPDATING_ISSUES, context)
        updated = 0
        for issue in issues:
            try:
                self._update_issue(issue, context, cache)
            except Exception as exc:
                self._transition(
                    UpdateState.ABORTED,
                    context,
                    reason="update_failed",
                    issue_key=issue.key,
                    updated=updated,
                    error=str(exc),
                )
                raise
            updated += 1
        self._transition(UpdateState.COMPLETED, context, updated=updated)
        return True

    def _update_issue(self, issue: IssueSummary, context: ResolvedContext, cache: VersionCache) -> None:
        self.build_log.info("Updating %s  \t%s", issue.key, issue.summary)
        self.client.update_issue_status(issue, context.workflow_action_name)
        self.client.add_issue_comment(issue, context.comment)
        self.client.update_issue_field(issue, self.custom_field_id, context.custom_field_value)
        if self.apply_fixed_versions:
            self.update_fixed_versions(issue, context, cache)

    def update_fixed_versions(self, issue: IssueSummary, context: ResolvedContext, cache: VersionCache) -> List[str]:
        """
        Resolve the context's fixed version names for the issue's project and
        set them on the issue. Version lookups are shared through the cache.
        """
        if not context.fixed_version_names and not self.fixed_versions.resetting_fixed_versions:
            return []
        version_ids = resolve_fixed_version_ids(
            self.client,
            issue.project_key,
            context.fixed_version_names,
            cache,
            create_missing=self.fixed_versions.create_non_existing_fixed_versions,
        )
        self.client.set_fixed_versions(
            issue,
            version_ids,
            reset=self.fixed_versions.resetting_fixed_versions,
        )
        self.build_log.info("Fixed versions of %s set to %s", issue.key, ", ".join(version_ids) or "(none)")
        return version_ids

    def _transition(self, state: UpdateState, context: ResolvedContext, **payload: Any) -> None:
        self._log_event("debug", event="issue_updater.state", state=state.value, jql=context.jql, **payload)

    def _log_event(self, level: str, **payload: Any) -> None:
        payload.setdefault("component", "issue_updater")
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        method = getattr(logger, level, logger.info)
        method(json.dumps(payload, sort_keys=True, default=str))
