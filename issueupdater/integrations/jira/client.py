import logging
import os
import requests
from typing import Dict, Any, List, Optional, Sequence

from issueupdater.config import (
    JIRA_API_TOKEN_ENV,
    JIRA_BASE_URL_ENV,
    JIRA_USER_ENV,
    get_jira_timeout_seconds,
    get_search_page_size,
)
from issueupdater.integrations.jira.types import IssueSummary, IssueSummaryList

logger = logging.getLogger(__name__)


class JiraClientError(RuntimeError):
    """Base Jira integration error."""


class JiraDependencyTimeout(JiraClientError):
    """Raised when Jira API calls exceed configured timeout."""


class JiraDependencyUnavailable(JiraClientError):
    """Raised for transport/server errors from Jira dependency."""


class JiraQueryError(JiraClientError):
    """Raised when Jira rejects or cannot execute a JQL search."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JiraUpdateError(JiraClientError):
    """Raised when a per-issue mutation is rejected by Jira."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _error_detail(resp: requests.Response) -> str:
    try:
        payload = resp.json() or {}
    except ValueError:
        return (resp.text or "").strip()[:200]
    if not isinstance(payload, dict):
        return str(payload)[:200]
    messages = [str(m) for m in payload.get("errorMessages") or []]
    errors = payload.get("errors") or {}
    if isinstance(errors, dict):
        messages.extend(f"{field}: {msg}" for field, msg in sorted(errors.items()))
    return "; ".join(messages)


class JiraClient:
    """
    Thin wrapper over the Jira REST API (v2 paths, suffixed onto base_url).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_name: Optional[str] = None,
        password: Optional[str] = None,
        *,
        timeout_seconds: Optional[float] = None,
        page_size: Optional[int] = None,
    ):
        self.base_url = (base_url or os.getenv(JIRA_BASE_URL_ENV, "")).rstrip("/")
        self.user_name = user_name or os.getenv(JIRA_USER_ENV, "")
        self.password = password or os.getenv(JIRA_API_TOKEN_ENV, "")
        self.auth = (self.user_name, self.password)
        self.headers = {"Accept": "application/json", "Content-Type": "application/json"}
        self.default_timeout_seconds = (
            float(timeout_seconds) if timeout_seconds is not None else get_jira_timeout_seconds()
        )
        self.page_size = int(page_size) if page_size is not None else get_search_page_size()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> requests.Response:
        effective_timeout = timeout if timeout is not None else self.default_timeout_seconds
        try:
            return requests.request(
                method.upper(),
                self._url(path),
                auth=self.auth,
                headers=self.headers,
                timeout=effective_timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            raise JiraDependencyTimeout(f"Jira {method.upper()} {path} timed out after {effective_timeout}s") from exc
        except requests.RequestException as exc:
            raise JiraDependencyUnavailable(f"Jira {method.upper()} {path} request failed: {exc}") from exc

    def _raise_for_update(self, resp: requests.Response, action: str, issue_key: str) -> None:
        if resp.status_code in (200, 201, 204):
            return
        detail = _error_detail(resp)
        message = f"Jira {action} failed for {issue_key} with status {resp.status_code}"
        if detail:
            message = f"{message}: {detail}"
        raise JiraUpdateError(message, status_code=resp.status_code)

    def _update_body(self, resp: requests.Response, action: str, key: str, expected: type) -> Any:
        """Parsed body of a successful response, checked against the expected JSON type."""
        try:
            payload = resp.json()
        except ValueError as exc:
            raise JiraUpdateError(
                f"Jira {action} for {key} returned an unreadable response: {exc}", status_code=resp.status_code
            ) from exc
        if payload is None:
            payload = expected()
        if not isinstance(payload, expected):
            raise JiraUpdateError(
                f"Jira {action} for {key} returned {type(payload).__name__}, expected {expected.__name__}",
                status_code=resp.status_code,
            )
        return payload

    def check_permissions(self) -> bool:
        """Health check: verifies credentials and basic read access."""
        if not all([self.base_url, self.user_name, self.password]):
            return False
        try:
            resp = self._request("GET", "/myself", timeout=min(self.default_timeout_seconds, 5))
            return resp.status_code == 200
        except JiraClientError:
            return False

    def find_issues_by_jql(self, jql: Optional[str]) -> IssueSummaryList:
        """
        Run a JQL search and collect every page of matching issues, in Jira's order.
        """
        if not jql or not jql.strip():
            raise JiraQueryError("no JQL query specified")

        issues: List[IssueSummary] = []
        total = 0
        start_at = 0
        while True:
            resp = self._request(
                "GET",
                "/search",
                params={
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": self.page_size,
                    "fields": "summary,project",
                },
            )
            if resp.status_code != 200:
                detail = _error_detail(resp)
                message = f"Jira search failed with status {resp.status_code}"
                if detail:
                    message = f"{message}: {detail}"
                raise JiraQueryError(message, status_code=resp.status_code)
            try:
                page = IssueSummaryList.model_validate(resp.json() or {})
            except ValueError as exc:
                raise JiraQueryError(f"Jira search returned an unreadable response: {exc}") from exc
            issues.extend(page.issues)
            total = max(page.total, len(issues))
            if not page.issues or len(issues) >= page.total:
                break
            start_at = len(issues)
        return IssueSummaryList(total=total, issues=issues)

    def list_transitions(self, issue: IssueSummary) -> List[Dict[str, Any]]:
        resp = self._request("GET", f"/issue/{issue.key}/transitions")
        self._raise_for_update(resp, "transition lookup", issue.key)
        payload = self._update_body(resp, "transition lookup", issue.key, dict)
        rows = payload.get("transitions") or []
        if not isinstance(rows, list):
            raise JiraUpdateError(
                f"Jira transition lookup for {issue.key} returned no transition list", status_code=resp.status_code
            )
        return [row for row in rows if isinstance(row, dict)]

    def update_issue_status(self, issue: IssueSummary, action_name: Optional[str]) -> bool:
        """
        Apply the workflow transition named action_name.
        Returns False without a remote call when no name is given, and when the
        issue offers no transition of that name.
        """
        if not action_name:
            return False
        wanted = action_name.strip().lower()
        transition_id = None
        for row in self.list_transitions(issue):
            if str(row.get("name") or "").strip().lower() == wanted:
                transition_id = str(row.get("id"))
                break
        if transition_id is None:
            logger.warning("No transition named '%s' is available for %s", action_name, issue.key)
            return False
        resp = self._request(
            "POST",
            f"/issue/{issue.key}/transitions",
            json={"transition": {"id": transition_id}},
        )
        self._raise_for_update(resp, "transition", issue.key)
        return True

    def add_issue_comment(self, issue: IssueSummary, comment: Optional[str]) -> bool:
        if not comment:
            return False
        resp = self._request("POST", f"/issue/{issue.key}/comment", json={"body": comment})
        self._raise_for_update(resp, "comment", issue.key)
        return True

    def update_issue_field(self, issue: IssueSummary, field_id: Optional[str], value: Optional[str]) -> bool:
        if not field_id or not value:
            return False
        resp = self._request("PUT", f"/issue/{issue.key}", json={"fields": {field_id: value}})
        self._raise_for_update(resp, "field update", issue.key)
        return True

    def get_project_versions(self, project_key: str) -> Dict[str, str]:
        """Version name -> version id for every version of the project."""
        resp = self._request("GET", f"/project/{project_key}/versions")
        self._raise_for_update(resp, "version lookup", project_key)
        versions: Dict[str, str] = {}
        for row in self._update_body(resp, "version lookup", project_key, list):
            if isinstance(row, dict) and row.get("name") and row.get("id") is not None:
                versions[str(row["name"])] = str(row["id"])
        return versions

    def create_version(self, project_key: str, version_name: str) -> str:
        resp = self._request(
            "POST",
            "/version",
            json={"name": version_name, "project": project_key},
        )
        self._raise_for_update(resp, "version creation", project_key)
        payload = self._update_body(resp, "version creation", project_key, dict)
        if payload.get("id") is None:
            raise JiraUpdateError(
                f"Jira version creation for {project_key} returned no id", status_code=resp.status_code
            )
        return str(payload["id"])

    def set_fixed_versions(self, issue: IssueSummary, version_ids: Sequence[str], *, reset: bool = False) -> bool:
        """
        Set the issue's fix versions. With reset the existing versions are
        replaced, otherwise the given ones are added.
        """
        if reset:
            body: Dict[str, Any] = {"fields": {"fixVersions": [{"id": vid} for vid in version_ids]}}
        else:
            if not version_ids:
                return False
            body = {"update": {"fixVersions": [{"add": {"id": vid}} for vid in version_ids]}}
        resp = self._request("PUT", f"/issue/{issue.key}", json=body)
        self._raise_for_update(resp, "fixed versions update", issue.key)
        return True
