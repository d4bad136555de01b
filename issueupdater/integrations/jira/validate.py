from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from issueupdater.integrations.jira.client import JiraClient
from issueupdater.integrations.jira.config import StepConfig, load_step_config

HTTP_PROTOCOL_PREFIX = "http://"
HTTPS_PROTOCOL_PREFIX = "https://"


@dataclass
class ConfigIssue:
    severity: Literal["ERROR", "WARN"]
    code: str
    message: str
    location: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload = {
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
        }
        if self.location:
            payload["location"] = self.location
        return payload


def check_rest_url(value: Optional[str]) -> List[ConfigIssue]:
    value = value or ""
    if not value.startswith(HTTP_PROTOCOL_PREFIX) and not value.startswith(HTTPS_PROTOCOL_PREFIX):
        return [
            ConfigIssue(
                severity="ERROR",
                code="REST_URL_INVALID",
                message="The Jira URL is mandatory and must start with http:// or https://",
                location="rest_api_url",
            )
        ]
    return []


def check_user_name(value: Optional[str]) -> List[ConfigIssue]:
    value = value or ""
    if not value:
        return [ConfigIssue("ERROR", "USER_NAME_MISSING", "Please set the Jira user name to be used.", "user_name")]
    if len(value) < 3:
        return [ConfigIssue("WARN", "USER_NAME_SHORT", "Isn't the user name too short?", "user_name")]
    return []


def check_password(value: Optional[str]) -> List[ConfigIssue]:
    value = value or ""
    if not value:
        return [ConfigIssue("ERROR", "PASSWORD_MISSING", "Please set the Jira user password to be used.", "password")]
    if len(value) < 3:
        return [ConfigIssue("WARN", "PASSWORD_SHORT", "Isn't the password too short?", "password")]
    return []


def check_jql(value: Optional[str]) -> List[ConfigIssue]:
    value = value or ""
    if not value:
        return [
            ConfigIssue("ERROR", "JQL_MISSING", "Please set the JQL used to select the issues to update.", "jql")
        ]
    lowered = value.lower()
    issues: List[ConfigIssue] = []
    if "project=" not in lowered:
        issues.append(
            ConfigIssue(
                severity="WARN",
                code="JQL_NO_PROJECT",
                message=(
                    "Is a project mentioned in the JQL? Using \"project=\" is recommended "
                    "to select the issues from a given project."
                ),
                location="jql",
            )
        )
    if "status=" not in lowered:
        issues.append(
            ConfigIssue(
                severity="WARN",
                code="JQL_NO_STATUS",
                message=(
                    "Is an issue status mentioned in the JQL? Using \"status=\" is recommended "
                    "to select the issues by status."
                ),
                location="jql",
            )
        )
    return issues


def _report(issues: List[ConfigIssue], **extra: Any) -> Dict[str, Any]:
    errors = [issue.as_dict() for issue in issues if issue.severity == "ERROR"]
    warnings = [issue.as_dict() for issue in issues if issue.severity == "WARN"]
    status = "FAIL" if errors else ("WARN" if warnings else "OK")
    report = {
        "status": status,
        "ok": not errors,
        "error_count": len(errors),
        "warning_count": len(warnings),
        "issues": [issue.as_dict() for issue in issues],
    }
    report.update(extra)
    return report


def validate_step_config(
    config: StepConfig,
    *,
    check_jira: bool = False,
    jira_client: Optional[JiraClient] = None,
) -> Dict[str, Any]:
    issues: List[ConfigIssue] = []
    issues.extend(check_rest_url(config.rest_api_url))
    issues.extend(check_user_name(config.user_name))
    issues.extend(check_password(config.password))
    issues.extend(check_jql(config.jql))
    if config.custom_field_value and not config.custom_field_id:
        issues.append(
            ConfigIssue(
                severity="WARN",
                code="CUSTOM_FIELD_ID_MISSING",
                message="A custom field value is set but no custom field id; the field will not be updated.",
                location="custom_field_id",
            )
        )

    if check_jira and not any(issue.code == "REST_URL_INVALID" for issue in issues):
        client = jira_client or JiraClient(config.rest_api_url, config.user_name, config.password)
        if not client.check_permissions():
            issues.append(
                ConfigIssue(
                    severity="WARN",
                    code="JIRA_CONNECTIVITY_UNAVAILABLE",
                    message="Jira could not be reached with the configured URL and credentials.",
                    location="jira_connectivity",
                )
            )

    return _report(issues, rest_api_url=config.rest_api_url)


def validate_step_config_file(path: str, *, check_jira: bool = False) -> Dict[str, Any]:
    try:
        config = load_step_config(path)
    except ValueError as exc:
        return _report(
            [ConfigIssue("ERROR", "CONFIG_INVALID", str(exc), path)],
            config_path=path,
        )
    report = validate_step_config(config, check_jira=check_jira)
    report["config_path"] = path
    return report


def format_validation_report(report: Dict[str, Any]) -> str:
    lines = [
        f"Issue Updater Config Validation: {report.get('status', 'FAIL')}",
    ]
    if report.get("config_path"):
        lines.append(f"Config: {report.get('config_path')}")
    if report.get("rest_api_url"):
        lines.append(f"Jira REST API: {report.get('rest_api_url')}")
    lines.append(f"Errors: {report.get('error_count', 0)}")
    lines.append(f"Warnings: {report.get('warning_count', 0)}")
    issues = report.get("issues") or []
    if issues:
        lines.append("")
        lines.append("Issues:")
        for issue in issues:
            location = f" ({issue['location']})" if issue.get("location") else ""
            lines.append(
                f"- [{issue.get('severity')}] {issue.get('code')}: {issue.get('message')}{location}"
            )
    return "\n".join(lines)
