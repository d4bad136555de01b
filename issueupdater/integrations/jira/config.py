from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from issueupdater.config import JIRA_API_TOKEN_ENV, JIRA_BASE_URL_ENV, JIRA_USER_ENV
from issueupdater.substitution import UpdateTemplates
from issueupdater.updater import FailurePolicy, FixedVersionSettings


class ConfigurationError(ValueError):
    """Raised when a step configuration cannot be loaded."""


class StepConfig(BaseModel):
    """
    Everything one configured update step needs. Read once per execution.
    Templates may reference build variables as $NAME.
    """
    model_config = ConfigDict(extra="forbid")

    rest_api_url: str = ""
    user_name: str = ""
    password: str = ""
    jql: Optional[str] = None
    workflow_action_name: Optional[str] = None
    comment: Optional[str] = None
    custom_field_id: Optional[str] = None
    custom_field_value: Optional[str] = None
    fixed_versions: Optional[str] = None
    resetting_fixed_versions: bool = False
    create_non_existing_fixed_versions: bool = False
    fail_if_jql_fails: bool = False
    fail_if_no_issues_returned: bool = False
    fail_if_no_jira_connection: bool = False

    @field_validator("rest_api_url", "user_name", "custom_field_id", mode="before")
    @classmethod
    def _strip_strings(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @model_validator(mode="after")
    def _connection_from_env(self) -> "StepConfig":
        if not self.rest_api_url:
            self.rest_api_url = os.getenv(JIRA_BASE_URL_ENV, "").strip()
        if not self.user_name:
            self.user_name = os.getenv(JIRA_USER_ENV, "").strip()
        if not self.password:
            self.password = os.getenv(JIRA_API_TOKEN_ENV, "")
        return self

    def templates(self) -> UpdateTemplates:
        return UpdateTemplates(
            jql=self.jql,
            workflow_action_name=self.workflow_action_name,
            comment=self.comment,
            custom_field_value=self.custom_field_value,
            fixed_versions=self.fixed_versions,
        )

    def failure_policy(self) -> FailurePolicy:
        return FailurePolicy(
            fail_if_jql_fails=self.fail_if_jql_fails,
            fail_if_no_issues_returned=self.fail_if_no_issues_returned,
            fail_if_no_jira_connection=self.fail_if_no_jira_connection,
        )

    def fixed_version_settings(self) -> FixedVersionSettings:
        return FixedVersionSettings(
            resetting_fixed_versions=self.resetting_fixed_versions,
            create_non_existing_fixed_versions=self.create_non_existing_fixed_versions,
        )


def _load_yaml_file(path: str) -> Dict[str, Any]:
    loaded_path = Path(path)
    if not loaded_path.exists():
        raise ConfigurationError(f"file not found: {path}")
    try:
        with loaded_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"expected a YAML object at top-level in {path}")
    return data


def load_step_config(path: str) -> StepConfig:
    data = _load_yaml_file(path)
    try:
        return StepConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
