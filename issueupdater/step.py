"""
Host side of an update step: gathers the build variables, resolves the
templates and hands the result to the IssueUpdater.
"""

from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from issueupdater.integrations.jira.client import JiraClient
from issueupdater.integrations.jira.config import StepConfig
from issueupdater.substitution import build_variable_map, resolve_templates
from issueupdater.updater import BUILD_LOG_NAME, IssueTracker, IssueUpdater

SEPARATOR = "-------------------------------------------------------"


def collect_variables(
    environment: Optional[Mapping[str, str]] = None,
    parameters: Optional[Mapping[str, str]] = None,
) -> Mapping[str, str]:
    """Process environment (unless given) overlaid with build parameters."""
    if environment is None:
        environment = dict(os.environ)
    return build_variable_map(environment, parameters)


def run_update_step(
    config: StepConfig,
    *,
    parameters: Optional[Mapping[str, str]] = None,
    environment: Optional[Mapping[str, str]] = None,
    client: Optional[IssueTracker] = None,
    build_log: Optional[logging.Logger] = None,
    apply_fixed_versions: bool = False,
) -> bool:
    log = build_log or logging.getLogger(BUILD_LOG_NAME)
    log.info(SEPARATOR)
    log.info("JIRA Update Results Recorder")
    log.info(SEPARATOR)

    variables = collect_variables(environment, parameters)
    context = resolve_templates(config.templates(), variables)

    if client is None:
        client = JiraClient(config.rest_api_url, config.user_name, config.password)
    updater = IssueUpdater(
        client,
        config.failure_policy(),
        custom_field_id=config.custom_field_id,
        build_log=log,
        apply_fixed_versions=apply_fixed_versions,
        fixed_versions=config.fixed_version_settings(),
    )
    return updater.perform(context)
