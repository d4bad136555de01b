"""
Build variable substitution for the templates of an update step.

Tokens are ``$NAME`` and are matched as plain substrings, never as patterns:
a variable called ``A.B`` only matches the literal text ``$A.B``. Each
template is scanned once from left to right, so text produced by a
replacement is never scanned again for further tokens. When several
variable names match at the same position (``$V`` and ``$V1``), the first
one in the mapping's iteration order wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple


BUILD_PARAMETER_PREFIX = "$"
# Delimiter separates fixed versions
FIXED_VERSIONS_DELIMITER = ","


@dataclass(frozen=True)
class UpdateTemplates:
    """Raw, user supplied templates. Never mutated."""

    jql: Optional[str] = None
    workflow_action_name: Optional[str] = None
    comment: Optional[str] = None
    custom_field_value: Optional[str] = None
    fixed_versions: Optional[str] = None


@dataclass(frozen=True)
class ResolvedContext:
    """
    The templates of one execution after substitution.
    Built once per execution and passed explicitly to the updater.
    """

    jql: Optional[str]
    workflow_action_name: Optional[str]
    comment: Optional[str]
    custom_field_value: Optional[str]
    fixed_versions: str
    fixed_version_names: Tuple[str, ...]


def build_variable_map(
    environment: Optional[Mapping[str, str]] = None,
    parameters: Optional[Mapping[str, str]] = None,
) -> Mapping[str, str]:
    """
    Merge environment variables and build parameters into a read-only snapshot.
    Build parameters override environment values on key collision.
    """
    merged = {}
    merged.update(environment or {})
    merged.update(parameters or {})
    return MappingProxyType(merged)


def substitute_variables(template: Optional[str], variables: Mapping[str, str]) -> Optional[str]:
    if template is None:
        return None
    if BUILD_PARAMETER_PREFIX not in template or not variables:
        return template

    tokens = [
        (BUILD_PARAMETER_PREFIX + name, "" if value is None else str(value))
        for name, value in variables.items()
        if name
    ]
    parts: List[str] = []
    pos = 0
    end = len(template)
    while pos < end:
        nxt = template.find(BUILD_PARAMETER_PREFIX, pos)
        if nxt == -1:
            parts.append(template[pos:])
            break
        parts.append(template[pos:nxt])
        for token, value in tokens:
            if template.startswith(token, nxt):
                parts.append(value)
                pos = nxt + len(token)
                break
        else:
            parts.append(BUILD_PARAMETER_PREFIX)
            pos = nxt + len(BUILD_PARAMETER_PREFIX)
    return "".join(parts)


def parse_version_names(expanded: Optional[str]) -> List[str]:
    """
    Split a comma delimited fixed versions string.

    Only the string as a whole is trimmed; whitespace around each name is kept.
    Trailing empty names are dropped and an empty string yields no names.
    """
    text = (expanded or "").strip()
    if not text:
        return []
    names = text.split(FIXED_VERSIONS_DELIMITER)
    while names and names[-1] == "":
        names.pop()
    return names


def resolve_templates(templates: UpdateTemplates, variables: Mapping[str, str]) -> ResolvedContext:
    expanded_fixed_versions = substitute_variables(
        (templates.fixed_versions or "").strip(),
        variables,
    )
    # NOTE: individual version names are not trimmed
    expanded_fixed_versions = (expanded_fixed_versions or "").strip()
    return ResolvedContext(
        jql=substitute_variables(templates.jql, variables),
        workflow_action_name=substitute_variables(templates.workflow_action_name, variables),
        comment=substitute_variables(templates.comment, variables),
        custom_field_value=substitute_variables(templates.custom_field_value, variables),
        fixed_versions=expanded_fixed_versions,
        fixed_version_names=tuple(parse_version_names(expanded_fixed_versions)),
    )
