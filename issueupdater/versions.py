from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class VersionSource(Protocol):
    def get_project_versions(self, project_key: str) -> Dict[str, str]:
        ...

    def create_version(self, project_key: str, version_name: str) -> str:
        ...


class VersionCache:
    """
    Version name -> id mapping per project, for one execution only.
    Avoids a version lookup per issue when several issues share a project.
    """

    def __init__(self) -> None:
        self._projects: Dict[str, Dict[str, str]] = {}

    def has_project(self, project_key: str) -> bool:
        return project_key in self._projects

    def load_project(self, project_key: str, versions: Dict[str, str]) -> None:
        self._projects[project_key] = dict(versions)

    def get(self, project_key: str, version_name: str) -> Tuple[bool, Optional[str]]:
        versions = self._projects.get(project_key)
        if versions is None or version_name not in versions:
            return False, None
        return True, versions[version_name]

    def set(self, project_key: str, version_name: str, version_id: str) -> None:
        self._projects.setdefault(project_key, {})[version_name] = version_id

    def __len__(self) -> int:
        return sum(len(v) for v in self._projects.values())


def resolve_fixed_version_ids(
    source: VersionSource,
    project_key: str,
    version_names: Iterable[str],
    cache: VersionCache,
    *,
    create_missing: bool = False,
) -> List[str]:
    """
    Map version names to ids for a project, loading the project's versions at
    most once per cache. Unknown names are created when create_missing is set,
    otherwise skipped.
    """
    if not cache.has_project(project_key):
        cache.load_project(project_key, source.get_project_versions(project_key))

    ids: List[str] = []
    for name in version_names:
        if not name:
            continue
        hit, version_id = cache.get(project_key, name)
        if not hit:
            if not create_missing:
                logger.warning("Version '%s' does not exist in project %s, skipping", name, project_key)
                continue
            version_id = source.create_version(project_key, name)
            cache.set(project_key, name, version_id)
            logger.info("Created version '%s' (%s) in project %s", name, version_id, project_key)
        if version_id not in ids:
            ids.append(version_id)
    return ids
