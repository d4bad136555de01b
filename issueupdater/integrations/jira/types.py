from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ProjectRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str = ""


class IssueFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    summary: str = ""
    project: Optional[ProjectRef] = None


class IssueSummary(BaseModel):
    """
    An issue returned by a JQL search.
    Read-only from the updater's point of view, identified by its key.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    key: str
    id: Optional[str] = None
    fields: IssueFields = Field(default_factory=IssueFields)

    @property
    def summary(self) -> str:
        return self.fields.summary

    @property
    def project_key(self) -> str:
        """Project key from the issue fields, else the prefix of the issue key."""
        if self.fields.project and self.fields.project.key:
            return self.fields.project.key
        return self.key.rsplit("-", 1)[0]


class IssueSummaryList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total: int = 0
    issues: List[IssueSummary] = Field(default_factory=list)
