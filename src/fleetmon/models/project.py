"""Project models - build project references and resolved configuration."""

from pydantic import BaseModel, Field


class ProjectRef(BaseModel):
    """Lightweight pointer to a project's configuration."""

    identifier: str
    enabled: bool = True


class Project(BaseModel):
    """Fully resolved project configuration."""

    identifier: str
    display_name: str = ""
    enabled: bool = True
    owner: str = ""
    repo: str = ""
    branch: str = ""
    admins: list[str] = Field(default_factory=list)
