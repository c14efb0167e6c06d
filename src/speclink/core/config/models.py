"""
Configuration data models for speclink.

These models define the structure of .speclink.json and
~/.config/speclink/config.json files, with validation and type safety via
Pydantic.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_STATUS_MAPPING: dict[str, str] = {
    "requirements": "Todo",
    "design": "In Progress",
    "tasks": "In Progress",
    "implementation": "In Review",
    "review": "In Review",
    "completed": "Done",
}


class BackupConfig(BaseModel):
    """
    Local store backup settings.

    Backups are taken opportunistically before repairs; a failed backup
    never fails the command that triggered it.
    """
    enabled: bool = Field(
        default=True,
        description="Take a store backup before mutating repairs"
    )
    directory: Path = Field(
        default=Path(".speclink/backups"),
        description="Directory for backup files (relative to project root)"
    )
    max_backups: int = Field(
        default=10,
        ge=1,
        description="Number of backups to keep; older ones are pruned"
    )


class GitHubConfig(BaseModel):
    """
    Issue tracker connection settings.

    The API token is read from GITHUB_TOKEN and never stored here.
    """
    owner: Optional[str] = Field(
        default=None,
        description="Repository owner; falls back to the origin remote"
    )
    repo: Optional[str] = Field(
        default=None,
        description="Repository name; falls back to the origin remote"
    )
    project_number: Optional[int] = Field(
        default=None,
        ge=1,
        description="Projects (v2) board number to add linked issues to"
    )
    base_branch: str = Field(
        default="develop",
        description="Default base branch for pull requests"
    )
    api_url: str = Field(
        default="https://api.github.com",
        description="REST API base URL"
    )
    graphql_url: str = Field(
        default="https://api.github.com/graphql",
        description="GraphQL endpoint"
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds"
    )


class StatusConfig(BaseModel):
    """
    Mapping from spec phase to the project board's status column.
    """
    field_name: str = Field(
        default="Status",
        description="Name of the single-select status field on the board"
    )
    mapping: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_STATUS_MAPPING),
        description="Phase name -> status option name"
    )
    fallback: str = Field(
        default="In Progress",
        description="Status used when the mapped option does not exist"
    )

    @field_validator("mapping", mode="before")
    @classmethod
    def merge_defaults(cls, v: object) -> object:
        """Partial mappings override the defaults instead of replacing them."""
        if isinstance(v, dict):
            return {**DEFAULT_STATUS_MAPPING, **v}
        return v

    def status_for(self, phase: str) -> str:
        """Return the status option name for a phase."""
        return self.mapping.get(phase, self.fallback)


class ValidationConfig(BaseModel):
    """
    Phase-transition validation settings.
    """
    test_mode: bool = Field(
        default=False,
        description="Bypass phase-transition validation entirely (test runs)"
    )


class SpecLinkConfig(BaseModel):
    """
    Top-level speclink configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = SpecLinkConfig(github=GitHubConfig(owner="acme", repo="app"))
        >>> config.documents_dir
        PosixPath('.speclink/specs')
    """
    documents_dir: Path = Field(
        default=Path(".speclink/specs"),
        description="Directory holding {id}.md spec documents"
    )
    db_path: Path = Field(
        default=Path(".speclink/speclink.db"),
        description="Path to the SQLite local store"
    )
    backup: BackupConfig = Field(
        default_factory=BackupConfig,
        description="Local store backups"
    )
    github: GitHubConfig = Field(
        default_factory=GitHubConfig,
        description="Issue tracker connection"
    )
    status: StatusConfig = Field(
        default_factory=StatusConfig,
        description="Phase to board status mapping"
    )
    validation: ValidationConfig = Field(
        default_factory=ValidationConfig,
        description="Phase-transition validation"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )

    def resolve(self, project_dir: Path) -> "SpecLinkConfig":
        """
        Return a copy with relative paths anchored at project_dir.

        Args:
            project_dir: Project root directory

        Returns:
            New config with absolute documents_dir, db_path and backup directory
        """
        def anchor(p: Path) -> Path:
            return p if p.is_absolute() else project_dir / p

        backup = self.backup.model_copy(update={"directory": anchor(self.backup.directory)})
        return self.model_copy(
            update={
                "documents_dir": anchor(self.documents_dir),
                "db_path": anchor(self.db_path),
                "backup": backup,
            }
        )
