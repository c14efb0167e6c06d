"""
Project context: configuration, the open store and (on demand) the GitHub
client for one project directory.

Every interface builds one of these and passes it, or the pieces it needs,
to the core services. Nothing in the core reaches for global state.

Usage:
    >>> with AppContext.from_project_dir(Path.cwd()) as ctx:
    ...     report = ctx.checker().check(ctx.config.documents_dir)
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path

from speclink.core.config.env import load_layered_env
from speclink.core.config.loader import load_config
from speclink.core.config.models import SpecLinkConfig
from speclink.core.errors import ExternalAPIError
from speclink.core.github.client import GitHubClient
from speclink.core.github.sync import ExternalSyncService
from speclink.core.integrity.checker import IntegrityChecker
from speclink.core.integrity.repair import RepairService
from speclink.core.store.connection import open_store
from speclink.core.workflow.lifecycle import SpecLifecycle
from speclink.core.workflow.transitions import PhaseTransitionValidator

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "GITHUB_TOKEN"


class AppContext:
    """Holds the resources shared by every command for one project."""

    def __init__(
        self,
        project_dir: Path,
        config: SpecLinkConfig,
        conn: sqlite3.Connection,
        github_client: GitHubClient | None = None,
    ) -> None:
        self.project_dir = project_dir
        self.config = config
        self.conn = conn
        self._github = github_client

    @classmethod
    def from_project_dir(cls, project_dir: Path | None = None) -> AppContext:
        """
        Load env files and config for project_dir and open its store.

        Raises:
            StoreIOError: If the store cannot be opened
            pydantic.ValidationError: If the merged config is invalid
        """
        project_dir = (project_dir or Path.cwd()).resolve()
        loaded = load_layered_env(project_dir=project_dir)
        if loaded:
            logger.debug("Loaded from .env files: %s", ", ".join(loaded))
        config = load_config(project_dir)
        conn = open_store(config.db_path)
        return cls(project_dir, config, conn)

    def close(self) -> None:
        if self._github is not None:
            self._github.close()
        self.conn.close()

    def __enter__(self) -> AppContext:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def github(self) -> GitHubClient:
        """
        The GitHub client, created on first use.

        Raises:
            ExternalAPIError: If GITHUB_TOKEN is not set or the repository
                cannot be determined
        """
        if self._github is None:
            token = os.environ.get(TOKEN_ENV_VAR)
            if not token:
                raise ExternalAPIError(
                    f"{TOKEN_ENV_VAR} is not set",
                    hint=f"Export {TOKEN_ENV_VAR} or add it to .env in the project root",
                )
            self._github = GitHubClient.from_config(self.config, self.project_dir, token)
        return self._github

    def checker(self) -> IntegrityChecker:
        return IntegrityChecker(self.conn)

    def repair_service(self) -> RepairService:
        return RepairService(
            self.conn,
            self.config.documents_dir,
            db_path=self.config.db_path,
            backup=self.config.backup,
        )

    def lifecycle(self) -> SpecLifecycle:
        validator = PhaseTransitionValidator(test_mode=self.config.validation.test_mode)
        return SpecLifecycle(self.conn, self.config.documents_dir, validator)

    def sync_service(self) -> ExternalSyncService:
        return ExternalSyncService(
            self.conn,
            self.github,
            self.config.documents_dir,
            github=self.config.github,
            status=self.config.status,
        )
