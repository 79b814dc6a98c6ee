"""Pipeline configuration using pydantic-settings.

This module defines the LockbumpSettings class that reads configuration
from environment variables with the LOCKBUMP_ prefix. Every field has a
default matching a Cargo workspace, so the pipeline runs unconfigured in a
typical Rust repository. The GitHub token and repository slug additionally
fall back to the GITHUB_TOKEN and GITHUB_REPOSITORY variables that CI
runners export.
"""

import shlex
from typing import Dict, List, Literal, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PR_BODY_PREAMBLE = (
    "Automation to keep dependencies in `Cargo.lock` current.\n"
    "\n"
    "The following is the output from `cargo update`:\n"
)


class LockbumpSettings(BaseSettings):
    """Lockfile update pipeline configuration from environment variables.

    All environment variables are prefixed with LOCKBUMP_ (e.g.,
    LOCKBUMP_BRANCH). Dict-valued fields such as update_env are read as
    JSON.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOCKBUMP_",
        case_sensitive=False,
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Updater
    # -------------------------------------------------------------------------
    # Dependency-update command, split with shell rules
    update_command: str = "cargo update"

    # Pinned toolchain; inserted as "+<version>" after the program name
    toolchain_version: Optional[str] = "1.86.0"

    # Run "rustup toolchain install" before updating
    install_toolchain: bool = True

    # Extra environment for the update command (cargo unstable features)
    update_env: Dict[str, str] = Field(
        default_factory=lambda: {"RUSTC_BOOTSTRAP": "1"}
    )

    update_timeout_seconds: int = 1800

    # Lines of update output containing this substring are dropped
    noise_substring: str = "crates.io index"

    # -------------------------------------------------------------------------
    # Artifacts
    # -------------------------------------------------------------------------
    lockfile_path: str = "Cargo.lock"
    log_filename: str = "cargo_update.log"
    lockfile_artifact: str = "Cargo-lock"
    log_artifact: str = "cargo-updates"
    artifacts_dir: str = ".lockbump/artifacts"
    artifact_retention_days: int = 1

    # -------------------------------------------------------------------------
    # Pull request
    # -------------------------------------------------------------------------
    branch: str = "cargo_update"
    remote: str = "origin"

    # None targets the repository default branch
    base_branch: Optional[str] = None

    pr_title: str = "Weekly `cargo update`"
    pr_body_preamble: str = DEFAULT_PR_BODY_PREAMBLE
    commit_message_preamble: str = "cargo update\n\n"
    pr_label: str = "no changelog"

    # Automation identity used for commit attribution
    bot_name: str = "github-actions[bot]"
    bot_email: str = "github-actions[bot]@users.noreply.github.com"

    # -------------------------------------------------------------------------
    # Code hosting
    # -------------------------------------------------------------------------
    # "api" talks to the GitHub REST API, "gh" drives the gh CLI
    pr_backend: Literal["api", "gh"] = "api"

    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("LOCKBUMP_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )

    # "owner/repo"; inferred from the git remote when empty
    github_repository: str = Field(
        default="",
        validation_alias=AliasChoices(
            "LOCKBUMP_GITHUB_REPOSITORY", "GITHUB_REPOSITORY"
        ),
    )

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    github_timeout_seconds: float = 30.0

    gh_cli_path: str = "gh"

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------
    pushgateway_url: Optional[str] = None
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("update_command")
    @classmethod
    def validate_update_command(cls, v: str) -> str:
        """Validate that the update command parses into at least a program."""
        if not v or not v.strip():
            raise ValueError("update_command cannot be empty")
        try:
            shlex.split(v)
        except ValueError as exc:
            raise ValueError(f"update_command is not valid shell syntax: {exc}")
        return v

    @field_validator("toolchain_version")
    @classmethod
    def validate_toolchain_version(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank toolchain version as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("update_timeout_seconds")
    @classmethod
    def validate_update_timeout(cls, v: int) -> int:
        """Validate that the update timeout is positive."""
        if v < 1:
            raise ValueError("update_timeout_seconds must be at least 1")
        return v

    @field_validator("noise_substring")
    @classmethod
    def validate_noise_substring(cls, v: str) -> str:
        """Reject an empty filter, which would drop every line."""
        if not v:
            raise ValueError("noise_substring cannot be empty")
        return v

    @field_validator("artifact_retention_days")
    @classmethod
    def validate_retention_days(cls, v: int) -> int:
        """Validate that retention days is positive."""
        if v < 1:
            raise ValueError("artifact_retention_days must be at least 1")
        return v

    @field_validator("lockfile_artifact", "log_artifact")
    @classmethod
    def validate_artifact_name(cls, v: str) -> str:
        """Validate that artifact names are usable as directory names."""
        if not v or not v.strip():
            raise ValueError("artifact name cannot be empty")
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("artifact name cannot contain path separators")
        return v

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: str) -> str:
        """Validate that the PR branch name is not empty."""
        if not v or not v.strip():
            raise ValueError("branch cannot be empty")
        if v.startswith("-") or " " in v:
            raise ValueError("branch must not start with '-' or contain spaces")
        return v

    @field_validator("github_repository")
    @classmethod
    def validate_github_repository(cls, v: str) -> str:
        """Validate the owner/repo slug when one is given."""
        if v and (v.count("/") != 1 or v.startswith("/") or v.endswith("/")):
            raise ValueError("github_repository must have the form owner/repo")
        return v

    @field_validator("github_base_url")
    @classmethod
    def validate_github_base_url(cls, v: str) -> str:
        """Validate that the GitHub API URL is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("github_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the log level against the stdlib level names."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log_level: {v}")
        return level

    def update_argv(self) -> List[str]:
        """Return the update command as an argument vector.

        When a toolchain is pinned, "+<version>" is inserted after the
        program name, the rustup proxy convention for selecting a toolchain.
        """
        argv = shlex.split(self.update_command)
        if self.toolchain_version:
            argv.insert(1, f"+{self.toolchain_version}")
        return argv


def get_settings() -> LockbumpSettings:
    """Create and return LockbumpSettings instance.

    Returns:
        LockbumpSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    return LockbumpSettings()
