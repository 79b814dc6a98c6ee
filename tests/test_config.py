"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from lockbump.config import DEFAULT_PR_BODY_PREAMBLE, LockbumpSettings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Hide CI-provided variables that the settings read as fallbacks."""
    for name in (
        "GITHUB_TOKEN",
        "GITHUB_REPOSITORY",
        "LOCKBUMP_GITHUB_TOKEN",
        "LOCKBUMP_GITHUB_REPOSITORY",
        "LOCKBUMP_TOOLCHAIN_VERSION",
        "LOCKBUMP_UPDATE_COMMAND",
        "LOCKBUMP_UPDATE_ENV",
        "LOCKBUMP_BRANCH",
        "LOCKBUMP_LOG_LEVEL",
        "LOCKBUMP_PR_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:

    def test_defaults_match_cargo_workflow(self):
        settings = get_settings()

        assert settings.update_command == "cargo update"
        assert settings.toolchain_version == "1.86.0"
        assert settings.update_env == {"RUSTC_BOOTSTRAP": "1"}
        assert settings.noise_substring == "crates.io index"
        assert settings.lockfile_path == "Cargo.lock"
        assert settings.log_filename == "cargo_update.log"
        assert settings.lockfile_artifact == "Cargo-lock"
        assert settings.log_artifact == "cargo-updates"
        assert settings.artifact_retention_days == 1
        assert settings.branch == "cargo_update"
        assert settings.remote == "origin"
        assert settings.base_branch is None
        assert settings.pr_title == "Weekly `cargo update`"
        assert settings.pr_label == "no changelog"
        assert settings.pr_body_preamble == DEFAULT_PR_BODY_PREAMBLE
        assert settings.bot_name == "github-actions[bot]"
        assert settings.bot_email == "github-actions[bot]@users.noreply.github.com"
        assert settings.pr_backend == "api"

    def test_default_update_argv_pins_toolchain(self):
        assert get_settings().update_argv() == ["cargo", "+1.86.0", "update"]


class TestEnvironment:

    def test_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("LOCKBUMP_BRANCH", "deps/weekly")
        monkeypatch.setenv("LOCKBUMP_PR_BACKEND", "gh")

        settings = get_settings()

        assert settings.branch == "deps/weekly"
        assert settings.pr_backend == "gh"

    def test_github_variables_are_fallbacks(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_fallback")
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/widgets")

        settings = get_settings()

        assert settings.github_token == "ghs_fallback"
        assert settings.github_repository == "acme/widgets"

    def test_prefixed_token_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_fallback")
        monkeypatch.setenv("LOCKBUMP_GITHUB_TOKEN", "ghp_explicit")

        assert get_settings().github_token == "ghp_explicit"

    def test_update_env_parsed_as_json(self, monkeypatch):
        monkeypatch.setenv("LOCKBUMP_UPDATE_ENV", '{"CARGO_NET_OFFLINE": "true"}')

        assert get_settings().update_env == {"CARGO_NET_OFFLINE": "true"}

    def test_blank_toolchain_disables_pin(self, monkeypatch):
        monkeypatch.setenv("LOCKBUMP_TOOLCHAIN_VERSION", "  ")
        monkeypatch.setenv("LOCKBUMP_UPDATE_COMMAND", "cargo update --workspace")

        settings = get_settings()

        assert settings.toolchain_version is None
        assert settings.update_argv() == ["cargo", "update", "--workspace"]

    def test_log_level_upper_cased(self, monkeypatch):
        monkeypatch.setenv("LOCKBUMP_LOG_LEVEL", "debug")

        assert get_settings().log_level == "DEBUG"


class TestValidation:

    @pytest.mark.parametrize(
        "field,value",
        [
            ("update_command", ""),
            ("update_command", "cargo 'update"),
            ("update_timeout_seconds", 0),
            ("noise_substring", ""),
            ("artifact_retention_days", 0),
            ("lockfile_artifact", "a/b"),
            ("log_artifact", ".."),
            ("branch", "-f"),
            ("branch", "cargo update"),
            ("github_repository", "widgets"),
            ("github_repository", "acme/widgets/extra"),
            ("github_base_url", "api.github.com"),
            ("log_level", "LOUD"),
            ("pr_backend", "gitlab"),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            LockbumpSettings(**{field: value})

    def test_base_url_trailing_slash_stripped(self):
        settings = LockbumpSettings(github_base_url="https://ghe.example.com/api/v3/")

        assert settings.github_base_url == "https://ghe.example.com/api/v3"

    def test_quoted_update_command(self):
        settings = LockbumpSettings(
            update_command="cargo update --manifest-path 'crates/my app/Cargo.toml'",
            toolchain_version="nightly",
        )

        assert settings.update_argv() == [
            "cargo",
            "+nightly",
            "update",
            "--manifest-path",
            "crates/my app/Cargo.toml",
        ]
