from unittest.mock import MagicMock

import pytest

from vault_lease_cache.config import ProviderConfig, Settings, ensure_mount_enabled
from vault_lease_cache.errors import InvalidArgument


class TestProviderConfig:
    def test_defaults(self):
        config = ProviderConfig()
        assert config.secret_engine_mount == "aws/"
        assert config.secret_path == ""

    @pytest.mark.parametrize("mount", ["aws", "aws/", "/aws/", "aws//"])
    def test_mount_gets_single_trailing_slash(self, mount):
        assert ProviderConfig(secret_engine_mount=mount).secret_engine_mount == "aws/"

    @pytest.mark.parametrize("path", ["deploy", "team-a/deploy_1.0", "A-Z/0-9", ""])
    def test_accepts_url_safe_paths(self, path):
        assert ProviderConfig(secret_path=path).secret_path == path

    @pytest.mark.parametrize("path", ["has space", "deploy?x=1", "../%2e", "ünïcode"])
    def test_rejects_unsafe_paths(self, path):
        with pytest.raises(InvalidArgument, match="Secret Path"):
            ProviderConfig(secret_path=path)

    @pytest.mark.parametrize("mount", ["", "/", "bad mount"])
    def test_rejects_bad_mounts(self, mount):
        with pytest.raises(InvalidArgument):
            ProviderConfig(secret_engine_mount=mount)

    def test_assignment_is_validated(self):
        config = ProviderConfig()
        with pytest.raises(InvalidArgument):
            config.secret_path = "not valid!"

    def test_editable_until_locked(self):
        config = ProviderConfig(secret_path="deploy")
        config.secret_path = "backup"
        config.lock()

        assert config.locked
        with pytest.raises(InvalidArgument, match="secret_engine_mount"):
            config.secret_engine_mount = "other/"
        assert config.secret_path == "backup"

    def test_from_settings(self):
        config = ProviderConfig.from_settings(Settings(secret_engine_mount="cloud", secret_path="deploy"))
        assert config.secret_engine_mount == "cloud/"
        assert config.secret_path == "deploy"


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("VAULT_LEASE_VAULT_ADDR", "https://vault.example.com")
        monkeypatch.setenv("VAULT_LEASE_STRICT_FETCH", "true")
        monkeypatch.setenv("VAULT_LEASE_MAX_RETRIES", "3")

        settings = Settings()

        assert settings.vault_addr == "https://vault.example.com"
        assert settings.strict_fetch is True
        assert settings.max_retries == 3


class TestEnsureMountEnabled:
    def test_accepts_enabled_mount(self):
        transport = MagicMock()
        transport.list_secret_engine_mounts.return_value = {"aws/": {"type": "aws"}}

        ensure_mount_enabled(ProviderConfig(secret_engine_mount="aws"), transport)

        transport.list_secret_engine_mounts.assert_called_once_with(["aws"])

    def test_rejects_unknown_mount(self):
        transport = MagicMock()
        transport.list_secret_engine_mounts.return_value = {"aws/": {"type": "aws"}}

        with pytest.raises(InvalidArgument, match="cloud/"):
            ensure_mount_enabled(ProviderConfig(secret_engine_mount="cloud"), transport)
