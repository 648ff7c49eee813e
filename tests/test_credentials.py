"""
Tests for credentials file loading and profile resolution
"""

import pytest

from chef_api.authentication import ProtocolVersion
from chef_api.config import ChefConfig, default_credentials_path, load_credentials, resolve_profile
from chef_api.exceptions import CredentialsError, ValidationError

CREDENTIALS = """
[default]
client_name = "spec-user"
client_key = "spec-user.pem"
chef_server_url = "https://chef.example.com/organizations/clownco"

[legacy]
node_name = "old-node"
client_key = "/etc/chef/client.pem"
chef_server_url = "https://chef.example.com:8443/organizations/legacy/"
sign_ver = "1.1"

[implicit-key]
client_name = "implicit"
chef_server_url = "http://localhost:8889/organizations/test"
"""


@pytest.fixture
def chef_home(tmp_path, monkeypatch):
    """Isolated home directory with an empty ~/.chef"""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("CHEF_PROFILE", raising=False)
    monkeypatch.delenv("CHEF_CREDENTIALS", raising=False)
    home = tmp_path / ".chef"
    home.mkdir()
    return home


@pytest.fixture
def credentials_file(chef_home, private_pem):
    path = chef_home / "credentials"
    path.write_text(CREDENTIALS, encoding='utf-8')
    (chef_home / "spec-user.pem").write_bytes(private_pem)
    return path


class TestProfileResolution:
    """Test active profile selection"""

    def test_default(self, chef_home):
        assert resolve_profile() == "default"

    def test_explicit_argument_wins(self, chef_home, monkeypatch):
        monkeypatch.setenv("CHEF_PROFILE", "from-env")
        (chef_home / "context").write_text("from-context\n")
        assert resolve_profile("explicit") == "explicit"

    def test_environment(self, chef_home, monkeypatch):
        monkeypatch.setenv("CHEF_PROFILE", "from-env")
        (chef_home / "context").write_text("from-context\n")
        assert resolve_profile() == "from-env"

    def test_context_file(self, chef_home):
        (chef_home / "context").write_text("from-context\n")
        assert resolve_profile() == "from-context"

    def test_empty_context_file(self, chef_home):
        (chef_home / "context").write_text("\n")
        assert resolve_profile() == "default"

    def test_default_credentials_path(self, chef_home, monkeypatch, tmp_path):
        assert default_credentials_path() == chef_home / "credentials"

        monkeypatch.setenv("CHEF_CREDENTIALS", str(tmp_path / "other"))
        assert default_credentials_path() == tmp_path / "other"


class TestLoadCredentials:
    """Test reading profiles from a credentials file"""

    def test_default_profile(self, credentials_file, private_pem):
        config = load_credentials(credentials_file)

        assert config.profile == "default"
        assert config.client_name == "spec-user"
        assert config.sign_ver == "1.3"
        assert config.protocol_version is ProtocolVersion.V1_3
        assert config.url_base() == "https://chef.example.com"
        assert config.organization_path() == "/organizations/clownco"

        # Relative key paths resolve against the credentials directory
        assert config.key() == private_pem

    def test_node_name_and_legacy_version(self, credentials_file):
        config = load_credentials(credentials_file, "legacy")

        assert config.client_name == "old-node"
        assert config.protocol_version is ProtocolVersion.V1_1
        assert config.url_base() == "https://chef.example.com:8443"
        assert config.organization_path() == "/organizations/legacy"

    def test_implicit_key_path(self, credentials_file, chef_home):
        config = load_credentials(credentials_file, "implicit-key")
        assert config.client_key == str(chef_home / "implicit.pem")

    def test_default_location(self, credentials_file):
        assert load_credentials().client_name == "spec-user"

    def test_profile_from_environment(self, credentials_file, monkeypatch):
        monkeypatch.setenv("CHEF_PROFILE", "legacy")
        assert load_credentials(credentials_file).client_name == "old-node"

    def test_missing_profile(self, credentials_file):
        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(credentials_file, "nope")

        assert exc_info.value.error_code == "PROFILE_NOT_FOUND"
        assert "legacy" in exc_info.value.details["available_profiles"]

    def test_missing_file(self, chef_home):
        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(chef_home / "absent")
        assert exc_info.value.error_code == "UNREADABLE_CONFIG"

    def test_invalid_toml(self, chef_home):
        path = chef_home / "credentials"
        path.write_text("[default\nclient_name = ")

        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(path)
        assert exc_info.value.error_code == "TOML_PARSE_ERROR"

    def test_duplicate_client_name(self, chef_home):
        path = chef_home / "credentials"
        path.write_text(
            '[default]\n'
            'client_name = "a"\n'
            'node_name = "b"\n'
            'chef_server_url = "https://chef.example.com/organizations/x"\n'
        )

        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(path)
        assert exc_info.value.error_code == "DUPLICATE_CLIENT_NAME"

    def test_missing_server_url(self, chef_home):
        path = chef_home / "credentials"
        path.write_text('[default]\nclient_name = "a"\n')

        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(path)
        assert exc_info.value.error_code == "MISSING_SERVER_URL"

    def test_invalid_server_url(self, chef_home):
        path = chef_home / "credentials"
        path.write_text('[default]\nclient_name = "a"\nchef_server_url = "chef.example.com"\n')

        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(path)
        assert exc_info.value.error_code == "INVALID_PROFILE"


class TestChefConfig:
    """Test ChefConfig behaviour"""

    def test_inline_key(self, private_pem):
        config = ChefConfig(
            client_name="spec-user",
            client_key=private_pem.decode('ascii'),
            server_url="https://chef.example.com/organizations/clownco"
        )
        assert config.key() == private_pem

    def test_repr_hides_key(self, private_pem):
        config = ChefConfig(
            client_name="spec-user",
            client_key=private_pem.decode('ascii'),
            server_url="https://chef.example.com/organizations/clownco"
        )
        assert "PRIVATE KEY" not in repr(config)

    def test_unreadable_key(self, tmp_path):
        config = ChefConfig(
            client_name="spec-user",
            client_key="missing.pem",
            server_url="https://chef.example.com/organizations/clownco",
            base_dir=tmp_path
        )

        with pytest.raises(CredentialsError) as exc_info:
            config.key()
        assert exc_info.value.error_code == "PRIVATE_KEY_UNREADABLE"
        assert exc_info.value.details["path"] == str(tmp_path / "missing.pem")

    def test_validation(self):
        with pytest.raises(ValidationError):
            ChefConfig(client_name="", client_key="k.pem", server_url="https://chef.example.com")

        with pytest.raises(ValidationError):
            ChefConfig(client_name="a", client_key="k.pem", server_url="ftp://chef.example.com")

    def test_unknown_sign_version_selects_v13(self):
        config = ChefConfig(
            client_name="a",
            client_key="k.pem",
            server_url="https://chef.example.com",
            sign_ver="1.2"
        )
        assert config.protocol_version is ProtocolVersion.V1_3
        assert config.organization_path() == "/"
