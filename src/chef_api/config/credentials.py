"""
Credentials file loading for the Chef API SDK

Reads the TOML credentials file described by Chef RFC 99 and resolves the
active profile into a ChefConfig the API client can sign requests with.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from ..authentication.types import ProtocolVersion
from ..authentication.utils import squeeze_path
from ..exceptions import CredentialsError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "default"
DEFAULT_SIGN_VERSION = "1.3"

CREDENTIALS_ENV = "CHEF_CREDENTIALS"
PROFILE_ENV = "CHEF_PROFILE"

INLINE_KEY_MARKER = "-----BEGIN"


def chef_home() -> Path:
    """Directory holding the credentials and context files."""
    return Path.home() / ".chef"


def default_credentials_path() -> Path:
    """Credentials file location, honouring $CHEF_CREDENTIALS."""
    override = os.environ.get(CREDENTIALS_ENV)
    if override:
        return Path(override).expanduser()
    return chef_home() / "credentials"


def resolve_profile(profile: Optional[str] = None) -> str:
    """
    Pick the active profile name.

    Order: explicit argument, $CHEF_PROFILE, contents of ~/.chef/context,
    then "default".
    """
    if profile:
        return profile

    from_env = os.environ.get(PROFILE_ENV)
    if from_env:
        return from_env.strip()

    context_file = chef_home() / "context"
    try:
        from_context = context_file.read_text(encoding='utf-8').strip()
    except FileNotFoundError:
        from_context = ""
    except OSError as e:
        raise CredentialsError(
            f"Can't read context file at {context_file}: {e}",
            "UNREADABLE_CONTEXT",
            {"path": str(context_file)}
        ) from e

    return from_context or DEFAULT_PROFILE


@dataclass
class ChefConfig:
    """
    Resolved connection settings for one credentials profile

    Attributes:
        client_name: Identity used as the X-Ops-Userid
        client_key: Path to the PEM key, or the inline PEM text
        server_url: Chef Server URL including the organization path
        sign_ver: Authentication protocol version ("1.1" or "1.3")
        profile: Profile name the settings came from
        base_dir: Directory relative key paths are resolved against
    """
    client_name: str
    client_key: str = field(repr=False)
    server_url: str
    sign_ver: str = DEFAULT_SIGN_VERSION
    profile: str = DEFAULT_PROFILE
    base_dir: Optional[Path] = None

    def __post_init__(self):
        """Validate configuration."""
        if not self.client_name:
            raise ValidationError("client_name cannot be empty")

        if not self.client_key:
            raise ValidationError("client_key cannot be empty")

        parsed = urlparse(self.server_url or "")
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValidationError(f"Invalid chef_server_url format: {self.server_url}")

        self.sign_ver = str(self.sign_ver)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        profile: str = DEFAULT_PROFILE,
        base_dir: Optional[Path] = None
    ) -> 'ChefConfig':
        """
        Build a config from one profile table of a credentials file.

        Raises:
            CredentialsError: If client_name and node_name are both set, or
                required keys are missing
        """
        if 'client_name' in data and 'node_name' in data:
            raise CredentialsError(
                f"Both client_name and node_name are set in the {profile} profile",
                "DUPLICATE_CLIENT_NAME",
                {"profile": profile}
            )

        client_name = data.get('client_name') or data.get('node_name')
        if not client_name:
            raise CredentialsError(
                f"No client_name or node_name in the {profile} profile",
                "MISSING_CLIENT_NAME",
                {"profile": profile}
            )

        server_url = data.get('chef_server_url')
        if not server_url:
            raise CredentialsError(
                f"No chef_server_url in the {profile} profile",
                "MISSING_SERVER_URL",
                {"profile": profile}
            )

        home = base_dir or chef_home()
        client_key = data.get('client_key') or str(home / f"{client_name}.pem")

        try:
            return cls(
                client_name=client_name,
                client_key=client_key,
                server_url=server_url,
                sign_ver=data.get('sign_ver', DEFAULT_SIGN_VERSION),
                profile=profile,
                base_dir=home
            )
        except ValidationError as e:
            raise CredentialsError(
                f"Invalid settings in the {profile} profile: {e.message}",
                "INVALID_PROFILE",
                {"profile": profile}
            ) from e

    @property
    def protocol_version(self) -> ProtocolVersion:
        return ProtocolVersion.from_config(self.sign_ver)

    def key(self) -> bytes:
        """
        Return the PEM private key bytes.

        Inline keys are returned directly; otherwise the key file is read,
        with relative paths resolved against the credentials directory.

        Raises:
            CredentialsError: If the key file cannot be read
        """
        if self.client_key.lstrip().startswith(INLINE_KEY_MARKER):
            return self.client_key.encode('utf-8')

        key_path = Path(self.client_key).expanduser()
        if not key_path.is_absolute() and self.base_dir is not None:
            key_path = self.base_dir / key_path

        try:
            return key_path.read_bytes()
        except OSError as e:
            raise CredentialsError(
                f"Failed to read private key at {key_path}",
                "PRIVATE_KEY_UNREADABLE",
                {"path": str(key_path), "original_error": str(e)}
            ) from e

    def url_base(self) -> str:
        """Scheme and authority of the server URL, e.g. https://chef.example.com:443"""
        parsed = urlparse(self.server_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    def organization_path(self) -> str:
        """Path part of the server URL, e.g. /organizations/clownco"""
        return squeeze_path(urlparse(self.server_url).path)


def load_credentials(
    path: Optional[Union[str, Path]] = None,
    profile: Optional[str] = None
) -> ChefConfig:
    """
    Load a profile from a credentials file.

    Args:
        path: Credentials file, default $CHEF_CREDENTIALS or ~/.chef/credentials
        profile: Profile name, resolved with resolve_profile() when None

    Returns:
        ChefConfig: Settings for the selected profile

    Raises:
        CredentialsError: If the file cannot be read or parsed, or the
            profile is missing or invalid
    """
    credentials_path = Path(path).expanduser() if path else default_credentials_path()
    profile_name = resolve_profile(profile)

    try:
        with open(credentials_path, 'rb') as f:
            data = tomllib.load(f)
    except OSError as e:
        raise CredentialsError(
            f"Can't read config file at {credentials_path}",
            "UNREADABLE_CONFIG",
            {"path": str(credentials_path), "original_error": str(e)}
        ) from e
    except tomllib.TOMLDecodeError as e:
        raise CredentialsError(
            f"Failed to parse credentials file: {e}",
            "TOML_PARSE_ERROR",
            {"path": str(credentials_path)}
        ) from e

    profile_data = data.get(profile_name)
    if not isinstance(profile_data, dict):
        raise CredentialsError(
            f"Profile '{profile_name}' not found in {credentials_path}",
            "PROFILE_NOT_FOUND",
            {"profile": profile_name, "available_profiles": list(data.keys())}
        )

    logger.debug(f"Loaded profile '{profile_name}' from {credentials_path}")
    return ChefConfig.from_dict(profile_data, profile_name, credentials_path.parent)
