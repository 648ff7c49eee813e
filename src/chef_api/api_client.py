"""
HTTP client for Chef Server communication

This module assembles request URLs and bodies, signs every request with the
configured authentication protocol and sends it through a requests session.
Response bodies are returned as decoded JSON.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import requests

from .authentication import create_signer, squeeze_path, HttpMethod
from .config import ChefConfig, load_credentials
from .exceptions import (
    ChefServerResponseError,
    ServerCommunicationError,
    ValidationError,
)
from .version import __version__

logger = logging.getLogger(__name__)

# Client version announced to the server
CHEF_VERSION = "13.3.34"

DEFAULT_API_VERSION = "1"
DEFAULT_TIMEOUT = 30.0


def add_path_element(path: str, element: str) -> str:
    """
    Append one element to a request path.

    Args:
        path: Existing path
        element: Segment to append

    Returns:
        str: Squeezed path with the element appended
    """
    if not element:
        raise ValidationError("Path element cannot be empty")
    return squeeze_path(f"{path}/{element}")


class ChefRequest:
    """
    Fluent builder for a request against one Chef Server path

    Example:
        client.nodes().add("web01").get()
        client.search().add("node").q("role:web").get()
    """

    def __init__(self, client: 'ApiClient', path: str):
        self.client = client
        self.path = squeeze_path(path)
        self._api_version = DEFAULT_API_VERSION
        self._query: Optional[str] = None

    def __repr__(self) -> str:
        return f"ChefRequest(path={self.path!r}, api_version={self._api_version!r}, q={self._query!r})"

    def add(self, element: str) -> 'ChefRequest':
        """Append a path element, e.g. a node or cookbook name."""
        self.path = add_path_element(self.path, element)
        return self

    def q(self, query: str) -> 'ChefRequest':
        """Set the search query sent as the q parameter."""
        self._query = query
        return self

    def api_version(self, api_version: str) -> 'ChefRequest':
        """Override the server API version for this request."""
        self._api_version = str(api_version)
        return self

    def get(self) -> Any:
        return self._execute(HttpMethod.GET)

    def head(self) -> Any:
        return self._execute(HttpMethod.HEAD)

    def delete(self) -> Any:
        return self._execute(HttpMethod.DELETE)

    def post(self, body: Any = None) -> Any:
        return self._execute(HttpMethod.POST, body)

    def put(self, body: Any = None) -> Any:
        return self._execute(HttpMethod.PUT, body)

    def _execute(self, method: HttpMethod, body: Any = None) -> Any:
        return self.client.execute(
            method,
            self.path,
            body=body,
            api_version=self._api_version,
            query=self._query
        )


def _organization_resource(segment: str) -> Callable[['ApiClient'], ChefRequest]:
    def resource(self: 'ApiClient') -> ChefRequest:
        return ChefRequest(self, add_path_element(self.config.organization_path(), segment))
    resource.__name__ = segment
    resource.__doc__ = f"Requests under <organization>/{segment}"
    return resource


def _server_resource(segment: str) -> Callable[['ApiClient'], ChefRequest]:
    def resource(self: 'ApiClient') -> ChefRequest:
        return ChefRequest(self, add_path_element("/", segment))
    resource.__name__ = f"server_{segment}"
    resource.__doc__ = f"Requests under /{segment}"
    return resource


class ApiClient:
    """
    Client for the Chef Server API.

    Every request is signed with the protocol named by the configuration's
    sign_ver. Signing errors propagate to the caller; nothing is retried.
    """

    def __init__(
        self,
        config: ChefConfig,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        trace: bool = False
    ):
        """
        Initialize the API client.

        Args:
            config: Resolved credentials profile
            session: Optional existing requests session
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify TLS certificates
            trace: Log signer intermediate values at DEBUG level
        """
        if timeout <= 0:
            raise ValidationError("Timeout must be positive")

        self.config = config
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.trace = trace
        self.session = session or self._create_session()

        logger.info(
            f"Initialized Chef API client for {config.server_url} "
            f"as {config.client_name} (protocol {config.protocol_version.value})"
        )

    @classmethod
    def from_credentials(
        cls,
        path: Optional[Union[str, Path]] = None,
        profile: Optional[str] = None,
        **kwargs
    ) -> 'ApiClient':
        """
        Create a client from an RFC 99 credentials file.

        Args:
            path: Credentials file location
            profile: Profile name
            **kwargs: Additional arguments for ApiClient

        Returns:
            ApiClient: Configured client
        """
        return cls(load_credentials(path, profile), **kwargs)

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({
            'User-Agent': f'chef-api-sdk/{__version__}'
        })
        return session

    def execute(
        self,
        method: Union[str, HttpMethod],
        path: str,
        body: Any = None,
        api_version: str = DEFAULT_API_VERSION,
        query: Optional[str] = None
    ) -> Any:
        """
        Sign and send one request.

        Args:
            method: HTTP verb
            path: Request path, signed without query string
            body: JSON-serializable payload, or a pre-serialized str/bytes
            api_version: Server API version
            query: Optional search query sent as the q parameter

        Returns:
            Decoded JSON response, None for an empty response body

        Raises:
            SigningError: If the request cannot be signed
            ChefServerResponseError: If the server answers with a non-2xx status
            ServerCommunicationError: On network errors or undecodable responses
        """
        http_method = HttpMethod.parse(method)
        payload = self._encode_body(body)
        headers = self.request_headers(http_method, path, payload, api_version)

        url = f"{self.config.url_base()}{squeeze_path(path)}"
        params = {'q': query} if query is not None else None

        try:
            logger.debug(f"Making {http_method.value} request to {url}")
            response = self.session.request(
                http_method.value,
                url,
                params=params,
                data=payload,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_ssl
            )
        except requests.exceptions.Timeout as e:
            raise ServerCommunicationError(f"Request timeout after {self.timeout} seconds") from e
        except requests.exceptions.ConnectionError as e:
            raise ServerCommunicationError(f"Connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ServerCommunicationError(f"Request failed: {e}") from e

        logger.debug(f"Status is {response.status_code}")
        return self._handle_response(response)

    def request_headers(
        self,
        method: HttpMethod,
        path: str,
        payload: bytes,
        api_version: str = DEFAULT_API_VERSION
    ) -> Dict[str, str]:
        """
        Build the complete header set for a request.

        Returns:
            dict: Signed X-Ops headers plus content negotiation and version headers
        """
        signer = create_signer(
            self.config.sign_ver,
            path,
            self.config.key(),
            method,
            self.config.client_name,
            api_version=api_version,
            body=payload,
            trace=self.trace
        )

        headers = signer.build().to_dict()
        headers.update({
            'Accept': 'application/json',
            'Content-Type': 'application/json',
            'Content-Length': str(len(payload)),
            'X-Ops-Server-API-Info': '1',
            'X-Ops-Server-API-Version': str(api_version),
            'X-Chef-Version': CHEF_VERSION,
        })
        return headers

    @staticmethod
    def _encode_body(body: Any) -> bytes:
        if body is None:
            return b""
        if isinstance(body, bytes):
            return body
        if isinstance(body, str):
            return body.encode('utf-8')
        try:
            return json.dumps(body).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Request body is not JSON serializable: {e}") from e

    @staticmethod
    def _handle_response(response: requests.Response) -> Any:
        if not response.ok:
            details = {'status_code': response.status_code}
            try:
                error_data = response.json()
                if isinstance(error_data, dict) and 'error' in error_data:
                    details['error'] = error_data['error']
            except ValueError:
                details['reason'] = response.reason
            raise ChefServerResponseError(response.status_code, details)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ServerCommunicationError(
                f"Invalid JSON response: {e}",
                "DESERIALIZE_ERROR",
                response.status_code
            ) from e

    # Organization scoped endpoints
    clients = _organization_resource("clients")
    containers = _organization_resource("containers")
    controls = _organization_resource("controls")
    cookbook_artifacts = _organization_resource("cookbook_artifacts")
    cookbooks = _organization_resource("cookbooks")
    data = _organization_resource("data")
    environments = _organization_resource("environments")
    groups = _organization_resource("groups")
    nodes = _organization_resource("nodes")
    policies = _organization_resource("policies")
    policy_groups = _organization_resource("policy_groups")
    principals = _organization_resource("principals")
    roles = _organization_resource("roles")
    sandboxes = _organization_resource("sandboxes")
    search = _organization_resource("search")
    universe = _organization_resource("universe")
    users = _organization_resource("users")

    # Server root endpoints
    server_users = _server_resource("users")
    server_organizations = _server_resource("organizations")

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
