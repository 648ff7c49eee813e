"""
Type definitions for Chef request authentication

This module provides the enums, data classes and constants shared by the
protocol 1.1 and 1.3 signers.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Union

from ..exceptions import ValidationError


# Header names emitted by the signers
X_OPS_CONTENT_HASH = "X-Ops-Content-Hash"
X_OPS_SIGN = "X-Ops-Sign"
X_OPS_TIMESTAMP = "X-Ops-Timestamp"
X_OPS_USERID = "X-Ops-Userid"
X_OPS_AUTHORIZATION_PREFIX = "X-Ops-Authorization-"

# Base64 signatures are split into headers of at most this many characters
AUTHORIZATION_CHUNK_SIZE = 60

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class HttpMethod(str, Enum):
    """HTTP methods supported for signing"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def parse(cls, value: Union[str, "HttpMethod"]) -> "HttpMethod":
        """Parse a verb in any case into an HttpMethod."""
        if isinstance(value, HttpMethod):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValidationError(
                f"Unsupported HTTP method: {value}",
                SigningErrorCodes.INVALID_METHOD,
                {"method": value}
            ) from None


class ProtocolVersion(str, Enum):
    """Chef authentication protocol versions"""
    V1_1 = "1.1"
    V1_3 = "1.3"

    @classmethod
    def from_config(cls, value: Optional[Union[str, "ProtocolVersion"]]) -> "ProtocolVersion":
        """
        Select a protocol from a configured sign version string.

        "1.1" selects the legacy protocol; every other value, including None,
        selects 1.3.
        """
        if isinstance(value, ProtocolVersion):
            return value
        if value is not None and str(value) == cls.V1_1.value:
            return cls.V1_1
        return cls.V1_3

    @property
    def sign_header(self) -> str:
        """Value of the X-Ops-Sign header for this protocol"""
        return f"algorithm={self.digest_algorithm};version={self.value}"

    @property
    def digest_algorithm(self) -> str:
        """Digest named by the algorithm field of X-Ops-Sign"""
        if self is ProtocolVersion.V1_1:
            return "sha1"
        return "sha256"


@dataclass(frozen=True)
class SigningRequest:
    """
    A single outgoing request as seen by a signer

    Attributes:
        method: Upper-case HTTP verb
        path: Squeezed URL path (no scheme, host or query)
        userid: Caller identity
        api_version: Server API version, signed by protocol 1.3 only
        timestamp: UTC capture time, YYYY-MM-DDTHH:MM:SSZ
        body: Optional request payload
    """
    method: str
    path: str
    userid: str
    api_version: str
    timestamp: str
    body: Optional[Union[str, bytes]] = None

    @classmethod
    def create(
        cls,
        method: Union[str, HttpMethod],
        path: str,
        userid: str,
        api_version: str = "1",
        body: Optional[Union[str, bytes]] = None,
        timestamp: Optional[Union[str, datetime]] = None
    ) -> "SigningRequest":
        """
        Normalize raw inputs and stamp the request time.

        Args:
            method: HTTP verb in any case
            path: URL path, repeated and trailing slashes are squeezed
            userid: Caller identity
            api_version: Server API version
            body: Optional payload
            timestamp: Fixed timestamp (string or datetime); current UTC time if None

        Returns:
            SigningRequest: Normalized request

        Raises:
            ValidationError: If any input is invalid
        """
        from .utils import squeeze_path, format_timestamp, validate_timestamp

        if not isinstance(userid, str) or not userid:
            raise ValidationError("User id must be a non-empty string", SigningErrorCodes.INVALID_USERID)

        if timestamp is None or isinstance(timestamp, datetime):
            stamp = format_timestamp(timestamp)
        else:
            stamp = timestamp
            if not validate_timestamp(stamp):
                raise ValidationError(
                    f"Invalid timestamp: {stamp}",
                    SigningErrorCodes.INVALID_TIMESTAMP,
                    {"timestamp": stamp}
                )

        return cls(
            method=HttpMethod.parse(method).value,
            path=squeeze_path(path),
            userid=userid,
            api_version=str(api_version),
            timestamp=stamp,
            body=body
        )

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes; an absent body hashes as the empty string"""
        from .utils import expand_body
        return expand_body(self.body)


class SignedHeaders(Mapping[str, str]):
    """
    Read-only header set produced by a signer

    Iteration order is emission order: metadata headers first, then the
    X-Ops-Authorization-<i> chunks in numeric order.
    """

    def __init__(self, headers: Dict[str, str]):
        self._headers = MappingProxyType(dict(headers))

    def __getitem__(self, name: str) -> str:
        return self._headers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"SignedHeaders({dict(self._headers)!r})"

    def authorization_chunks(self) -> List[str]:
        """Authorization header values in numeric order"""
        chunks = []
        index = 1
        while f"{X_OPS_AUTHORIZATION_PREFIX}{index}" in self._headers:
            chunks.append(self._headers[f"{X_OPS_AUTHORIZATION_PREFIX}{index}"])
            index += 1
        return chunks

    def signature(self) -> str:
        """Base64 signature reassembled from the authorization chunks"""
        return "".join(self.authorization_chunks())

    def to_dict(self) -> Dict[str, str]:
        """Mutable copy for merging into an outgoing request"""
        return dict(self._headers)


class SigningErrorCodes:
    """Standard error codes for signing operations"""

    # Input errors
    INVALID_METHOD = "INVALID_METHOD"
    INVALID_PATH = "INVALID_PATH"
    INVALID_BODY = "INVALID_BODY"
    INVALID_USERID = "INVALID_USERID"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"

    # Key errors
    INVALID_PRIVATE_KEY = "INVALID_PRIVATE_KEY"
    UNSUPPORTED_KEY = "UNSUPPORTED_KEY"

    # Crypto errors
    DIGEST_FAILED = "DIGEST_FAILED"
    ENCRYPT_FAILED = "ENCRYPT_FAILED"
    SIGN_FAILED = "SIGN_FAILED"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"

    # Header errors
    INVALID_HEADER_VALUE = "INVALID_HEADER_VALUE"


# Trace callback receives a label and the intermediate value
TraceCallback = Callable[[str, str], None]
PrivateKeyMaterial = Union[bytes, str]
RequestBody = Union[str, bytes, None]
