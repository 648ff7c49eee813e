"""
Chef authentication protocol 1.3

Protocol 1.3 hashes the body with SHA-256, signs the path, user id and
server API version as plain text, and produces a standard RSA PKCS#1 v1.5
signature over the canonical request with SHA-256 as the message digest.
"""

import base64
import logging
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from ..exceptions import CryptoError
from .canonical_request import canonical_request_v13
from .types import (
    X_OPS_CONTENT_HASH,
    X_OPS_SIGN,
    X_OPS_TIMESTAMP,
    X_OPS_USERID,
    HttpMethod,
    PrivateKeyMaterial,
    ProtocolVersion,
    RequestBody,
    SignedHeaders,
    SigningErrorCodes,
    SigningRequest,
)
from .utils import (
    PerformanceTimer,
    authorization_headers,
    digest_b64,
    load_private_key,
    require_rsa_key,
    resolve_trace,
    validate_header_value,
)

logger = logging.getLogger(__name__)


class Auth13:
    """
    Request signer for protocol 1.3
    """

    version = ProtocolVersion.V1_3

    def __init__(
        self,
        path: str,
        key: PrivateKeyMaterial,
        method: Union[str, HttpMethod],
        userid: str,
        api_version: str = "1",
        body: RequestBody = None,
        timestamp=None,
        trace=None
    ):
        self.request = SigningRequest.create(method, path, userid, api_version, body, timestamp)
        self._key = key
        self._trace = resolve_trace(trace, logger)

    def __repr__(self) -> str:
        return (
            f"Auth13(method={self.request.method!r}, userid={self.request.userid!r}, "
            f"path={self.request.path!r}, body={self.request.body!r})"
        )

    @property
    def timestamp(self) -> str:
        return self.request.timestamp

    def content_hash(self) -> str:
        """base64(SHA-256(body)); an absent body hashes as the empty string"""
        hashed = digest_b64("sha256", self.request.body_bytes)
        self._emit("content_hash", hashed)
        return hashed

    def canonical_request(self) -> str:
        return self._canonical_request(self.content_hash())

    def _canonical_request(self, content_hash: str) -> str:
        canonical = canonical_request_v13(
            self.request.method,
            self.request.path,
            content_hash,
            self.request.timestamp,
            self.request.userid,
            self.request.api_version
        )
        self._emit("canonical_request", canonical)
        return canonical

    def signed_request(self, canonical: Optional[str] = None) -> str:
        """
        Sign the canonical request with RSA-SHA256.

        Args:
            canonical: Precomputed canonical request; built if None

        Returns:
            str: Base64 encoded signature

        Raises:
            PrivateKeyError: If the key cannot be parsed
            CryptoError: If the key cannot produce an RSA-SHA256 signature
        """
        key = require_rsa_key(load_private_key(self._key))
        if canonical is None:
            canonical = self.canonical_request()

        try:
            signature = key.sign(canonical.encode('utf-8'), padding.PKCS1v15(), hashes.SHA256())
        except UnsupportedAlgorithm as e:
            raise CryptoError(
                f"Key does not support RSA-SHA256 signing: {e}",
                SigningErrorCodes.UNSUPPORTED_KEY,
                {"original_error": str(e)}
            ) from e
        except (ValueError, TypeError) as e:
            raise CryptoError(
                f"Request signing failed: {e}",
                SigningErrorCodes.SIGN_FAILED,
                {"original_error": str(e)}
            ) from e

        result = base64.b64encode(signature).decode('ascii')
        self._emit("signed_request", result)
        return result

    def build(self) -> SignedHeaders:
        """
        Run the signing pipeline and return the header set.

        Raises:
            PrivateKeyError: If the key cannot be parsed
            CryptoError: If hashing or signing fails
            HeaderEncodingError: If a header value is not ASCII-safe
        """
        timer = PerformanceTimer()
        content_hash = self.content_hash()

        headers = {
            X_OPS_CONTENT_HASH: validate_header_value(X_OPS_CONTENT_HASH, content_hash),
            X_OPS_SIGN: self.version.sign_header,
            X_OPS_TIMESTAMP: validate_header_value(X_OPS_TIMESTAMP, self.request.timestamp),
            X_OPS_USERID: validate_header_value(X_OPS_USERID, self.request.userid),
        }
        canonical = self._canonical_request(content_hash)
        headers.update(authorization_headers(self.signed_request(canonical)))

        self._emit("elapsed_ms", f"{timer.elapsed_ms():.2f}")
        return SignedHeaders(headers)

    def _emit(self, label: str, value: str) -> None:
        if self._trace is not None:
            self._trace(label, value)
