"""
Chef authentication protocol 1.1

The legacy protocol hashes the path, body and user id with SHA-1 and
"encrypts" the canonical request with the RSA private key using PKCS#1 v1.5
type 1 padding. This is not a digest-then-sign signature; Chef servers that
accept 1.1 recover the canonical request with the public key and compare it.
"""

import base64
import logging
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm

from ..exceptions import CryptoError
from .canonical_request import canonical_request_v11
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
    pkcs1_type1_pad,
    require_rsa_key,
    resolve_trace,
    rsa_private_operation,
    validate_header_value,
)

logger = logging.getLogger(__name__)


class Auth11:
    """
    Request signer for protocol 1.1

    A signer is built for exactly one request. The timestamp is captured in
    the constructor and reused by every later step.
    """

    version = ProtocolVersion.V1_1

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
        """
        Capture request fields and the signing time.

        Args:
            path: Request path; squeezed before hashing
            key: PEM encoded RSA private key
            method: HTTP verb in any case
            userid: Caller identity
            api_version: Server API version (not signed by this protocol)
            body: Optional request payload
            timestamp: Fixed timestamp for reproducible signatures
            trace: True to log intermediate values, or a (label, value) callback
        """
        self.request = SigningRequest.create(method, path, userid, api_version, body, timestamp)
        self._key = key
        self._trace = resolve_trace(trace, logger)

    def __repr__(self) -> str:
        return (
            f"Auth11(method={self.request.method!r}, userid={self.request.userid!r}, "
            f"path={self.request.path!r}, body={self.request.body!r})"
        )

    @property
    def timestamp(self) -> str:
        return self.request.timestamp

    def hashed_path(self) -> str:
        """base64(SHA-1(path))"""
        hashed = digest_b64("sha1", self.request.path.encode('utf-8'))
        self._emit("hashed_path", hashed)
        return hashed

    def content_hash(self) -> str:
        """base64(SHA-1(body)); an absent body hashes as the empty string"""
        hashed = digest_b64("sha1", self.request.body_bytes)
        self._emit("content_hash", hashed)
        return hashed

    def canonical_user_id(self) -> str:
        """base64(SHA-1(userid))"""
        return digest_b64("sha1", self.request.userid.encode('utf-8'))

    def canonical_request(self) -> str:
        """
        Build the canonical request for this request.

        Returns:
            str: Canonical request text
        """
        return self._canonical_request(self.content_hash())

    def _canonical_request(self, content_hash: str) -> str:
        canonical = canonical_request_v11(
            self.request.method,
            self.hashed_path(),
            content_hash,
            self.request.timestamp,
            self.canonical_user_id()
        )
        self._emit("canonical_request", canonical)
        return canonical

    def encrypted_request(self, canonical: Optional[str] = None) -> str:
        """
        RSA private-key encrypt the canonical request.

        Args:
            canonical: Precomputed canonical request; built if None

        Returns:
            str: Base64 encoded ciphertext, one RSA block long

        Raises:
            PrivateKeyError: If the key cannot be parsed
            CryptoError: If the key is not RSA or the request does not fit the modulus
        """
        key = require_rsa_key(load_private_key(self._key))
        if canonical is None:
            canonical = self.canonical_request()

        try:
            block_size = (key.key_size + 7) // 8
            block = pkcs1_type1_pad(canonical.encode('utf-8'), block_size)
            encrypted = rsa_private_operation(key, block)
            result = base64.b64encode(encrypted).decode('ascii')

        except CryptoError:
            raise
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CryptoError(
                f"RSA private encryption failed: {e}",
                SigningErrorCodes.ENCRYPT_FAILED,
                {"original_error": str(e)}
            ) from e

        self._emit("encrypted_request", result)
        return result

    def build(self) -> SignedHeaders:
        """
        Run the signing pipeline and return the header set.

        Returns:
            SignedHeaders: Content hash, sign, timestamp, userid and authorization headers

        Raises:
            PrivateKeyError: If the key cannot be parsed
            CryptoError: If hashing or encryption fails
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
        headers.update(authorization_headers(self.encrypted_request(canonical)))

        self._emit("elapsed_ms", f"{timer.elapsed_ms():.2f}")
        return SignedHeaders(headers)

    def _emit(self, label: str, value: str) -> None:
        if self._trace is not None:
            self._trace(label, value)
