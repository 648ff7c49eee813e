"""
Verification of Chef signed request headers

This is the server-side half of the protocol: given the headers a client
sent and the client's public key, rebuild the canonical request and check
the signature. It is used to test signers and to diagnose rejected requests.
"""

import base64
import binascii
import hmac
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..exceptions import VerificationError
from .canonical_request import canonical_request_v11, canonical_request_v13
from .types import (
    X_OPS_CONTENT_HASH,
    X_OPS_SIGN,
    X_OPS_TIMESTAMP,
    X_OPS_USERID,
    HttpMethod,
    ProtocolVersion,
    RequestBody,
)
from .utils import digest_b64, expand_body, parse_timestamp, squeeze_path

logger = logging.getLogger(__name__)

_AUTHORIZATION_PATTERN = re.compile(r'^x-ops-authorization-(\d+)$')

# Chef Server rejects requests whose timestamp is further off than this
DEFAULT_MAX_CLOCK_SKEW = 900


@dataclass
class VerificationResult:
    """
    Outcome of checking a signed header set

    Attributes:
        valid: True if the signature matches the recomputed canonical request
        version: Protocol version announced by X-Ops-Sign
        canonical_request: Canonical request the signature was checked against
        reason: Why verification failed, None when valid
    """
    valid: bool
    version: ProtocolVersion
    canonical_request: str
    reason: Optional[str] = None


def find_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    wanted = name.lower()
    for header_name, value in headers.items():
        if header_name.lower() == wanted:
            return value
    return None


def reassemble_signature(headers: Mapping[str, str]) -> str:
    """
    Concatenate X-Ops-Authorization-<i> values in numeric order.

    Args:
        headers: Received headers

    Returns:
        str: Base64 signature

    Raises:
        VerificationError: If no chunks are present or numbering has gaps
    """
    chunks: Dict[int, str] = {}
    for name, value in headers.items():
        match = _AUTHORIZATION_PATTERN.match(name.lower())
        if match:
            chunks[int(match.group(1))] = value

    if not chunks:
        raise VerificationError("No X-Ops-Authorization headers present", "MISSING_AUTHORIZATION")

    indices = sorted(chunks)
    if indices != list(range(1, len(indices) + 1)):
        raise VerificationError(
            "X-Ops-Authorization headers are not numbered contiguously from 1",
            "AUTHORIZATION_GAP",
            {"indices": indices}
        )

    return "".join(chunks[i] for i in indices)


def parse_sign_header(value: str) -> Dict[str, str]:
    """Parse an X-Ops-Sign value such as 'algorithm=sha1;version=1.1'."""
    fields = {}
    for part in value.split(';'):
        key, separator, item = part.strip().partition('=')
        if separator:
            fields[key.strip()] = item.strip()
    return fields


def check_timestamp_skew(
    timestamp: str,
    max_skew_seconds: int = DEFAULT_MAX_CLOCK_SKEW,
    now: Optional[datetime] = None
) -> bool:
    """
    Check that a signing timestamp is close enough to the current time.

    Args:
        timestamp: X-Ops-Timestamp value
        max_skew_seconds: Allowed difference in either direction
        now: Reference time, current UTC time if None

    Returns:
        bool: True if the timestamp is within the allowed skew
    """
    signed_at = parse_timestamp(timestamp)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return abs((now - signed_at).total_seconds()) <= max_skew_seconds


def _load_public_key(key) -> rsa.RSAPublicKey:
    if isinstance(key, rsa.RSAPrivateKey):
        key = key.public_key()
    elif isinstance(key, (bytes, str)):
        data = key.encode('utf-8') if isinstance(key, str) else key
        try:
            key = serialization.load_pem_public_key(data)
        except (ValueError, UnsupportedAlgorithm) as e:
            raise VerificationError(
                f"Failed to read public key: {e}",
                "INVALID_PUBLIC_KEY",
                {"original_error": str(e)}
            ) from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise VerificationError(
            f"RSA public key required, got {type(key).__name__}",
            "INVALID_PUBLIC_KEY"
        )
    return key


def verify_request(
    headers: Mapping[str, str],
    method: Union[str, HttpMethod],
    path: str,
    public_key: Union[bytes, str, rsa.RSAPublicKey, rsa.RSAPrivateKey],
    body: RequestBody = None,
    api_version: str = "1"
) -> VerificationResult:
    """
    Verify a signed header set against the request it was sent with.

    Args:
        headers: Received headers (names matched case-insensitively)
        method: HTTP verb of the request
        path: Request path
        public_key: Client public key as PEM or key object
        body: Request body
        api_version: Server API version the request was sent with

    Returns:
        VerificationResult: valid is False for a wrong signature or content hash

    Raises:
        VerificationError: If required headers are missing or malformed
    """
    sign_value = find_header(headers, X_OPS_SIGN)
    timestamp = find_header(headers, X_OPS_TIMESTAMP)
    userid = find_header(headers, X_OPS_USERID)
    content_hash = find_header(headers, X_OPS_CONTENT_HASH)

    missing = [name for name, value in (
        (X_OPS_SIGN, sign_value),
        (X_OPS_TIMESTAMP, timestamp),
        (X_OPS_USERID, userid),
        (X_OPS_CONTENT_HASH, content_hash),
    ) if value is None]
    if missing:
        raise VerificationError(
            f"Required headers missing: {', '.join(missing)}",
            "MISSING_HEADER",
            {"missing_headers": missing}
        )

    sign_fields = parse_sign_header(sign_value)
    try:
        version = ProtocolVersion(sign_fields.get('version', ''))
    except ValueError:
        raise VerificationError(
            f"Unsupported X-Ops-Sign value: {sign_value}",
            "UNSUPPORTED_VERSION",
            {"x_ops_sign": sign_value}
        ) from None

    if sign_fields.get('algorithm') != version.digest_algorithm:
        raise VerificationError(
            f"X-Ops-Sign algorithm does not match protocol {version.value}: {sign_value}",
            "UNSUPPORTED_VERSION",
            {"x_ops_sign": sign_value, "expected_algorithm": version.digest_algorithm}
        )

    try:
        signature = base64.b64decode(reassemble_signature(headers), validate=True)
    except binascii.Error as e:
        raise VerificationError(
            f"Signature is not valid base64: {e}",
            "INVALID_SIGNATURE_ENCODING"
        ) from e

    key = _load_public_key(public_key)
    method_value = HttpMethod.parse(method).value
    normalized_path = squeeze_path(path)
    body_bytes = expand_body(body)

    if version is ProtocolVersion.V1_1:
        expected_hash = digest_b64("sha1", body_bytes)
        canonical = canonical_request_v11(
            method_value,
            digest_b64("sha1", normalized_path.encode('utf-8')),
            expected_hash,
            timestamp,
            digest_b64("sha1", userid.encode('utf-8'))
        )
    else:
        expected_hash = digest_b64("sha256", body_bytes)
        canonical = canonical_request_v13(
            method_value,
            normalized_path,
            expected_hash,
            timestamp,
            userid,
            str(api_version)
        )

    if content_hash != expected_hash:
        logger.debug(f"Content hash mismatch for {method_value} {normalized_path}")
        return VerificationResult(False, version, canonical, "content hash does not match body")

    if version is ProtocolVersion.V1_1:
        valid = _check_decrypted(key, signature, canonical)
    else:
        valid = _check_signature(key, signature, canonical)

    if not valid:
        logger.debug(f"Signature mismatch for {method_value} {normalized_path} (protocol {version.value})")
        return VerificationResult(False, version, canonical, "signature does not match canonical request")

    return VerificationResult(True, version, canonical)


def _check_signature(key: rsa.RSAPublicKey, signature: bytes, canonical: str) -> bool:
    try:
        key.verify(signature, canonical.encode('utf-8'), padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        return False
    return True


def _check_decrypted(key: rsa.RSAPublicKey, signature: bytes, canonical: str) -> bool:
    try:
        recovered = key.recover_data_from_signature(signature, padding.PKCS1v15(), None)
    except InvalidSignature:
        return False
    return hmac.compare_digest(recovered, canonical.encode('utf-8'))
