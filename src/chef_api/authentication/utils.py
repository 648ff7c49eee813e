"""
Utility functions for Chef request authentication

This module holds the pieces both protocol versions share: path and body
normalization, timestamp formatting, digests, private key loading, PKCS#1
block padding and the chunked X-Ops-Authorization header layout.
"""

import base64
import hashlib
import logging
import math
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..exceptions import (
    ValidationError,
    PrivateKeyError,
    CryptoError,
    HeaderEncodingError,
)
from .types import (
    AUTHORIZATION_CHUNK_SIZE,
    TIMESTAMP_FORMAT,
    X_OPS_AUTHORIZATION_PREFIX,
    SigningErrorCodes,
    PrivateKeyMaterial,
    RequestBody,
    TraceCallback,
)

_TIMESTAMP_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$')
_HEADER_NAME_PATTERN = re.compile(r'^[!#$%&\'*+\-.0-9A-Z^_`a-z|~]+$')
_HEADER_VALUE_PATTERN = re.compile(r'^(?:[\x21-\x7e](?:[\t\x20-\x7e]*[\x21-\x7e])?)?$')

# Minimum number of 0xFF bytes in a PKCS#1 v1.5 type 1 block
_PKCS1_MIN_PADDING = 8


def squeeze_path(path: str) -> str:
    """
    Normalize a URL path for signing.

    Repeated slashes collapse into one and a trailing slash is removed.
    The root path and the empty string both normalize to "/".

    Args:
        path: URL path to normalize

    Returns:
        str: Normalized path, always starting with "/"

    Raises:
        ValidationError: If path is not a string
    """
    if not isinstance(path, str):
        raise ValidationError(
            f"Path must be a string, got {type(path)}",
            SigningErrorCodes.INVALID_PATH,
            {"path_type": str(type(path))}
        )

    segments = [segment for segment in path.split('/') if segment]
    if not segments:
        return '/'
    return '/' + '/'.join(segments)


def expand_body(body: RequestBody) -> bytes:
    """
    Return the bytes to hash for a request body.

    An absent body is treated exactly like the empty string.
    """
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode('utf-8')
    if isinstance(body, bytes):
        return body
    raise ValidationError(
        f"Body must be string, bytes, or None, got {type(body)}",
        SigningErrorCodes.INVALID_BODY,
        {"body_type": str(type(body))}
    )


def format_timestamp(dt: Optional[datetime] = None) -> str:
    """
    Format a moment as YYYY-MM-DDTHH:MM:SSZ in UTC.

    Args:
        dt: Moment to format; current time if None. Naive values are taken as UTC.

    Returns:
        str: Timestamp with second precision
    """
    if dt is None:
        dt = datetime.now(timezone.utc)
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a signing timestamp into an aware UTC datetime."""
    if not validate_timestamp(value):
        raise ValidationError(
            f"Invalid timestamp: {value}",
            SigningErrorCodes.INVALID_TIMESTAMP,
            {"timestamp": value}
        )
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def validate_timestamp(value: str) -> bool:
    """
    Validate a signing timestamp string.

    Args:
        value: Timestamp to validate

    Returns:
        bool: True if value is a real UTC instant in YYYY-MM-DDTHH:MM:SSZ form
    """
    if not isinstance(value, str) or not _TIMESTAMP_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return False
    return True


def digest_b64(algorithm: str, data: bytes) -> str:
    """
    Hash data and base64 encode the digest.

    Args:
        algorithm: "sha1" or "sha256"
        data: Bytes to hash

    Returns:
        str: Base64 encoded digest

    Raises:
        CryptoError: If the digest cannot be computed
    """
    try:
        if algorithm == "sha1":
            hasher = hashlib.sha1()
        elif algorithm == "sha256":
            hasher = hashlib.sha256()
        else:
            raise CryptoError(
                f"Unsupported digest algorithm: {algorithm}",
                SigningErrorCodes.DIGEST_FAILED,
                {"algorithm": algorithm}
            )

        hasher.update(data)
        return base64.b64encode(hasher.digest()).decode('ascii')

    except CryptoError:
        raise
    except (TypeError, ValueError) as e:
        raise CryptoError(
            f"Digest calculation failed: {e}",
            SigningErrorCodes.DIGEST_FAILED,
            {"algorithm": algorithm, "original_error": str(e)}
        ) from e


def load_private_key(pem: PrivateKeyMaterial):
    """
    Load a PEM encoded private key.

    Args:
        pem: PEM text as bytes or str

    Returns:
        The loaded private key object

    Raises:
        PrivateKeyError: If the key material cannot be parsed
    """
    if isinstance(pem, str):
        pem = pem.encode('utf-8')
    if not isinstance(pem, bytes) or not pem.strip():
        raise PrivateKeyError(
            "Private key must be non-empty PEM bytes",
            SigningErrorCodes.INVALID_PRIVATE_KEY
        )

    try:
        return serialization.load_pem_private_key(pem, password=None)
    except TypeError as e:
        raise PrivateKeyError(
            "Private key is encrypted; an unencrypted PEM key is required",
            SigningErrorCodes.INVALID_PRIVATE_KEY,
            {"original_error": str(e)}
        ) from e
    except (ValueError, UnsupportedAlgorithm) as e:
        raise PrivateKeyError(
            f"Failed to read private key: {e}",
            SigningErrorCodes.INVALID_PRIVATE_KEY,
            {"original_error": str(e)}
        ) from e


def require_rsa_key(key) -> rsa.RSAPrivateKey:
    """
    Ensure a loaded private key can be used for RSA operations.

    Raises:
        CryptoError: If the key is not an RSA private key
    """
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoError(
            f"RSA private key required, got {type(key).__name__}",
            SigningErrorCodes.UNSUPPORTED_KEY,
            {"key_type": type(key).__name__}
        )
    return key


def pkcs1_type1_pad(data: bytes, block_size: int) -> bytes:
    """
    Build a PKCS#1 v1.5 type 1 block: 00 01 FF..FF 00 || data.

    Args:
        data: Payload to embed
        block_size: RSA modulus size in bytes

    Returns:
        bytes: Padded block of exactly block_size bytes

    Raises:
        CryptoError: If data does not fit in the block
    """
    padding_length = block_size - 3 - len(data)
    if padding_length < _PKCS1_MIN_PADDING:
        raise CryptoError(
            f"Data too long for RSA key: {len(data)} bytes with a {block_size} byte modulus",
            SigningErrorCodes.MESSAGE_TOO_LONG,
            {"data_length": len(data), "block_size": block_size}
        )
    return b'\x00\x01' + (b'\xff' * padding_length) + b'\x00' + data


def rsa_private_operation(key: rsa.RSAPrivateKey, block: bytes) -> bytes:
    """
    Apply the raw RSA private key operation to a padded block.

    The input is blinded with a random r before exponentiation and the
    exponentiation runs through the CRT parameters, so the time taken does
    not depend on the message. The result equals block^d mod n.

    Args:
        key: RSA private key
        block: Padded block, exactly one modulus long

    Returns:
        bytes: Result of block^d mod n, one modulus long

    Raises:
        CryptoError: If the block is out of range or the result fails the check
    """
    numbers = key.private_numbers()
    n = numbers.public_numbers.n
    e = numbers.public_numbers.e
    block_size = (key.key_size + 7) // 8

    message = int.from_bytes(block, 'big')
    if len(block) != block_size or message >= n:
        raise CryptoError(
            "Padded block does not fit the RSA modulus",
            SigningErrorCodes.ENCRYPT_FAILED,
            {"block_length": len(block), "block_size": block_size}
        )

    while True:
        r = secrets.randbelow(n - 2) + 2
        if math.gcd(r, n) == 1:
            break
    blinded = (message * pow(r, e, n)) % n

    p, q = numbers.p, numbers.q
    m1 = pow(blinded % p, numbers.dmp1, p)
    m2 = pow(blinded % q, numbers.dmq1, q)
    h = (numbers.iqmp * (m1 - m2)) % p
    signed = ((m2 + h * q) * pow(r, -1, n)) % n

    # A faulty CRT result would leak a factor of n
    if pow(signed, e, n) != message:
        raise CryptoError(
            "RSA private key operation failed its consistency check",
            SigningErrorCodes.ENCRYPT_FAILED
        )
    return signed.to_bytes(block_size, 'big')


def chunk_signature(signature: str, size: int = AUTHORIZATION_CHUNK_SIZE) -> List[str]:
    """
    Split a base64 signature into consecutive chunks of at most size characters.

    Args:
        signature: Base64 signature (ASCII only)
        size: Maximum chunk length

    Returns:
        list: Chunks in order; empty for an empty signature
    """
    if size <= 0:
        raise ValidationError(f"Chunk size must be positive, got {size}")
    return [signature[i:i + size] for i in range(0, len(signature), size)]


def authorization_headers(signature: str) -> Dict[str, str]:
    """
    Lay out a base64 signature as X-Ops-Authorization-<i> headers.

    Args:
        signature: Base64 signature

    Returns:
        dict: Header name to chunk, numbered from 1 in chunk order
    """
    headers = {}
    for index, chunk in enumerate(chunk_signature(signature), start=1):
        name = f"{X_OPS_AUTHORIZATION_PREFIX}{index}"
        headers[name] = validate_header_value(name, chunk)
    return headers


def validate_header_name(name: str) -> bool:
    """
    Validate an HTTP header name (RFC 7230 token).

    Args:
        name: Header name to validate

    Returns:
        bool: True if header name is valid
    """
    if not isinstance(name, str):
        return False
    return bool(_HEADER_NAME_PATTERN.match(name))


def validate_header_value(name: str, value: str) -> str:
    """
    Ensure a computed value can be sent as an HTTP header.

    Args:
        name: Header name
        value: Header value

    Returns:
        str: The value unchanged

    Raises:
        HeaderEncodingError: If the name or value contains illegal characters
    """
    if not validate_header_name(name):
        raise HeaderEncodingError(
            f"Invalid header name: {name!r}",
            SigningErrorCodes.INVALID_HEADER_VALUE,
            {"header": name}
        )
    if not isinstance(value, str) or not _HEADER_VALUE_PATTERN.match(value):
        raise HeaderEncodingError(
            f"Invalid value for header {name}",
            SigningErrorCodes.INVALID_HEADER_VALUE,
            {"header": name, "value": repr(value)}
        )
    return value


def resolve_trace(trace, log: logging.Logger) -> Optional[TraceCallback]:
    """
    Turn a signer's trace argument into a callback.

    None or False disables tracing, True logs through log at DEBUG level,
    and a callable receives (label, value) pairs directly.
    """
    if trace is None or trace is False:
        return None
    if trace is True:
        def log_trace(label: str, value: str) -> None:
            log.debug(f"{label}: {value!r}")
        return log_trace
    if callable(trace):
        return trace
    raise ValidationError(f"Trace must be a bool or callable, got {type(trace)}")


class PerformanceTimer:
    """Simple performance timer for monitoring signing operations."""

    def __init__(self):
        self.start_time = time.perf_counter()

    def elapsed_ms(self) -> float:
        """Get elapsed time in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000
