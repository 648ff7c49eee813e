"""
Chef API SDK - Request Authentication Module

Implements the Chef Server request signing protocols 1.1 and 1.3. A signer
turns method, path, timestamp, user id and body into the X-Ops-* headers the
server verifies with the client's public key.
"""

from .types import (
    HttpMethod,
    ProtocolVersion,
    SigningRequest,
    SignedHeaders,
    SigningErrorCodes,
    AUTHORIZATION_CHUNK_SIZE,
    X_OPS_CONTENT_HASH,
    X_OPS_SIGN,
    X_OPS_TIMESTAMP,
    X_OPS_USERID,
    X_OPS_AUTHORIZATION_PREFIX,
)

from .auth11 import Auth11
from .auth13 import Auth13

from .signer import (
    RequestSigner,
    SIGNERS,
    create_signer,
    sign_request,
)

from .canonical_request import (
    canonical_request_v11,
    canonical_request_v13,
    parse_canonical_request,
)

from .utils import (
    squeeze_path,
    expand_body,
    format_timestamp,
    validate_timestamp,
    digest_b64,
    chunk_signature,
    authorization_headers,
    load_private_key,
)

from .verifier import (
    VerificationResult,
    verify_request,
    reassemble_signature,
    check_timestamp_skew,
)

# Public API exports
__all__ = [
    # Types
    'HttpMethod',
    'ProtocolVersion',
    'SigningRequest',
    'SignedHeaders',
    'SigningErrorCodes',
    'AUTHORIZATION_CHUNK_SIZE',
    'X_OPS_CONTENT_HASH',
    'X_OPS_SIGN',
    'X_OPS_TIMESTAMP',
    'X_OPS_USERID',
    'X_OPS_AUTHORIZATION_PREFIX',
    # Signers
    'Auth11',
    'Auth13',
    'RequestSigner',
    'SIGNERS',
    'create_signer',
    'sign_request',
    # Canonical requests
    'canonical_request_v11',
    'canonical_request_v13',
    'parse_canonical_request',
    # Utilities
    'squeeze_path',
    'expand_body',
    'format_timestamp',
    'validate_timestamp',
    'digest_b64',
    'chunk_signature',
    'authorization_headers',
    'load_private_key',
    # Verification
    'VerificationResult',
    'verify_request',
    'reassemble_signature',
    'check_timestamp_skew',
]
