"""
Chef API SDK
Chef Server REST client with protocol 1.1 and 1.3 request signing
"""

from .version import __version__
from .authentication import (
    # Signers
    Auth11,
    Auth13,
    RequestSigner,
    create_signer,
    sign_request,
    # Types
    HttpMethod,
    ProtocolVersion,
    SigningRequest,
    SignedHeaders,
    # Utilities
    squeeze_path,
    format_timestamp,
    chunk_signature,
    load_private_key,
    # Verification
    VerificationResult,
    verify_request,
    reassemble_signature,
)
from .config import (
    ChefConfig,
    load_credentials,
)
from .api_client import (
    ApiClient,
    ChefRequest,
    add_path_element,
)
from .exceptions import (
    ChefSDKError,
    ValidationError,
    SigningError,
    PrivateKeyError,
    CryptoError,
    HeaderEncodingError,
    VerificationError,
    CredentialsError,
    ServerCommunicationError,
    ChefServerResponseError,
)


# Public API exports
__all__ = [
    '__version__',
    # Request Signing
    'Auth11',
    'Auth13',
    'RequestSigner',
    'create_signer',
    'sign_request',
    'HttpMethod',
    'ProtocolVersion',
    'SigningRequest',
    'SignedHeaders',
    'squeeze_path',
    'format_timestamp',
    'chunk_signature',
    'load_private_key',
    'VerificationResult',
    'verify_request',
    'reassemble_signature',
    # Configuration
    'ChefConfig',
    'load_credentials',
    # HTTP Client
    'ApiClient',
    'ChefRequest',
    'add_path_element',
    # Exceptions
    'ChefSDKError',
    'ValidationError',
    'SigningError',
    'PrivateKeyError',
    'CryptoError',
    'HeaderEncodingError',
    'VerificationError',
    'CredentialsError',
    'ServerCommunicationError',
    'ChefServerResponseError',
]
