"""
Protocol selection for Chef request signing

Both protocol signers expose the same capability; this module picks one from
a configured sign version string.
"""

from typing import Dict, Protocol, Type, Union, runtime_checkable

from .auth11 import Auth11
from .auth13 import Auth13
from .types import (
    HttpMethod,
    PrivateKeyMaterial,
    ProtocolVersion,
    RequestBody,
    SignedHeaders,
    SigningRequest,
)


@runtime_checkable
class RequestSigner(Protocol):
    """Capability shared by every protocol signer"""

    version: ProtocolVersion
    request: SigningRequest

    def canonical_request(self) -> str:
        ...

    def build(self) -> SignedHeaders:
        ...


SIGNERS: Dict[ProtocolVersion, Type[RequestSigner]] = {
    ProtocolVersion.V1_1: Auth11,
    ProtocolVersion.V1_3: Auth13,
}


def create_signer(
    sign_version: Union[str, ProtocolVersion, None],
    path: str,
    key: PrivateKeyMaterial,
    method: Union[str, HttpMethod],
    userid: str,
    api_version: str = "1",
    body: RequestBody = None,
    timestamp=None,
    trace=None
) -> RequestSigner:
    """
    Create a signer for one request.

    Args:
        sign_version: "1.1" for the legacy protocol, anything else for 1.3
        path: Request path
        key: PEM encoded RSA private key
        method: HTTP verb
        userid: Caller identity
        api_version: Server API version
        body: Optional request payload
        timestamp: Fixed timestamp, current UTC time if None
        trace: True to log intermediate values, or a (label, value) callback

    Returns:
        RequestSigner: Signer for the selected protocol
    """
    signer_class = SIGNERS[ProtocolVersion.from_config(sign_version)]
    return signer_class(
        path,
        key,
        method,
        userid,
        api_version=api_version,
        body=body,
        timestamp=timestamp,
        trace=trace
    )


def sign_request(
    sign_version: Union[str, ProtocolVersion, None],
    path: str,
    key: PrivateKeyMaterial,
    method: Union[str, HttpMethod],
    userid: str,
    api_version: str = "1",
    body: RequestBody = None,
    timestamp=None,
    trace=None
) -> SignedHeaders:
    """
    Sign a request and return its header set.

    Returns:
        SignedHeaders: Headers to merge into the outgoing request
    """
    signer = create_signer(
        sign_version, path, key, method, userid,
        api_version=api_version, body=body, timestamp=timestamp, trace=trace
    )
    return signer.build()
