"""
Canonical request construction for Chef request authentication

The canonical request is the exact plaintext both the client and the Chef
Server rebuild from request fields. Field order and labels are part of the
protocol; the server recomputes this string byte for byte.
"""

from typing import Dict


def canonical_request_v11(
    method: str,
    hashed_path: str,
    content_hash: str,
    timestamp: str,
    hashed_userid: str
) -> str:
    """
    Build the protocol 1.1 canonical request.

    Args:
        method: Upper-case HTTP verb
        hashed_path: base64(SHA-1(path))
        content_hash: base64(SHA-1(body))
        timestamp: Signing timestamp
        hashed_userid: base64(SHA-1(userid))

    Returns:
        str: Canonical request
    """
    return (
        f"Method:{method}\n"
        f"Hashed Path:{hashed_path}\n"
        f"X-Ops-Content-Hash:{content_hash}\n"
        f"X-Ops-Timestamp:{timestamp}\n"
        f"X-Ops-UserId:{hashed_userid}"
    )


def canonical_request_v13(
    method: str,
    path: str,
    content_hash: str,
    timestamp: str,
    userid: str,
    api_version: str
) -> str:
    """
    Build the protocol 1.3 canonical request.

    Unlike 1.1 the path and user id are used as is and the server API
    version is part of the signed text.

    Args:
        method: Upper-case HTTP verb
        path: Squeezed request path
        content_hash: base64(SHA-256(body))
        timestamp: Signing timestamp
        userid: Caller identity
        api_version: Server API version

    Returns:
        str: Canonical request
    """
    return (
        f"Method:{method}\n"
        f"Path:{path}\n"
        f"X-Ops-Content-Hash:{content_hash}\n"
        f"X-Ops-Sign:version=1.3\n"
        f"X-Ops-Timestamp:{timestamp}\n"
        f"X-Ops-UserId:{userid}\n"
        f"X-Ops-Server-API-Version:{api_version}"
    )


def parse_canonical_request(canonical_request: str) -> Dict[str, str]:
    """
    Split a canonical request into its labelled fields.

    Args:
        canonical_request: Canonical request text

    Returns:
        dict: Label to value, in signing order
    """
    fields = {}
    for line in canonical_request.split('\n'):
        label, separator, value = line.partition(':')
        if separator:
            fields[label] = value
    return fields
