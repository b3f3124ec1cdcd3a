"""Endpoint string parsing for the three check types."""
import re
from typing import Tuple

_HOSTNAME_RE = re.compile(r"^[A-Za-z0-9._\-:\[\]%]+$")


def parse_host_port(endpoint: str) -> Tuple[str, int]:
    """Split a TCP endpoint of the form ``host:port``.

    IPv6 literals must be bracketed (``[::1]:443``). Raises ``ValueError``
    with a readable message when the endpoint is malformed.
    """
    endpoint = (endpoint or "").strip()
    if ":" not in endpoint:
        raise ValueError(f"Invalid TCP endpoint '{endpoint}': expected host:port")

    host, port_str = endpoint.rsplit(":", 1)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    if not host:
        raise ValueError(f"Invalid TCP endpoint '{endpoint}': missing host")

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid TCP endpoint '{endpoint}': port '{port_str}' is not a number")
    if not 1 <= port <= 65535:
        raise ValueError(f"Invalid TCP endpoint '{endpoint}': port {port} out of range")

    return host, port


def validate_endpoint(target_type: str, endpoint: str) -> str:
    """Check that an endpoint is usable for the given check type.

    Returns the stripped endpoint, raises ``ValueError`` otherwise.
    """
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ValueError("Endpoint must not be empty")

    if target_type == "HTTP":
        if not endpoint.lower().startswith(("http://", "https://")):
            raise ValueError("HTTP endpoint must start with http:// or https://")
    elif target_type == "TCP":
        parse_host_port(endpoint)
    elif target_type == "ICMP":
        if "://" in endpoint or endpoint.startswith("-") or not _HOSTNAME_RE.match(endpoint):
            raise ValueError("ICMP endpoint must be a bare hostname or IP address")
    else:
        raise ValueError(f"Unknown check type: {target_type}")

    return endpoint
