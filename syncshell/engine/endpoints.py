# syncshell Endpoint Helpers
# Remote endpoint string forms and equivalence

import re
from typing import Optional

from syncshell.engine.models import Endpoint, EndpointProtocol

_DRIVE_LETTER = re.compile(r"^[A-Za-z]:[\\/]")


def is_local_path(value: str) -> bool:
    """A path without a host separator, or one starting with a drive letter."""
    return ":" not in value or bool(_DRIVE_LETTER.match(value))


def normalize_remote_path(remote: str) -> str:
    """
    Prepare a remote endpoint string for session creation.

    ``host:/path`` gets ``root@`` prepended. Container URLs, local paths and
    strings that already name a user are returned unchanged.
    """
    value = remote.strip()
    if value.startswith("docker://") or is_local_path(value):
        return value
    host, _, path = value.partition(":")
    if "@" in host or not host:
        return value
    return f"root@{host}:{path}"


def format_remote_endpoint(endpoint: Endpoint) -> str:
    """Display form: ``user@host:/path``, ``docker://container/path`` or the plain path."""
    if endpoint.protocol == EndpointProtocol.DOCKER.value and endpoint.host:
        return f"docker://{endpoint.host}{endpoint.path}"
    if endpoint.host:
        prefix = f"{endpoint.user}@{endpoint.host}" if endpoint.user else endpoint.host
        return f"{prefix}:{endpoint.path}"
    return endpoint.path


def ssh_target(endpoint: Endpoint) -> Optional[str]:
    """``user@host`` (or bare host) for remote shell commands."""
    if not endpoint.host:
        return None
    return f"{endpoint.user}@{endpoint.host}" if endpoint.user else endpoint.host


def remote_path_matches(endpoint: Endpoint, remote: str) -> bool:
    """
    Check whether a saved remote string refers to the given endpoint.

    Accepts the bare path, ``host:path``, ``user@host:path`` with any user,
    and ``docker://host/path`` forms.
    """
    value = remote.strip()
    if not value:
        return False
    if endpoint.path == value:
        return True
    if not endpoint.host:
        return False

    if endpoint.protocol == EndpointProtocol.DOCKER.value:
        if value == f"docker://{endpoint.host}{endpoint.path}":
            return True

    if value in (f"{endpoint.host}:{endpoint.path}", format_remote_endpoint(endpoint)):
        return True

    suffix = f":{endpoint.path}"
    if value.endswith(suffix):
        host_segment = value[: -len(suffix)]
        if "@" in host_segment:
            host_segment = host_segment.rsplit("@", 1)[1]
        return host_segment == endpoint.host
    return False
