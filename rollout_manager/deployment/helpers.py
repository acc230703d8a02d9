"""
Utility functions for deployment operations.

Pure functions for version matching and formatting.
"""

from typing import Optional

# Shortest probe token accepted as a version. Shorter tokens (including empty
# responses) are never treated as a match.
MIN_VERSION_TOKEN_LENGTH = 7


def version_matches(target_version: str, token: Optional[str]) -> bool:
    """
    Check whether a probed version token identifies the target version.

    The token may be a short form of the target (e.g. an abbreviated commit
    SHA), so the match succeeds when the target starts with the token.

    Args:
        target_version: Full version the unit should be running
        token: Version token returned by the probe

    Returns:
        True if the token is long enough and is a prefix of the target
    """
    if not token:
        return False
    token = token.strip()
    if len(token) < MIN_VERSION_TOKEN_LENGTH:
        return False
    return target_version.startswith(token)


def describe_version(version: Optional[str]) -> str:
    """
    Build a short human readable label for a version.

    Args:
        version: Version identifier (commit SHA, semantic version, tag)

    Returns:
        Label suitable for log lines and summaries
    """
    if not version:
        return "unknown"

    if version.startswith(("v", "V")) and len(version) > 1 and version[1].isdigit():
        return version
    elif len(version) >= 12 and all(c in "0123456789abcdef" for c in version):
        # Looks like a full commit SHA
        return version[:12]
    else:
        return version
