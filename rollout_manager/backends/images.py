"""
Image reference handling.

Revision handles of the Docker backend are image references, and the version
of a revision is the tag of its image.
"""

from typing import Optional, Tuple


def parse_image_reference(image_ref: str) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Parse image reference into repository, tag and digest.

    Args:
        image_ref: Full image reference (e.g. "ghcr.io/acme/api:abc123@sha256:...")

    Returns:
        Tuple of (repository, tag, digest); tag and digest may be None
    """
    digest: Optional[str] = None
    if "@" in image_ref:
        image_ref, digest = image_ref.split("@", 1)

    # A colon after the last slash separates the tag; earlier ones belong to
    # a registry port (e.g. "localhost:5000/api")
    name_start = image_ref.rfind("/") + 1
    tag_sep = image_ref.find(":", name_start)
    if tag_sep == -1:
        return image_ref, None, digest
    return image_ref[:tag_sep], image_ref[tag_sep + 1 :], digest


def image_tag(image_ref: str) -> str:
    """Return the tag of an image reference, "latest" when none is set."""
    _, tag, _ = parse_image_reference(image_ref)
    return tag or "latest"


def with_tag(image_ref: str, tag: str) -> str:
    """Return the image reference retagged, with any pinned digest dropped."""
    repository, _, _ = parse_image_reference(image_ref)
    return f"{repository}:{tag}"


def same_image(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two image references ignoring pinned digests."""
    if left is None or right is None:
        return False
    left_repo, left_tag, _ = parse_image_reference(left)
    right_repo, right_tag, _ = parse_image_reference(right)
    return left_repo == right_repo and (left_tag or "latest") == (right_tag or "latest")
