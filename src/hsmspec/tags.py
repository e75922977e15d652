"""Tag map diffing and synchronization."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .client import HsmClient
from .state import ResourceData

logger = logging.getLogger(__name__)


def diff_tags(
    old: Mapping[str, str] | None,
    new: Mapping[str, str] | None,
) -> tuple[dict[str, str], list[str]]:
    """Return (tags to set, keys to remove) to turn `old` into `new`."""
    old = old or {}
    new = new or {}
    create = {k: v for k, v in new.items() if old.get(k) != v}
    remove = sorted(k for k in old if k not in new)
    return create, remove


def sync_tags(client: HsmClient, data: ResourceData, key: str = "tags") -> bool:
    """Push tag differences between persisted and desired state to the resource.

    Removed keys are untagged first, then added or changed tags are set, each
    as a single call. Returns True if anything was sent.
    """
    if not data.has_change(key):
        return False

    old, new = data.get_change(key)
    create, remove = diff_tags(old, new)

    if remove:
        logger.debug("Removing tags from %s: %s", data.id, remove)
        client.untag_resource(data.id, remove)
    if create:
        logger.debug("Creating tags on %s: %s", data.id, create)
        client.tag_resource(data.id, create)

    return bool(create or remove)
