"""Asset groups."""

from __future__ import annotations

import logging

from assetunify.canonical.normalize import slugify
from assetunify.errors import NotFoundError, ValidationError
from assetunify.models import Group
from assetunify.repository.base import Repository

logger = logging.getLogger(__name__)


async def list_groups(repo: Repository) -> list[Group]:
    groups = [Group.model_validate(row) for row in (await repo.get("groups")).rows]
    return sorted(groups, key=lambda group: group.title.lower())


async def find_group(repo: Repository, slug: str) -> Group | None:
    for row in (await repo.get("groups")).rows:
        if row.get("slug") == slug:
            return Group.model_validate(row)
    return None


async def require_group(repo: Repository, slug: str) -> Group:
    """Raises NotFoundError for unknown slugs."""
    group = await find_group(repo, str(slug or "").strip())
    if group is None:
        raise NotFoundError("Group not found.")
    return group


async def create_group(repo: Repository, title: str, slug: str | None = None) -> Group:
    """Create a group, deriving a unique slug from ``slug`` or the title.

    Collisions get a numeric suffix: ``servers``, ``servers-2``, ``servers-3``.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("Group title is required.")

    base = slugify(slug or title)
    if not base:
        raise ValidationError("Group slug could not be derived from the title.")

    taken = {row.get("slug") for row in (await repo.get("groups")).rows}
    candidate, suffix = base, 2
    while candidate in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1

    group_id = await repo.insert("groups", {"slug": candidate, "title": title})
    logger.info("Group created: slug=%s", candidate)
    return Group(id=group_id, slug=candidate, title=title)
