"""Service layer for bookmark CRUD operations."""
import logging
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utcnow
from models.bookmark import Bookmark
from schemas.bookmark import BookmarkCreate, BookmarkUpdate

logger = logging.getLogger(__name__)


async def list_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    bookmark_ids: list[UUID] | None = None,
) -> list[Bookmark]:
    """
    List a user's bookmarks, newest first.

    Args:
        db: Database session.
        user_id: Owner of the bookmarks.
        bookmark_ids: Optional subset of ids to return. Ids that do not exist or
            belong to another user are silently ignored.
    """
    query = select(Bookmark).where(Bookmark.user_id == user_id)
    if bookmark_ids is not None:
        query = query.where(Bookmark.id.in_(bookmark_ids))
    query = query.order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def find_by_url(db: AsyncSession, user_id: UUID, url: str) -> Bookmark | None:
    """Return the first bookmark of this user with exactly this URL, if any."""
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id, Bookmark.url == url)
        .limit(1),
    )
    return result.scalar_one_or_none()


async def create_bookmark(
    db: AsyncSession,
    user_id: UUID,
    data: BookmarkCreate,
) -> Bookmark:
    """
    Create a new bookmark for a user.

    Saves exactly what is provided - no automatic URL scraping and no duplicate
    check. Callers who want metadata should use /fetch-metadata and /analyze first.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = Bookmark(
        user_id=user_id,
        url=str(data.url),
        title=data.title,
        description=data.description,
        thumbnail=data.thumbnail,
        category=data.category,
        tags=list(data.tags),
        platform=data.platform,
    )
    db.add(bookmark)
    await db.flush()
    await db.refresh(bookmark)
    return bookmark


async def update_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
    data: BookmarkUpdate,
) -> Bookmark | None:
    """
    Update a bookmark owned by the user.

    The ownership check is part of the UPDATE's WHERE clause, so there is no
    window between checking the owner and writing.

    Returns:
        The updated bookmark, or None if it does not exist or belongs to another user.
    """
    values = data.model_dump(exclude_unset=True, exclude={"id"})
    if "tags" in values and values["tags"] is None:
        values["tags"] = []
    values["updated_at"] = utcnow()

    result = await db.execute(
        update(Bookmark)
        .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id)
        .values(**values)
        .returning(Bookmark)
        .execution_options(populate_existing=True),
    )
    bookmark = result.scalar_one_or_none()
    if bookmark is None:
        return None
    await db.flush()
    return bookmark


async def delete_bookmark(db: AsyncSession, user_id: UUID, bookmark_id: UUID) -> bool:
    """
    Delete a bookmark owned by the user.

    Returns:
        True if a bookmark was deleted, False if it does not exist or belongs to
        another user (the two cases are deliberately indistinguishable).
    """
    result = await db.execute(
        delete(Bookmark)
        .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id)
        .returning(Bookmark.id),
    )
    deleted_id = result.scalar_one_or_none()
    if deleted_id is None:
        return False
    logger.info("Deleted bookmark %s for user %s", deleted_id, user_id)
    return True
