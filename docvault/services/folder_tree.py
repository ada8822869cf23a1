"""
Folder hierarchy helpers.

Folders form a parent-pointer tree with a materialized ``path`` and ``level``.
Every walk here issues one query per tree level and holds no lock, so a
concurrent writer can slip a folder or document in while a walk is running.
"""
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from docvault.core.config import settings
from docvault.models.document import Document
from docvault.models.folder import Folder
from docvault.services.azure_blob import blob_service

logger = logging.getLogger(__name__)


def build_path(parent: Optional[Folder], folder_name: str) -> Tuple[str, int]:
    """Return the (path, level) a folder named ``folder_name`` gets under ``parent``."""
    if parent is None:
        return f"/{folder_name}", 0
    return f"{parent.path}/{folder_name}", parent.level + 1


def can_have_children(folder: Folder) -> bool:
    return folder.level < settings.MAX_FOLDER_DEPTH


async def get_ancestors(db: AsyncSession, folder: Folder) -> List[Folder]:
    """Ancestors ordered from the root down to the direct parent."""
    ancestors: List[Folder] = []
    seen = {folder.id}
    parent_id = folder.parent_id

    while parent_id is not None and parent_id not in seen:
        parent = await db.get(Folder, parent_id)
        if parent is None:
            logger.warning(f"Folder {folder.id} has a dangling parent reference {parent_id}")
            break
        ancestors.append(parent)
        seen.add(parent.id)
        parent_id = parent.parent_id

    ancestors.reverse()
    return ancestors


async def get_root(db: AsyncSession, folder: Folder) -> Folder:
    """The root ancestor whose password protects ``folder``."""
    if folder.parent_id is None:
        return folder
    ancestors = await get_ancestors(db, folder)
    return ancestors[0] if ancestors else folder


async def collect_descendant_ids(db: AsyncSession, folder_id: int) -> List[int]:
    """All folder ids below ``folder_id``, breadth first, excluding the folder itself."""
    descendants: List[int] = []
    seen = {folder_id}
    frontier = [folder_id]

    while frontier:
        result = await db.execute(select(Folder.id).where(Folder.parent_id.in_(frontier)))
        frontier = [child_id for child_id in result.scalars().all() if child_id not in seen]
        seen.update(frontier)
        descendants.extend(frontier)

    return descendants


async def propagate_path_change(db: AsyncSession, folder: Folder) -> int:
    """
    Re-derive ``path`` and ``level`` for every descendant of ``folder``.

    The caller sets the folder's own path first and commits afterwards.
    Returns the number of descendants rewritten.
    """
    updated = 0
    parents: Dict[int, Folder] = {folder.id: folder}

    while parents:
        result = await db.execute(select(Folder).where(Folder.parent_id.in_(list(parents))))
        children = result.scalars().all()
        next_parents: Dict[int, Folder] = {}

        for child in children:
            if child.id in next_parents or child.id == folder.id:
                continue
            child.path, child.level = build_path(parents[child.parent_id], child.folder_name)
            next_parents[child.id] = child
            updated += 1

        parents = next_parents

    return updated


async def adjust_folder_counters(db: AsyncSession, folder: Folder, count_delta: int, size_delta: int) -> bool:
    """
    Apply a document count/size change to ``folder`` in its own commit.

    Best-effort: a failure is logged and rolled back, leaving the counters
    stale. Counters never go below zero. Returns False when the write failed.
    """
    folder_id = folder.id
    try:
        folder.document_count = max(0, folder.document_count + count_delta)
        folder.total_size = max(0, folder.total_size + size_delta)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to update counters for folder {folder_id}: {str(e)}")
        return False
    return True


async def _delete_blobs(storage_paths: Iterable[str]) -> int:
    """Best-effort storage cleanup: failures are logged and never retried."""
    failures = 0
    for storage_path in storage_paths:
        try:
            await blob_service.delete_blob(storage_path)
        except Exception as e:
            failures += 1
            logger.error(f"Failed to delete blob {storage_path}: {str(e)}")
    return failures


async def delete_folder_tree(db: AsyncSession, folder: Folder) -> Tuple[int, int]:
    """
    Delete a folder, every folder beneath it and all of their documents.

    Returns:
        Tuple of (deleted_folders, deleted_documents)
    """
    folder_ids = [folder.id] + await collect_descendant_ids(db, folder.id)

    result = await db.execute(
        select(Document.storage_path).where(Document.folder_id.in_(folder_ids))
    )
    storage_paths = result.scalars().all()

    failures = await _delete_blobs(storage_paths)
    if failures:
        logger.warning(f"Folder {folder.id}: {failures} of {len(storage_paths)} blobs could not be deleted")

    await db.execute(
        delete(Document).where(Document.folder_id.in_(folder_ids)).execution_options(synchronize_session=False)
    )
    await db.execute(
        delete(Folder).where(Folder.id.in_(folder_ids)).execution_options(synchronize_session=False)
    )
    await db.commit()

    logger.info(
        f"Deleted folder {folder.id} ({folder.path}) with {len(folder_ids) - 1} subfolders "
        f"and {len(storage_paths)} documents"
    )
    return len(folder_ids), len(storage_paths)


async def recalculate_folder_stats(db: AsyncSession, user_id: Optional[int] = None) -> int:
    """
    Reset ``document_count``/``total_size`` from the actual document rows.

    Upload and delete only adjust the counters opportunistically, so they can
    drift. Returns the number of folders whose counters changed.
    """
    stats_query = (
        select(
            Document.folder_id,
            func.count(Document.id),
            func.coalesce(func.sum(Document.size), 0),
        )
        .group_by(Document.folder_id)
    )
    folders_query = select(Folder)
    if user_id is not None:
        stats_query = stats_query.where(Document.user_id == user_id)
        folders_query = folders_query.where(Folder.user_id == user_id)

    stats = {folder_id: (count, size) for folder_id, count, size in (await db.execute(stats_query)).all()}
    folders = (await db.execute(folders_query)).scalars().all()

    changed = 0
    for folder in folders:
        count, size = stats.get(folder.id, (0, 0))
        if folder.document_count != count or folder.total_size != size:
            folder.document_count = count
            folder.total_size = size
            changed += 1

    await db.commit()
    return changed


async def rebuild_paths(db: AsyncSession, user_id: Optional[int] = None) -> int:
    """Recompute path and level for whole trees, starting at the roots."""
    query = select(Folder).where(Folder.parent_id.is_(None))
    if user_id is not None:
        query = query.where(Folder.user_id == user_id)
    roots = (await db.execute(query)).scalars().all()

    rewritten = 0
    for root in roots:
        root.path, root.level = build_path(None, root.folder_name)
        rewritten += 1 + await propagate_path_change(db, root)

    await db.commit()
    return rewritten
