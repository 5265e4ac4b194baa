# services/trash_service.py
import logging

from flask import current_app
from sqlalchemy import select

from common.db import db, unit_of_work
from models.asset import Asset
from models.folder import Folder
from services.admission import rate_limited
from services.dedup import get_content_store
from services.file_service import purge_asset
from services.hierarchy import FolderTree
from utils.format import format_bytes

logger = logging.getLogger(__name__)


class TrashService:
    @staticmethod
    @rate_limited
    def list_trash(user_id):
        """Trashed files plus the top-level trashed folders (those whose parent is not also trashed)."""
        assets = db.session.scalars(
            select(Asset)
            .where(Asset.user_id == user_id, Asset.deleted_at.isnot(None))
            .order_by(Asset.deleted_at.desc())
        ).all()
        folders = db.session.scalars(
            select(Folder)
            .where(Folder.user_id == user_id, Folder.deleted_at.isnot(None))
            .order_by(Folder.deleted_at.desc())
        ).all()
        trashed_ids = {f.id for f in folders}
        top_level = [f for f in folders if f.parent_id is None or f.parent_id not in trashed_ids]
        return {
            'files': [a.to_dict() for a in assets],
            'folders': [f.to_dict() for f in top_level],
        }

    @staticmethod
    @rate_limited
    def empty_trash(user_id):
        """Purge every trashed file and folder of the user in one transaction."""
        store = get_content_store()
        tree = FolderTree(user_id, batch_size=current_app.config['CASCADE_BATCH_SIZE'])
        freed = 0
        purged_contents = 0
        with unit_of_work() as uow:
            assets = db.session.scalars(
                select(Asset).where(Asset.user_id == user_id, Asset.deleted_at.isnot(None))
            ).all()
            for asset in assets:
                freed += asset.size
                if purge_asset(uow, asset, store).purged:
                    purged_contents += 1

            folder_ids = db.session.scalars(
                select(Folder.id).where(Folder.user_id == user_id, Folder.deleted_at.isnot(None))
            ).all()
            deleted_folders = tree.delete_folders_deepest_first(folder_ids)

        logger.info("[回收站] user=%s emptied: %d files, %d folders, %s freed",
                    user_id, len(assets), deleted_folders, format_bytes(freed))
        return {
            'deleted_files': len(assets),
            'deleted_folders': deleted_folders,
            'purged_contents': purged_contents,
            'freed_bytes': freed,
            'freed_formatted': format_bytes(freed),
        }
