# services/folder_service.py
import logging

from flask import current_app
from sqlalchemy import select

from common.db import db, unit_of_work
from common.errors import InvalidArgument, NotFound, PreconditionFailed
from common.validators import validate_name
from models.enums import LifecycleState
from models.folder import Folder
from services.admission import get_quota_ledger, rate_limited
from services.dedup import get_content_store
from services.hierarchy import FolderTree

logger = logging.getLogger(__name__)

MAX_BATCH = 100


def _tree(user_id) -> FolderTree:
    return FolderTree(user_id, batch_size=current_app.config['CASCADE_BATCH_SIZE'])


class FolderService:
    @staticmethod
    @rate_limited
    def create_folder(user_id, name, parent_id=None):
        validate_name(name)
        with unit_of_work():
            if parent_id is not None:
                try:
                    _tree(user_id).get(parent_id, LifecycleState.ACTIVE)
                except NotFound:
                    raise NotFound("Parent folder not found")
            folder = Folder(name=name, user_id=user_id, parent_id=parent_id)
            db.session.add(folder)
            db.session.flush()
            data = folder.to_dict()
        return data

    @staticmethod
    @rate_limited
    def rename_folder(user_id, folder_id, name):
        validate_name(name)
        with unit_of_work():
            folder = _tree(user_id).get(folder_id)
            folder.name = name
            db.session.flush()
            data = folder.to_dict()
        return data

    @staticmethod
    def list_folders(user_id):
        """Every active folder of the user (flat, newest first)."""
        folders = db.session.scalars(
            select(Folder)
            .where(Folder.user_id == user_id, Folder.deleted_at.is_(None))
            .order_by(Folder.created_at.desc())
        ).all()
        return [f.to_dict() for f in folders]

    @staticmethod
    @rate_limited
    def delete_folder(user_id, folder_id):
        """Strict delete: only an empty folder can be removed this way."""
        with unit_of_work():
            tree = _tree(user_id)
            tree.get(folder_id)
            if tree.children_count(folder_id):
                raise PreconditionFailed("Folder is not empty. Delete all contents first.")
            tree.delete_folders_deepest_first([folder_id])
        return True

    @staticmethod
    @rate_limited
    def move_folder(user_id, folder_id, parent_id):
        with unit_of_work():
            folder = _tree(user_id).move(folder_id, parent_id)
            data = folder.to_dict()
        return data

    @staticmethod
    @rate_limited
    def move_folders(user_id, folder_ids, parent_id):
        """Move several folders; self moves and moves into a folder's own subtree are skipped."""
        if len(folder_ids) > MAX_BATCH:
            raise InvalidArgument(f"Cannot move more than {MAX_BATCH} folders at once")
        moved = 0
        with unit_of_work():
            tree = _tree(user_id)
            if parent_id is not None:
                try:
                    tree.get(parent_id, LifecycleState.ACTIVE)
                except NotFound:
                    raise NotFound("Target folder not found")
            for folder_id in folder_ids:
                try:
                    tree.move(folder_id, parent_id)
                except (InvalidArgument, NotFound):
                    continue
                moved += 1
        return moved

    # -------- trash cascades --------
    @staticmethod
    @rate_limited
    def trash_folder(user_id, folder_id):
        with unit_of_work():
            result = _tree(user_id).cascade_trash(folder_id)
        logger.info("user %s trashed folder %s: %s", user_id, folder_id, result)
        return result

    @staticmethod
    @rate_limited
    def restore_folder(user_id, folder_id, to_root=False):
        with unit_of_work():
            result = _tree(user_id).cascade_restore(folder_id, to_root=to_root)
        return result

    @staticmethod
    @rate_limited
    def purge_folder(user_id, folder_id):
        """Permanently delete a trashed folder with everything under it."""
        store = get_content_store()
        with unit_of_work() as uow:
            tree = _tree(user_id)
            try:
                tree.get(folder_id, LifecycleState.TRASHED)
            except NotFound:
                raise NotFound("Folder not found in trash")
            result = tree.cascade_purge(folder_id, lambda content_hash: store.release(content_hash, uow))
            get_quota_ledger().adjust_usage(user_id, -result['freed_bytes'])
        logger.info("user %s purged folder %s: %s", user_id, folder_id, result)
        return result
