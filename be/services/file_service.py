# services/file_service.py
import logging

from flask import current_app
from sqlalchemy import select

from common.db import db, unit_of_work
from common.errors import InvalidArgument, NotFound, PreconditionFailed
from common.validators import validate_content_type, validate_hash, validate_name, validate_size
from models.asset import Asset
from models.base import utcnow
from models.enums import LifecycleState
from models.folder import Folder
from services import lifecycle
from services.admission import get_admission, get_quota_ledger, rate_limited
from services.dedup import get_content_store
from services.hierarchy import FolderTree
from services.storage import get_storage

logger = logging.getLogger(__name__)

MAX_BATCH = 100


def get_asset(user_id, asset_id, state=None) -> Asset:
    """The user's asset, optionally required to be in ``state``; NotFound otherwise."""
    asset = db.session.scalars(
        select(Asset).where(Asset.id == asset_id, Asset.user_id == user_id)
    ).first()
    if asset is None or (state is not None and asset.state != state):
        raise NotFound("File not found")
    return asset


def require_target_folder(user_id, folder_id):
    if folder_id is None:
        return None
    try:
        return FolderTree(user_id).get(folder_id, LifecycleState.ACTIVE)
    except NotFound:
        raise NotFound("Target folder not found")


def purge_asset(uow, asset: Asset, store=None):
    """Hard-delete one asset: drop the row, release its content, refund its bytes."""
    lifecycle.next_state(asset.state, lifecycle.PURGE)
    store = store or get_content_store()
    user_id, content_hash, size = asset.user_id, asset.content_hash, asset.size
    db.session.delete(asset)
    db.session.flush()
    result = store.release(content_hash, uow)
    get_quota_ledger().adjust_usage(user_id, -size)
    return result


class FileService:
    # -------- upload and deduplication --------
    @staticmethod
    def _validate_upload(filename, size, file_hash, content_type):
        validate_name(filename)
        validate_size(size, current_app.config['MAX_FILE_SIZE'])
        return validate_hash(file_hash), validate_content_type(content_type)

    @staticmethod
    def _link_asset(user_id, filename, size, file_hash, content_type, folder_id):
        """Quota check, content link, asset insert and charge, inside the caller's transaction."""
        ledger = get_quota_ledger()
        store = get_content_store()

        ledger.check(user_id, size, lock=True)
        link = store.link_or_create(file_hash, size)
        if link.created:
            store.confirm_backing(file_hash, link.blob_key)
        elif link.size != size:
            raise InvalidArgument("Declared size does not match the stored content")

        asset = Asset(
            name=filename,
            user_id=user_id,
            folder_id=folder_id,
            content_hash=file_hash,
            size=size,
            content_type=content_type,
        )
        db.session.add(asset)
        db.session.flush()
        ledger.adjust_usage(user_id, size)
        logger.info("[上传] user=%s %s -> %s (refs=%d)", user_id, filename, file_hash[:12], link.ref_count)
        return asset

    @staticmethod
    def request_upload(user_id, filename, size, file_hash, content_type=None, folder_id=None):
        """Start an upload: link immediately when the content is already stored,
        otherwise hand back a presigned URL for the derived blob key."""
        file_hash, content_type = FileService._validate_upload(filename, size, file_hash, content_type)
        get_admission().admit(user_id, charge=size)

        store = get_content_store()
        with unit_of_work():
            require_target_folder(user_id, folder_id)
            if store.exists_ref(file_hash):
                asset = FileService._link_asset(user_id, filename, size, file_hash, content_type, folder_id)
                result = {
                    'deduplicated': True,
                    'url': None,
                    'key': None,
                    'file': asset.to_dict(),
                    'message': "File already exists, created reference without re-uploading",
                }
            else:
                key = store.blob_key(file_hash)
                result = {
                    'deduplicated': False,
                    'url': get_storage().presign_upload(key),
                    'key': key,
                    'message': "Upload to presigned URL, then call confirm_upload",
                }
        return result

    @staticmethod
    def confirm_upload(user_id, filename, size, file_hash, content_type=None, folder_id=None):
        """Finish an upload once the bytes are in the blob store."""
        file_hash, content_type = FileService._validate_upload(filename, size, file_hash, content_type)
        get_admission().admit(user_id, charge=size)

        with unit_of_work():
            require_target_folder(user_id, folder_id)
            asset = FileService._link_asset(user_id, filename, size, file_hash, content_type, folder_id)
            data = asset.to_dict()
        return data

    # -------- file management --------
    @staticmethod
    @rate_limited
    def list_files(user_id, folder_id=None):
        if folder_id is not None:
            require_target_folder(user_id, folder_id)
        assets = db.session.scalars(
            select(Asset)
            .where(Asset.user_id == user_id, Asset.deleted_at.is_(None),
                   Asset.folder_id == folder_id if folder_id else Asset.folder_id.is_(None))
            .order_by(Asset.created_at.desc())
        ).all()
        folders = db.session.scalars(
            select(Folder)
            .where(Folder.user_id == user_id, Folder.deleted_at.is_(None),
                   Folder.parent_id == folder_id if folder_id else Folder.parent_id.is_(None))
            .order_by(Folder.created_at.desc())
        ).all()
        return {
            'files': [a.to_dict() for a in assets],
            'folders': [f.to_dict() for f in folders],
            'current_folder_id': folder_id,
        }

    @staticmethod
    @rate_limited
    def get_file(user_id, asset_id):
        asset = get_asset(user_id, asset_id, LifecycleState.ACTIVE)
        data = asset.to_dict()
        data['download_url'] = get_storage().presign_download(asset.content.blob_key)
        return data

    @staticmethod
    @rate_limited
    def rename_file(user_id, asset_id, name):
        validate_name(name)
        with unit_of_work():
            asset = get_asset(user_id, asset_id)
            asset.name = name
            db.session.flush()
            data = asset.to_dict()
        return data

    @staticmethod
    @rate_limited
    def move_file(user_id, asset_id, folder_id):
        with unit_of_work():
            require_target_folder(user_id, folder_id)
            asset = get_asset(user_id, asset_id, LifecycleState.ACTIVE)
            asset.folder_id = folder_id
        return True

    @staticmethod
    @rate_limited
    def move_files(user_id, asset_ids, folder_id):
        if len(asset_ids) > MAX_BATCH:
            raise InvalidArgument(f"Cannot move more than {MAX_BATCH} files at once")
        moved = 0
        with unit_of_work():
            require_target_folder(user_id, folder_id)
            for asset_id in asset_ids:
                asset = db.session.scalars(
                    select(Asset).where(Asset.id == asset_id, Asset.user_id == user_id, Asset.deleted_at.is_(None))
                ).first()
                if asset is not None:
                    asset.folder_id = folder_id
                    moved += 1
        return moved

    # -------- trash and deletion --------
    @staticmethod
    @rate_limited
    def move_to_trash(user_id, asset_id):
        with unit_of_work():
            asset = get_asset(user_id, asset_id)
            lifecycle.next_state(asset.state, lifecycle.TRASH)
            asset.deleted_at = utcnow()
        return True

    @staticmethod
    @rate_limited
    def restore_from_trash(user_id, asset_id, to_root=False):
        """Bring a trashed asset back.

        If its folder is missing or trashed this fails with PreconditionFailed,
        unless ``to_root`` re-targets it to the root. An active folder is kept.
        """
        with unit_of_work():
            asset = get_asset(user_id, asset_id)
            lifecycle.next_state(asset.state, lifecycle.RESTORE)
            if asset.folder_id is not None:
                folder = db.session.scalars(
                    select(Folder).where(Folder.id == asset.folder_id, Folder.user_id == user_id)
                ).first()
                if folder is None or folder.deleted_at is not None:
                    if not to_root:
                        raise PreconditionFailed(
                            "Folder is in trash. Restore it first or restore this file to root."
                        )
                    asset.folder_id = None
            asset.deleted_at = None
        return True

    @staticmethod
    @rate_limited
    def permanently_delete(user_id, asset_id):
        """Purge an asset that is in the trash."""
        with unit_of_work() as uow:
            asset = get_asset(user_id, asset_id, LifecycleState.TRASHED)
            size = asset.size
            result = purge_asset(uow, asset)
        return {'freed_bytes': size, 'content_purged': result.purged}

    @staticmethod
    @rate_limited
    def delete_asset(user_id, asset_id):
        """Purge an asset whether or not it is in the trash."""
        with unit_of_work() as uow:
            asset = get_asset(user_id, asset_id)
            size = asset.size
            result = purge_asset(uow, asset)
        return {'freed_bytes': size, 'content_purged': result.purged}

