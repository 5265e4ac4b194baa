# services/share_service.py
import logging
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from common.db import db, unit_of_work
from common.errors import Conflict, NotFound
from models.asset import Asset
from models.enums import LifecycleState
from services.admission import rate_limited
from services.file_service import get_asset
from services.storage import get_storage

logger = logging.getLogger(__name__)


class ShareService:
    @staticmethod
    @rate_limited
    def toggle_public(user_id, asset_id, is_public):
        """Publish or unpublish an active asset. Re-publishing keeps the existing share id."""
        try:
            with unit_of_work():
                asset = get_asset(user_id, asset_id, LifecycleState.ACTIVE)
                if is_public:
                    if not asset.public_share_id:
                        asset.public_share_id = str(uuid4())
                    asset.is_public = True
                else:
                    asset.is_public = False
                    asset.public_share_id = None
                db.session.flush()
                data = {
                    'id': asset.id,
                    'is_public': asset.is_public,
                    'public_share_id': asset.public_share_id,
                }
        except IntegrityError:
            raise Conflict("Share id collision, please retry")
        return data

    @staticmethod
    def get_public_file(share_id):
        """Anonymous read of a published asset; each call counts as one download."""
        with unit_of_work():
            asset_id = db.session.scalar(
                update(Asset)
                .where(Asset.public_share_id == share_id, Asset.is_public.is_(True), Asset.deleted_at.is_(None))
                .values(download_count=Asset.download_count + 1)
                .returning(Asset.id)
                .execution_options(synchronize_session=False)
            )
            if asset_id is None:
                raise NotFound("File not found or not public")
            asset = db.session.scalars(
                select(Asset).where(Asset.id == asset_id).execution_options(populate_existing=True)
            ).one()
            data = {
                'name': asset.name,
                'size': asset.size,
                'content_type': asset.content_type,
                'download_count': asset.download_count,
                'upload_date': asset.created_at.isoformat() if asset.created_at else None,
                'download_url': get_storage().presign_download(asset.content.blob_key),
            }
        logger.debug("public download of share %s", share_id)
        return data
