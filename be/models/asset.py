from uuid import uuid4

from models.base import BaseModel
from models.enums import LifecycleState
from common.db import db


class Asset(BaseModel):
    """用户文件表 - 用户可见的文件条目，指向一个去重后的 ContentObject"""
    __tablename__ = 'assets'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    name = db.Column(db.String(255), nullable=False)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    folder_id = db.Column(db.String(36), db.ForeignKey('folders.id', ondelete='SET NULL'), nullable=True, index=True)
    content_hash = db.Column(db.String(64), db.ForeignKey('content_objects.hash', ondelete='RESTRICT'),
                             nullable=False, index=True)
    # size declared at upload; this is what the owner's quota is charged
    size = db.Column(db.BigInteger, nullable=False)
    content_type = db.Column(db.String(255), nullable=True)
    is_public = db.Column(db.Boolean, default=False, nullable=False)
    public_share_id = db.Column(db.String(36), unique=True, nullable=True)
    download_count = db.Column(db.Integer, default=0, nullable=False)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)  # 回收站软删除

    content = db.relationship('ContentObject', lazy='joined')

    @property
    def state(self):
        return LifecycleState.ACTIVE if self.deleted_at is None else LifecycleState.TRASHED

    def to_dict(self):
        ref_count = self.content.ref_count if self.content is not None else 0
        return {
            'id': self.id,
            'name': self.name,
            'folder_id': self.folder_id,
            'size': self.size,
            'content_type': self.content_type,
            'hash': self.content_hash,
            'state': self.state.value,
            'upload_date': self.created_at.isoformat() if self.created_at else None,
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
            'ref_count': ref_count,
            'is_deduplicated': ref_count > 1,
            'is_public': self.is_public,
            'public_share_id': self.public_share_id,
            'download_count': self.download_count,
        }

    def __repr__(self):
        return f'<Asset {self.name} hash={self.content_hash[:8]}... {self.state.value}>'
