from uuid import uuid4

from models.base import BaseModel
from models.enums import LifecycleState
from common.db import db


class Folder(BaseModel):
    """文件夹表 - 每个用户一棵目录树，parent_id 为空表示根目录"""
    __tablename__ = 'folders'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    name = db.Column(db.String(255), nullable=False)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    # no ON DELETE CASCADE: purges delete children before parents
    parent_id = db.Column(db.String(36), db.ForeignKey('folders.id'), nullable=True, index=True)
    deleted_at = db.Column(db.DateTime, nullable=True, index=True)  # 回收站软删除

    @property
    def state(self):
        return LifecycleState.ACTIVE if self.deleted_at is None else LifecycleState.TRASHED

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'parent_id': self.parent_id,
            'state': self.state.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
        }

    def __repr__(self):
        return f'<Folder {self.name} parent={self.parent_id} {self.state.value}>'
