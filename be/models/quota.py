from common.db import db
from models.base import utcnow


class Quota(db.Model):
    """用户配额表 - 已计费字节、容量上限与每窗口请求上限"""
    __tablename__ = 'quotas'

    user_id = db.Column(db.String(64), primary_key=True)
    storage_used = db.Column(db.BigInteger, default=0, nullable=False)
    storage_limit = db.Column(db.BigInteger, nullable=False)
    rate_limit = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            'storage_used': self.storage_used,
            'storage_limit': self.storage_limit,
            'rate_limit': self.rate_limit,
        }

    def __repr__(self):
        return f'<Quota user={self.user_id} used={self.storage_used}/{self.storage_limit}>'


class RateWindow(db.Model):
    """限流窗口表 - 每个 (用户, 窗口起点) 一行"""
    __tablename__ = 'rate_windows'

    user_id = db.Column(db.String(64), primary_key=True)
    window_start = db.Column(db.BigInteger, primary_key=True)  # epoch milliseconds, aligned to the window length
    request_count = db.Column(db.Integer, default=1, nullable=False)

    def __repr__(self):
        return f'<RateWindow user={self.user_id} start={self.window_start} count={self.request_count}>'
