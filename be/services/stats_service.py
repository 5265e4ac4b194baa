# services/stats_service.py
from sqlalchemy import func, select

from common.db import db, unit_of_work
from models.asset import Asset
from models.content import ContentObject
from services.admission import get_quota_ledger, rate_limited
from utils.format import format_bytes


def _percent(part, whole):
    return round(part / whole * 100, 2) if whole else 0


class StatsService:
    @staticmethod
    @rate_limited
    def get_stats(user_id):
        """存储统计：配额使用、文件数、去重节省的空间"""
        with unit_of_work():
            quota = get_quota_ledger().get_or_create(user_id)
            total_files, original_size = db.session.execute(
                select(func.count(Asset.id), func.coalesce(func.sum(Asset.size), 0))
                .where(Asset.user_id == user_id, Asset.deleted_at.is_(None))
            ).one()
            deduped_files = db.session.scalar(
                select(func.count(Asset.id))
                .join(ContentObject, ContentObject.hash == Asset.content_hash)
                .where(Asset.user_id == user_id, Asset.deleted_at.is_(None), ContentObject.ref_count > 1)
            )
            unique = (
                select(ContentObject.hash, ContentObject.size)
                .join(Asset, Asset.content_hash == ContentObject.hash)
                .where(Asset.user_id == user_id, Asset.deleted_at.is_(None))
                .distinct()
                .subquery()
            )
            actual_size = db.session.scalar(
                select(func.coalesce(func.sum(unique.c.size), 0))
            ) if total_files else 0
            used, limit = quota.storage_used, quota.storage_limit
            rate_limit = quota.rate_limit

        saved = max(0, original_size - actual_size)
        return {
            'storage_used': used,
            'storage_limit': limit,
            'usage_percent': _percent(used, limit),
            'total_files': total_files,
            'deduped_files': deduped_files,
            'original_size': original_size,
            'actual_size': actual_size,
            'saved_bytes': saved,
            'savings_percent': _percent(saved, original_size),
            'rate_limit': rate_limit,
            'storage_used_formatted': format_bytes(used),
            'storage_limit_formatted': format_bytes(limit),
            'saved_formatted': format_bytes(saved),
        }

    @staticmethod
    @rate_limited
    def get_quota(user_id):
        with unit_of_work():
            quota = get_quota_ledger().get_or_create(user_id)
            data = quota.to_dict()
        data['storage_available'] = max(0, data['storage_limit'] - data['storage_used'])
        data['usage_percent'] = _percent(data['storage_used'], data['storage_limit'])
        return data

    @staticmethod
    def set_limits(user_id, storage_limit=None, rate_limit=None):
        """Administrative override of one user's limits; not rate limited."""
        with unit_of_work():
            quota = get_quota_ledger().set_limits(user_id, storage_limit, rate_limit)
            data = quota.to_dict()
        return data
