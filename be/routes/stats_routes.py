from flask import Blueprint
from flask_jwt_extended import jwt_required, get_jwt_identity
from services.stats_service import StatsService
from common.response import success

stats_bp = Blueprint('stats', __name__)


@stats_bp.route('/stats', methods=['GET'])
@jwt_required()
def get_stats():
    user_id = get_jwt_identity()
    return success(StatsService.get_stats(user_id))


@stats_bp.route('/quota', methods=['GET'])
@jwt_required()
def get_quota():
    user_id = get_jwt_identity()
    return success(StatsService.get_quota(user_id))
