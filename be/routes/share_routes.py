from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from services.share_service import ShareService
from common.response import success

share_bp = Blueprint('share', __name__)


@share_bp.route('/file/<asset_id>', methods=['POST'])
@jwt_required()
def toggle_public(asset_id):
    user_id = get_jwt_identity()
    is_public = bool((request.get_json(silent=True) or {}).get("is_public", False))
    return success(ShareService.toggle_public(user_id, asset_id, is_public))


# 公开访问，无需登录
@share_bp.route('/<share_id>', methods=['GET'])
def get_public_file(share_id):
    return success(ShareService.get_public_file(share_id))
