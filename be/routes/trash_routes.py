from flask import Blueprint
from flask_jwt_extended import jwt_required, get_jwt_identity
from services.trash_service import TrashService
from common.response import success

trash_bp = Blueprint('trash', __name__)


@trash_bp.route('', methods=['GET'])
@jwt_required()
def list_trash():
    user_id = get_jwt_identity()
    return success(TrashService.list_trash(user_id))


@trash_bp.route('/empty', methods=['POST'])
@jwt_required()
def empty_trash():
    user_id = get_jwt_identity()
    return success(TrashService.empty_trash(user_id))
