from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from services.folder_service import FolderService
from common.response import success, fail

folder_bp = Blueprint('folder', __name__)


@folder_bp.route('', methods=['GET'])
@jwt_required()
def list_folders():
    user_id = get_jwt_identity()
    return success(FolderService.list_folders(user_id))


@folder_bp.route('', methods=['POST'])
@jwt_required()
def create_folder():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    if not name:
        return fail("参数错误：name 必填", 400, 400)
    return success(FolderService.create_folder(user_id, name, data.get("parent_id")))


@folder_bp.route('/<folder_id>/rename', methods=['POST'])
@jwt_required()
def rename_folder(folder_id):
    user_id = get_jwt_identity()
    name = (request.get_json(silent=True) or {}).get("name")
    if not name:
        return fail("参数错误：name 必填", 400, 400)
    return success(FolderService.rename_folder(user_id, folder_id, name))


@folder_bp.route('/<folder_id>', methods=['DELETE'])
@jwt_required()
def delete_folder(folder_id):
    user_id = get_jwt_identity()
    FolderService.delete_folder(user_id, folder_id)
    return success({"id": folder_id, "status": "删除成功"})


@folder_bp.route('/<folder_id>/move', methods=['POST'])
@jwt_required()
def move_folder(folder_id):
    user_id = get_jwt_identity()
    parent_id = (request.get_json(silent=True) or {}).get("parent_id")
    return success(FolderService.move_folder(user_id, folder_id, parent_id))


@folder_bp.route('/move', methods=['POST'])
@jwt_required()
def move_folders():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    ids = data.get("folder_ids")
    if not isinstance(ids, list) or not ids:
        return fail("参数错误：folder_ids 必填", 400, 400)
    moved = FolderService.move_folders(user_id, ids, data.get("parent_id"))
    return success({"moved_count": moved})


@folder_bp.route('/<folder_id>/trash', methods=['POST'])
@jwt_required()
def trash_folder(folder_id):
    user_id = get_jwt_identity()
    return success(FolderService.trash_folder(user_id, folder_id))


@folder_bp.route('/<folder_id>/restore', methods=['POST'])
@jwt_required()
def restore_folder(folder_id):
    user_id = get_jwt_identity()
    to_root = bool((request.get_json(silent=True) or {}).get("to_root", False))
    return success(FolderService.restore_folder(user_id, folder_id, to_root=to_root))


@folder_bp.route('/<folder_id>/purge', methods=['POST'])
@jwt_required()
def purge_folder(folder_id):
    user_id = get_jwt_identity()
    return success(FolderService.purge_folder(user_id, folder_id))
