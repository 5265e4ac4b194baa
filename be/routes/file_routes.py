from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from services.file_service import FileService
from common.response import success, fail

file_bp = Blueprint('file', __name__)


def _upload_args(data):
    return dict(
        filename=data.get("filename"),
        size=data.get("size"),
        file_hash=data.get("hash"),
        content_type=data.get("content_type"),
        folder_id=data.get("folder_id"),
    )


@file_bp.route('/upload/request', methods=['POST'])
@jwt_required()
def request_upload():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    result = FileService.request_upload(user_id, **_upload_args(data))
    return success(result)


@file_bp.route('/upload/confirm', methods=['POST'])
@jwt_required()
def confirm_upload():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    result = FileService.confirm_upload(user_id, **_upload_args(data))
    return success(result)


@file_bp.route('/list', methods=['GET'])
@jwt_required()
def list_files():
    user_id = get_jwt_identity()
    folder_id = request.args.get("folder_id") or None
    return success(FileService.list_files(user_id, folder_id))


@file_bp.route('/<asset_id>', methods=['GET'])
@jwt_required()
def get_file(asset_id):
    user_id = get_jwt_identity()
    return success(FileService.get_file(user_id, asset_id))


@file_bp.route('/<asset_id>/rename', methods=['POST'])
@jwt_required()
def rename_file(asset_id):
    user_id = get_jwt_identity()
    name = (request.get_json(silent=True) or {}).get("name")
    if not name:
        return fail("参数错误：name 必填", 400, 400)
    return success(FileService.rename_file(user_id, asset_id, name))


@file_bp.route('/<asset_id>/move', methods=['POST'])
@jwt_required()
def move_file(asset_id):
    user_id = get_jwt_identity()
    folder_id = (request.get_json(silent=True) or {}).get("folder_id")
    FileService.move_file(user_id, asset_id, folder_id)
    return success({"id": asset_id, "folder_id": folder_id})


@file_bp.route('/move', methods=['POST'])
@jwt_required()
def move_files():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    ids = data.get("file_ids")
    if not isinstance(ids, list) or not ids:
        return fail("参数错误：file_ids 必填", 400, 400)
    moved = FileService.move_files(user_id, ids, data.get("folder_id"))
    return success({"moved_count": moved})


@file_bp.route('/<asset_id>/trash', methods=['POST'])
@jwt_required()
def move_to_trash(asset_id):
    user_id = get_jwt_identity()
    FileService.move_to_trash(user_id, asset_id)
    return success({"id": asset_id, "status": "已移入回收站"})


@file_bp.route('/<asset_id>/restore', methods=['POST'])
@jwt_required()
def restore_file(asset_id):
    user_id = get_jwt_identity()
    to_root = bool((request.get_json(silent=True) or {}).get("to_root", False))
    FileService.restore_from_trash(user_id, asset_id, to_root=to_root)
    return success({"id": asset_id, "status": "已恢复"})


@file_bp.route('/<asset_id>/purge', methods=['POST'])
@jwt_required()
def permanently_delete(asset_id):
    user_id = get_jwt_identity()
    return success(FileService.permanently_delete(user_id, asset_id))


@file_bp.route('/<asset_id>', methods=['DELETE'])
@jwt_required()
def delete_file(asset_id):
    user_id = get_jwt_identity()
    return success(FileService.delete_asset(user_id, asset_id))
