import io
import logging

from flask import Blueprint, request, send_file
from itsdangerous import BadSignature, SignatureExpired

from common.response import success, fail
from services.storage import get_storage
from utils.hash import sha256_bytes

logger = logging.getLogger(__name__)

# 本地存储的预签名上传/下载入口，S3 后端不注册
blob_bp = Blueprint('blob', __name__)


def _resolve(token, op):
    try:
        return get_storage().resolve_token(token, op), None
    except SignatureExpired:
        return None, fail("链接已过期", 403, 403)
    except BadSignature:
        return None, fail("链接无效", 403, 403)


@blob_bp.route('/<token>', methods=['PUT'])
def put_blob(token):
    key, error = _resolve(token, 'put')
    if error:
        return error
    data = request.get_data()
    # the key ends in the content hash; refuse bytes that do not match it
    if sha256_bytes(data) != key[-64:]:
        logger.warning("rejected upload for %s: content hash mismatch", key)
        return fail("文件内容与哈希不匹配", 400, 400)
    get_storage().write(key, data)
    return success({"key": key, "size": len(data)})


@blob_bp.route('/<token>', methods=['GET'])
def get_blob(token):
    key, error = _resolve(token, 'get')
    if error:
        return error
    data = get_storage().read(key)
    if data is None:
        return fail("文件不存在", 404, 404)
    return send_file(io.BytesIO(data), mimetype='application/octet-stream', download_name=key[-64:])
