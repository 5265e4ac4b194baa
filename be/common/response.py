from flask import jsonify


def success(data=None, msg="ok"):
    return jsonify({"code": 0, "msg": msg, "data": data if data is not None else {}})


def fail(msg="error", code=1, status=200):
    return jsonify({"code": code, "msg": msg}), status
