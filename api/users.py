from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, g, abort, current_app

from models.schemas.user import UserCreateSchema, UserOutSchema, UserUpdateSchema
from utils.decorators import jwt_required

MAX_LIMIT = 100

bp = Blueprint("users", __name__)

user_create_schema = UserCreateSchema()
user_update_schema = UserUpdateSchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


def _users_service():
    return current_app.extensions["users_service"]


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "10"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.post("/users")
def create_user():
    """
    Create a user
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password, name]
          properties:
            email: { type: string }
            password: { type: string }
            name: { type: string }
            role: { type: string }
    responses:
      201: { description: Created }
      400: { description: Validation error }
      409: { description: Email already registered }
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)
    user = _users_service().create(data["email"], data["password"], data["name"], role=data.get("role"))
    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.get("/users")
def list_users():
    """
    List users, newest first
    ---
    tags:
      - Users
    parameters:
      - { in: query, name: page, type: integer }
      - { in: query, name: limit, type: integer }
    responses:
      200: { description: OK }
    """
    page, limit = parse_pagination()
    rows, total = _users_service().find_all(page, limit)
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.get("/users/me")
@jwt_required()
def me():
    """
    Get current user info
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": user_out_schema.dump(g.current_user)}), 200


@bp.get("/users/<user_id>")
def get_user(user_id: str):
    """
    Get a user by id
    ---
    tags:
      - Users
    parameters:
      - { in: path, name: user_id, type: string, required: true }
    responses:
      200: { description: OK }
      404: { description: User not found }
    """
    user = _users_service().find_by_id(user_id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.put("/users/<user_id>")
def update_user(user_id: str):
    """
    Update a user; a supplied password is re-hashed
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - { in: path, name: user_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
            role: { type: string }
            isActive: { type: boolean }
    responses:
      200: { description: OK }
      404: { description: User not found }
      409: { description: Email already registered }
    """
    payload = request.get_json(silent=True) or {}
    data = user_update_schema.load(payload)
    user = _users_service().update(user_id, **data)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.delete("/users/<user_id>")
def delete_user(user_id: str):
    """
    Delete a user and, by cascade, their refresh tokens
    ---
    tags:
      - Users
    parameters:
      - { in: path, name: user_id, type: string, required: true }
    responses:
      200: { description: Deleted }
      404: { description: User not found }
    """
    _users_service().delete(user_id)
    return jsonify({"message": "User deleted successfully"}), 200
