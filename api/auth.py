"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens, signed
  with two different secrets
- Stores SHA-256 digests of refresh tokens so they can be rotated and revoked
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from models.schemas.auth import LoginSchema, RefreshTokenSchema, RegisterSchema, TokenPairSchema
from services.auth_service import ClientInfo

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_token_schema = RefreshTokenSchema()
token_pair_schema = TokenPairSchema()


def _auth_service():
    return current_app.extensions["auth_service"]


def _client_info() -> ClientInfo:
    return ClientInfo(
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@bp.post("/register")
def register():
    """
    Register a new user and sign them in.
    ---
    tags:
      - Auth
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
    responses:
      201:
        description: Created (returns accessToken and refreshToken)
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)

    pair = _auth_service().register(data["email"], data["password"], data["name"], client=_client_info())
    return jsonify(token_pair_schema.dump(pair)), 201


@bp.post("/login")
def login():
    """
    Login: return accessToken and refreshToken
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      201:
        description: Created (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)

    pair = _auth_service().login(data["email"], data["password"], client=_client_info())
    return jsonify(token_pair_schema.dump(pair)), 201


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation).
    The presented refresh token is single-use.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      201:
        description: Created (returns a new token pair)
      401:
        description: Invalid refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_token_schema.load(payload)
    raw_token = data["refresh_token"]

    service = _auth_service()
    user_id = service.refresh_subject(raw_token)
    pair = service.refresh(user_id, raw_token, client=_client_info())
    return jsonify(token_pair_schema.dump(pair)), 201


@bp.post("/logout")
def logout():
    """
    Logout: the presented refresh token must still be live; removes every
    refresh token of its owner
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      204:
        description: ""
      401:
        description: Invalid refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_token_schema.load(payload)

    service = _auth_service()
    user_id = service.refresh_subject(data["refresh_token"])
    service.logout(user_id, data["refresh_token"])
    return ("", 204)
