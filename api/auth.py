"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/verify-email
- POST /auth/resend-verification
- POST /auth/forgot-password
- POST /auth/reset-password
- GET  /auth/profile

Handlers validate input with marshmallow and delegate to the
SessionTokenManager / AccountService built in create_app. Service errors
(AuthError) are rendered by api.errors.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from api import accounts, session_tokens
from models.schemas.user import (
    RegisterSchema,
    LoginSchema,
    RefreshSchema,
    VerifyEmailSchema,
    EmailOnlySchema,
    ResetPasswordSchema,
    UserOutSchema,
)
from utils.decorators import jwt_required

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
verify_email_schema = VerifyEmailSchema()
email_only_schema = EmailOnlySchema()
reset_password_schema = ResetPasswordSchema()
user_out_schema = UserOutSchema()

RESET_MESSAGE = "If an account with that email exists, a reset link has been sent"


@bp.post("/register")
def register():
    """
    Register a new user and start email verification.
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
          required: [email, password, first_name, last_name]
          properties:
            email: { type: string }
            password: { type: string }
            first_name: { type: string }
            last_name: { type: string }
            wallet_address: { type: string }
            role: { type: string, description: "ignored; new accounts start as user" }
    responses:
      201:
        description: Created (returns tokens and user)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    data = register_schema.load(request.get_json(silent=True) or {})
    data.pop("role", None)
    pair = session_tokens().register(**data)
    accounts().start_email_verification(pair.user["id"])

    return jsonify(pair.to_dict()), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
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
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    pair = session_tokens().login(data["email"], data["password"])
    return jsonify(pair.to_dict()), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain a new access/refresh pair (rotation).
    Presenting an already rotated token ends the session.
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
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: Invalid or expired refresh token
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = session_tokens().refresh(data["refresh_token"])
    return jsonify(pair.to_dict()), 200


@bp.post("/verify-email")
def verify_email():
    """
    Verify email with token
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200: { description: Email verified }
      400: { description: Invalid or expired token }
    """
    data = verify_email_schema.load(request.get_json(silent=True) or {})
    accounts().verify_email(data["token"])
    return jsonify({"message": "Email verified successfully"}), 200


@bp.post("/resend-verification")
def resend_verification():
    """
    Resend email verification
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200: { description: Verification email sent }
      400: { description: Email already verified }
      404: { description: User not found }
    """
    data = email_only_schema.load(request.get_json(silent=True) or {})
    accounts().resend_verification(data["email"])
    return jsonify({"message": "Verification email resent"}), 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Request a password reset link. The response never reveals whether the account exists.
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200: { description: OK }
    """
    data = email_only_schema.load(request.get_json(silent=True) or {})
    accounts().forgot_password(data["email"])
    return jsonify({"message": RESET_MESSAGE}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Reset password with a selector.validator token; ends every active session.
    ---
    tags:
      - Auth
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             new_password: { type: string }
    responses:
      200: { description: Password reset }
      400: { description: Invalid or expired token }
    """
    data = reset_password_schema.load(request.get_json(silent=True) or {})
    accounts().reset_password(data["token"], data["new_password"])
    return jsonify({"message": "Password reset successfully"}), 200


@bp.get("/profile")
@jwt_required()
def profile():
    """
    Current user (access token required)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
    """
    return jsonify({"data": user_out_schema.dump(g.current_user)}), 200
