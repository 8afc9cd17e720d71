from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from api import accounts
from models.schemas.user import ChangePasswordSchema, UpdateProfileSchema, UserOutSchema
from utils.decorators import jwt_required

bp = Blueprint("users", __name__)

change_password_schema = ChangePasswordSchema()
update_profile_schema = UpdateProfileSchema()
user_out_schema = UserOutSchema()


@bp.get("/users/me")
@jwt_required()
def me():
    """
    Get current user info.
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


@bp.patch("/users/me")
@jwt_required()
def update_me():
    """
    Update profile fields (first_name, last_name, wallet_address).
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             first_name: { type: string }
             last_name: { type: string }
             wallet_address: { type: string }
    responses:
      200: { description: OK }
      409: { description: Wallet address already linked }
      422: { description: Validation error }
    """
    data = update_profile_schema.load(request.get_json(silent=True) or {})
    user = accounts().update_profile(g.current_user.id, **data)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/change-password")
@jwt_required()
def change_password():
    """
    Change password; signs out every session of the user.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      200: { description: Password changed }
      401: { description: Current password is incorrect }
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    accounts().change_password(g.current_user.id, data["current_password"], data["new_password"])
    return jsonify({"message": "Password changed successfully"}), 200
