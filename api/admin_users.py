from __future__ import annotations

from flask import Blueprint, request, jsonify, abort, current_app

from api import accounts
from models.schemas.user import UpdateRoleSchema, UserOutSchema
from utils.decorators import roles_required

bp = Blueprint("admin_users", __name__)

update_role_schema = UpdateRoleSchema()
user_out_schema = UserOutSchema()


@bp.patch("/<user_id>/role")
@roles_required(["admin"])
def update_role(user_id: str):
    """
    Admin-only: set a user's role.
    Body: { "role": "creator" }
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string }
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
      404: { description: User not found }
    """
    data = update_role_schema.load(request.get_json(silent=True) or {})
    allowed = set(current_app.config.get("ALLOWED_ROLES", ["user", "admin", "creator", "donor"]))
    if data["role"] not in allowed:
        abort(422, description=f"Role must be one of {sorted(allowed)}")

    user = accounts().set_role(user_id, data["role"])
    return jsonify({"data": user_out_schema.dump(user)}), 200
