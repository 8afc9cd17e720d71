from marshmallow import Schema, fields, pre_load, validate

PASSWORD_PATTERN = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]+$"
PASSWORD_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase letter, "
    "one number, and one special character"
)
WALLET_PATTERN = r"^G[A-Z2-7]{55}$"


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def password_field(**kwargs):
    return fields.String(
        required=True,
        load_only=True,
        validate=[
            validate.Length(min=8, error="Password must be at least 8 characters long."),
            validate.Regexp(PASSWORD_PATTERN, error=PASSWORD_MESSAGE),
        ],
        **kwargs,
    )


def wallet_field(**kwargs):
    return fields.String(
        validate=validate.Regexp(WALLET_PATTERN, error="Invalid Stellar wallet address."),
        **kwargs,
    )


class EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _norm_email(data["email"])
        return data


class RegisterSchema(EmailNormalizingSchema):
    email = fields.Email(required=True)
    password = password_field()
    first_name = fields.String(required=True, validate=validate.Length(min=1, max=50))
    last_name = fields.String(required=True, validate=validate.Length(min=1, max=50))
    wallet_address = wallet_field(load_default=None, allow_none=True)
    # accepted and ignored; new accounts always start as "user"
    role = fields.String(load_only=True)


class LoginSchema(EmailNormalizingSchema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class RefreshSchema(Schema):
    refresh_token = fields.String(required=True, validate=validate.Length(min=1))


class VerifyEmailSchema(Schema):
    token = fields.String(required=True, validate=validate.Length(min=1))


class EmailOnlySchema(EmailNormalizingSchema):
    email = fields.Email(required=True)


class ResetPasswordSchema(Schema):
    token = fields.String(required=True, validate=validate.Length(min=1))
    new_password = password_field()


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = password_field()


class UpdateProfileSchema(Schema):
    first_name = fields.String(validate=validate.Length(min=1, max=50))
    last_name = fields.String(validate=validate.Length(min=1, max=50))
    wallet_address = wallet_field(allow_none=True)


class UpdateRoleSchema(Schema):
    role = fields.String(required=True)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    email = fields.String()
    first_name = fields.String()
    last_name = fields.String()
    wallet_address = fields.String(allow_none=True)
    role = fields.String()
    is_email_verified = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
