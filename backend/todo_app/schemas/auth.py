"""
Pydantic schemas for authentication input.
Defines the field rules shared by the web forms and the GraphQL mutations.
"""
import re
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

from todo_app.models.user import USERNAME_MAX_LENGTH

USERNAME_MIN_LENGTH = 3
USERNAME_TOO_LONG = f"Username must be at most {USERNAME_MAX_LENGTH} characters"
# Symbols accepted by the strength check; space counts, letters outside ASCII do not
PASSWORD_SYMBOLS = r"""\-#!$@£%^&*()_+|~=`{}\[\]:";'<>?,./\\ """
PASSWORD_MIN_LENGTH = 8
PASSWORD_POLICY_MESSAGE = (
    "Password must be at least 8 chars, include uppercase, lowercase, number & symbol"
)


def is_strong_password(value: str) -> bool:
    return (
        len(value) >= PASSWORD_MIN_LENGTH
        and re.search(r"[a-z]", value) is not None
        and re.search(r"[A-Z]", value) is not None
        and re.search(r"[0-9]", value) is not None
        and re.search(f"[{PASSWORD_SYMBOLS}]", value) is not None
    )


class Credentials(BaseModel):
    """
    Username/password pair for creating an account.
    Username is trimmed; the password must satisfy the strength policy.
    """
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _username_length(cls, value: str) -> str:
        value = value.strip()
        if len(value) < USERNAME_MIN_LENGTH:
            raise PydanticCustomError("username_length", "Username must be at least 3 characters")
        if len(value) > USERNAME_MAX_LENGTH:
            raise PydanticCustomError("username_length", USERNAME_TOO_LONG)
        return value

    @field_validator("password")
    @classmethod
    def _password_strength(cls, value: str) -> str:
        if not is_strong_password(value):
            raise PydanticCustomError("password_strength", PASSWORD_POLICY_MESSAGE)
        return value


class RegisterForm(Credentials):
    """Web registration form: credentials plus a matching confirmation."""
    model_config = ConfigDict(populate_by_name=True)

    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, value: str, info: ValidationInfo) -> str:
        # Only comparable once the password itself passed validation
        if "password" in info.data and value != info.data["password"]:
            raise PydanticCustomError("password_mismatch", "Passwords do not match")
        return value


class LoginForm(BaseModel):
    """Web login form. Only presence is checked here; the store decides validity."""
    username: str
    password: str

    @field_validator("username")
    @classmethod
    def _username_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise PydanticCustomError("required", "Username is required")
        return value

    @field_validator("password")
    @classmethod
    def _password_required(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("required", "Password cannot be blank")
        return value
