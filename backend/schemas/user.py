from pydantic import BaseModel, EmailStr, Field, field_validator

from backend.models.user import ROLE_PATIENT, ROLES

MAX_PASSWORD_BYTES = 72


def _normalize_role(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in ROLES:
        raise ValueError(f'Rol inválido. Valores permitidos: {", ".join(ROLES)}.')
    return normalized


def _validate_password(value: str) -> str:
    if not value:
        raise ValueError('La contraseña es obligatoria.')
    if len(value.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValueError(f'La contraseña no puede superar {MAX_PASSWORD_BYTES} bytes.')
    return value


class UserCreateRequest(BaseModel):
    name: str
    lastname: str
    email: EmailStr
    password: str
    phone: str | None = None
    image: str | None = None
    role: str = ROLE_PATIENT

    @field_validator('name', 'lastname')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('El nombre y el apellido son obligatorios.')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _validate_password(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        return _normalize_role(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserUpdateRequest(BaseModel):
    name: str | None = None
    lastname: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    image: str | None = None
    password: str | None = None
    role: str | None = None

    @field_validator('name', 'lastname')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('El nombre y el apellido no pueden estar vacíos.')
        return normalized

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str | None) -> str | None:
        # The client sends an empty password when it is left unchanged.
        if not value:
            return None
        return _validate_password(value)

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        return _normalize_role(value) if value is not None else None


class UserResponse(BaseModel):
    id: int = Field(alias='usersId')
    name: str
    lastname: str
    email: str
    phone: str | None = None
    image: str | None = None
    role: str

    class Config:
        from_attributes = True
        populate_by_name = True


class SessionResponse(BaseModel):
    session_token: str
    role: str
    name: str
    users_id: int = Field(alias='usersId')

    class Config:
        populate_by_name = True
