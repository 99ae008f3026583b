import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.dependencies import get_current_user, get_optional_user, require_roles
from backend.auth.passwords import hash_password, verify_password
from backend.core.errors import Conflict, InvalidRequest, NotFound, StorageError
from backend.core.params import EntityId
from backend.core.responses import success_response
from backend.database import ensure_database_ready, get_db
from backend.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_PROVIDER, User
from backend.schemas.user import LoginRequest, SessionResponse, UserCreateRequest, UserResponse, UserUpdateRequest

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = 'El email ya está registrado.'
INVALID_CREDENTIALS_MESSAGE = 'Email o contraseña incorrectos.'


def find_user_by_email(email: str, db: Session) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()


def get_user_or_404(user_id: int, db: Session) -> User:
    try:
        user = db.query(User).filter(User.id == user_id).first()
    except SQLAlchemyError as exc:
        raise StorageError('Error al obtener usuario.', error=str(exc)) from exc

    if user is None:
        raise NotFound('Usuario no encontrado.')
    return user


@router.post('/create', status_code=status.HTTP_201_CREATED)
def register_user(
    data: UserCreateRequest,
    db: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
):
    if data.role != ROLE_PATIENT and (current_user is None or current_user.role != ROLE_ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Se requiere un token de administrador para crear usuarios con el rol "{data.role}".',
        )

    ensure_database_ready()

    try:
        if find_user_by_email(data.email, db) is not None:
            raise Conflict(DUPLICATE_EMAIL_MESSAGE)

        user = User(
            name=data.name,
            lastname=data.lastname,
            email=data.email,
            phone=data.phone,
            image=data.image,
            hashed_password=hash_password(data.password),
            role=data.role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        raise Conflict(DUPLICATE_EMAIL_MESSAGE, error=str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al registrar el usuario.', error=str(exc)) from exc

    logger.info('Registered user %s with role %s', user.id, user.role)
    return success_response(
        'Usuario registrado correctamente',
        data=UserResponse.model_validate(user),
        status_code=status.HTTP_201_CREATED,
    )


@router.post('/login')
def login(data: LoginRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        user = find_user_by_email(data.email, db)
    except SQLAlchemyError as exc:
        raise StorageError('Error al iniciar sesión.', error=str(exc)) from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        logger.info('Failed login for %s', data.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_MESSAGE)

    token = jwt_handler.create_access_token(subject=str(user.id), role=user.role)

    return success_response(
        'Inicio de sesión exitoso',
        data=SessionResponse(session_token=token, role=user.role, name=user.name, users_id=user.id),
    )


@router.get('')
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    try:
        users = db.query(User).order_by(User.id.asc()).all()
    except SQLAlchemyError as exc:
        raise StorageError('Error al listar usuarios.', error=str(exc)) from exc

    return success_response('Lista de usuarios', data=[UserResponse.model_validate(user) for user in users])


@router.get('/me')
def me(current_user: User = Depends(get_current_user)):
    return success_response('Usuario actual', data=UserResponse.model_validate(current_user))


@router.get('/{user_id}')
def get_user(
    user_id: EntityId,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    user = get_user_or_404(user_id, db)
    return success_response('Usuario encontrado', data=UserResponse.model_validate(user))


@router.put('/{user_id}')
def update_user(
    user_id: EntityId,
    data: UserUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN, ROLE_PATIENT, ROLE_PROVIDER)),
):
    is_admin = current_user.role == ROLE_ADMIN
    if not is_admin and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Solo puede actualizar su propia cuenta.')
    if not is_admin and data.role is not None and data.role != current_user.role:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Solo un administrador puede cambiar roles.')

    ensure_database_ready()

    user = get_user_or_404(user_id, db)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    try:
        if 'email' in changes and changes['email'] != user.email:
            existing = find_user_by_email(changes['email'], db)
            if existing is not None and existing.id != user.id:
                raise Conflict(DUPLICATE_EMAIL_MESSAGE)

        password = changes.pop('password', None)
        if password:
            user.hashed_password = hash_password(password)

        for field_name, value in changes.items():
            setattr(user, field_name, value)

        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        raise Conflict(DUPLICATE_EMAIL_MESSAGE, error=str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al actualizar el usuario.', error=str(exc)) from exc

    return success_response('Usuario actualizado', data=UserResponse.model_validate(user))


@router.delete('/delete/{user_id}')
def delete_user(
    user_id: EntityId,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    if current_user.id == user_id:
        raise InvalidRequest('No puede eliminar su propia cuenta.')

    ensure_database_ready()

    user = get_user_or_404(user_id, db)

    try:
        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al eliminar el usuario.', error=str(exc)) from exc

    logger.info('Deleted user %s', user_id)
    return success_response('Usuario eliminado correctamente', data={'usersId': user_id})
