"""Linking a user account to its single provider profile.

The workflow validates its inputs, confirms the user exists and has no
profile yet, promotes the role to ``provider`` when needed and finally inserts
the profile. The role update and the insert share one transaction: if the
insert fails the promotion is rolled back with it. The unique index on
``providers.users_id`` backs the pre-check against concurrent links.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import Conflict, InvalidRequest, NotFound, StorageError
from backend.core.params import MAX_INTEGER_ID
from backend.models.provider import Provider
from backend.models.user import ROLE_PROVIDER, User
from backend.schemas.provider import LinkedProviderResponse

logger = logging.getLogger(__name__)

DUPLICATE_PROFILE_MESSAGE = 'Este usuario ya tiene un perfil de proveedor registrado. Solo puede tener uno.'


@dataclass
class LinkResult:
    user: User
    provider: Provider
    role_changed: bool

    @property
    def message(self) -> str:
        return f'Perfil de proveedor vinculado. Rol actualizado: {"Sí" if self.role_changed else "No"}.'

    def merged(self) -> LinkedProviderResponse:
        return LinkedProviderResponse(
            id=self.user.id,
            name=self.user.name,
            lastname=self.user.lastname,
            email=self.user.email,
            phone=self.user.phone,
            image=self.user.image,
            role=self.user.role,
            provider_id=self.provider.id,
            specialty=self.provider.specialty,
        )


@contextmanager
def _storage_step(db: Session, message: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error('%s %s', message, exc)
        raise StorageError(message, error=str(exc)) from exc


def parse_user_id(users_id: Any) -> int:
    if isinstance(users_id, bool):
        raise InvalidRequest('ID de usuario inválido.')
    if isinstance(users_id, int):
        return users_id
    try:
        return int(str(users_id).strip(), 10)
    except ValueError as exc:
        raise InvalidRequest('ID de usuario inválido.') from exc


def link_provider(db: Session, users_id: Any, specialty: str | None) -> LinkResult:
    normalized_specialty = specialty.strip() if isinstance(specialty, str) else ''
    if users_id in (None, '', 0) or not normalized_specialty:
        raise InvalidRequest('El usersId y la especialidad son obligatorios.')

    user_id = parse_user_id(users_id)
    # Ids the INTEGER column cannot hold never match a row.
    if not -MAX_INTEGER_ID - 1 <= user_id <= MAX_INTEGER_ID:
        raise NotFound('Usuario no encontrado.')

    with _storage_step(db, 'Error de base de datos al buscar usuario.'):
        user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound('Usuario no encontrado.')

    with _storage_step(db, 'Error de base de datos al verificar perfil de proveedor.'):
        existing_provider = db.query(Provider).filter(Provider.users_id == user_id).first()
    if existing_provider is not None:
        raise Conflict(DUPLICATE_PROFILE_MESSAGE)

    role_changed = user.role != ROLE_PROVIDER
    if role_changed:
        with _storage_step(db, 'Error de base de datos al actualizar el rol.'):
            user.role = ROLE_PROVIDER
            db.flush()

    provider = Provider(users_id=user_id, specialty=normalized_specialty)
    with _storage_step(db, 'Error de base de datos al crear el perfil de proveedor.'):
        db.add(provider)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            logger.warning('Concurrent provider link rejected for user %s', user_id)
            raise Conflict(DUPLICATE_PROFILE_MESSAGE, error=str(exc.orig)) from exc
        db.commit()
        db.refresh(user)
        db.refresh(provider)

    logger.info(
        'Linked provider profile %s to user %s (role changed: %s)',
        provider.id,
        user_id,
        role_changed,
    )
    return LinkResult(user=user, provider=provider, role_changed=role_changed)
