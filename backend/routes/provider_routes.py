import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_roles
from backend.core.errors import NotFound, StorageError
from backend.core.params import EntityId
from backend.core.responses import success_response
from backend.database import ensure_database_ready, get_db
from backend.models.provider import Provider
from backend.models.user import ROLE_ADMIN, ROLE_PROVIDER, User
from backend.schemas.provider import LinkProviderRequest, ProviderDetailResponse
from backend.schemas.user import UserResponse
from backend.services.provider_linking import link_provider

router = APIRouter(tags=['providers'])

logger = logging.getLogger(__name__)


def to_provider_detail(provider: Provider, user: User) -> ProviderDetailResponse:
    return ProviderDetailResponse(
        id=provider.id,
        users_id=provider.users_id,
        specialty=provider.specialty,
        name=user.name,
        lastname=user.lastname,
        email=user.email,
        phone=user.phone,
        image=user.image,
    )


@router.post('/link')
def link_provider_profile(
    data: LinkProviderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    result = link_provider(db, data.users_id, data.specialty)

    return success_response(result.message, data=result.merged())


@router.get('/potential')
def list_potential_providers(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    try:
        users = db.query(User).outerjoin(Provider, Provider.users_id == User.id).filter(
            User.role == ROLE_PROVIDER,
            Provider.id.is_(None),
        ).order_by(User.id.asc()).all()
    except SQLAlchemyError as exc:
        raise StorageError('Error al obtener usuarios pendientes de especialidad.', error=str(exc)) from exc

    return success_response(
        'Usuarios pendientes de especialidad',
        data=[UserResponse.model_validate(user) for user in users],
    )


@router.get('')
def list_providers(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN, ROLE_PROVIDER)),
):
    ensure_database_ready()

    try:
        rows = db.query(Provider, User).join(User, Provider.users_id == User.id).order_by(
            Provider.id.asc()
        ).all()
    except SQLAlchemyError as exc:
        raise StorageError('Error al obtener proveedores.', error=str(exc)) from exc

    return success_response(
        'Lista de proveedores',
        data=[to_provider_detail(provider, user) for provider, user in rows],
    )


@router.get('/user/{users_id}')
def get_provider_by_user(
    users_id: EntityId,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN, ROLE_PROVIDER)),
):
    ensure_database_ready()

    try:
        row = db.query(Provider, User).join(User, Provider.users_id == User.id).filter(
            Provider.users_id == users_id,
        ).first()
    except SQLAlchemyError as exc:
        raise StorageError('Error al obtener el perfil de proveedor.', error=str(exc)) from exc

    if row is None:
        raise NotFound('El usuario no tiene un perfil de proveedor.')

    provider, user = row
    return success_response('Perfil de proveedor encontrado', data=to_provider_detail(provider, user))


@router.delete('/delete/{provider_id}')
def delete_provider(
    provider_id: EntityId,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    try:
        provider = db.query(Provider).filter(Provider.id == provider_id).first()
        if provider is None:
            raise NotFound('Proveedor no encontrado.')

        # The linked user keeps the provider role; demotion is a separate user update.
        users_id = provider.users_id
        db.delete(provider)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al eliminar el proveedor.', error=str(exc)) from exc

    logger.info('Deleted provider profile %s of user %s', provider_id, users_id)
    return success_response('Proveedor eliminado correctamente', data={'providerId': provider_id, 'usersId': users_id})
