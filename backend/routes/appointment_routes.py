from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from backend.auth.dependencies import require_roles
from backend.core.errors import NotFound, StorageError
from backend.core.params import EntityId
from backend.core.responses import success_response
from backend.database import ensure_database_ready, get_db
from backend.models.appointment import Appointment
from backend.models.provider import Provider
from backend.models.user import ROLE_ADMIN, ROLE_PATIENT, ROLE_PROVIDER, User
from backend.schemas.appointment import AppointmentCreateRequest, AppointmentResponse, AppointmentUpdateRequest

router = APIRouter(tags=['appointments'])

ALL_ROLES = (ROLE_ADMIN, ROLE_PROVIDER, ROLE_PATIENT)

Patient = aliased(User)
ProviderUser = aliased(User)


def appointment_view_query(db: Session):
    return db.query(Appointment, Patient, Provider, ProviderUser).join(
        Patient, Appointment.users_id == Patient.id,
    ).join(
        Provider, Appointment.provider_id == Provider.id,
    ).join(
        ProviderUser, Provider.users_id == ProviderUser.id,
    )


def to_appointment_response(appointment: Appointment, patient: User, provider: Provider, provider_user: User) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        users_id=appointment.users_id,
        provider_id=appointment.provider_id,
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        reason=appointment.reason,
        status=appointment.status,
        created_at=appointment.created_at,
        patient_name=patient.full_name,
        provider_name=provider_user.full_name,
        provider_specialty=provider.specialty,
    )


def ensure_participants_exist(users_id: int, provider_id: int, db: Session) -> None:
    if db.query(User.id).filter(User.id == users_id).first() is None:
        raise NotFound('Paciente no encontrado.')
    if db.query(Provider.id).filter(Provider.id == provider_id).first() is None:
        raise NotFound('Proveedor no encontrado.')


@router.get('')
def list_appointments(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ALL_ROLES)),
):
    ensure_database_ready()

    try:
        query = appointment_view_query(db)
        if current_user.role == ROLE_PATIENT:
            query = query.filter(Appointment.users_id == current_user.id)

        rows = query.order_by(
            Appointment.appointment_date.desc(),
            Appointment.appointment_time.desc(),
        ).all()
    except SQLAlchemyError as exc:
        raise StorageError('Error al obtener citas', error=str(exc)) from exc

    return success_response('Lista de citas', data=[to_appointment_response(*row) for row in rows])


@router.get('/{appointment_id}')
def get_appointment(
    appointment_id: EntityId,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ALL_ROLES)),
):
    ensure_database_ready()

    try:
        row = appointment_view_query(db).filter(Appointment.id == appointment_id).first()
    except SQLAlchemyError as exc:
        raise StorageError('Error al obtener cita', error=str(exc)) from exc

    # Patients cannot tell other patients' appointments apart from missing ones.
    if row is None or (current_user.role == ROLE_PATIENT and row[0].users_id != current_user.id):
        raise NotFound('Cita no encontrada')

    return success_response('Cita encontrada', data=to_appointment_response(*row))


@router.post('/create', status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ALL_ROLES)),
):
    if current_user.role == ROLE_PATIENT and data.users_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Los pacientes solo pueden reservar citas para sí mismos.',
        )

    ensure_database_ready()

    try:
        ensure_participants_exist(data.users_id, data.provider_id, db)

        appointment = Appointment(
            users_id=data.users_id,
            provider_id=data.provider_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            reason=data.reason,
            status=data.status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

        row = appointment_view_query(db).filter(Appointment.id == appointment.id).one()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al crear la cita', error=str(exc)) from exc

    return success_response(
        'Cita creada correctamente',
        data=to_appointment_response(*row),
        status_code=status.HTTP_201_CREATED,
    )


@router.put('/update')
def update_appointment(
    data: AppointmentUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN, ROLE_PROVIDER)),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == data.id).first()
        if appointment is None:
            raise NotFound('Cita no encontrada')

        ensure_participants_exist(data.users_id, data.provider_id, db)

        appointment.users_id = data.users_id
        appointment.provider_id = data.provider_id
        appointment.appointment_date = data.appointment_date
        appointment.appointment_time = data.appointment_time
        appointment.reason = data.reason
        appointment.status = data.status
        db.commit()

        row = appointment_view_query(db).filter(Appointment.id == data.id).one()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al actualizar la cita', error=str(exc)) from exc

    return success_response('Cita actualizada', data=to_appointment_response(*row))


@router.delete('/delete/{appointment_id}')
def delete_appointment(
    appointment_id: EntityId,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(ROLE_ADMIN)),
):
    ensure_database_ready()

    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            raise NotFound('Cita no encontrada')

        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError('Error al eliminar la cita', error=str(exc)) from exc

    return success_response('Cita eliminada correctamente', data={'appointmentId': appointment_id})
