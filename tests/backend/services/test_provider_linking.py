import pytest
from sqlalchemy.exc import OperationalError

from backend.core.errors import Conflict, InvalidRequest, NotFound, StorageError
from backend.models.provider import Provider
from backend.models.user import ROLE_PATIENT, ROLE_PROVIDER, User
from backend.services.provider_linking import link_provider, parse_user_id


def test_link_provider_promotes_patient_and_creates_profile(db, make_user) -> None:
    user = make_user(ROLE_PATIENT, id=7)

    result = link_provider(db, 7, 'Cardiología')

    assert result.role_changed is True
    assert result.message == 'Perfil de proveedor vinculado. Rol actualizado: Sí.'
    assert db.query(User).filter(User.id == user.id).one().role == ROLE_PROVIDER

    profile = db.query(Provider).filter(Provider.users_id == 7).one()
    assert profile.specialty == 'Cardiología'

    merged = result.merged().model_dump(by_alias=True)
    assert merged['usersId'] == 7
    assert merged['role'] == ROLE_PROVIDER
    assert merged['specialty'] == 'Cardiología'
    assert merged['providerId'] == profile.id
    assert 'hashed_password' not in merged
    assert 'password' not in merged


def test_link_provider_keeps_existing_provider_role(db, make_user) -> None:
    make_user(ROLE_PROVIDER, id=3)

    result = link_provider(db, 3, 'Pediatría')

    assert result.role_changed is False
    assert result.message.endswith('Rol actualizado: No.')
    assert result.user.role == ROLE_PROVIDER


def test_link_provider_accepts_numeric_string_and_trims_specialty(db, make_user) -> None:
    make_user(ROLE_PATIENT, id=12)

    result = link_provider(db, ' 12 ', '  Dermatología ')

    assert result.provider.users_id == 12
    assert result.provider.specialty == 'Dermatología'


def test_link_provider_rejects_unknown_user_without_writing(db) -> None:
    with pytest.raises(NotFound) as exception_info:
        link_provider(db, 999, 'Cardiología')

    assert exception_info.value.message == 'Usuario no encontrado.'
    assert db.query(Provider).count() == 0


def test_link_provider_twice_yields_conflict_and_single_profile(db, make_user) -> None:
    make_user(ROLE_PATIENT, id=7)

    link_provider(db, 7, 'Cardiología')
    with pytest.raises(Conflict) as exception_info:
        link_provider(db, 7, 'Cardiología')

    assert 'ya tiene un perfil de proveedor' in exception_info.value.message
    assert exception_info.value.status_code == 400
    assert db.query(Provider).filter(Provider.users_id == 7).count() == 1


@pytest.mark.parametrize(
    ('users_id', 'specialty'),
    [
        (None, 'Cardiología'),
        ('', 'Cardiología'),
        (7, None),
        (7, '   '),
        ('abc', 'Cardiología'),
        ('7.5', 'Cardiología'),
        (True, 'Cardiología'),
        (0, 'Cardiología'),
    ],
)
def test_link_provider_rejects_invalid_input(db, make_user, users_id, specialty) -> None:
    make_user(ROLE_PATIENT, id=7)

    with pytest.raises(InvalidRequest):
        link_provider(db, users_id, specialty)

    assert db.query(Provider).count() == 0
    assert db.query(User).filter(User.id == 7).one().role == ROLE_PATIENT


def test_parse_user_id_accepts_integers_and_digit_strings() -> None:
    assert parse_user_id(4) == 4
    assert parse_user_id('42') == 42


@pytest.mark.parametrize('users_id', ['99999999999999999999', 2**63, -2**63 - 1])
def test_link_provider_treats_ids_beyond_integer_column_as_unknown(db, monkeypatch: pytest.MonkeyPatch, users_id) -> None:
    def unexpected_query(*entities):
        raise AssertionError('no lookup expected')

    monkeypatch.setattr(db, 'query', unexpected_query)

    with pytest.raises(NotFound) as exception_info:
        link_provider(db, users_id, 'Cardiología')

    assert exception_info.value.message == 'Usuario no encontrado.'
    assert exception_info.value.status_code == 404


def test_link_provider_reports_storage_error_on_user_lookup(db, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_query(*entities):
        raise OperationalError('SELECT users', {}, Exception('connection lost'))

    monkeypatch.setattr(db, 'query', failing_query)

    with pytest.raises(StorageError) as exception_info:
        link_provider(db, 7, 'Cardiología')

    assert exception_info.value.message == 'Error de base de datos al buscar usuario.'
    assert 'connection lost' in exception_info.value.error
    assert exception_info.value.status_code == 500


def test_failed_profile_insert_rolls_back_role_promotion(db, make_user, monkeypatch: pytest.MonkeyPatch) -> None:
    make_user(ROLE_PATIENT, id=7)
    original_flush = db.flush
    calls = {'count': 0}

    def flaky_flush(*args, **kwargs):
        calls['count'] += 1
        if calls['count'] == 2:
            raise OperationalError('INSERT INTO providers', {}, Exception('disk full'))
        return original_flush(*args, **kwargs)

    monkeypatch.setattr(db, 'flush', flaky_flush)

    with pytest.raises(StorageError) as exception_info:
        link_provider(db, 7, 'Cardiología')

    assert exception_info.value.message == 'Error de base de datos al crear el perfil de proveedor.'
    monkeypatch.setattr(db, 'flush', original_flush)
    assert db.query(User).filter(User.id == 7).one().role == ROLE_PATIENT
    assert db.query(Provider).count() == 0


def test_concurrent_link_hits_unique_constraint_as_conflict(db, make_user, monkeypatch: pytest.MonkeyPatch) -> None:
    user = make_user(ROLE_PATIENT, id=7)
    db.add(Provider(users_id=user.id, specialty='Neurología'))
    db.commit()

    class _NoMatch:
        def filter(self, *criteria):
            return self

        def first(self):
            return None

    original_query = db.query

    # Simulate a second request that ran its pre-check before the first insert landed.
    def stale_provider_query(*entities):
        if entities and entities[0] is Provider:
            return _NoMatch()
        return original_query(*entities)

    monkeypatch.setattr(db, 'query', stale_provider_query)

    with pytest.raises(Conflict):
        link_provider(db, 7, 'Cardiología')

    monkeypatch.setattr(db, 'query', original_query)
    assert db.query(Provider).filter(Provider.users_id == 7).count() == 1
    assert db.query(User).filter(User.id == 7).one().role == ROLE_PATIENT


def test_link_provider_reports_storage_error_on_existing_profile_check(db, make_user, monkeypatch: pytest.MonkeyPatch) -> None:
    make_user(ROLE_PATIENT, id=7)
    original_query = db.query

    def failing_provider_query(*entities):
        if entities and entities[0] is Provider:
            raise OperationalError('SELECT providers', {}, Exception('connection lost'))
        return original_query(*entities)

    monkeypatch.setattr(db, 'query', failing_provider_query)

    with pytest.raises(StorageError) as exception_info:
        link_provider(db, 7, 'Cardiología')

    assert exception_info.value.message == 'Error de base de datos al verificar perfil de proveedor.'
    assert 'connection lost' in exception_info.value.error
    monkeypatch.setattr(db, 'query', original_query)
    assert db.query(User).filter(User.id == 7).one().role == ROLE_PATIENT
    assert db.query(Provider).count() == 0


def test_link_provider_reports_storage_error_on_role_update(db, make_user, monkeypatch: pytest.MonkeyPatch) -> None:
    make_user(ROLE_PATIENT, id=7)
    original_flush = db.flush

    def failing_flush(*args, **kwargs):
        raise OperationalError('UPDATE users', {}, Exception('database is locked'))

    monkeypatch.setattr(db, 'flush', failing_flush)

    with pytest.raises(StorageError) as exception_info:
        link_provider(db, 7, 'Cardiología')

    assert exception_info.value.message == 'Error de base de datos al actualizar el rol.'
    assert 'database is locked' in exception_info.value.error
    monkeypatch.setattr(db, 'flush', original_flush)
    assert db.query(User).filter(User.id == 7).one().role == ROLE_PATIENT
    assert db.query(Provider).count() == 0
