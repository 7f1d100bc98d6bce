import re
import pytest

from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from db.crud.checkins import create_checkin, get_checkins, get_registration, validate_checkin
from db.crud.events import get_complete_event, upsert_event_from_indexer
from db.crud.participants import get_participant_status, register_participant
from db.crud.profiles import create_profile
from db.schemas.checkins import CreateCheckIn, ValidateCheckIn
from db.schemas.events import IndexedEvent
from db.schemas.participants import Registration
from db.schemas.profiles import CreateProfile
from core.lifecycle import EventStatus
from factories import ALICE, BOB, ORGANIZER, T0, indexed_event


@pytest.fixture
def event(db):
    return upsert_event_from_indexer(db, IndexedEvent.model_validate(indexed_event(42)))


def test_qr_checkin_generates_qr_data(db, event):
    # act
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))

    # assert
    assert re.fullmatch(rf'{ALICE}:42:[0-9a-f]{{16}}', checkin.qr_data)
    assert checkin.is_validated is False
    assert get_registration(db, 42, ALICE).id == checkin.id


def test_qr_checkin_keeps_supplied_qr_data(db, event):
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE, qr_data='scanned'))
    assert checkin.qr_data == 'scanned'


def test_qr_checkin_twice_conflicts(db, event):
    create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))
    with pytest.raises(HTTPException) as e:
        create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))
    assert e.value.status_code == 409


def test_only_organizer_validates(db, event):
    # setup
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))

    # act
    with pytest.raises(HTTPException) as e:
        validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), BOB)

    # assert
    assert e.value.status_code == 403
    db.expire_all()
    assert get_registration(db, 42, ALICE).is_validated is False


def test_validate_marks_participant_attended(db, event):
    # setup
    register_participant(db, 42, Registration(user_address=ALICE, transaction_hash='0xs', deposit_amount='10.5'), now=T0 - 10)
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))

    # act
    validated = validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), ORGANIZER.upper().replace('0X', '0x'))

    # assert
    assert validated.is_validated is True
    assert validated.validated_by == ORGANIZER
    assert validated.validated_at is not None
    assert get_participant_status(db, 42, ALICE).is_attend is True


def test_validate_inserts_missing_participant_while_registration_open(db, event):
    # setup
    create_profile(db, CreateProfile(wallet_address=ALICE, name='Alice'))
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))

    # act
    validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), ORGANIZER, now=T0 - 10)

    # assert
    status = get_participant_status(db, 42, ALICE)
    assert status is not None and status.is_attend is True
    assert get_complete_event(db, 42, now=T0 - 10).current_participants == 1


def test_validate_twice_conflicts(db, event):
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))
    validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), ORGANIZER)
    with pytest.raises(HTTPException) as e:
        validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), ORGANIZER)
    assert e.value.status_code == 409


def test_validate_succeeds_when_attendance_update_fails(db, event, mocker):
    # setup
    create_profile(db, CreateProfile(wallet_address=ALICE, name='Alice'))
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))
    mocker.patch('db.crud.checkins.find_participant', side_effect=OperationalError('update participant', {}, Exception('locked')))
    warning = mocker.patch('db.crud.checkins.logger.warning')

    # act
    validated = validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), ORGANIZER)

    # assert
    assert validated.is_validated is True
    warning.assert_called_once()
    assert get_participant_status(db, 42, ALICE) is None


def test_rejected_checkin_does_not_mark_attendance(db, event):
    register_participant(db, 42, Registration(user_address=ALICE, transaction_hash='0xs', deposit_amount='10.5'), now=T0 - 10)
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))

    validated = validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id, is_valid=False), ORGANIZER)

    assert validated.is_validated is False
    assert validated.validated_by == ORGANIZER
    assert get_participant_status(db, 42, ALICE).is_attend is False


def test_unknown_checkin_and_event(db, event):
    import uuid
    with pytest.raises(HTTPException) as e:
        validate_checkin(db, ValidateCheckIn(checkin_id=uuid.uuid4()), ORGANIZER)
    assert e.value.status_code == 404

    with pytest.raises(HTTPException) as e:
        get_checkins(db, 7)
    assert e.value.status_code == 404


def test_list_checkins(db, event):
    create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))
    create_checkin(db, CreateCheckIn(event_id=42, user_address=BOB))
    assert {c.user_address for c in get_checkins(db, 42)} == {ALICE, BOB}


def test_qr_checkin_for_unknown_event(db, event):
    with pytest.raises(HTTPException) as e:
        create_checkin(db, CreateCheckIn(event_id=999, user_address=ALICE))
    assert e.value.status_code == 404
    assert get_registration(db, 999, ALICE) is None


def test_validate_leaves_voided_event_voided(db):
    # setup
    upsert_event_from_indexer(db, IndexedEvent.model_validate(indexed_event(7, max_participant=1)))
    ids = []
    for wallet in (ALICE, BOB):
        create_profile(db, CreateProfile(wallet_address=wallet, name=wallet[-4:]))
        ids.append(create_checkin(db, CreateCheckIn(event_id=7, user_address=wallet)).id)
    assert get_complete_event(db, 7, now=T0 + 1).status == EventStatus.VOIDED

    # act
    for checkinId in ids:
        validated = validate_checkin(db, ValidateCheckIn(checkin_id=checkinId), ORGANIZER, now=T0 + 1)
        assert validated.is_validated is True

    # assert
    event = get_complete_event(db, 7, now=T0 + 1)
    assert event.status == EventStatus.VOIDED
    assert event.current_participants == 0
    assert get_participant_status(db, 7, ALICE) is None


def test_validate_does_not_overfill_event(db):
    # setup
    upsert_event_from_indexer(db, IndexedEvent.model_validate(indexed_event(7, max_participant=1)))
    register_participant(db, 7, Registration(user_address=ALICE, transaction_hash='0xs', deposit_amount='10.5'), now=T0 - 10)
    create_profile(db, CreateProfile(wallet_address=BOB, name='Bob'))
    checkin = create_checkin(db, CreateCheckIn(event_id=7, user_address=BOB))

    # act
    validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id), ORGANIZER, now=T0 - 5)

    # assert
    assert get_participant_status(db, 7, BOB) is None
    assert get_complete_event(db, 7, now=T0 - 5).current_participants == 1


def test_rejected_checkin_cannot_be_reviewed_again(db, event):
    # setup
    checkin = create_checkin(db, CreateCheckIn(event_id=42, user_address=ALICE))
    validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id, is_valid=False), ORGANIZER)

    # act
    for outcome in (False, True):
        with pytest.raises(HTTPException) as e:
            validate_checkin(db, ValidateCheckIn(checkin_id=checkin.id, is_valid=outcome), ORGANIZER)
        assert e.value.status_code == 409

    # assert
    db.expire_all()
    assert get_registration(db, 42, ALICE).is_validated is False
