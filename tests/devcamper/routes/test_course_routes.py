import logging

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError

from devcamper.core.errors import AuthError, NotFoundError
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.course import Course
from devcamper.routes.course_routes import (
    CreateCourseRequest,
    UpdateCourseRequest,
    create_course,
    delete_course,
    get_bootcamp_courses,
    get_course,
    get_courses,
    update_course,
)


def _course_request(title: str = 'Front End Web Development', tuition: int = 8000) -> CreateCourseRequest:
    return CreateCourseRequest(
        title=title,
        description='HTML, CSS and JavaScript from scratch',
        weeks='8',
        tuition=tuition,
        minimum_skill='Beginner',
        scholarship_available=True,
    )


def test_create_course_request_rejects_invalid_fields() -> None:
    with pytest.raises(PydanticValidationError):
        CreateCourseRequest(title='T', description='D', weeks='8', tuition=100, minimum_skill='expert')
    with pytest.raises(PydanticValidationError):
        CreateCourseRequest(title='T', description='D', weeks='8', tuition=-1, minimum_skill='beginner')
    with pytest.raises(PydanticValidationError):
        CreateCourseRequest(title=' ', description='D', weeks='8', tuition=100, minimum_skill='beginner')


def test_create_course_by_bootcamp_owner(db, make_user, make_bootcamp) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)

    body = create_course(camp.id, _course_request(), current_user=owner, db=db)

    data = body['data']
    assert data['bootcamp_id'] == camp.id
    assert data['user_id'] == owner.id
    assert data['minimum_skill'] == 'beginner'
    assert data['bootcamp'] == {'id': camp.id, 'name': camp.name, 'description': camp.description}


def test_create_course_for_missing_bootcamp(db, make_user) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        create_course(404, _course_request(), current_user=make_user(role='publisher'), db=db)

    assert exception_info.value.message == 'No bootcamp with ID of 404'


def test_create_course_on_foreign_bootcamp_is_rejected(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    stranger = make_user(role='publisher')

    with pytest.raises(AuthError) as exception_info:
        create_course(camp.id, _course_request(), current_user=stranger, db=db)

    assert exception_info.value.status_code == 401
    assert db.query(Course).count() == 0


def test_course_writes_keep_average_cost_current(db, make_user, make_bootcamp) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)

    first = create_course(camp.id, _course_request('Course A', tuition=8000), current_user=owner, db=db)
    create_course(camp.id, _course_request('Course B', tuition=10001), current_user=owner, db=db)
    db.refresh(camp)
    # mean is 9000.5, rounded up to the next ten
    assert camp.average_cost == 9010

    update_course(first['data']['id'], UpdateCourseRequest(tuition=12001), current_user=owner, db=db)
    db.refresh(camp)
    assert camp.average_cost == 11010

    delete_course(first['data']['id'], current_user=owner, db=db)
    db.refresh(camp)
    assert camp.average_cost == 10010


def test_average_cost_is_cleared_when_last_course_is_deleted(db, make_user, make_bootcamp) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)
    created = create_course(camp.id, _course_request(), current_user=owner, db=db)

    delete_course(created['data']['id'], current_user=owner, db=db)

    db.refresh(camp)
    assert camp.average_cost is None
    assert db.get(Bootcamp, camp.id) is not None


def test_get_bootcamp_courses_lists_only_that_bootcamp(db, make_user, make_bootcamp) -> None:
    admin = make_user(role='admin')
    camp = make_bootcamp(admin)
    other = make_bootcamp(admin)
    create_course(camp.id, _course_request('Course A'), current_user=admin, db=db)
    create_course(camp.id, _course_request('Course B'), current_user=admin, db=db)
    create_course(other.id, _course_request('Course C'), current_user=admin, db=db)

    body = get_bootcamp_courses(camp.id, db=db)

    assert body['success'] is True
    assert body['count'] == 2
    assert [item['title'] for item in body['data']] == ['Course A', 'Course B']


def test_get_courses_supports_filters_and_pagination(db, make_user, make_bootcamp, fake_request) -> None:
    admin = make_user(role='admin')
    camp = make_bootcamp(admin)
    for index, tuition in enumerate([1000, 5000, 9000]):
        create_course(camp.id, _course_request(f'Course {index}', tuition=tuition), current_user=admin, db=db)

    fake_request.query_params = {'tuition[gte]': '5000', 'sort': 'tuition', 'limit': '1'}
    body = get_courses(fake_request, db=db)

    assert body['count'] == 1
    assert body['data'][0]['tuition'] == 5000
    assert body['pagination'] == {'next': {'page': 2, 'limit': 1}}


def test_get_course_returns_404_for_missing_id(db) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        get_course(12, db=db)

    assert exception_info.value.status_code == 404


def test_update_course_by_stranger_is_rejected_and_leaves_course_unchanged(db, make_user, make_bootcamp) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)
    created = create_course(camp.id, _course_request(), current_user=owner, db=db)

    with pytest.raises(AuthError):
        update_course(
            created['data']['id'],
            UpdateCourseRequest(title='Hijacked'),
            current_user=make_user(role='publisher'),
            db=db,
        )

    assert get_course(created['data']['id'], db=db)['data']['title'] == 'Front End Web Development'


def test_delete_course_by_stranger_is_rejected(db, make_user, make_bootcamp) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)
    created = create_course(camp.id, _course_request(), current_user=owner, db=db)

    with pytest.raises(AuthError):
        delete_course(created['data']['id'], current_user=make_user(role='publisher'), db=db)

    assert db.get(Course, created['data']['id']) is not None


@pytest.mark.parametrize('tuition', [True, '8000', 8000.5])
def test_course_request_rejects_non_integer_tuition(tuition) -> None:
    with pytest.raises(PydanticValidationError):
        CreateCourseRequest(title='T', description='D', weeks='8', tuition=tuition, minimum_skill='beginner')


def test_update_course_rejects_null_on_required_field(db, make_user, make_bootcamp) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)
    created = create_course(camp.id, _course_request(), current_user=owner, db=db)

    with pytest.raises(PydanticValidationError):
        UpdateCourseRequest(title=None)

    body = update_course(created['data']['id'], UpdateCourseRequest(weeks='12'), current_user=owner, db=db)
    assert body['data']['title'] == 'Front End Web Development'
    assert body['data']['weeks'] == '12'


def test_failing_average_cost_query_keeps_the_course(db, make_user, make_bootcamp, monkeypatch, caplog) -> None:
    owner = make_user(role='publisher')
    camp = make_bootcamp(owner)

    def failing_query(*args, **kwargs):
        raise OperationalError('SELECT avg(courses.tuition)', {}, Exception('database is locked'))

    monkeypatch.setattr(db, 'query', failing_query)
    with caplog.at_level(logging.ERROR, logger='devcamper.models.course'):
        body = create_course(camp.id, _course_request(), current_user=owner, db=db)
    monkeypatch.undo()

    db.refresh(camp)
    assert db.get(Course, body['data']['id']) is not None
    assert camp.average_cost is None
    assert f'Could not update average cost for bootcamp {camp.id}' in caplog.text
