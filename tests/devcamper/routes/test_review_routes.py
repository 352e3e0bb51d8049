import logging

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError

from devcamper.core.errors import AuthError, NotFoundError, ValidationError
from devcamper.models.review import Review
from devcamper.routes.review_routes import (
    CreateReviewRequest,
    UpdateReviewRequest,
    create_review,
    delete_review,
    get_bootcamp_reviews,
    get_review,
    update_review,
)


def _review_request(rating: int = 8, title: str = 'Learned a ton') -> CreateReviewRequest:
    return CreateReviewRequest(title=title, text='Instructors were great and the projects were real.', rating=rating)


@pytest.mark.parametrize('rating', [0, 11])
def test_review_request_rejects_rating_out_of_range(rating) -> None:
    with pytest.raises(PydanticValidationError):
        CreateReviewRequest(title='Title', text='Text', rating=rating)


def test_review_request_rejects_long_title() -> None:
    with pytest.raises(PydanticValidationError):
        CreateReviewRequest(title='x' * 101, text='Text', rating=5)


def test_create_review_attaches_reviewer_and_bootcamp(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    reviewer = make_user(role='user')

    body = create_review(camp.id, _review_request(), current_user=reviewer, db=db)

    assert body['data']['user_id'] == reviewer.id
    assert body['data']['bootcamp_id'] == camp.id
    assert body['data']['bootcamp']['name'] == camp.name
    db.refresh(camp)
    assert camp.average_rating == 8


def test_create_review_for_missing_bootcamp(db, make_user) -> None:
    with pytest.raises(NotFoundError):
        create_review(99, _review_request(), current_user=make_user(), db=db)


def test_second_review_by_same_user_is_rejected(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    reviewer = make_user(role='user')
    create_review(camp.id, _review_request(rating=4), current_user=reviewer, db=db)

    with pytest.raises(ValidationError) as exception_info:
        create_review(camp.id, _review_request(rating=10), current_user=reviewer, db=db)

    assert exception_info.value.status_code == 400
    assert db.query(Review).filter(Review.bootcamp_id == camp.id).count() == 1
    db.refresh(camp)
    assert camp.average_rating == 4


def test_average_rating_follows_review_writes(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    reviewers = [make_user(role='user') for _ in range(3)]
    created = [
        create_review(camp.id, _review_request(rating=rating), current_user=reviewer, db=db)
        for rating, reviewer in zip([4, 6, 8], reviewers)
    ]

    db.refresh(camp)
    assert camp.average_rating == 6

    update_review(created[0]['data']['id'], UpdateReviewRequest(rating=10), current_user=reviewers[0], db=db)
    db.refresh(camp)
    assert camp.average_rating == 8

    delete_review(created[2]['data']['id'], current_user=reviewers[2], db=db)
    db.refresh(camp)
    assert camp.average_rating == 8


def test_deleting_last_review_clears_average_rating(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    reviewer = make_user(role='user')
    created = create_review(camp.id, _review_request(rating=7), current_user=reviewer, db=db)

    body = delete_review(created['data']['id'], current_user=reviewer, db=db)

    db.refresh(camp)
    assert body == {'success': True, 'data': {}}
    assert camp.average_rating is None


def test_update_review_by_stranger_is_rejected_and_leaves_review_unchanged(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    reviewer = make_user(role='user')
    created = create_review(camp.id, _review_request(rating=3), current_user=reviewer, db=db)

    with pytest.raises(AuthError) as exception_info:
        update_review(created['data']['id'], UpdateReviewRequest(rating=10), current_user=make_user(), db=db)

    assert exception_info.value.status_code == 401
    assert get_review(created['data']['id'], db=db)['data']['rating'] == 3
    db.refresh(camp)
    assert camp.average_rating == 3


def test_delete_review_by_stranger_is_rejected(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    created = create_review(camp.id, _review_request(), current_user=make_user(), db=db)

    with pytest.raises(AuthError):
        delete_review(created['data']['id'], current_user=make_user(), db=db)

    assert db.get(Review, created['data']['id']) is not None


def test_admin_can_delete_any_review(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    created = create_review(camp.id, _review_request(), current_user=make_user(), db=db)

    delete_review(created['data']['id'], current_user=make_user(role='admin'), db=db)

    assert db.get(Review, created['data']['id']) is None


def test_get_bootcamp_reviews_lists_reviews_in_creation_order(db, make_user, make_bootcamp) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    create_review(camp.id, _review_request(title='First'), current_user=make_user(), db=db)
    create_review(camp.id, _review_request(title='Second'), current_user=make_user(), db=db)

    body = get_bootcamp_reviews(camp.id, db=db)

    assert body['count'] == 2
    assert [item['title'] for item in body['data']] == ['First', 'Second']


def test_get_review_returns_404_for_missing_id(db) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        get_review(31, db=db)

    assert exception_info.value.message == 'No review found with ID 31'


@pytest.mark.parametrize('rating', [True, 7.5, '7'])
def test_review_request_rejects_non_integer_rating(rating) -> None:
    with pytest.raises(PydanticValidationError):
        CreateReviewRequest(title='Title', text='Text', rating=rating)


@pytest.mark.parametrize('field', ['title', 'text', 'rating'])
def test_update_review_request_rejects_null(field) -> None:
    with pytest.raises(PydanticValidationError):
        UpdateReviewRequest(**{field: None})


def test_failing_average_rating_query_keeps_the_review(db, make_user, make_bootcamp, monkeypatch, caplog) -> None:
    camp = make_bootcamp(make_user(role='publisher'))
    reviewer = make_user()

    def failing_query(*args, **kwargs):
        raise OperationalError('SELECT avg(reviews.rating)', {}, Exception('database is locked'))

    monkeypatch.setattr(db, 'query', failing_query)
    with caplog.at_level(logging.ERROR, logger='devcamper.models.review'):
        body = create_review(camp.id, _review_request(rating=7), current_user=reviewer, db=db)
    monkeypatch.undo()

    db.refresh(camp)
    assert body['data']['rating'] == 7
    assert db.query(Review).filter(Review.bootcamp_id == camp.id).count() == 1
    assert camp.average_rating is None
    assert f'Could not update average rating for bootcamp {camp.id}' in caplog.text
