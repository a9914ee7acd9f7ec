from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from listingsync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyListingUnitOfWork,
    StartupError,
    build_engine,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from tests.helpers.listings import make_location, make_review

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyListingUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_repositories_need_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(StartupError):
        _ = SqlAlchemyListingUnitOfWork().repositories


def test_commit_persists_location_and_reviews(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    location = make_location("accounts/7/locations/42")
    review = make_review(location.id, text="Great croissants")

    with SqlAlchemyListingUnitOfWork() as uow:
        uow.repositories.locations.add(location)
        uow.repositories.reviews.add(review)
        uow.commit()

    with SqlAlchemyListingUnitOfWork() as uow:
        stored = uow.repositories.locations.get_by_normalized_id("42")
        assert stored is not None
        assert stored.fields.name == "Corner Bakery"
        loaded = uow.repositories.reviews.get_by_external_id(review.external_review_id)
        assert loaded is not None
        assert loaded.text == "Great croissants"


def test_exception_rolls_back(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(RuntimeError), SqlAlchemyListingUnitOfWork() as uow:
        uow.repositories.locations.add(make_location("locations/9"))
        uow.session.flush()
        raise RuntimeError("boom")

    with SqlAlchemyListingUnitOfWork() as uow:
        assert uow.repositories.locations.get_by_normalized_id("9") is None


def test_objects_stay_readable_after_commit(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    location = make_location("locations/5", name="After Hours")

    with SqlAlchemyListingUnitOfWork() as uow:
        uow.repositories.locations.add(location)
        uow.commit()

    assert location.name == "After Hours"


def test_sqlite_engine_enforces_foreign_keys() -> None:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    try:
        with engine.connect() as connection:
            assert connection.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
    finally:
        engine.dispose()


def test_unit_of_work_cannot_be_entered_twice(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyListingUnitOfWork()

    with uow, pytest.raises(StartupError):
        uow.__enter__()
