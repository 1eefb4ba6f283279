import pytest

from api import create_app


@pytest.fixture(scope="function")
def app(tmp_path):
    """A fresh app on its own SQLite file for each test."""
    db_path = tmp_path / "accounts-test.db"
    app = create_app("testing", {"DATABASE_URL": f"sqlite:///{db_path}"})
    try:
        yield app
    finally:
        storage = app.extensions["storage"]
        storage.drop_all()
        storage.dispose()


@pytest.fixture(scope="function")
def client(app):
    return app.test_client()


@pytest.fixture(scope="function")
def storage(app):
    return app.extensions["storage"]


@pytest.fixture(scope="function")
def auth_service(app):
    return app.extensions["auth_service"]


@pytest.fixture(scope="function")
def users_service(app):
    return app.extensions["users_service"]


@pytest.fixture(scope="function")
def settings(app):
    return app.extensions["token_settings"]
