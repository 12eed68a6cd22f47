import pytest

from bloodbank import create_app
from bloodbank.config import TestingConfig
from bloodbank.extensions import db


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database, so separate connections really are separate"""
    uri = f"sqlite:///{tmp_path / 'bloodbank.db'}"
    app = create_app(TestingConfig, SQLALCHEMY_DATABASE_URI=uri)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()
