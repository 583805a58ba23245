"""
Pytest fixtures for kassa backend tests.

Provides an in-memory store created with db.create_all(), a per-test clean
session, a test client, and catalog/customer factories.
"""

import stat
import sys

import pytest

from kassa import create_app
from kassa.extensions import db
from kassa.models import Customer
from kassa.services import products_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'AUTO_MIGRATE': False,
    'STORE_NAME': "Test Do'kon",
    'PRINTER_BIN_DIRS': [],
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client (shares the test's application context and session)."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create a catalog product through the catalog service."""
    counter = {'n': 0}

    def _make(name=None, price_cents=10000, qty=5, **kwargs):
        counter['n'] += 1
        kwargs.setdefault('sku', f"SKU-{counter['n']}")
        return products_service.create_product(
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            qty=qty,
            **kwargs,
        )

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Ali", phone="900000000", debt_cents=0):
        customer = Customer(name=name, phone=phone, debt_cents=debt_cents)
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture(scope='function')
def bin_dir(app, tmp_path, monkeypatch):
    """Temporary printer executable directory probed before the bundled ones."""
    directory = tmp_path / 'bin'
    directory.mkdir()
    monkeypatch.setitem(app.config, 'PRINTER_BIN_DIRS', [str(directory)])
    return directory


@pytest.fixture(scope='function')
def make_executable(bin_dir):
    """Write a POSIX shell script into bin_dir and mark it executable."""
    if sys.platform == 'win32':
        pytest.skip('shell-script executables need a POSIX shell')

    def _make(name, body):
        path = bin_dir / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture(scope='function')
def store_path(tmp_path):
    return tmp_path / 'store' / 'pos_system.db'


@pytest.fixture(scope='function')
def file_app(store_path):
    """Application on a file store with the migration chain applied (no shared connection)."""
    path = store_path
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{path.as_posix()}",
        'AUTO_MIGRATE': True,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
