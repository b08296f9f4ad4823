"""
Shared fixtures for blog service tests.
"""

import pytest

from shared.test_helpers import seed_users, seed_posts
from service_blog.app.persistence.connection import connect
from service_blog.app.persistence.query_builder import QueryBuilder
from service_blog.app.persistence.schema import create_tables


@pytest.fixture
def connection():
    """In-memory sqlite store with the blog schema."""
    conn = connect("sqlite:///:memory:")
    create_tables(conn)
    yield conn
    conn.close()


@pytest.fixture
def builder(connection):
    """QueryBuilder over the in-memory store."""
    return QueryBuilder(connection)


@pytest.fixture
def user_ids(builder):
    """One seeded user per role, keyed by username."""
    return seed_users(builder)


@pytest.fixture
def post_ids(builder, user_ids):
    """Seeded posts authored by the plain user."""
    return seed_posts(builder, user_ids["user_uma"])
