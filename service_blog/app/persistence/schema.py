"""
Table definitions for the blog store.
"""

from shared.logging import get_logger
from .connection import StoreConnection

TABLES = ("users", "posts", "search_logs")


def create_tables(connection: StoreConnection):
    """Create database tables."""
    logger = get_logger("blog.store.schema")
    pk = connection.dialect.primary_key

    connection.execute(f"""
        CREATE TABLE IF NOT EXISTS users (
            id {pk},
            username VARCHAR(50) NOT NULL UNIQUE,
            email VARCHAR(255) NOT NULL UNIQUE,
            password VARCHAR(255) NOT NULL,
            role VARCHAR(20) NOT NULL DEFAULT 'user',
            created_at VARCHAR(32) NOT NULL,
            last_login VARCHAR(32)
        )
    """)

    connection.execute(f"""
        CREATE TABLE IF NOT EXISTS posts (
            id {pk},
            user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
            title VARCHAR(255) NOT NULL,
            content TEXT NOT NULL,
            category VARCHAR(50),
            status VARCHAR(20) NOT NULL DEFAULT 'published',
            created_at VARCHAR(32) NOT NULL,
            updated_at VARCHAR(32) NOT NULL
        )
    """)

    connection.execute(f"""
        CREATE TABLE IF NOT EXISTS search_logs (
            id {pk},
            search_term VARCHAR(255) NOT NULL,
            user_id INTEGER,
            results_count INTEGER NOT NULL DEFAULT 0,
            created_at VARCHAR(32) NOT NULL
        )
    """)

    connection.execute("CREATE INDEX IF NOT EXISTS idx_posts_created ON posts(created_at)")
    connection.execute("CREATE INDEX IF NOT EXISTS idx_posts_category ON posts(category)")
    connection.execute("CREATE INDEX IF NOT EXISTS idx_search_logs_created ON search_logs(created_at)")

    logger.info("Store schema ensured", dialect=connection.dialect.name, tables=list(TABLES))
