"""
Typed access to the tables the blog actually uses.

Statement text here only ever names fixed tables and columns, so no
identifier sanitization is involved; every caller-supplied value is bound.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from shared.logging import get_logger
from .query_builder import QueryBuilder

POST_COLUMNS = ("title", "content", "category", "status")
POST_STATUSES = ("draft", "published", "archived")

USER_PUBLIC_COLUMNS = ["id", "username", "email", "role", "created_at", "last_login"]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with ``\\``, ``%`` and ``_`` taken literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PostRepository:
    """Posts table."""

    def __init__(self, builder: QueryBuilder):
        self.builder = builder
        self.logger = get_logger("blog.store.posts")

    def create(self, user_id: Optional[int], title: str, content: str,
               category: Optional[str] = None, status: str = "published") -> Any:
        now = utc_now()
        post_id = self.builder.insert("posts", {
            "user_id": user_id,
            "title": title,
            "content": content,
            "category": category,
            "status": status,
            "created_at": now,
            "updated_at": now,
        })
        self.logger.info("Post created", post_id=post_id, user_id=user_id)
        return post_id

    def get(self, post_id: int) -> Optional[Dict[str, Any]]:
        return self.builder.select_one("posts", {"id": post_id})

    def update(self, post_id: int, changes: Dict[str, Any]) -> bool:
        data = {k: v for k, v in changes.items() if k in POST_COLUMNS}
        if not data:
            return False
        data["updated_at"] = utc_now()
        updated = self.builder.update("posts", data, {"id": post_id})
        self.logger.info("Post updated", post_id=post_id, fields=sorted(data))
        return updated > 0

    def delete(self, post_id: int) -> bool:
        deleted = self.builder.delete("posts", {"id": post_id})
        self.logger.info("Post deleted", post_id=post_id, deleted=deleted)
        return deleted > 0

    def list_recent(self, limit: int, offset: int = 0) -> List[Dict[str, Any]]:
        return self.builder.select("posts", options={
            "order_by": "created_at",
            "order_direction": "DESC",
            "limit": limit,
            "offset": offset,
        })

    def count(self) -> int:
        return self.builder.count("posts")

    def _search_where(self, term: str, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        p = self.builder.placeholder
        clauses = ["1=1"]
        params: List[Any] = []

        if term:
            pattern = like_pattern(term)
            clauses.append(
                f"(p.title LIKE {p} ESCAPE '\\' OR p.content LIKE {p} ESCAPE '\\' "
                f"OR u.username LIKE {p} ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])

        for column in ("category", "user_id", "status"):
            if filters.get(column) not in (None, ""):
                clauses.append(f"p.{column} = {p}")
                params.append(filters[column])

        if filters.get("date_from"):
            clauses.append(f"p.created_at >= {p}")
            params.append(filters["date_from"])

        if filters.get("date_to"):
            clauses.append(f"p.created_at <= {p}")
            params.append(filters["date_to"])

        return " AND ".join(clauses), params

    def count_search(self, term: str, filters: Dict[str, Any]) -> int:
        where, params = self._search_where(term, filters)
        sql = f"SELECT COUNT(*) FROM posts p LEFT JOIN users u ON p.user_id = u.id WHERE {where}"
        return int(self.builder.connection.execute(sql, params).scalar() or 0)

    def search(self, term: str, filters: Dict[str, Any], limit: int, offset: int) -> List[Dict[str, Any]]:
        where, params = self._search_where(term, filters)
        sql = (
            "SELECT p.*, u.username, u.email FROM posts p "
            f"LEFT JOIN users u ON p.user_id = u.id WHERE {where} "
            f"ORDER BY p.created_at DESC LIMIT {int(limit)} OFFSET {int(offset)}"
        )
        return self.builder.connection.execute(sql, params).fetchall()

    def title_suggestions(self, term: str, limit: int) -> List[str]:
        p = self.builder.placeholder
        sql = (
            f"SELECT title, MAX(created_at) AS latest FROM posts WHERE title LIKE {p} ESCAPE '\\' "
            f"GROUP BY title ORDER BY latest DESC LIMIT {p}"
        )
        return self.builder.connection.execute(sql, [like_pattern(term), int(limit)]).column()

    def categories(self) -> List[str]:
        sql = "SELECT DISTINCT category FROM posts WHERE category IS NOT NULL ORDER BY category"
        return self.builder.connection.execute(sql).column()


class UserRepository:
    """Users table."""

    def __init__(self, builder: QueryBuilder):
        self.builder = builder
        self.logger = get_logger("blog.store.users")

    def get_role(self, user_id: Any) -> Optional[str]:
        row = self.builder.select_one("users", {"id": user_id}, ["role"])
        return row["role"] if row else None

    def set_role(self, user_id: Any, role: str) -> bool:
        return self.builder.update("users", {"role": role}, {"id": user_id}) > 0

    def create(self, username: str, email: str, password_hash: str, role: str = "user") -> Any:
        user_id = self.builder.insert("users", {
            "username": username,
            "email": email,
            "password": password_hash,
            "role": role,
            "created_at": utc_now(),
        })
        self.logger.info("User created", user_id=user_id, role=role)
        return user_id

    def find_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.builder.select_one("users", {"username": username})

    def touch_last_login(self, user_id: Any):
        self.builder.update("users", {"last_login": utc_now()}, {"id": user_id})

    def _search_where(self, term: str) -> Tuple[str, List[Any]]:
        p = self.builder.placeholder
        pattern = like_pattern(term)
        return f"username LIKE {p} ESCAPE '\\' OR email LIKE {p} ESCAPE '\\'", [pattern, pattern]

    def count_search(self, term: str) -> int:
        where, params = self._search_where(term)
        return int(self.builder.connection.execute(f"SELECT COUNT(*) FROM users WHERE {where}", params).scalar() or 0)

    def search(self, term: str, limit: int, offset: int) -> List[Dict[str, Any]]:
        where, params = self._search_where(term)
        sql = (
            f"SELECT {', '.join(USER_PUBLIC_COLUMNS)} FROM users WHERE {where} "
            f"ORDER BY username ASC LIMIT {int(limit)} OFFSET {int(offset)}"
        )
        return self.builder.connection.execute(sql, params).fetchall()


class SearchLogRepository:
    """search_logs table."""

    def __init__(self, builder: QueryBuilder):
        self.builder = builder

    def log(self, term: str, user_id: Optional[Any], results_count: int) -> Any:
        return self.builder.insert("search_logs", {
            "search_term": term,
            "user_id": user_id,
            "results_count": int(results_count),
            "created_at": utc_now(),
        })

    def popular(self, since: str, limit: int) -> List[Dict[str, Any]]:
        p = self.builder.placeholder
        sql = (
            "SELECT search_term, COUNT(*) AS count FROM search_logs "
            f"WHERE created_at >= {p} GROUP BY search_term "
            f"ORDER BY count DESC, search_term ASC LIMIT {p}"
        )
        return self.builder.connection.execute(sql, [since, int(limit)]).fetchall()
