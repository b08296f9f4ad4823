"""
Blog service.

Thin HTTP surface over the trust boundary: every write passes the
anti-forgery check, AccessControl and the RuleEngine before reaching the
store, and every store access goes through parameterized statements.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from fastapi import Body, Depends, HTTPException, Query, Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AccessDenied, AuthenticationError, ValidationFailure
from shared.logging import set_actor_context
from shared.metrics import MetricsCollector

from .access.control import AccessControl
from .access.models import DEFAULT_HIERARCHY, RoleHierarchy
from .auth.authenticator import Authenticator
from .persistence.connection import connect
from .persistence.query_builder import QueryBuilder
from .persistence.repositories import PostRepository, UserRepository, POST_STATUSES
from .persistence.schema import TABLES, create_tables
from .search.facade import SearchFacade
from .search.pagination import Pagination
from .validation.engine import RuleEngine
from .validation.rules import parse_rules
from .validation.sanitizer import generate_token, validate_token

POST_CREATE_RULES = parse_rules({
    "title": "required|max:255",
    "content": "required|max:65535",
    "category": "alpha_dash|max:50",
    "status": "in:" + ",".join(POST_STATUSES),
})

POST_UPDATE_RULES = {
    "title": "required|max:255",
    "content": "required|max:65535",
    "category": "alpha_dash|max:50",
    "status": "in:" + ",".join(POST_STATUSES),
}

ROLE_CHANGE_RULES = parse_rules({"role": "required|in:" + ",".join(DEFAULT_HIERARCHY.roles())})


@dataclass
class RequestScope:
    """Per-request collaborators bound to one store connection."""
    builder: QueryBuilder
    rules: RuleEngine
    access: AccessControl
    posts: PostRepository
    search: SearchFacade
    auth: Authenticator


class BlogService(BaseService):
    """Blog service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, hierarchy: RoleHierarchy = DEFAULT_HIERARCHY,
                 metrics: Optional[MetricsCollector] = None):
        self.hierarchy = hierarchy
        # Anti-forgery token contexts of logged-in actors, keyed by actor id.
        self.token_contexts: Dict[str, Dict[str, Any]] = {}
        super().__init__("blog", 8020, config=config, metrics=metrics)
        self._setup_blog_routes()

    def open_builder(self) -> QueryBuilder:
        return QueryBuilder(connect(self.config.database_url), self.metrics)

    def init_schema(self):
        builder = self.open_builder()
        try:
            create_tables(builder.connection)
        finally:
            builder.connection.close()

    def _check_dependencies(self) -> Dict[str, str]:
        try:
            builder = self.open_builder()
        except Exception as e:
            self.logger.error("Store unavailable", error=str(e))
            return {"store": "error"}
        try:
            return {"store": "ok" if builder.health_check() else "error"}
        finally:
            builder.connection.close()

    def _start_session(self, actor_id: Any) -> str:
        """Open (or keep) the token context of an authenticated actor."""
        return generate_token(self.token_contexts.setdefault(str(actor_id), {}))

    def _session(self, actor_id: Optional[str]) -> Dict[str, Any]:
        """Token context of a logged-in actor; AuthenticationError otherwise."""
        if actor_id is None or actor_id not in self.token_contexts:
            raise AuthenticationError("Login required")
        return self.token_contexts[actor_id]

    def _setup_blog_routes(self):
        """Set up blog-specific routes."""

        def get_scope() -> Iterator[RequestScope]:
            builder = self.open_builder()
            rules = RuleEngine(builder, self.metrics)
            try:
                yield RequestScope(
                    builder=builder,
                    rules=rules,
                    access=AccessControl(UserRepository(builder), self.hierarchy, self.metrics),
                    posts=PostRepository(builder),
                    search=SearchFacade(
                        builder, rules,
                        min_query_length=self.config.search_min_length,
                        max_per_page=self.config.per_page_max,
                    ),
                    auth=Authenticator(builder, rules),
                )
            finally:
                builder.connection.close()

        def get_actor(request: Request) -> Optional[str]:
            actor_id = request.headers.get(self.config.actor_header) or None
            set_actor_context(actor_id)
            return actor_id

        def require_token(request: Request, actor_id: Optional[str] = Depends(get_actor)) -> Optional[str]:
            context = self._session(actor_id)
            candidate = request.headers.get(self.config.csrf_header)
            if not validate_token(context, candidate):
                raise AccessDenied("Invalid anti-forgery token")
            return actor_id

        def load_post(scope: RequestScope, post_id: int) -> Dict[str, Any]:
            post = scope.posts.get(post_id)
            if post is None:
                raise HTTPException(status_code=404, detail="Post not found")
            return post

        def require_post_permission(scope: RequestScope, actor_id: str, post: Dict[str, Any], verb: str):
            owner = post.get("user_id") is not None and str(post["user_id"]) == actor_id
            if owner and scope.access.has_permission(actor_id, f"{verb}_own_post"):
                return
            scope.access.require_permission(actor_id, f"{verb}_any_post")

        @self.app.get("/")
        def root():
            """Root endpoint."""
            return {
                "service": "blog",
                "version": "1.0.0",
                "capabilities": ["validation", "parameterized_queries", "access_control", "search"]
            }

        @self.app.get("/csrf-token")
        def csrf_token(actor_id: Optional[str] = Depends(get_actor)):
            """Return the logged-in actor's anti-forgery token."""
            return {"token": generate_token(self._session(actor_id))}

        @self.app.post("/users", status_code=201)
        def register(data: Dict[str, Any] = Body(...), scope: RequestScope = Depends(get_scope)):
            """Register a new account."""
            return {"id": scope.auth.register(data)}

        @self.app.post("/login")
        def login(data: Dict[str, Any] = Body(...), scope: RequestScope = Depends(get_scope)):
            """Check credentials."""
            user = scope.auth.authenticate(str(data.get("username") or ""), str(data.get("password") or ""))
            if user is None:
                raise AuthenticationError("Invalid login")
            return {"user": user, "csrf_token": self._start_session(user["id"])}

        @self.app.get("/posts")
        def list_posts(
            request: Request,
            q: Optional[str] = Query(None, description="Search text"),
            page: int = Query(1, ge=1, description="Page number"),
            per_page: Optional[int] = Query(None, ge=1, description="Items per page"),
            actor_id: Optional[str] = Depends(get_actor),
            scope: RequestScope = Depends(get_scope),
        ):
            """Recent posts, or a filtered search when ``q`` is given."""
            per_page = min(per_page or self.config.per_page_default, self.config.per_page_max)

            if q:
                filters = {
                    key: request.query_params.get(key)
                    for key in ("category", "user_id", "status", "date_from", "date_to")
                    if request.query_params.get(key)
                }
                result = scope.search.search_posts(q, filters, page, per_page)
                scope.search.log_search(q, actor_id, result.total)
                return result.to_dict()

            pagination = Pagination(scope.posts.count(), per_page, page)
            return {
                "results": scope.posts.list_recent(pagination.limit, pagination.offset),
                "total": pagination.total_records,
                "pagination": pagination.to_dict(),
            }

        @self.app.get("/posts/{post_id}")
        def get_post(post_id: int, scope: RequestScope = Depends(get_scope)):
            """Single post."""
            return load_post(scope, post_id)

        @self.app.post("/posts", status_code=201)
        def create_post(
            data: Dict[str, Any] = Body(...),
            actor_id: str = Depends(require_token),
            scope: RequestScope = Depends(get_scope),
        ):
            """Create a post owned by the actor."""
            scope.access.require_permission(actor_id, "create_post")
            scope.rules.validate_or_raise(data, POST_CREATE_RULES)
            post_id = scope.posts.create(
                user_id=int(actor_id) if actor_id.isdigit() else None,
                title=data["title"],
                content=data["content"],
                category=data.get("category") or None,
                status=data.get("status") or "published",
            )
            return {"id": post_id}

        @self.app.put("/posts/{post_id}")
        def update_post(
            post_id: int,
            data: Dict[str, Any] = Body(...),
            actor_id: str = Depends(require_token),
            scope: RequestScope = Depends(get_scope),
        ):
            """Update the given fields of a post."""
            post = load_post(scope, post_id)
            require_post_permission(scope, actor_id, post, "edit")

            changes = {k: v for k, v in data.items() if k in POST_UPDATE_RULES}
            if not changes:
                raise ValidationFailure({"post": ["No updatable fields were supplied."]})
            scope.rules.validate_or_raise(changes, {k: POST_UPDATE_RULES[k] for k in changes})

            scope.posts.update(post_id, changes)
            return scope.posts.get(post_id)

        @self.app.delete("/posts/{post_id}")
        def delete_post(
            post_id: int,
            actor_id: str = Depends(require_token),
            scope: RequestScope = Depends(get_scope),
        ):
            """Delete a post."""
            post = load_post(scope, post_id)
            require_post_permission(scope, actor_id, post, "delete")
            return {"deleted": scope.posts.delete(post_id)}

        @self.app.put("/users/{user_id}/role")
        def change_role(
            user_id: str,
            data: Dict[str, Any] = Body(...),
            actor_id: str = Depends(require_token),
            scope: RequestScope = Depends(get_scope),
        ):
            """Change another user's role."""
            scope.access.require_permission(actor_id, "manage_users")
            if not scope.access.can_manage(actor_id, user_id):
                raise AccessDenied("Access denied. Cannot manage this user.")
            scope.rules.validate_or_raise(data, ROLE_CHANGE_RULES)
            if not scope.access.can_assign(actor_id, data["role"]):
                raise AccessDenied("Access denied. Cannot assign this role.", {"role": data["role"]})
            return {"updated": scope.access.set_role(user_id, data["role"])}

        @self.app.get("/search/suggestions")
        def suggestions(q: str = Query("", description="Search text"), scope: RequestScope = Depends(get_scope)):
            """Title suggestions for a partial query."""
            return scope.search.get_search_suggestions(q)

        @self.app.get("/search/popular")
        def popular(limit: int = Query(10, ge=1, le=50), scope: RequestScope = Depends(get_scope)):
            """Most frequent search terms of the last 30 days."""
            return scope.search.get_popular_searches(limit)

        @self.app.get("/stats")
        def stats(actor_id: Optional[str] = Depends(get_actor), scope: RequestScope = Depends(get_scope)):
            """Table row counts."""
            self._session(actor_id)
            scope.access.require_permission(actor_id, "view_reports")
            return scope.builder.get_stats(TABLES)


def create_app(config: Optional[ServiceConfig] = None):
    """Create blog service application."""
    service = BlogService(config)
    service.init_schema()
    return service.app


if __name__ == "__main__":
    service = BlogService()
    service.init_schema()
    service.run()
