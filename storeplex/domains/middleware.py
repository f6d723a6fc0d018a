# storeplex/domains/middleware.py
import logging

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


class DomainResolutionMiddleware:
    """
    Resolves the request's Host header to a store before routing.

    The result (a StoreContext or None) is exposed as
    ``request.state.store_context``. Resolution misses never fail the request.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        context = None
        platform = getattr(scope["app"].state, "platform", None)
        if platform is not None:
            host = Headers(scope=scope).get("host", "")
            context = await platform.domain_resolver.resolve(host)
        else:
            logger.debug("Platform services not initialized; skipping domain resolution.")

        scope.setdefault("state", {})["store_context"] = context
        await self.app(scope, receive, send)
