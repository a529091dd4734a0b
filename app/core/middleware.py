import logging
import time

from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.i18n import locale_root, negotiate_locale, split_locale_path
from app.core.settings import settings

logger = logging.getLogger(__name__)

PROTECTED_PATHS = ["/dashboard", "/report"]


def is_protected_path(path: str) -> bool:
    """True for /dashboard, /report and anything below them (whole segments only)."""
    return any(path == p or path.startswith(p + "/") for p in PROTECTED_PATHS)


class LocaleMiddleware(BaseHTTPMiddleware):
    """
    Resolves the request locale and gates the protected pages.

    - request.state.locale: the path prefix, else Accept-Language, else "en"
    - request.state.locale_prefixed: whether the path carried the prefix
    - Protected pages without an auth cookie redirect (307) to the locale root
    """

    async def dispatch(self, request: Request, call_next):
        prefix, rest = split_locale_path(request.url.path)
        request.state.locale = prefix or negotiate_locale(request.headers.get("accept-language"))
        request.state.locale_prefixed = prefix is not None
        request.state.unprefixed_path = rest

        if is_protected_path(rest) and not request.cookies.get(settings.AUTH_COOKIE_NAME):
            target = locale_root(prefix)
            logger.info(f"Unauthenticated request for {request.url.path}; redirecting to {target}")
            return RedirectResponse(url=target, status_code=307)

        response = await call_next(request)
        response.headers.setdefault("Content-Language", request.state.locale)
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Incoming: {request.method} {request.url.path} from {client_host}")

        try:
            response = await call_next(request)
            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"Outgoing: {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Time: {process_time:.2f}ms"
            )
            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            logger.error(f"Request failed: {request.method} {request.url.path} after {process_time:.2f}ms - Error: {str(e)}")
            raise
