"""
Locale endpoints - supported languages, locale switching and message catalogs.
"""

from fastapi import APIRouter, HTTPException, Query, Request

from app.core.i18n import DEFAULT_LOCALE, LANGUAGE_NAMES, LOCALES, get_messages, switch_locale_path

router = APIRouter(prefix="/api/i18n", tags=["i18n"])


@router.get("/locales")
async def list_locales(request: Request):
    return {
        "default": DEFAULT_LOCALE,
        "current": getattr(request.state, "locale", DEFAULT_LOCALE),
        "locales": [{"code": code, "name": LANGUAGE_NAMES[code]} for code in LOCALES],
    }


@router.get("/switch")
async def switch_locale(
    path: str = Query("/", description="Current page path, with or without a locale prefix"),
    locale: str = Query(..., description="Target locale code"),
):
    """The same page under another locale (the language selector's target URL)."""
    try:
        return {"path": switch_locale_path(path, locale)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/messages/{locale}")
async def messages(locale: str):
    try:
        return get_messages(locale)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
