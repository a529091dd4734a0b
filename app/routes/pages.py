"""
Page view models for the locale-prefixed site (/{locale}, /{locale}/dashboard,
/{locale}/report and their unprefixed forms).

The protected pages are gated by LocaleMiddleware before they get here.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from app.core.i18n import LANGUAGE_NAMES, LOCALES, is_supported, translate
from app.models.report import OutageType
from app.services import report_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])


def _page(name: str, locale: str, **extra) -> Dict[str, Any]:
    return {
        "page": name,
        "locale": locale,
        "languageName": LANGUAGE_NAMES[locale],
        "navigation": {
            "home": translate(locale, "navigation.home"),
            "dashboard": translate(locale, "navigation.dashboard"),
            "report": translate(locale, "navigation.report"),
        },
        **extra,
    }


def _check_locale(locale: str) -> str:
    if not is_supported(locale):
        raise HTTPException(status_code=404, detail="Page not found")
    return locale


async def _dashboard(locale: str) -> Dict[str, Any]:
    try:
        latest = await report_service.latest_reports()
    except Exception as e:
        logger.error(f"Dashboard could not load latest reports: {e}", exc_info=True)
        latest = []
    return _page("dashboard", locale, title=translate(locale, "dashboard.title"), latestReports=latest)


def _report(locale: str) -> Dict[str, Any]:
    return _page(
        "report",
        locale,
        title=translate(locale, "report.title"),
        outageTypes=[t.value for t in OutageType],
    )


@router.get("/dashboard")
async def dashboard_page(request: Request):
    return await _dashboard(request.state.locale)


@router.get("/report")
async def report_page(request: Request):
    return _report(request.state.locale)


@router.get("/{locale}")
async def home_page(locale: str):
    _check_locale(locale)
    return _page(
        "home",
        locale,
        title=translate(locale, "homepage.heroTitle"),
        description=translate(locale, "homepage.heroDescription"),
        locales=LOCALES,
    )


@router.get("/{locale}/dashboard")
async def localized_dashboard_page(locale: str):
    return await _dashboard(_check_locale(locale))


@router.get("/{locale}/report")
async def localized_report_page(locale: str):
    return _report(_check_locale(locale))
