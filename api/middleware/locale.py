from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.i18n import SUPPORTED_LOCALES, set_locale


def _pick_from_accept_language(al: str) -> str:
    """Return the highest-weighted language tag from an Accept-Language header.

    'fr-CH, fr;q=0.9, en;q=0.8' -> 'fr-CH'
    """
    items = []
    for part in al.split(','):
        p = part.strip()
        if not p:
            continue
        seg = p.split(';', 1)
        q = 1.0
        if len(seg) == 2 and seg[1].strip().startswith('q='):
            try:
                q = float(seg[1].strip()[2:])
            except ValueError:
                q = 0.0
        items.append((seg[0].strip(), q))
    if not items:
        return 'en'
    # stable sort keeps header order for ties
    items.sort(key=lambda x: x[1], reverse=True)
    return items[0][0]


def _normalize(lang: str) -> str:
    """Map a browser tag onto a supported locale, defaulting to 'en'."""
    tag = (lang or 'en').replace('_', '-').lower()
    primary = tag.split('-', 1)[0]
    if tag in SUPPORTED_LOCALES:
        return tag
    if primary in SUPPORTED_LOCALES:
        return primary
    return 'en'


class LocaleMiddleware(BaseHTTPMiddleware):
    """Parse locale from query/header and set into context.

    Priority: ?lang=xx > X-Lang > Accept-Language > default 'en'.
    """

    async def dispatch(self, request: Request, call_next):
        lang = request.query_params.get("lang") or request.headers.get("X-Lang")
        if not lang:
            al = request.headers.get("Accept-Language", "")
            lang = _pick_from_accept_language(al) if al else "en"
        locale = _normalize(lang)
        set_locale(locale)
        request.state.locale = locale
        return await call_next(request)
