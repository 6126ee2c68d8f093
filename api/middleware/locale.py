from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.i18n import set_locale


SUPPORTED_LOCALES = {"en", "hi"}


def _pick_from_accept_language(al: str) -> str:
    """Parse Accept-Language with q weights, return the best language tag.

    Examples:
      'hi-IN,hi;q=0.9,en-US;q=0.8,en;q=0.7' -> 'hi-IN'
    """
    items = []
    for part in al.split(','):
        p = part.strip()
        if not p:
            continue
        seg = p.split(';', 1)
        lang = seg[0].strip()
        q = 1.0
        if len(seg) == 2 and seg[1].strip().startswith('q='):
            try:
                q = float(seg[1].strip()[2:])
            except ValueError:
                q = 1.0
        items.append((lang, q))
    if not items:
        return 'en'
    # sort by q desc, keep order for ties
    items.sort(key=lambda x: x[1], reverse=True)
    return items[0][0]


def _normalize(lang: str) -> str:
    """Map browser tags onto the shipped locales."""
    primary = (lang or 'en').replace('_', '-').lower().split('-', 1)[0]
    return primary if primary in SUPPORTED_LOCALES else 'en'


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
