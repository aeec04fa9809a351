"""
AMFI NAV table source.

One GET returns the NAV of every mutual fund scheme as a
semicolon-delimited text table:

    Scheme Code;ISIN Div Payout/ISIN Growth;ISIN Div Reinvestment;Scheme Name;Net Asset Value;Date
    119551;INF209KA12Z1;INF209KA13Z9;Aditya Birla Sun Life Banking & PSU Debt Fund;104.7776;17-Oct-2026

Section headings and blank lines have no semicolons and are ignored.
Only field 0 (scheme code) and field 4 (NAV) are consumed.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx
import structlog

from finance_tracker.config import AmfiSettings, AppSettings, get_settings
from finance_tracker.services.errors import (
    DataUnavailableError,
    MalformedDataError,
    ProviderError,
    TransientProviderError,
)


logger = structlog.get_logger(__name__)

MIN_FIELDS = 5


def parse_nav_line(line: str) -> tuple[str, Decimal]:
    """
    Parse one data line into (scheme_code, nav).

    Raises:
        MalformedDataError: Too few fields, empty code or non-numeric NAV
    """
    parts = line.split(";")
    if len(parts) < MIN_FIELDS:
        raise MalformedDataError(f"Expected at least {MIN_FIELDS} fields, got {len(parts)}")

    code = parts[0].strip()
    if not code:
        raise MalformedDataError("Empty scheme code")

    try:
        nav = Decimal(parts[4].strip())
    except (InvalidOperation, ValueError):
        raise MalformedDataError(f"Non-numeric NAV {parts[4].strip()!r} for scheme {code}")
    if not nav.is_finite():
        raise MalformedDataError(f"Non-finite NAV for scheme {code}")

    return code, nav


def parse_nav_table(text: str) -> dict[str, Decimal]:
    """
    Parse the whole table, skipping malformed lines individually.

    Lines without a semicolon (headings, blanks) are ignored silently.
    """
    navs: dict[str, Decimal] = {}
    skipped = 0

    for line_no, line in enumerate(text.splitlines(), start=1):
        if ";" not in line:
            continue
        try:
            code, nav = parse_nav_line(line)
        except MalformedDataError as e:
            skipped += 1
            logger.debug("nav_line_skipped", line_no=line_no, reason=str(e))
            continue
        navs[code] = nav

    logger.debug("nav_table_parsed", schemes=len(navs), skipped_lines=skipped)
    return navs


class AmfiNavSource:
    """Downloads and parses the bulk NAV table."""

    name = "amfi"

    def __init__(
        self,
        settings: Optional[AmfiSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().amfi
        app = app_settings or get_settings().app
        self._timeout = httpx.Timeout(
            self._settings.timeout_seconds,
            connect=app.connect_timeout_seconds,
        )
        self._client = client

    async def fetch_all(self) -> Optional[dict[str, Decimal]]:
        """
        Fetch the full scheme -> NAV mapping.

        Returns None on a non-200 response, a transport error or a table
        with no usable lines.
        """
        try:
            text = await self._download()
            navs = parse_nav_table(text)
            if not navs:
                raise DataUnavailableError("NAV table contained no usable lines", provider=self.name)
            return navs
        except ProviderError as e:
            logger.warning(
                "nav_table_fetch_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    async def _download(self) -> str:
        try:
            if self._client is not None:
                response = await self._client.get(self._settings.nav_url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._settings.nav_url)
        except httpx.TransportError as e:
            raise TransientProviderError(f"{type(e).__name__}: {e}", provider=self.name)

        if response.status_code != 200:
            raise ProviderError(
                f"Unexpected status (HTTP {response.status_code})", provider=self.name
            )
        return response.text
