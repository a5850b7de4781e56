"""
Securities Module
Resolves the (name, ISIN, WKN) captured from statements to one canonical
Security per instrument.
"""

import logging
import threading
from typing import Optional

from .models import Security

logger = logging.getLogger(__name__)


class SecurityRegistry:
    """
    Get-or-create store of securities.

    Lookup order is ISIN, then WKN, then name, so the same fund printed with
    slightly different names on two statements still resolves to one entry
    as long as the ISIN matches.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._securities: list[Security] = []

    def get_or_create(
        self,
        name: Optional[str] = None,
        isin: Optional[str] = None,
        wkn: Optional[str] = None
    ) -> Security:
        """
        Return the matching security, creating it if absent.

        Missing identifiers of an existing entry are filled in from the
        call, so a later statement that also prints the WKN enriches it.

        Raises:
            ValueError: If no identifier at all is given
        """
        name = name.strip() if name else None
        if not (name or isin or wkn):
            raise ValueError("A security needs at least a name, ISIN or WKN")

        with self._lock:
            security = self._find(name, isin, wkn)

            if security is None:
                security = Security(name=name, isin=isin, wkn=wkn)
                self._securities.append(security)
                logger.debug(f"Created {security}")
                return security

            if isin and not security.isin:
                security.isin = isin
            if wkn and not security.wkn:
                security.wkn = wkn
            if name and not security.name:
                security.name = name
            return security

    def _find(self, name, isin, wkn) -> Optional[Security]:
        if isin:
            for security in self._securities:
                if security.isin == isin:
                    return security
        if wkn:
            for security in self._securities:
                if security.wkn == wkn and (not isin or not security.isin):
                    return security
        if name and not isin:
            for security in self._securities:
                if security.name == name:
                    return security
        return None

    def all(self) -> list[Security]:
        with self._lock:
            return list(self._securities)

    def __len__(self) -> int:
        return len(self._securities)
