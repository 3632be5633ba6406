"""
Verificación del secreto compartido de los disparadores programados (cron).

IMPORTANTE:
- Si CRON_SECRET no está configurado, los GET de sync quedan abiertos
  (igual que los POST que dispara el panel de admin).
- No emite tokens: solo compara el header Authorization.
"""

from __future__ import annotations

import hmac
from typing import Optional


class CronSecretVerifier:
    """
    Verifica `Authorization: Bearer <CRON_SECRET>`.

    Usa comparación en tiempo constante (hmac.compare_digest) para reducir leaks
    por timing.
    """

    def __init__(self, secret: Optional[str]) -> None:
        self._secret = secret or ""

    def is_configured(self) -> bool:
        return bool(self._secret)

    def verify(self, authorization: Optional[str]) -> bool:
        if not self.is_configured():
            return True
        return hmac.compare_digest(authorization or "", f"Bearer {self._secret}")
