import logging
import time
from typing import Any, Optional, Union

from tesoreria_app.enums import LedgerModule

logger = logging.getLogger(__name__)

FALLBACK_DIGITS = 7


def fallback_receipt_number(module: Union[LedgerModule, str], now_ms: Optional[int] = None) -> str:
    """Prefijo del módulo + últimos 7 dígitos del timestamp en milisegundos."""
    ledger = LedgerModule(module)
    stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
    return f"{ledger.prefix}{str(stamp)[-FALLBACK_DIGITS:].zfill(FALLBACK_DIGITS)}"


async def get_next_receipt_number(module: Union[LedgerModule, str], *, sequence: Any) -> str:
    """
    Siguiente número de recibo del módulo según el contador transaccional de la base.

    `sequence` expone `async get_next_sequence_number(module)` (AsyncDatabase).
    Si la llamada falla se registra el error y se devuelve un número derivado
    del timestamp, único sólo de forma probabilística.
    """
    ledger = LedgerModule(module)
    try:
        number = await sequence.get_next_sequence_number(ledger.value)
        if not number:
            raise ValueError("El contador de recibos devolvió un valor vacío")
        return str(number)
    except Exception:
        logger.error("Error obteniendo número de recibo para %s", ledger.value, exc_info=True)
        return fallback_receipt_number(ledger)
