from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Optional, Tuple


MONTH_NAMES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

# Año logial: julio a junio.
FISCAL_MONTHS: Tuple[Tuple[int, str], ...] = (
    (7, "Jul"), (8, "Ago"), (9, "Sep"), (10, "Oct"), (11, "Nov"), (12, "Dic"),
    (1, "Ene"), (2, "Feb"), (3, "Mar"), (4, "Abr"), (5, "May"), (6, "Jun"),
)
FISCAL_YEAR_START_MONTH = 7


def format_long_date(value: Any) -> str:
    """Format an ISO date (YYYY-MM-DD) as '05 de marzo de 2024'; unparseable input is returned as is."""
    if not isinstance(value, str):
        return "" if value is None else str(value)
    try:
        # Mediodía fijo para que ningún huso horario mueva el día.
        parsed = datetime.strptime(f"{value.strip()}T12:00:00", "%Y-%m-%dT%H:%M:%S")
    except ValueError:
        return value
    return f"{parsed.day:02d} de {MONTH_NAMES[parsed.month - 1]} de {parsed.year}"


def parse_iso_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).split("T")[0].split(" ")[0]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


@dataclass(frozen=True)
class FiscalYearInfo:
    current_calendar_year: int
    next_calendar_year: int

    @property
    def label(self) -> str:
        return f"{self.current_calendar_year}-{self.next_calendar_year}"

    def year_for_month(self, month: int) -> int:
        return self.current_calendar_year if month >= FISCAL_YEAR_START_MONTH else self.next_calendar_year

    def months(self) -> List[Tuple[int, int, str]]:
        """(mes, año, etiqueta) de julio a junio."""
        return [(month, self.year_for_month(month), label) for month, label in FISCAL_MONTHS]


def get_fiscal_year_info(today: Optional[date] = None) -> FiscalYearInfo:
    today = today or date.today()
    if today.month >= FISCAL_YEAR_START_MONTH:
        start = today.year
    else:
        start = today.year - 1
    return FiscalYearInfo(current_calendar_year=start, next_calendar_year=start + 1)
