import json
import logging
from typing import Any, Dict, List, Optional

from psycopg_pool import ConnectionPool

from tesoreria_app.services.date_format import FiscalYearInfo

logger = logging.getLogger(__name__)

MEMBERS_QUERY = "SELECT id, full_name, degree, status, phone, birth_date FROM members ORDER BY full_name"
MONTHLY_PAYMENTS_QUERY = "SELECT id, member_id, month, year, amount, payment_type, payment_date FROM monthly_payments"
EXTRAORDINARY_FEES_QUERY = "SELECT id, name, amount, due_date FROM extraordinary_fees ORDER BY id"
EXTRAORDINARY_PAYMENTS_QUERY = (
    "SELECT id, extraordinary_fee_id, member_id, amount_paid, payment_date FROM extraordinary_payments"
)
EXPENSES_QUERY = "SELECT id, description, category, amount, expense_date FROM expenses ORDER BY expense_date"
DEGREE_FEE_TOTAL_QUERY = "SELECT COALESCE(SUM(amount), 0) FROM degree_fees"


def _rows_to_dicts(cursor) -> List[Dict[str, Any]]:
    columns = [
        col.name if hasattr(col, "name") else col[0]
        for col in cursor.description
    ]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


class Database:
    def __init__(self, dsn: str, pool_min: int = 1, pool_max: int = 4):
        self.dsn = dsn
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.pool = ConnectionPool(conninfo=dsn, min_size=pool_min, max_size=pool_max)
        self.current_user_id: Optional[str] = None
        self.is_closing = False

    def set_context(self, user_id: Optional[str]) -> None:
        self.current_user_id = user_id

    def log_activity(self, entidad: str, accion: str, id_entidad: Optional[Any] = None, resultado: str = "OK", detalle: Optional[Dict[str, Any]] = None) -> None:
        if self.is_closing:
            return

        query = """
            INSERT INTO activity_log (user_id, entity, entity_id, action, result, detail)
            VALUES (%s, %s, %s, %s, %s, %s)
        """
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (
                        self.current_user_id,
                        entidad,
                        str(id_entidad) if id_entidad is not None else None,
                        accion.upper() if accion else "ERROR",
                        resultado,
                        json.dumps(detalle, default=str) if detalle else None,
                    ))
                    conn.commit()
        except Exception:
            logger.error("Error logging activity %s/%s", entidad, accion, exc_info=True)

    # =========================================================================
    # Dashboard records
    # =========================================================================
    def _fetch_all(self, query: str, params: tuple = ()) -> List[Dict[str, Any]]:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return _rows_to_dicts(cur)

    def fetch_members(self) -> List[Dict[str, Any]]:
        return self._fetch_all(MEMBERS_QUERY)

    def fetch_monthly_payments(self, fiscal: Optional[FiscalYearInfo] = None) -> List[Dict[str, Any]]:
        if fiscal is None:
            return self._fetch_all(MONTHLY_PAYMENTS_QUERY)
        # Julio-diciembre del primer año y enero-junio del siguiente.
        return self._fetch_all(
            MONTHLY_PAYMENTS_QUERY + " WHERE (year = %s AND month >= 7) OR (year = %s AND month <= 6)",
            (fiscal.current_calendar_year, fiscal.next_calendar_year),
        )

    def fetch_extraordinary_fees(self) -> List[Dict[str, Any]]:
        return self._fetch_all(EXTRAORDINARY_FEES_QUERY)

    def fetch_extraordinary_payments(self) -> List[Dict[str, Any]]:
        return self._fetch_all(EXTRAORDINARY_PAYMENTS_QUERY)

    def fetch_expenses(self) -> List[Dict[str, Any]]:
        return self._fetch_all(EXPENSES_QUERY)

    def get_degree_fee_total(self) -> Any:
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(DEGREE_FEE_TOTAL_QUERY)
                row = cur.fetchone()
                return row[0] if row else 0

    def fetch_dashboard_data(self, fiscal: Optional[FiscalYearInfo] = None) -> Dict[str, Any]:
        """All records the dashboard aggregates, read over a single connection."""
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(MEMBERS_QUERY)
                members = _rows_to_dicts(cur)
                cur.execute(MONTHLY_PAYMENTS_QUERY)
                monthly_payments = _rows_to_dicts(cur)
                cur.execute(EXTRAORDINARY_FEES_QUERY)
                extraordinary_fees = _rows_to_dicts(cur)
                cur.execute(EXTRAORDINARY_PAYMENTS_QUERY)
                extraordinary_payments = _rows_to_dicts(cur)
                cur.execute(EXPENSES_QUERY)
                expenses = _rows_to_dicts(cur)
                cur.execute(DEGREE_FEE_TOTAL_QUERY)
                row = cur.fetchone()

        if fiscal is not None:
            months = {(month, year) for month, year, _ in fiscal.months()}
            monthly_payments = [p for p in monthly_payments if (p.get("month"), p.get("year")) in months]

        return {
            "members": members,
            "monthly_payments": monthly_payments,
            "extraordinary_fees": extraordinary_fees,
            "extraordinary_payments": extraordinary_payments,
            "expenses": expenses,
            "degree_fee_total": row[0] if row else 0,
        }

    def close(self) -> None:
        """Gracefully close the connection pool and join worker threads."""
        self.is_closing = True
        if getattr(self, "pool", None):
            try:
                self.pool.close()
            except Exception:
                logger.debug("Error cerrando el pool de conexiones.", exc_info=True)
            finally:
                self.pool = None
