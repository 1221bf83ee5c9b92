"""
KPIs y series de gráficos del dashboard de tesorería.

Funciones puras sobre filas ya obtenidas de la base (dicts). Los montos se
acumulan con Decimal y se redondean a dos decimales al final.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tesoreria_app.enums import MemberStatus, PaymentType
from tesoreria_app.services.date_format import FiscalYearInfo, get_fiscal_year_info, parse_iso_date
from tesoreria_app.services.number_locale import quantize_money, to_decimal
from tesoreria_app.services.receipt_service import build_birthday_message, build_whatsapp_link

Row = Mapping[str, Any]

UNCATEGORIZED_LABEL = "Sin categoría"


def _amount(row: Row, key: str) -> Decimal:
    return to_decimal(row.get(key)) or Decimal("0")


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _is_benefit(payment: Row) -> bool:
    return payment.get("payment_type") == PaymentType.PRONTO_PAGO_BENEFIT.value


def active_members(members: Iterable[Row]) -> List[Row]:
    return [m for m in members if m.get("status") == MemberStatus.ACTIVO.value]


def treasury_income(monthly_payments: Iterable[Row]) -> Decimal:
    """Cuotas mensuales cobradas; los beneficios de pronto pago no son ingreso."""
    total = sum((_amount(p, "amount") for p in monthly_payments if not _is_benefit(p)), Decimal("0"))
    return quantize_money(total)


def extraordinary_income(extraordinary_payments: Iterable[Row]) -> Decimal:
    total = sum((_amount(p, "amount_paid") for p in extraordinary_payments), Decimal("0"))
    return quantize_money(total)


def total_expenses(expenses: Iterable[Row]) -> Decimal:
    return quantize_money(sum((_amount(e, "amount") for e in expenses), Decimal("0")))


def _index_monthly_payments(monthly_payments: Iterable[Row]) -> Dict[Tuple[Any, int, int], Row]:
    index: Dict[Tuple[Any, int, int], Row] = {}
    for payment in monthly_payments:
        month = _to_int(payment.get("month"))
        year = _to_int(payment.get("year"))
        if month is None or year is None:
            continue
        index.setdefault((payment.get("member_id"), month, year), payment)
    return index


def members_with_mora(
    members: Iterable[Row],
    monthly_payments: Iterable[Row],
    monthly_fee: Any,
    fiscal: FiscalYearInfo,
) -> int:
    """
    Miembros activos con al menos un mes del año logial impago o pagado por
    debajo de la cuota base. Un beneficio de pronto pago cuenta como pagado.
    """
    fee = to_decimal(monthly_fee) or Decimal("0")
    index = _index_monthly_payments(monthly_payments)
    count = 0
    for member in active_members(members):
        for month, year, _label in fiscal.months():
            payment = index.get((member.get("id"), month, year))
            if payment is None:
                count += 1
                break
            if not _is_benefit(payment) and _amount(payment, "amount") < fee:
                count += 1
                break
    return count


def pending_extraordinary(
    members: Iterable[Row],
    extraordinary_fees: Iterable[Row],
    extraordinary_payments: Iterable[Row],
) -> int:
    """Pares (cuota extraordinaria, miembro activo) sin pago registrado."""
    paid = {(p.get("extraordinary_fee_id"), p.get("member_id")) for p in extraordinary_payments}
    active = active_members(members)
    return sum(
        1
        for fee in extraordinary_fees
        for member in active
        if (fee.get("id"), member.get("id")) not in paid
    )


def _in_month(value: Any, month: int, year: int) -> bool:
    parsed = parse_iso_date(value)
    return parsed is not None and parsed.month == month and parsed.year == year


def monthly_chart_data(
    monthly_payments: Sequence[Row],
    extraordinary_payments: Sequence[Row],
    expenses: Sequence[Row],
    fiscal: FiscalYearInfo,
) -> List[Dict[str, Any]]:
    """Ingresos vs gastos por mes del año logial (julio a junio)."""
    data = []
    for month, year, label in fiscal.months():
        treasury = sum(
            (
                _amount(p, "amount")
                for p in monthly_payments
                if _to_int(p.get("month")) == month and _to_int(p.get("year")) == year and not _is_benefit(p)
            ),
            Decimal("0"),
        )
        extraordinary = sum(
            (
                _amount(p, "amount_paid")
                for p in extraordinary_payments
                if _in_month(p.get("payment_date"), month, year)
            ),
            Decimal("0"),
        )
        spent = sum(
            (_amount(e, "amount") for e in expenses if _in_month(e.get("expense_date"), month, year)),
            Decimal("0"),
        )
        data.append({
            "name": label,
            "tesoreria": quantize_money(treasury),
            "extraordinarias": quantize_money(extraordinary),
            "gastos": quantize_money(spent),
            "balance": quantize_money(treasury + extraordinary - spent),
        })
    return data


def income_distribution(treasury: Any, extraordinary: Any, degree_fees: Any) -> List[Dict[str, Any]]:
    slices = (
        ("Tesorería", treasury),
        ("Cuotas Ext.", extraordinary),
        ("Der. Grado", degree_fees),
    )
    data = []
    for name, value in slices:
        amount = quantize_money(value)
        if amount > 0:
            data.append({"name": name, "value": amount})
    return data


def expenses_by_category(expenses: Iterable[Row]) -> List[Dict[str, Any]]:
    totals: Dict[str, Decimal] = {}
    for expense in expenses:
        category = expense.get("category") or UNCATEGORIZED_LABEL
        totals[category] = totals.get(category, Decimal("0")) + _amount(expense, "amount")
    rows = [{"name": name, "value": quantize_money(value)} for name, value in totals.items()]
    return sorted(rows, key=lambda row: row["value"], reverse=True)


def _birthday_in_year(born: date, year: int) -> date:
    try:
        return born.replace(year=year)
    except ValueError:
        # 29 de febrero se celebra el 28 en años no bisiestos.
        return date(year, 2, 28)


def birthday_members(members: Iterable[Row], today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Miembros que cumplen años hoy y tienen teléfono, con el enlace de
    WhatsApp para enviarles el saludo.
    """
    today = today or date.today()
    result = []
    for member in members:
        born = parse_iso_date(member.get("birth_date"))
        phone = str(member.get("phone") or "").strip()
        if born is None or not phone:
            continue
        if _birthday_in_year(born, today.year) != today:
            continue
        full_name = member.get("full_name") or ""
        tokens = full_name.split()
        result.append({
            "id": member.get("id"),
            "full_name": full_name,
            "first_name": tokens[0] if tokens else "",
            "phone": phone,
            "whatsapp_link": build_whatsapp_link(phone, build_birthday_message(full_name)),
        })
    return sorted(result, key=lambda row: row["full_name"])


@dataclass
class DashboardSummary:
    fiscal_year: FiscalYearInfo
    treasury_income: Decimal
    extraordinary_income: Decimal
    degree_fee_income: Decimal
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    members_with_mora: int
    active_members: int
    pending_extraordinary: int
    monthly_chart: List[Dict[str, Any]] = field(default_factory=list)
    income_distribution: List[Dict[str, Any]] = field(default_factory=list)
    expenses_by_category: List[Dict[str, Any]] = field(default_factory=list)
    birthday_members: List[Dict[str, Any]] = field(default_factory=list)


def build_dashboard_summary(
    data: Mapping[str, Any],
    monthly_fee: Any,
    today: Optional[date] = None,
) -> DashboardSummary:
    """Aggregate the rows returned by Database.fetch_dashboard_data."""
    fiscal = get_fiscal_year_info(today)
    members = data.get("members") or []
    monthly = data.get("monthly_payments") or []
    extra_fees = data.get("extraordinary_fees") or []
    extra_payments = data.get("extraordinary_payments") or []
    expenses = data.get("expenses") or []

    treasury = treasury_income(monthly)
    extraordinary = extraordinary_income(extra_payments)
    degree_total = quantize_money(data.get("degree_fee_total") or 0)
    income = treasury + extraordinary + degree_total
    spent = total_expenses(expenses)

    return DashboardSummary(
        fiscal_year=fiscal,
        treasury_income=treasury,
        extraordinary_income=extraordinary,
        degree_fee_income=degree_total,
        total_income=income,
        total_expenses=spent,
        balance=income - spent,
        members_with_mora=members_with_mora(members, monthly, monthly_fee, fiscal),
        active_members=len(active_members(members)),
        pending_extraordinary=pending_extraordinary(members, extra_fees, extra_payments),
        monthly_chart=monthly_chart_data(monthly, extra_payments, expenses, fiscal),
        income_distribution=income_distribution(treasury, extraordinary, degree_total),
        expenses_by_category=expenses_by_category(expenses),
        birthday_members=birthday_members(members, today),
    )
