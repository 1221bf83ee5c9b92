"""
Conversión de montos a letras en español para recibos.

    >>> number_to_words(1015.05)
    'Mil quince con 05/100'
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from tesoreria_app.services.number_locale import to_decimal


UNITS = ("", "uno", "dos", "tres", "cuatro", "cinco", "seis", "siete", "ocho", "nueve")
TEENS = (
    "diez", "once", "doce", "trece", "catorce",
    "quince", "dieciséis", "diecisiete", "dieciocho", "diecinueve",
)
TWENTIES = (
    "veinte", "veintiuno", "veintidós", "veintitrés", "veinticuatro",
    "veinticinco", "veintiséis", "veintisiete", "veintiocho", "veintinueve",
)
TENS = ("", "", "veinte", "treinta", "cuarenta", "cincuenta", "sesenta", "setenta", "ochenta", "noventa")
HUNDREDS = (
    "", "ciento", "doscientos", "trescientos", "cuatrocientos",
    "quinientos", "seiscientos", "setecientos", "ochocientos", "novecientos",
)


def _apocopate(text: str) -> str:
    # "uno" pierde la vocal final delante de "mil" y "millones".
    if text.endswith("veintiuno"):
        return text[: -len("veintiuno")] + "veintiún"
    if text.endswith("uno"):
        return text[:-1]
    return text


def _below_thousand(n: int, apocope: bool = False) -> str:
    if n == 0:
        return ""
    if n == 100:
        return "cien"

    parts = []
    hundreds, rest = divmod(n, 100)
    if hundreds:
        parts.append(HUNDREDS[hundreds])
    if rest >= 30:
        tens, units = divmod(rest, 10)
        parts.append(f"{TENS[tens]} y {UNITS[units]}" if units else TENS[tens])
    elif rest >= 20:
        parts.append(TWENTIES[rest - 20])
    elif rest >= 10:
        parts.append(TEENS[rest - 10])
    elif rest > 0:
        parts.append(UNITS[rest])

    text = " ".join(parts)
    return _apocopate(text) if apocope else text


def integer_to_words(n: int, apocope: bool = False) -> str:
    """Palabras para un entero no negativo, sin sufijo de centavos."""
    if n == 0:
        return "cero"

    parts = []
    millions, rest = divmod(n, 1_000_000)
    if millions == 1:
        parts.append("un millón")
    elif millions:
        parts.append(f"{integer_to_words(millions, apocope=True)} millones")

    thousands, units = divmod(rest, 1000)
    if thousands == 1:
        parts.append("mil")
    elif thousands:
        parts.append(f"{_below_thousand(thousands, apocope=True)} mil")

    if units:
        parts.append(_below_thousand(units, apocope=apocope))
    return " ".join(parts)


def number_to_words(amount: Any) -> str:
    """
    Convierte un monto no negativo a letras con sufijo de centavos "con NN/100".

    Los centavos se redondean a dos dígitos y siempre se muestran con dos cifras.
    Montos negativos o no numéricos están fuera de contrato y lanzan ValueError.
    """
    value = to_decimal(amount)
    if value is None or value < 0:
        raise ValueError(f"Monto inválido para convertir a letras: {amount!r}")

    integer = int(value)
    cents = int(((value - integer) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if cents == 100:
        integer += 1
        cents = 0

    result = f"{integer_to_words(integer)} con {cents:02d}/100"
    return result[0].upper() + result[1:]
