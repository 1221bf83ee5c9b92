"""
Enums centralizados para módulos contables, grados y estados.
Previene typos y proporciona un único punto de verdad para constantes de la logia.
"""

from enum import Enum


class LedgerModule(str, Enum):
    """Módulos contables que emiten recibos con numeración propia."""
    TREASURY = "treasury"
    EXTRAORDINARY = "extraordinary"
    DEGREE = "degree"

    @property
    def prefix(self) -> str:
        return _RECEIPT_PREFIXES[self]


_RECEIPT_PREFIXES = {
    LedgerModule.TREASURY: "TSR",
    LedgerModule.EXTRAORDINARY: "EXT",
    LedgerModule.DEGREE: "GRD",
}


class MemberDegree(str, Enum):
    """Grados de un miembro de la logia."""
    APRENDIZ = "aprendiz"
    COMPANERO = "companero"
    MAESTRO = "maestro"

    @property
    def label(self) -> str:
        return _DEGREE_LABELS[self]


_DEGREE_LABELS = {
    MemberDegree.APRENDIZ: "Aprendiz",
    MemberDegree.COMPANERO: "Compañero",
    MemberDegree.MAESTRO: "Maestro",
}


class MemberStatus(str, Enum):
    ACTIVO = "activo"
    INACTIVO = "inactivo"


class PaymentType(str, Enum):
    """Tipos de pago de cuota mensual."""
    REGULAR = "regular"
    PRONTO_PAGO_BENEFIT = "pronto_pago_benefit"


def degree_label(value) -> str:
    """Etiqueta visible de un grado; valores desconocidos se muestran tal cual."""
    try:
        return MemberDegree(value).label
    except ValueError:
        return str(value)
