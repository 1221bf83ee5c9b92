"""
Recibos de pago en PDF (A4 vertical) para tesorería, cuotas extraordinarias y derechos de grado.

Estructura visual:
  - Encabezado: logo (izquierda) + título y datos del recibo (derecha)
  - Bloque de datos: Recibido de, Grado, Concepto y detalles
  - Recuadro de montos: valor de la cuota, monto pagado, monto en letras, saldo pendiente
  - Firmas: Tesorero (izquierda) y Venerable Maestro (derecha)
  - Pie institucional
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote

from fpdf import FPDF

from tesoreria_app.enums import degree_label
from tesoreria_app.services.date_format import format_long_date
from tesoreria_app.services.image_loader import DEFAULT_LOGO_PATH, LoadedImage, load_image
from tesoreria_app.services.number_locale import format_currency, to_decimal
from tesoreria_app.services.number_words import number_to_words

logger = logging.getLogger(__name__)

ImageLoader = Callable[[str], Awaitable[Optional[LoadedImage]]]

PAGE_WIDTH = 210
PAGE_HEIGHT = 297
MARGIN_LEFT = 25
MARGIN_RIGHT = 25
CONTENT_WIDTH = PAGE_WIDTH - MARGIN_LEFT - MARGIN_RIGHT
VALUE_COLUMN_OFFSET = 45
CONCEPT_LABEL_GUTTER = 50
CONCEPT_LINE_HEIGHT = 6
DETAIL_LINE_HEIGHT = 6

LOGO_MAX_WIDTH = 30
LOGO_MAX_HEIGHT = 30
SIGNATURE_MAX_WIDTH = 55
SIGNATURE_MAX_HEIGHT = 28
SIGNATURE_LINE_WIDTH = 60
AMOUNT_PANEL_HEIGHT = 45
AMOUNT_PANEL_HEIGHT_WITH_BALANCE = 55

COLOR_TEXT = (0, 0, 0)
COLOR_RULE = (40, 40, 40)
COLOR_PANEL_FILL = (245, 245, 245)
COLOR_PANEL_BORDER = (200, 200, 200)
COLOR_TEXT_MUTED = (100, 100, 100)
COLOR_WARNING = (180, 0, 0)
COLOR_SIGNATURE_LINE = (60, 60, 60)
COLOR_FOOTER = (130, 130, 130)

RECEIPT_TITLE = "RECIBO DE PAGO"
CONFORMITY_TEXT = (
    "Para constancia de lo recibido, se firma el presente comprobante en señal de conformidad."
)
FOOTER_TEXT = (
    "Este comprobante de pago es un documento válido emitido por la tesorería de la institución."
)
DEFAULT_TREASURER_LABEL = "Tesorero"
DEFAULT_MASTER_LABEL = "Venerable Maestro"


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class SignerInfo:
    name: str = ""
    cargo: str = ""
    signature_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["SignerInfo"]:
        if not data:
            return None
        return cls(
            name=str(_pick(data, "name", "nombre", default="")),
            cargo=str(_pick(data, "cargo", "role", default="")),
            signature_url=_pick(data, "signature_url", "signatureUrl"),
        )


@dataclass(frozen=True)
class ReceiptRequest:
    receipt_number: str
    member_name: str
    concept: str
    total_amount: Any
    amount_paid: Any
    payment_date: str
    institution_name: str
    member_degree: Optional[str] = None
    logo_url: Optional[str] = None
    remaining_balance: Any = None
    details: Tuple[str, ...] = field(default_factory=tuple)
    treasurer: Optional[SignerInfo] = None
    venerable_maestro: Optional[SignerInfo] = None

    @property
    def has_remaining_balance(self) -> bool:
        balance = to_decimal(self.remaining_balance)
        return balance is not None and balance > 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReceiptRequest":
        """Build a request from a JSON-like mapping with camelCase or snake_case keys."""
        details = _pick(data, "details", default=()) or ()
        return cls(
            receipt_number=str(_pick(data, "receipt_number", "receiptNumber", default="")),
            member_name=str(_pick(data, "member_name", "memberName", default="")),
            member_degree=_pick(data, "member_degree", "memberDegree"),
            concept=str(_pick(data, "concept", default="")),
            total_amount=_pick(data, "total_amount", "totalAmount", default=0),
            amount_paid=_pick(data, "amount_paid", "amountPaid", default=0),
            payment_date=str(_pick(data, "payment_date", "paymentDate", default="")),
            institution_name=str(_pick(data, "institution_name", "institutionName", default="")),
            logo_url=_pick(data, "logo_url", "logoUrl"),
            remaining_balance=_pick(data, "remaining_balance", "remainingBalance"),
            details=tuple(str(item) for item in details),
            treasurer=SignerInfo.from_dict(_pick(data, "treasurer")),
            venerable_maestro=SignerInfo.from_dict(_pick(data, "venerable_maestro", "venerableMaestro")),
        )


def sanitize_text(text: Any) -> str:
    """Adapt text to the latin-1 range of the core PDF fonts."""
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    replacements = {
        "\u201c": '"',
        "\u201d": '"',
        "\u2018": "'",
        "\u2019": "'",
        "\u2013": "-",
        "\u2014": "-",
        "\u2026": "...",
        "\u00a0": " ",
        "\u2022": "-",
        "\u2234": ".:.",
    }
    for src, repl in replacements.items():
        text = text.replace(src, repl)
    return text.encode("latin-1", "replace").decode("latin-1")


def wrap_words(pdf: FPDF, text: str, max_width: float) -> List[str]:
    """Word wrap using the current font; a single word wider than max_width stays on its own line."""
    lines: List[str] = []
    for paragraph in str(text or "").splitlines() or [""]:
        line = ""
        for word in paragraph.split():
            candidate = f"{line} {word}" if line else word
            if line and pdf.get_string_width(candidate) > max_width:
                lines.append(line)
                line = word
            else:
                line = candidate
        lines.append(line)
    return lines


class ReceiptPDF(FPDF):
    """Single-page payment receipt laid out with a running vertical cursor."""

    def __init__(self, request: ReceiptRequest):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.request = request
        self.set_auto_page_break(False)
        self.set_margins(MARGIN_LEFT, 10, MARGIN_RIGHT)
        self.add_page()

    def put_text(self, x: float, y: float, text: Any, align: str = "L") -> None:
        safe = sanitize_text(text)
        width = self.get_string_width(safe)
        if align == "R":
            x -= width
        elif align == "C":
            x -= width / 2
        self.text(x, y, safe)

    def _label_value(self, y: float, label: str, value: str) -> None:
        self.set_font("helvetica", "B", 11)
        self.put_text(MARGIN_LEFT, y, label)
        self.set_font("helvetica", "", 11)
        self.put_text(MARGIN_LEFT + VALUE_COLUMN_OFFSET, y, value)

    def build(
        self,
        logo: Optional[LoadedImage] = None,
        treasurer_signature: Optional[LoadedImage] = None,
        master_signature: Optional[LoadedImage] = None,
    ) -> None:
        y = self._draw_header(logo)
        y = self._draw_recipient_block(y)
        y = self._draw_concept_block(y)
        panel_bottom = self._draw_amount_panel(y + 12)
        conformity_y = panel_bottom + 25
        self._draw_conformity(conformity_y)
        self._draw_signatures(conformity_y + 45, treasurer_signature, master_signature)

    def _draw_header(self, logo: Optional[LoadedImage]) -> float:
        req = self.request
        right = PAGE_WIDTH - MARGIN_RIGHT
        y = 25.0

        if logo is not None:
            ratio = logo.fit_ratio(LOGO_MAX_WIDTH, LOGO_MAX_HEIGHT)
            self.image(logo.image, x=MARGIN_LEFT, y=y - 5, w=logo.width * ratio, h=logo.height * ratio)

        self.set_text_color(*COLOR_TEXT)
        self.set_font("helvetica", "B", 26)
        self.put_text(right, y + 5, RECEIPT_TITLE, align="R")

        y += 15
        self.set_font("helvetica", "", 11)
        self.put_text(right, y, req.institution_name, align="R")

        y += 8
        self.set_font("helvetica", "", 10)
        self.put_text(right, y, f"Recibo N°: {req.receipt_number}", align="R")
        y += 5
        self.put_text(right, y, f"Fecha: {format_long_date(req.payment_date)}", align="R")

        y += 10
        self.set_draw_color(*COLOR_RULE)
        self.set_line_width(0.6)
        self.line(MARGIN_LEFT, y, right, y)
        return y + 15

    def _draw_recipient_block(self, y: float) -> float:
        req = self.request
        self._label_value(y, "Recibido de:", req.member_name)
        y += 8
        if req.member_degree:
            self._label_value(y, "Grado:", degree_label(req.member_degree))
            y += 8
        return y

    def _draw_concept_block(self, y: float) -> float:
        req = self.request
        value_x = MARGIN_LEFT + VALUE_COLUMN_OFFSET

        self.set_font("helvetica", "B", 11)
        self.put_text(MARGIN_LEFT, y, "Concepto:")
        self.set_font("helvetica", "", 11)
        lines = wrap_words(self, sanitize_text(req.concept), CONTENT_WIDTH - CONCEPT_LABEL_GUTTER)
        for idx, line in enumerate(lines):
            self.put_text(value_x, y + idx * CONCEPT_LINE_HEIGHT, line)
        y += len(lines) * CONCEPT_LINE_HEIGHT + 4

        if req.details:
            y += 4
            self.set_font("helvetica", "", 10)
            self.set_fill_color(*COLOR_TEXT)
            for detail in req.details:
                self.ellipse(MARGIN_LEFT + 5, y - 1.8, 1.2, 1.2, style="F")
                self.put_text(MARGIN_LEFT + 8, y, detail)
                y += DETAIL_LINE_HEIGHT
        return y

    def _draw_amount_panel(self, box_y: float) -> float:
        req = self.request
        has_remaining = req.has_remaining_balance
        box_h = AMOUNT_PANEL_HEIGHT_WITH_BALANCE if has_remaining else AMOUNT_PANEL_HEIGHT
        label_x = MARGIN_LEFT + 10
        amount_x = MARGIN_LEFT + CONTENT_WIDTH - 10

        self.set_fill_color(*COLOR_PANEL_FILL)
        self.set_draw_color(*COLOR_PANEL_BORDER)
        self.set_line_width(0.3)
        self.rect(MARGIN_LEFT, box_y, CONTENT_WIDTH, box_h, style="DF", round_corners=True, corner_radius=3)

        y = box_y + 12
        self.set_font("helvetica", "", 11)
        self.put_text(label_x, y, "Valor de la cuota:")
        self.set_font("helvetica", "B", 11)
        self.put_text(amount_x, y, format_currency(req.total_amount), align="R")

        y += 10
        self.set_font("helvetica", "B", 16)
        self.put_text(label_x, y, "MONTO PAGADO:")
        self.put_text(amount_x, y, format_currency(req.amount_paid), align="R")

        y += 8
        self.set_font("helvetica", "I", 9)
        self.set_text_color(*COLOR_TEXT_MUTED)
        self.put_text(label_x, y, f"({number_to_words(req.amount_paid)} dólares)")
        self.set_text_color(*COLOR_TEXT)

        if has_remaining:
            y += 10
            self.set_font("helvetica", "B", 11)
            self.set_text_color(*COLOR_WARNING)
            self.put_text(label_x, y, "Saldo pendiente:")
            self.put_text(amount_x, y, format_currency(req.remaining_balance), align="R")
            self.set_text_color(*COLOR_TEXT)

        return box_y + box_h

    def _draw_conformity(self, y: float) -> None:
        self.set_font("helvetica", "", 10)
        self.put_text(PAGE_WIDTH / 2, y, CONFORMITY_TEXT, align="C")

    def _draw_signature_image(self, center_x: float, line_y: float, signature: Optional[LoadedImage]) -> None:
        if signature is None:
            return
        ratio = signature.fit_ratio(SIGNATURE_MAX_WIDTH, SIGNATURE_MAX_HEIGHT)
        width = signature.width * ratio
        height = signature.height * ratio
        self.image(signature.image, x=center_x - width / 2, y=line_y - 30, w=width, h=height)

    def _draw_signature_block(self, center_x: float, line_y: float, signer: Optional[SignerInfo], default_label: str) -> None:
        self.line(center_x - SIGNATURE_LINE_WIDTH / 2, line_y, center_x + SIGNATURE_LINE_WIDTH / 2, line_y)
        name = (signer.name if signer else "") or default_label
        cargo = (signer.cargo if signer else "") or default_label
        self.set_font("helvetica", "", 9)
        self.put_text(center_x, line_y + 5, name, align="C")
        self.set_font("helvetica", "B", 9)
        self.put_text(center_x, line_y + 10, cargo, align="C")

    def _draw_signatures(
        self,
        line_y: float,
        treasurer_signature: Optional[LoadedImage],
        master_signature: Optional[LoadedImage],
    ) -> None:
        left_x = MARGIN_LEFT + CONTENT_WIDTH * 0.25
        right_x = MARGIN_LEFT + CONTENT_WIDTH * 0.75

        self._draw_signature_image(left_x, line_y, treasurer_signature)
        self._draw_signature_image(right_x, line_y, master_signature)

        self.set_line_width(0.4)
        self.set_draw_color(*COLOR_SIGNATURE_LINE)
        self._draw_signature_block(left_x, line_y, self.request.treasurer, DEFAULT_TREASURER_LABEL)
        self._draw_signature_block(right_x, line_y, self.request.venerable_maestro, DEFAULT_MASTER_LABEL)

    def footer(self) -> None:
        self.set_font("helvetica", "", 7)
        self.set_text_color(*COLOR_FOOTER)
        self.set_draw_color(*COLOR_SIGNATURE_LINE)
        self.set_line_width(0.2)
        self.line(MARGIN_LEFT, PAGE_HEIGHT - 20, PAGE_WIDTH - MARGIN_RIGHT, PAGE_HEIGHT - 20)
        self.put_text(PAGE_WIDTH / 2, PAGE_HEIGHT - 15, FOOTER_TEXT, align="C")
        self.set_text_color(*COLOR_TEXT)

    def to_bytes(self) -> bytes:
        return bytes(self.output())

    def save(self, path: Union[str, Path]) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.to_bytes())
        return target


async def _load_signature(loader: ImageLoader, signer: Optional[SignerInfo]) -> Optional[LoadedImage]:
    if signer is None or not signer.signature_url:
        return None
    return await loader(signer.signature_url)


async def generate_payment_receipt(
    request: ReceiptRequest,
    *,
    image_loader: Optional[ImageLoader] = None,
    default_logo: Union[str, Path] = DEFAULT_LOGO_PATH,
) -> ReceiptPDF:
    """
    Render a payment receipt.

    Images are loaded one after another: logo, bundled logo when a custom logo
    fails, treasurer signature, venerable maestro signature. Any image that
    cannot be loaded is left out without moving the rest of the layout.
    """
    loader = image_loader or load_image

    logo = await loader(request.logo_url or str(default_logo))
    if logo is None and request.logo_url:
        logo = await loader(str(default_logo))

    treasurer_signature = await _load_signature(loader, request.treasurer)
    master_signature = await _load_signature(loader, request.venerable_maestro)

    pdf = ReceiptPDF(request)
    pdf.build(logo=logo, treasurer_signature=treasurer_signature, master_signature=master_signature)
    logger.info("Recibo %s generado para %s", request.receipt_number, request.member_name)
    return pdf


def sanitize_filename(member_name: str, today: Optional[date] = None) -> str:
    safe_name = re.sub(r"[^A-Za-z0-9]", "", member_name or "")[:20]
    stamp = (today or date.today()).isoformat()
    return f"Recibo_{safe_name}_{stamp}.pdf"


def save_receipt(pdf: ReceiptPDF, member_name: str, directory: Union[str, Path] = ".", today: Optional[date] = None) -> Path:
    return pdf.save(Path(directory) / sanitize_filename(member_name, today=today))


def build_notification_message(member_name: str, concept: str, amount_paid: Any, remaining: Any = None) -> str:
    tokens = (member_name or "").split()
    first_name = tokens[0] if tokens else ""
    msg = (
        f"Estimado H∴ {first_name},\n\n"
        f"Se ha registrado su pago correspondiente a: {concept}\n"
        f"💰 Monto pagado: {format_currency(amount_paid)}\n"
    )
    balance = to_decimal(remaining)
    if balance is not None and balance > 0:
        msg += f"⚠️ Saldo pendiente: {format_currency(balance)}\n"
    msg += "\nFraternalmente,\nTesorería"
    return msg


def build_birthday_message(member_name: str) -> str:
    tokens = (member_name or "").split()
    first_name = tokens[0] if tokens else ""
    return (
        f"Querido H∴ {first_name},\n\n"
        "🎂 En nombre de la Logia le deseamos un muy feliz cumpleaños. "
        "Que este nuevo año le traiga salud y alegría.\n\n"
        "Fraternalmente,\nTesorería"
    )


def build_whatsapp_link(phone: str, message: str) -> str:
    digits = re.sub(r"\D", "", phone or "")
    return f"https://wa.me/{digits}?text={quote(message, safe='')}"

