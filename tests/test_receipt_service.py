import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest import mock

from fpdf import FPDF
from PIL import Image

from tesoreria_app.services.image_loader import DEFAULT_LOGO_PATH, LoadedImage
from tesoreria_app.services.receipt_service import (
    AMOUNT_PANEL_HEIGHT,
    AMOUNT_PANEL_HEIGHT_WITH_BALANCE,
    CONTENT_WIDTH,
    MARGIN_LEFT,
    ReceiptRequest,
    SignerInfo,
    build_birthday_message,
    build_notification_message,
    build_whatsapp_link,
    generate_payment_receipt,
    sanitize_filename,
    sanitize_text,
    save_receipt,
    wrap_words,
)

_ORIGINAL_TEXT = FPDF.text
_ORIGINAL_IMAGE = FPDF.image


def _loaded(width=60, height=30) -> LoadedImage:
    return LoadedImage(image=Image.new("RGB", (width, height), "white"), width=width, height=height)


class StubLoader:
    """Image loader returning prepared images by URL and recording the call order."""

    def __init__(self, images=None):
        self.images = images or {}
        self.calls = []

    async def __call__(self, url):
        self.calls.append(url)
        return self.images.get(url)


def _base_request(**overrides) -> ReceiptRequest:
    values = dict(
        receipt_number="TSR-000042",
        member_name="Juan Carlos Pérez",
        concept="Cuota mensual de tesorería correspondiente a marzo",
        total_amount=40,
        amount_paid=40,
        payment_date="2024-03-05",
        institution_name="R∴L∴ Luz del Pacífico N° 7",
    )
    values.update(overrides)
    return ReceiptRequest(**values)


class LayoutRecorder:
    """Capture the text and images the receipt draws while it is rendered."""

    def __init__(self):
        self.texts = []
        self.images = []

    def __enter__(self):
        recorder = self

        def text(pdf, x, y, text=""):
            recorder.texts.append((text, round(x, 2), round(y, 2)))
            return _ORIGINAL_TEXT(pdf, x, y, text)

        def image(pdf, name, *args, **kwargs):
            recorder.images.append(kwargs)
            return _ORIGINAL_IMAGE(pdf, name, *args, **kwargs)

        self._patches = [
            mock.patch.object(FPDF, "text", new=text),
            mock.patch.object(FPDF, "image", new=image),
        ]
        for patcher in self._patches:
            patcher.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        for patcher in reversed(self._patches):
            patcher.stop()
        return False

    @property
    def strings(self):
        return [entry[0] for entry in self.texts]


class GeneratePaymentReceiptTests(unittest.IsolatedAsyncioTestCase):
    async def _render(self, request, loader):
        with LayoutRecorder() as recorder:
            pdf = await generate_payment_receipt(request, image_loader=loader)
            content = pdf.to_bytes()
        return pdf, content, recorder

    async def test_minimal_request_renders_without_optional_parts(self):
        loader = StubLoader()
        pdf, content, recorder = await self._render(_base_request(), loader)

        self.assertTrue(content.startswith(b"%PDF"))
        self.assertEqual(pdf.page_no(), 1)
        self.assertEqual(recorder.images, [])
        self.assertNotIn("Saldo pendiente:", recorder.strings)
        self.assertNotIn("Grado:", recorder.strings)
        self.assertIn("RECIBO DE PAGO", recorder.strings)
        self.assertIn("Recibo N°: TSR-000042", recorder.strings)
        self.assertIn("Fecha: 05 de marzo de 2024", recorder.strings)
        self.assertIn("$40.00", recorder.strings)
        self.assertIn("(Cuarenta con 00/100 dólares)", recorder.strings)
        self.assertEqual(recorder.strings.count("Tesorero"), 2)
        self.assertEqual(recorder.strings.count("Venerable Maestro"), 2)

    async def test_institution_name_is_sanitized_for_core_fonts(self):
        _, _, recorder = await self._render(_base_request(), StubLoader())
        self.assertIn("R.:.L.:. Luz del Pacífico N° 7", recorder.strings)

    async def test_zero_balance_hides_balance_row(self):
        _, _, recorder = await self._render(_base_request(remaining_balance=0), StubLoader())
        self.assertNotIn("Saldo pendiente:", recorder.strings)

    async def test_balance_row_is_the_only_content_difference(self):
        _, _, without = await self._render(_base_request(remaining_balance=0), StubLoader())
        _, _, with_balance = await self._render(_base_request(remaining_balance=50), StubLoader())

        extra = [s for s in with_balance.strings if s in ("Saldo pendiente:", "$50.00")]
        self.assertEqual(extra, ["Saldo pendiente:", "$50.00"])
        remaining = [s for s in with_balance.strings if s not in ("Saldo pendiente:", "$50.00")]
        self.assertEqual(remaining, without.strings)

    async def test_balance_panel_grows_and_pushes_following_regions(self):
        _, _, without = await self._render(_base_request(remaining_balance=0), StubLoader())
        _, _, with_balance = await self._render(_base_request(remaining_balance=50), StubLoader())
        shift = AMOUNT_PANEL_HEIGHT_WITH_BALANCE - AMOUNT_PANEL_HEIGHT

        positions_without = {text: y for text, _, y in without.texts}
        positions_with = {text: y for text, _, y in with_balance.texts}
        self.assertEqual(positions_with["RECIBO DE PAGO"], positions_without["RECIBO DE PAGO"])
        self.assertEqual(positions_with["MONTO PAGADO:"], positions_without["MONTO PAGADO:"])
        conformity = next(t for t in positions_without if t.startswith("Para constancia"))
        self.assertAlmostEqual(positions_with[conformity] - positions_without[conformity], shift)
        footer = next(t for t in positions_without if t.startswith("Este comprobante"))
        self.assertEqual(positions_with[footer], positions_without[footer])

    async def test_degree_label_and_details(self):
        request = _base_request(
            member_degree="companero",
            details=("Marzo 2024", "Abril 2024"),
        )
        _, _, recorder = await self._render(request, StubLoader())
        self.assertIn("Grado:", recorder.strings)
        self.assertIn("Compañero", recorder.strings)
        self.assertIn("Marzo 2024", recorder.strings)
        self.assertIn("Abril 2024", recorder.strings)

    async def test_unknown_degree_is_printed_raw(self):
        _, _, recorder = await self._render(_base_request(member_degree="gran_maestro"), StubLoader())
        self.assertIn("gran_maestro", recorder.strings)

    async def test_long_concept_wraps_over_several_lines(self):
        concept = " ".join(["Cuota extraordinaria para la restauración del templo"] * 4)
        _, _, recorder = await self._render(_base_request(concept=concept), StubLoader())
        value_lines = [t for t in recorder.texts if t[1] == MARGIN_LEFT + 45 and t[0] != "Juan Carlos Pérez"]
        self.assertGreater(len(value_lines), 1)

    async def test_default_logo_is_used_without_custom_logo(self):
        loader = StubLoader({str(DEFAULT_LOGO_PATH): _loaded(30, 30)})
        _, _, recorder = await self._render(_base_request(), loader)
        self.assertEqual(loader.calls, [str(DEFAULT_LOGO_PATH)])
        self.assertEqual(len(recorder.images), 1)
        self.assertEqual(recorder.images[0]["x"], MARGIN_LEFT)
        self.assertEqual(recorder.images[0]["y"], 20)

    async def test_failed_custom_logo_falls_back_to_bundled_logo(self):
        loader = StubLoader({str(DEFAULT_LOGO_PATH): _loaded(60, 30)})
        _, _, recorder = await self._render(_base_request(logo_url="https://logia.example/logo.png"), loader)
        self.assertEqual(loader.calls, ["https://logia.example/logo.png", str(DEFAULT_LOGO_PATH)])
        self.assertEqual(len(recorder.images), 1)
        self.assertAlmostEqual(recorder.images[0]["w"], 30)
        self.assertAlmostEqual(recorder.images[0]["h"], 15)

    async def test_no_logo_at_all_keeps_layout(self):
        _, _, with_logo = await self._render(_base_request(), StubLoader({str(DEFAULT_LOGO_PATH): _loaded()}))
        _, _, without_logo = await self._render(_base_request(logo_url="https://logia.example/roto.png"), StubLoader())
        self.assertEqual(without_logo.images, [])
        self.assertEqual(with_logo.texts, without_logo.texts)

    async def test_signatures_load_in_order_and_sit_above_their_own_line(self):
        treasurer = SignerInfo(name="Luis Andrade", cargo="Tesorero", signature_url="sig://tesorero")
        master = SignerInfo(name="Pedro Salazar", cargo="Venerable Maestro", signature_url="sig://vm")
        loader = StubLoader({"sig://tesorero": _loaded(110, 28), "sig://vm": _loaded(55, 56)})
        request = _base_request(treasurer=treasurer, venerable_maestro=master)

        _, _, recorder = await self._render(request, loader)

        self.assertEqual(loader.calls, [str(DEFAULT_LOGO_PATH), "sig://tesorero", "sig://vm"])
        self.assertEqual(len(recorder.images), 2)
        left_center = MARGIN_LEFT + CONTENT_WIDTH * 0.25
        right_center = MARGIN_LEFT + CONTENT_WIDTH * 0.75
        treasurer_img, master_img = recorder.images
        self.assertAlmostEqual(treasurer_img["x"] + treasurer_img["w"] / 2, left_center)
        self.assertAlmostEqual(master_img["x"] + master_img["w"] / 2, right_center)
        self.assertAlmostEqual(treasurer_img["w"], 55)
        self.assertAlmostEqual(master_img["h"], 28)
        self.assertIn("Luis Andrade", recorder.strings)
        self.assertIn("Pedro Salazar", recorder.strings)

    async def test_missing_signature_image_is_omitted(self):
        treasurer = SignerInfo(name="Luis Andrade", cargo="Tesorero", signature_url="sig://roto")
        _, _, recorder = await self._render(_base_request(treasurer=treasurer), StubLoader())
        self.assertEqual(recorder.images, [])
        self.assertIn("Luis Andrade", recorder.strings)
        self.assertIn("Venerable Maestro", recorder.strings)


class ReceiptRequestTests(unittest.TestCase):
    def test_from_camel_case_mapping(self):
        request = ReceiptRequest.from_dict({
            "receiptNumber": "EXT0000001",
            "memberName": "Ana",
            "memberDegree": "maestro",
            "concept": "Cuota extraordinaria",
            "totalAmount": 100,
            "amountPaid": 60,
            "remainingBalance": 40,
            "paymentDate": "2024-07-01",
            "institutionName": "Logia",
            "details": ["Aniversario"],
            "venerableMaestro": {"name": "Pedro", "cargo": "V∴M∴", "signatureUrl": "https://x/firma.png"},
        })
        self.assertEqual(request.receipt_number, "EXT0000001")
        self.assertEqual(request.details, ("Aniversario",))
        self.assertTrue(request.has_remaining_balance)
        self.assertIsNone(request.treasurer)
        self.assertEqual(request.venerable_maestro.signature_url, "https://x/firma.png")

    def test_balance_visibility_depends_only_on_positive_value(self):
        self.assertFalse(_base_request().has_remaining_balance)
        self.assertFalse(_base_request(remaining_balance=0).has_remaining_balance)
        self.assertFalse(_base_request(remaining_balance=-5).has_remaining_balance)
        self.assertTrue(_base_request(remaining_balance="0.01").has_remaining_balance)


class TextHelpersTests(unittest.TestCase):
    def test_sanitize_text_replaces_non_latin1(self):
        self.assertEqual(sanitize_text("H∴ “Juan” • ok"), 'H.:. "Juan" - ok')
        self.assertEqual(sanitize_text("Pago 🎉"), "Pago ?")
        self.assertEqual(sanitize_text(None), "")

    def test_wrap_words_keeps_long_tokens_whole(self):
        pdf = FPDF()
        pdf.add_page()
        pdf.set_font("helvetica", "", 11)
        token = "X" * 80
        lines = wrap_words(pdf, f"corto {token} fin", 50)
        self.assertEqual(lines, ["corto", token, "fin"])

    def test_wrap_words_empty_text(self):
        pdf = FPDF()
        pdf.add_page()
        pdf.set_font("helvetica", "", 11)
        self.assertEqual(wrap_words(pdf, "", 50), [""])


class MessageAndFilenameTests(unittest.TestCase):
    def test_notification_message_without_balance(self):
        message = build_notification_message("Juan Carlos Pérez", "Cuota de marzo", 40)
        self.assertEqual(
            message,
            "Estimado H∴ Juan,\n\n"
            "Se ha registrado su pago correspondiente a: Cuota de marzo\n"
            "💰 Monto pagado: $40.00\n"
            "\nFraternalmente,\nTesorería",
        )

    def test_notification_message_with_balance(self):
        message = build_notification_message("Ana", "Derechos de grado", 60, 40.5)
        self.assertIn("⚠️ Saldo pendiente: $40.50\n", message)

    def test_notification_message_ignores_zero_balance(self):
        self.assertNotIn("Saldo pendiente", build_notification_message("Ana", "Cuota", 10, 0))

    def test_birthday_message_uses_first_name(self):
        message = build_birthday_message("Carlos Ruiz Mora")
        self.assertTrue(message.startswith("Querido H∴ Carlos,\n\n"))
        self.assertIn("feliz cumpleaños", message)
        self.assertTrue(message.endswith("Fraternalmente,\nTesorería"))

    def test_sanitize_filename_strips_accents_and_symbols(self):
        self.assertEqual(
            sanitize_filename("José Ñúñez!!", today=date(2024, 3, 5)),
            "Recibo_Josez_2024-03-05.pdf",
        )

    def test_sanitize_filename_truncates_to_twenty_chars(self):
        name = sanitize_filename("Maria Fernanda de los Angeles Rodriguez", today=date(2024, 3, 5))
        self.assertEqual(name, "Recibo_MariaFernandadelosAn_2024-03-05.pdf")

    def test_whatsapp_link(self):
        self.assertEqual(
            build_whatsapp_link("+593 99 123 4567", "Hola H∴"),
            "https://wa.me/593991234567?text=Hola%20H%E2%88%B4",
        )


class SaveReceiptTests(unittest.IsolatedAsyncioTestCase):
    async def test_save_receipt_writes_pdf_with_sanitized_name(self):
        pdf = await generate_payment_receipt(_base_request(), image_loader=StubLoader())
        with tempfile.TemporaryDirectory() as tmp:
            path = save_receipt(pdf, "José Ñúñez", Path(tmp) / "recibos", today=date(2024, 3, 5))
            self.assertEqual(path.name, "Recibo_Josez_2024-03-05.pdf")
            self.assertTrue(path.read_bytes().startswith(b"%PDF"))


if __name__ == "__main__":
    unittest.main()
