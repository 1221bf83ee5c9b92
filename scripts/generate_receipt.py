from __future__ import annotations

import argparse
import asyncio
import functools
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

# Ensure project root is in path (running from scripts/)
project_root = Path(__file__).resolve().parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from tesoreria_app.config import load_config
from tesoreria_app.database import Database
from tesoreria_app.database_async import AsyncDatabase
from tesoreria_app.enums import LedgerModule
from tesoreria_app.services.image_loader import load_image
from tesoreria_app.services.receipt_numbering import fallback_receipt_number, get_next_receipt_number
from tesoreria_app.services.receipt_service import (
    ReceiptRequest,
    build_notification_message,
    build_whatsapp_link,
    generate_payment_receipt,
    save_receipt,
)

logger = logging.getLogger("generate_receipt")


def load_request_data(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("El archivo JSON debe contener un objeto con los datos del recibo.")
    return data


async def _render_and_save(request: ReceiptRequest, output_dir: Path, image_timeout: float) -> Path:
    loader = functools.partial(load_image, timeout=image_timeout)
    pdf = await generate_payment_receipt(request, image_loader=loader)
    return save_receipt(pdf, request.member_name, output_dir)


async def generate_receipt(
    data: Dict[str, Any],
    output_dir: Path,
    *,
    module: str = LedgerModule.TREASURY.value,
    use_database: bool = False,
    user_id: Optional[str] = None,
) -> Path:
    """
    Render and save a receipt. With use_database the number comes from the
    receipt counter and the generation is written to the activity log.
    """
    config = load_config(require_database=use_database)
    request = ReceiptRequest.from_dict(data)
    if not request.institution_name:
        request = replace(request, institution_name=config.institution_name)
    if not request.logo_url and config.logo_url:
        request = replace(request, logo_url=config.logo_url)

    if not use_database:
        if not request.receipt_number:
            request = replace(request, receipt_number=fallback_receipt_number(module))
        return await _render_and_save(request, output_dir, config.image_timeout)

    db = Database(config.database_url, config.db_pool_min, config.db_pool_max)
    db.set_context(user_id)
    db_async = AsyncDatabase(db)
    try:
        if not request.receipt_number:
            number = await get_next_receipt_number(module, sequence=db_async)
            request = replace(request, receipt_number=number)
        generated = await _render_and_save(request, output_dir, config.image_timeout)
        db.log_activity(
            "RECIBO",
            "GENERAR",
            id_entidad=request.receipt_number,
            detalle={
                "modulo": LedgerModule(module).value,
                "miembro": request.member_name,
                "monto_pagado": request.amount_paid,
                "archivo": str(generated),
            },
        )
        return generated
    finally:
        await db_async.close_async()
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Genera un recibo de pago en PDF desde un archivo JSON."
    )
    parser.add_argument("input", help="Ruta del JSON con los datos del recibo.")
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directorio de salida (por defecto RECIBOS_DIR o ./recibos).",
    )
    parser.add_argument(
        "--module",
        choices=[m.value for m in LedgerModule],
        default=LedgerModule.TREASURY.value,
        help="Módulo contable para numerar el recibo cuando el JSON no trae número.",
    )
    parser.add_argument(
        "--use-database",
        action="store_true",
        help="Numerar con el contador de la base de datos y registrar el recibo en la bitácora.",
    )
    parser.add_argument(
        "--user-id",
        default=None,
        help="Usuario que se registra en la bitácora de actividad (con --use-database).",
    )
    parser.add_argument(
        "--whatsapp",
        default=None,
        help="Teléfono para imprimir el enlace de WhatsApp con el mensaje del pago.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Nivel de logging (DEBUG, INFO, ...).")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        data = load_request_data(Path(args.input))
        output_dir = Path(args.output_dir or load_config(require_database=False).receipts_dir)
        generated = asyncio.run(
            generate_receipt(
                data,
                output_dir,
                module=args.module,
                use_database=args.use_database,
                user_id=args.user_id,
            )
        )
    except Exception as exc:
        logger.debug("Fallo al generar recibo", exc_info=True)
        print(f"Error al generar recibo: {exc}", file=sys.stderr)
        return 1

    print(f"Recibo generado con éxito en: {generated}")
    if args.whatsapp:
        request = ReceiptRequest.from_dict(data)
        message = build_notification_message(
            request.member_name, request.concept, request.amount_paid, request.remaining_balance
        )
        print(build_whatsapp_link(args.whatsapp, message))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
