import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv


DEFAULT_INSTITUTION_NAME = "Respetable Logia"


@dataclass(frozen=True)
class AppConfig:
    database_url: Optional[str]
    db_pool_min: int = 1
    db_pool_max: int = 4
    institution_name: str = DEFAULT_INSTITUTION_NAME
    logo_url: Optional[str] = None
    monthly_fee_base: Decimal = Decimal("0")
    image_timeout: float = 10.0
    receipts_dir: str = "recibos"


def _build_url_from_components() -> str:
    host = os.getenv("DB_HOST")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME")
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASSWORD")

    missing = [
        var for var, val in (
            ("DB_HOST", host),
            ("DB_NAME", name),
            ("DB_USER", user),
            ("DB_PASSWORD", password),
        )
        if not val
    ]
    if missing:
        raise EnvironmentError(
            "Cuando no se define DATABASE_URL se necesitan las variables "
            "DB_HOST, DB_PORT (opcional), DB_NAME, DB_USER y DB_PASSWORD. "
            f"Faltan: {', '.join(missing)}."
        )

    user_part = quote_plus(user)
    password_part = quote_plus(password)
    return f"postgresql://{user_part}:{password_part}@{host}:{port}/{name}"


def _read_int_env(name: str, default: int, *, min_value: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= min_value else default


def _read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _read_decimal_env(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = Decimal(raw.strip().replace(",", "."))
    except InvalidOperation:
        return default
    return value if value >= 0 else default


def load_config(require_database: bool = True) -> AppConfig:
    load_dotenv()
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        if require_database:
            database_url = _build_url_from_components()
        else:
            database_url = None
    db_pool_min = _read_int_env("DB_POOL_MIN", 1, min_value=1)
    db_pool_max = _read_int_env("DB_POOL_MAX", 4, min_value=1)
    if db_pool_max < db_pool_min:
        db_pool_max = db_pool_min

    return AppConfig(
        database_url=database_url,
        db_pool_min=db_pool_min,
        db_pool_max=db_pool_max,
        institution_name=(os.getenv("LOGIA_NOMBRE") or "").strip() or DEFAULT_INSTITUTION_NAME,
        logo_url=(os.getenv("LOGIA_LOGO_URL") or "").strip() or None,
        monthly_fee_base=_read_decimal_env("CUOTA_MENSUAL_BASE", Decimal("0")),
        image_timeout=_read_float_env("IMAGE_TIMEOUT_SECONDS", 10.0),
        receipts_dir=(os.getenv("RECIBOS_DIR") or "").strip() or "recibos",
    )
