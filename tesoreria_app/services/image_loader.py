"""
Carga de imágenes (logo institucional y firmas) para los recibos PDF.

Una imagen que no se puede obtener o decodificar es un resultado normal:
load_image devuelve None y el recibo se dibuja sin ella.
"""
import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, unquote_to_bytes, urlparse

import httpx
from PIL import Image

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"
DEFAULT_LOGO_PATH = ASSETS_DIR / "logo_institucional.png"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class LoadedImage:
    image: Image.Image
    width: int
    height: int

    def fit_ratio(self, max_width: float, max_height: float) -> float:
        return min(max_width / self.width, max_height / self.height)


def _decode_data_url(url: str) -> bytes:
    header, _, payload = url.partition(",")
    if header.endswith(";base64"):
        return base64.b64decode(payload, validate=False)
    return unquote_to_bytes(payload)


async def _fetch_bytes(url: str, timeout: float, client: Optional[httpx.AsyncClient]) -> bytes:
    scheme = urlparse(url).scheme.lower()

    if scheme in ("http", "https"):
        if client is not None:
            response = await client.get(url)
        else:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
                response = await own_client.get(url)
        response.raise_for_status()
        return response.content

    if scheme == "data":
        return _decode_data_url(url)

    if scheme == "file":
        return Path(unquote(urlparse(url).path)).read_bytes()

    return Path(url).read_bytes()


def decode_image(raw: bytes) -> Optional[LoadedImage]:
    if not raw:
        return None
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
    except Exception:
        logger.debug("No se pudo decodificar la imagen.", exc_info=True)
        return None

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    width, height = image.size
    if width <= 0 or height <= 0:
        return None
    return LoadedImage(image=image, width=width, height=height)


async def load_image(
    url: Optional[str],
    *,
    timeout: Optional[float] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[LoadedImage]:
    """
    Obtiene y decodifica una imagen desde una URL http(s), data:, file:// o ruta local.

    Un solo intento, sin reintentos ni credenciales. Cualquier fallo de red,
    estado HTTP, lectura o decodificación devuelve None.
    """
    if not url:
        return None
    try:
        raw = await _fetch_bytes(str(url), timeout or DEFAULT_TIMEOUT, client)
    except Exception as exc:
        logger.debug("Imagen no disponible (%s): %s", str(url)[:80], exc)
        return None
    return decode_image(raw)
