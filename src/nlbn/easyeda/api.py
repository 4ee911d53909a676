"""EasyEDA/LCSC HTTP client using urllib."""

import gzip
import http.client
import json
import logging
import re
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional

import certifi

from ..errors import FetchError, SSLCertError
from .ee_types import ComponentSource, EE3DModel, ShapeDocument
from .parser import parse_svgnode

logger = logging.getLogger(__name__)


def _make_ssl_context():
    """Create a verified SSL context from the best available CA source.

    Tries the certifi bundle first, then the system certificate store.
    Returns None only if no certificate source is usable.
    """
    try:
        ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        ctx.load_verify_locations(cafile=certifi.where())
        logger.debug("TLS: using certifi CA bundle")
        return ctx
    except (OSError, ssl.SSLError):
        logger.debug("TLS: certifi bundle failed to load", exc_info=True)

    try:
        ctx = ssl.create_default_context()
        logger.debug("TLS: using system certificate store")
        return ctx
    except (OSError, ssl.SSLError):
        logger.debug("TLS: system certificate store unavailable", exc_info=True)

    return None


_SSL_CTX = _make_ssl_context()

EASYEDA_API = "https://easyeda.com/api"
EASYEDA_API_VERSION = "6.4.19.5"
EASYEDA_STEP_BUCKET = "https://modules.easyeda.com/qAxj6KHrDKw4blvCG8QJPs7Y"
EASYEDA_OBJ_BUCKET = "https://modules.easyeda.com/3dmodel"

_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

_HEADERS = {
    "User-Agent": _UA,
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
}


def validate_lcsc_id(lcsc_id: str) -> str:
    """Validate and normalize an LCSC part number.

    Raises ValueError if the ID doesn't match the expected C<digits> format.
    """
    lcsc_id = lcsc_id.strip().upper()
    if not lcsc_id.startswith("C"):
        lcsc_id = "C" + lcsc_id
    if not re.match(r"^C\d{1,12}$", lcsc_id):
        raise ValueError(f"Invalid LCSC part number: {lcsc_id}")
    return lcsc_id


_allow_unverified = False


def allow_unverified_ssl():
    """Enable unverified HTTPS for the remainder of this process.

    The flag is write-once (False to True) and never reset, so worker
    threads can read it without locking.
    """
    global _allow_unverified
    _allow_unverified = True


def _urlopen(req, timeout=30):
    """Open a URL with certificate verification.

    When the remote certificate cannot be validated, raises ``SSLCertError``
    so the CLI can suggest ``--insecure``. After ``allow_unverified_ssl()``
    all requests skip verification.
    """
    if _allow_unverified or _SSL_CTX is None:
        if not _allow_unverified:
            logger.warning("No TLS certificate source available, using unverified HTTPS")
        return urllib.request.urlopen(req, timeout=timeout, context=ssl._create_unverified_context())

    try:
        return urllib.request.urlopen(req, timeout=timeout, context=_SSL_CTX)
    except urllib.error.URLError as e:
        if isinstance(e.reason, ssl.SSLCertVerificationError):
            raise SSLCertError(
                f"TLS certificate verification failed: {e.reason}. "
                "A proxy or firewall may be intercepting HTTPS traffic. "
                "Use --insecure to bypass certificate checks."
            ) from e
        raise


def _http_error(e: urllib.error.HTTPError, url: str) -> FetchError:
    if e.code == 404:
        return FetchError(f"HTTP 404 fetching {url}", FetchError.NOT_FOUND)
    if e.code == 429:
        return FetchError(f"HTTP 429 fetching {url}", FetchError.RATE_LIMITED)
    return FetchError(f"HTTP {e.code} fetching {url}", FetchError.NETWORK_ERROR)


def _get_json(url: str) -> Any:
    """Fetch JSON from a URL."""
    req = urllib.request.Request(url, headers=_HEADERS)
    try:
        with _urlopen(req, timeout=30) as resp:
            data = json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        raise _http_error(e, url) from e
    except urllib.error.URLError as e:
        raise FetchError(f"Network error fetching {url}: {e.reason}") from e
    except (OSError, ValueError) as e:
        raise FetchError(f"Invalid response from {url}: {e}") from e
    return data


def _download(url: str) -> Optional[bytes]:
    """Download a binary, gunzipping it if needed. None on failure."""
    req = urllib.request.Request(url, headers=_HEADERS)
    try:
        with _urlopen(req, timeout=60) as resp:
            data = resp.read()
    except (urllib.error.URLError, http.client.HTTPException, OSError, FetchError) as e:
        logger.warning("Download failed for %s: %s", url, e)
        return None
    if data[:2] == b"\x1f\x8b":
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError) as e:
            logger.warning("Corrupt gzip payload from %s: %s", url, e)
            return None
    return data


def download_step(uuid_3d: str) -> Optional[bytes]:
    """Download STEP file binary for a 3D model UUID."""
    return _download(f"{EASYEDA_STEP_BUCKET}/{uuid_3d}")


def download_obj(uuid_3d: str) -> Optional[str]:
    """Download OBJ-like text source for WRL conversion."""
    data = _download(f"{EASYEDA_OBJ_BUCKET}/{uuid_3d}")
    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def _document(data_str: Dict[str, Any]) -> ShapeDocument:
    head = data_str.get("head", {}) or {}
    shapes = tuple(s for s in data_str.get("shape", []) or [] if isinstance(s, str))
    return ShapeDocument(
        shapes=shapes,
        origin_x=float(head.get("x", 0) or 0),
        origin_y=float(head.get("y", 0) or 0),
    )


def _symbol_documents(result: Dict[str, Any]) -> List[ShapeDocument]:
    # Multi-part symbols list every unit under "subparts"
    subparts = result.get("subparts") or []
    docs = [_document(part["dataStr"]) for part in subparts if isinstance(part, dict) and part.get("dataStr")]
    if docs:
        return docs
    data_str = result.get("dataStr")
    if isinstance(data_str, dict) and data_str.get("shape"):
        return [_document(data_str)]
    return []


def _find_model(footprint: Optional[ShapeDocument]) -> Optional[EE3DModel]:
    if footprint is None:
        return None
    for shape in footprint.shapes:
        if shape.startswith("SVGNODE~"):
            model = parse_svgnode(shape.split("~"))
            if model is not None:
                return model
    return None


def component_from_result(lcsc_id: str, result: Dict[str, Any]) -> ComponentSource:
    """Build a ComponentSource from the ``result`` of the components API."""
    data_str = result.get("dataStr") or {}
    c_para = (data_str.get("head", {}) or {}).get("c_para", {}) or {}

    footprint = None
    package = result.get("packageDetail")
    if isinstance(package, dict) and isinstance(package.get("dataStr"), dict):
        footprint = _document(package["dataStr"])
        if not footprint.shapes:
            footprint = None

    prefix = c_para.get("pre", "U?") or "U?"
    if prefix.endswith("?"):
        prefix = prefix[:-1]

    lcsc = result.get("lcsc") or {}
    datasheet = lcsc.get("url", "") or c_para.get("link", "")
    if datasheet.startswith("//"):
        datasheet = "https:" + datasheet

    return ComponentSource(
        lcsc_id=lcsc_id,
        title=result.get("title") or c_para.get("name") or lcsc_id,
        prefix=prefix or "U",
        symbol_parts=tuple(_symbol_documents(result)),
        footprint=footprint,
        model=_find_model(footprint),
        datasheet=datasheet,
        description=result.get("description", "") or "",
        manufacturer=c_para.get("BOM_Manufacturer", c_para.get("Manufacturer", "")),
        manufacturer_part=c_para.get("BOM_Manufacturer Part", c_para.get("Manufacturer Part", "")),
    )


def fetch_component(lcsc_id: str) -> ComponentSource:
    """High-level: fetch everything EasyEDA knows about an LCSC part.

    Raises:
        FetchError: with reason NotFound, RateLimited or NetworkError.
    """
    lcsc_id = validate_lcsc_id(lcsc_id)
    url = f"{EASYEDA_API}/products/{lcsc_id}/components?version={EASYEDA_API_VERSION}"
    logger.info("Fetching component data for %s", lcsc_id)
    data = _get_json(url)
    if not isinstance(data, dict) or not data.get("success") or not data.get("result"):
        raise FetchError(f"No component found for {lcsc_id}", FetchError.NOT_FOUND)
    try:
        source = component_from_result(lcsc_id, data["result"])
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise FetchError(f"Malformed component data for {lcsc_id}: {e}") from e
    logger.debug(
        "%s: %d symbol part(s), footprint %s, 3D model %s",
        lcsc_id,
        len(source.symbol_parts),
        "yes" if source.footprint else "no",
        source.model.uuid if source.model else "none",
    )
    return source
