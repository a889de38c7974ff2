from __future__ import annotations

import base64
import binascii
import hashlib
import io
import json
import os
import tempfile
import threading
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

logger = structlog.get_logger(__name__)

PKPASS_CONTENT_TYPE = "application/vnd.apple.pkpass"
DEFAULT_BARCODE_FORMAT = "PKBarcodeFormatQR"
# 1x1 transparent PNG
PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mP8/x8AAusB9Yf8a3sAAAAASUVORK5CYII="
)
DEFAULT_COLORS = {
    "backgroundColor": "rgb(34,139,94)",
    "foregroundColor": "rgb(255,255,255)",
    "labelColor": "rgb(255,210,77)",
}
HOW_TO_USE_TEXT = (
    "Show this pass at checkout. Add to Apple Wallet for faster access. "
    "Contact support if you need help replacing a pass."
)
_CERT_WRITE_LOCK = threading.Lock()


class PassConfigurationError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class CertPaths:
    signer_cert: Path
    signer_key: Path
    wwdr: Path


def _setting_str(settings: object, attr: str) -> str:
    value = getattr(settings, attr, "")
    return value.strip() if isinstance(value, str) else ""


def _decode_base64_setting(raw_value: str) -> bytes | None:
    if not raw_value:
        return None
    encoded = raw_value.split("base64,")[-1].strip()
    try:
        return base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError):
        return None


def _write_private(path: Path, content: bytes) -> None:
    """Atomically replaces path with owner-only content; unchanged files are left alone."""
    if path.is_file() and path.read_bytes() == content:
        if path.stat().st_mode & 0o077:
            os.chmod(path, 0o600)
        return

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        os.chmod(tmp_name, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def ensure_cert_files(settings: object) -> CertPaths:
    """Resolves signing material from explicit paths, else materializes base64 settings on disk."""
    cert_path = _setting_str(settings, "pass_cert_path")
    key_path = _setting_str(settings, "pass_key_path")
    wwdr_path = _setting_str(settings, "wwdr_cert_path")
    if cert_path and key_path and wwdr_path:
        explicit = CertPaths(Path(cert_path), Path(key_path), Path(wwdr_path))
        if explicit.signer_cert.exists() and explicit.signer_key.exists() and explicit.wwdr.exists():
            return explicit

    cert_bytes = _decode_base64_setting(_setting_str(settings, "pass_cert_base64"))
    key_bytes = _decode_base64_setting(_setting_str(settings, "pass_key_base64"))
    wwdr_bytes = _decode_base64_setting(_setting_str(settings, "wwdr_cert_base64"))
    if not cert_bytes or not key_bytes or not wwdr_bytes:
        raise PassConfigurationError(
            "certificate material missing: set PASS_CERT_PATH/PASS_KEY_PATH/WWDR_CERT_PATH "
            "or PASS_CERT_BASE64/PASS_KEY_BASE64/WWDR_CERT_BASE64"
        )

    cert_dir = Path(_setting_str(settings, "runtime_dir") or ".run") / "certs"
    cert_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    runtime = CertPaths(
        signer_cert=cert_dir / "pass-cert.pem",
        signer_key=cert_dir / "pass-key.pem",
        wwdr=cert_dir / "wwdr.pem",
    )
    # Writers are serialized; os.replace keeps concurrent readers on a complete file.
    with _CERT_WRITE_LOCK:
        _write_private(runtime.signer_cert, cert_bytes)
        _write_private(runtime.signer_key, key_bytes)
        _write_private(runtime.wwdr, wwdr_bytes)
    return runtime


def _load_certificate(data: bytes) -> x509.Certificate:
    if b"-----BEGIN" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def _load_private_key(data: bytes, passphrase: str) -> Any:
    password = passphrase.encode("utf-8") if passphrase else None
    if b"-----BEGIN" in data:
        return serialization.load_pem_private_key(data, password=password)
    return serialization.load_der_private_key(data, password=password)


def _load_model(model_dir: Path) -> tuple[dict[str, Any], dict[str, bytes]]:
    pass_json: dict[str, Any] = {}
    images: dict[str, bytes] = {}
    if not model_dir.is_dir():
        return pass_json, images

    model_pass = model_dir / "pass.json"
    if model_pass.is_file():
        pass_json = json.loads(model_pass.read_text(encoding="utf-8"))
    for image_path in sorted(model_dir.glob("*.png")):
        images[image_path.name] = image_path.read_bytes()
    return pass_json, images


def _complete_images(images: dict[str, bytes]) -> dict[str, bytes]:
    completed = dict(images)
    completed.setdefault("icon.png", PLACEHOLDER_PNG)
    completed.setdefault("icon@2x.png", completed["icon.png"])
    completed.setdefault("logo.png", completed["icon.png"])
    completed.setdefault("logo@2x.png", completed["icon@2x.png"])
    return completed


def build_pass_json(
    *,
    serial_number: str,
    holder_name: str,
    organization_name: str,
    description: str,
    pass_type_identifier: str,
    team_identifier: str,
    barcode_message: str | None = None,
    barcode_format: str | None = None,
    model: dict[str, Any] | None = None,
) -> dict[str, Any]:
    pass_json: dict[str, Any] = dict(model or {})
    for color_key, color_value in DEFAULT_COLORS.items():
        pass_json.setdefault(color_key, color_value)

    pass_json.update(
        {
            "formatVersion": 1,
            "description": description,
            "organizationName": organization_name,
            "passTypeIdentifier": pass_type_identifier,
            "teamIdentifier": team_identifier,
            "serialNumber": serial_number,
            "generic": {
                "primaryFields": [],
                "secondaryFields": [],
                "auxiliaryFields": [
                    {"key": "name", "label": "Name", "value": holder_name},
                    {"key": "id", "label": "ID", "value": serial_number},
                ],
                "backFields": [
                    {"key": "about", "label": "How to use", "value": HOW_TO_USE_TEXT},
                ],
            },
        }
    )
    if barcode_message:
        pass_json["barcodes"] = [
            {
                "format": barcode_format or DEFAULT_BARCODE_FORMAT,
                "message": barcode_message,
                "messageEncoding": "iso-8859-1",
            }
        ]
    return pass_json


def build_manifest(files: dict[str, bytes]) -> bytes:
    manifest = {name: hashlib.sha1(content).hexdigest() for name, content in sorted(files.items())}
    return json.dumps(manifest, indent=2, sort_keys=True).encode("utf-8")


def sign_manifest(manifest: bytes, *, cert_paths: CertPaths, key_passphrase: str = "") -> bytes:
    signer_cert = _load_certificate(cert_paths.signer_cert.read_bytes())
    signer_key = _load_private_key(cert_paths.signer_key.read_bytes(), key_passphrase)
    wwdr_cert = _load_certificate(cert_paths.wwdr.read_bytes())
    return (
        pkcs7.PKCS7SignatureBuilder()
        .set_data(manifest)
        .add_signer(signer_cert, signer_key, hashes.SHA256())
        .add_certificate(wwdr_cert)
        .sign(
            serialization.Encoding.DER,
            [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary],
        )
    )


def build_pass(
    *,
    settings: object,
    cert_paths: CertPaths,
    serial_number: str,
    holder_name: str,
    barcode_message: str | None = None,
    barcode_format: str | None = None,
) -> bytes:
    model_json, model_images = _load_model(Path(_setting_str(settings, "pass_model_dir") or "pass-model.pass"))
    pass_json = build_pass_json(
        serial_number=serial_number,
        holder_name=holder_name,
        organization_name=_setting_str(settings, "org_name"),
        description=_setting_str(settings, "pass_description"),
        pass_type_identifier=_setting_str(settings, "pass_type_identifier"),
        team_identifier=_setting_str(settings, "team_identifier"),
        barcode_message=barcode_message,
        barcode_format=barcode_format,
        model=model_json,
    )

    files: dict[str, bytes] = {"pass.json": json.dumps(pass_json, indent=2).encode("utf-8")}
    files.update(_complete_images(model_images))
    manifest = build_manifest(files)
    signature = sign_manifest(
        manifest,
        cert_paths=cert_paths,
        key_passphrase=_setting_str(settings, "pass_key_passphrase"),
    )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
        archive.writestr("manifest.json", manifest)
        archive.writestr("signature", signature)

    logger.info("pass_built", serial_number=serial_number, files=len(files))
    return buffer.getvalue()
