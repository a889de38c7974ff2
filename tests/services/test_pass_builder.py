from __future__ import annotations

import base64
import hashlib
import io
import json
import zipfile
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import NameOID

from app.services.pass_builder import (
    PLACEHOLDER_PNG,
    CertPaths,
    PassConfigurationError,
    build_pass,
    build_pass_json,
    ensure_cert_files,
)


def _self_signed(common_name: str) -> tuple[bytes, bytes]:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert_pem, key_pem


@pytest.fixture
def cert_paths(tmp_path: Path) -> CertPaths:
    signer_cert, signer_key = _self_signed("Pass Type ID: pass.example.test")
    wwdr_cert, _ = _self_signed("Test WWDR")
    paths = CertPaths(
        signer_cert=tmp_path / "signer.pem",
        signer_key=tmp_path / "signer-key.pem",
        wwdr=tmp_path / "wwdr.pem",
    )
    paths.signer_cert.write_bytes(signer_cert)
    paths.signer_key.write_bytes(signer_key)
    paths.wwdr.write_bytes(wwdr_cert)
    return paths


def _settings(tmp_path: Path, **overrides: object) -> SimpleNamespace:
    base = {
        "org_name": "Web Pass Org",
        "pass_description": "Web-generated pass",
        "pass_type_identifier": "pass.example.test",
        "team_identifier": "TEAM123456",
        "pass_key_passphrase": "",
        "pass_model_dir": str(tmp_path / "missing-model.pass"),
        "runtime_dir": str(tmp_path / ".run"),
        "pass_cert_path": "",
        "pass_key_path": "",
        "wwdr_cert_path": "",
        "pass_cert_base64": "",
        "pass_key_base64": "",
        "wwdr_cert_base64": "",
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def test_ensure_cert_files_prefers_existing_explicit_paths(tmp_path: Path, cert_paths: CertPaths) -> None:
    settings = _settings(
        tmp_path,
        pass_cert_path=str(cert_paths.signer_cert),
        pass_key_path=str(cert_paths.signer_key),
        wwdr_cert_path=str(cert_paths.wwdr),
    )

    assert ensure_cert_files(settings) == cert_paths


def test_ensure_cert_files_materializes_base64_values(tmp_path: Path) -> None:
    encoded = base64.b64encode(b"-----BEGIN CERTIFICATE-----").decode("ascii")
    settings = _settings(
        tmp_path,
        pass_cert_base64=f"data:application/x-pem-file;base64,{encoded}",
        pass_key_base64=encoded,
        wwdr_cert_base64=encoded,
    )

    resolved = ensure_cert_files(settings)

    assert resolved.signer_cert == tmp_path / ".run" / "certs" / "pass-cert.pem"
    assert resolved.signer_cert.read_bytes() == b"-----BEGIN CERTIFICATE-----"
    assert resolved.wwdr.read_bytes() == b"-----BEGIN CERTIFICATE-----"


def test_ensure_cert_files_raises_when_material_missing(tmp_path: Path) -> None:
    with pytest.raises(PassConfigurationError):
        ensure_cert_files(_settings(tmp_path, pass_cert_path="/nope/cert.pem"))


def test_build_pass_json_adds_holder_fields_and_optional_barcode() -> None:
    pass_json = build_pass_json(
        serial_number="abc123",
        holder_name="Ada",
        organization_name="Org",
        description="Desc",
        pass_type_identifier="pass.example.test",
        team_identifier="TEAM",
        barcode_message="CODE-1",
        model={"backgroundColor": "rgb(0,0,0)", "logoText": "Shop"},
    )

    assert pass_json["backgroundColor"] == "rgb(0,0,0)"
    assert pass_json["foregroundColor"] == "rgb(255,255,255)"
    assert pass_json["logoText"] == "Shop"
    assert pass_json["generic"]["auxiliaryFields"][0] == {"key": "name", "label": "Name", "value": "Ada"}
    assert pass_json["barcodes"][0]["format"] == "PKBarcodeFormatQR"
    assert pass_json["barcodes"][0]["message"] == "CODE-1"


def test_build_pass_json_without_barcode_message_has_no_barcodes() -> None:
    pass_json = build_pass_json(
        serial_number="abc123",
        holder_name="Ada",
        organization_name="Org",
        description="Desc",
        pass_type_identifier="pass.example.test",
        team_identifier="TEAM",
    )

    assert "barcodes" not in pass_json


def test_build_pass_produces_signed_archive(tmp_path: Path, cert_paths: CertPaths) -> None:
    content = build_pass(
        settings=_settings(tmp_path),
        cert_paths=cert_paths,
        serial_number="serial-1",
        holder_name="Buyer",
    )

    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        names = set(archive.namelist())
        manifest = json.loads(archive.read("manifest.json"))
        pass_json = json.loads(archive.read("pass.json"))
        signature = archive.read("signature")
        assert archive.read("icon.png") == PLACEHOLDER_PNG
        for name, digest in manifest.items():
            assert hashlib.sha1(archive.read(name)).hexdigest() == digest

    assert names == {
        "pass.json",
        "icon.png",
        "icon@2x.png",
        "logo.png",
        "logo@2x.png",
        "manifest.json",
        "signature",
    }
    assert set(manifest) == names - {"manifest.json", "signature"}
    assert pass_json["serialNumber"] == "serial-1"
    assert pass_json["teamIdentifier"] == "TEAM123456"

    embedded = pkcs7.load_der_pkcs7_certificates(signature)
    common_names = {
        cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value for cert in embedded
    }
    assert common_names == {"Pass Type ID: pass.example.test", "Test WWDR"}


def test_build_pass_merges_model_directory(tmp_path: Path, cert_paths: CertPaths) -> None:
    model_dir = tmp_path / "pass-model.pass"
    model_dir.mkdir()
    (model_dir / "pass.json").write_text(json.dumps({"labelColor": "rgb(1,2,3)"}), encoding="utf-8")
    (model_dir / "icon.png").write_bytes(b"custom-icon")

    content = build_pass(
        settings=_settings(tmp_path, pass_model_dir=str(model_dir)),
        cert_paths=cert_paths,
        serial_number="serial-2",
        holder_name="Buyer",
    )

    with zipfile.ZipFile(io.BytesIO(content)) as archive:
        pass_json = json.loads(archive.read("pass.json"))
        assert archive.read("icon.png") == b"custom-icon"
        assert archive.read("logo.png") == b"custom-icon"

    assert pass_json["labelColor"] == "rgb(1,2,3)"


def _base64_settings(tmp_path: Path, cert_paths: CertPaths) -> SimpleNamespace:
    return _settings(
        tmp_path,
        pass_cert_base64=base64.b64encode(cert_paths.signer_cert.read_bytes()).decode("ascii"),
        pass_key_base64=base64.b64encode(cert_paths.signer_key.read_bytes()).decode("ascii"),
        wwdr_cert_base64=base64.b64encode(cert_paths.wwdr.read_bytes()).decode("ascii"),
    )


def test_ensure_cert_files_writes_owner_only_files_once(tmp_path: Path, cert_paths: CertPaths) -> None:
    settings = _base64_settings(tmp_path, cert_paths)

    first = ensure_cert_files(settings)
    key_inode = first.signer_key.stat().st_ino
    second = ensure_cert_files(settings)

    assert second == first
    assert second.signer_key.stat().st_ino == key_inode
    assert first.signer_key.read_bytes() == cert_paths.signer_key.read_bytes()
    for path in (first.signer_cert, first.signer_key, first.wwdr):
        assert path.stat().st_mode & 0o777 == 0o600
    assert sorted(p.name for p in first.signer_key.parent.iterdir()) == [
        "pass-cert.pem",
        "pass-key.pem",
        "wwdr.pem",
    ]


def test_ensure_cert_files_replaces_changed_material(tmp_path: Path, cert_paths: CertPaths) -> None:
    settings = _base64_settings(tmp_path, cert_paths)
    resolved = ensure_cert_files(settings)
    resolved.signer_key.write_bytes(b"stale")
    resolved.signer_key.chmod(0o644)

    ensure_cert_files(settings)

    assert resolved.signer_key.read_bytes() == cert_paths.signer_key.read_bytes()
    assert resolved.signer_key.stat().st_mode & 0o777 == 0o600


def test_concurrent_builds_from_base64_material_all_succeed(tmp_path: Path, cert_paths: CertPaths) -> None:
    settings = _base64_settings(tmp_path, cert_paths)

    def _build(index: int) -> bytes:
        return build_pass(
            settings=settings,
            cert_paths=ensure_cert_files(settings),
            serial_number=f"serial-{index}",
            holder_name="Buyer",
        )

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(_build, range(200)))

    assert len(results) == 200
    for content in results[:5]:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            assert "signature" in archive.namelist()
