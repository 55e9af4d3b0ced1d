"""
Tests unitaires pour LicenseCodec.

LOT 2: Génération et validation des licences

Invariants testés:
    LIC_001: Type de licence dans l'énumération fermée, sinon rejet
    LIC_002: Digest = SHA-256 de la sérialisation canonique
    LIC_003: Signature = fonction déterministe de la sérialisation canonique + digest
    LIC_004: Contenu jamais stocké, seulement son digest SHA-256
    LIC_005: Validation ne lève jamais, retourne False
    LIC_006: Licence immuable après création, sauf status
"""

import dataclasses
import hashlib
import json
import re
from datetime import datetime, timedelta, timezone

import pytest

from src.core.crypto_provider import CryptoProvider
from src.core.interfaces import CodecSettings, SignatureScheme
from src.licensing import (
    CANONICAL_FIELDS,
    License,
    LicenseCodec,
    LicenseCodecError,
    LicenseStatus,
    LicenseType,
    UnsupportedLicenseTypeError,
    generate_license_id,
)
from src.logging.structured_logger import StructuredLogger


@pytest.fixture
def codec() -> LicenseCodec:
    return LicenseCodec()


@pytest.fixture
def license(codec: LicenseCodec) -> License:
    return codec.generate(
        LicenseType.DO_NOT_TRAIN,
        "Jane Doe",
        "dataset contents",
        {"ai_training": False, "commercial_use": True},
    )


class TestLIC001LicenseType:
    """LIC_001: énumération fermée des types."""

    @pytest.mark.parametrize("license_type", LicenseType.values())
    def test_LIC_001_all_types_accepted_as_string(self, codec, license_type):
        license = codec.generate(license_type, "Jane", "content")
        assert license.type == LicenseType(license_type)

    def test_LIC_001_unknown_type_rejected(self, codec):
        with pytest.raises(UnsupportedLicenseTypeError) as exc_info:
            codec.generate("public-domain", "Jane", "content")

        assert exc_info.value.license_type == "public-domain"
        assert "do-not-train" in str(exc_info.value)

    def test_LIC_001_unsupported_is_codec_error(self, codec):
        with pytest.raises(LicenseCodecError):
            codec.generate("nope", "Jane", "content")


class TestLIC002Digest:
    """LIC_002: digest déterministe sur la forme canonique."""

    def test_LIC_002_digest_is_sha256_of_canonical(self, codec, license):
        canonical = codec.canonicalize(license)
        assert license.integrity_digest == hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def test_LIC_002_canonical_form_sorted_and_compact(self, codec, license):
        canonical = codec.canonicalize(license)
        parsed = json.loads(canonical)

        assert list(parsed.keys()) == sorted(CANONICAL_FIELDS)
        assert ", " not in canonical and ": " not in canonical

    def test_LIC_002_restriction_order_irrelevant(self, codec, license):
        record = license.to_dict()
        reordered = dict(record, restrictions=dict(reversed(list(record["restrictions"].items()))))
        assert codec.compute_digest(reordered) == license.integrity_digest

    def test_LIC_002_status_not_covered(self, codec, license):
        revoked = license.with_status(LicenseStatus.REVOKED)
        assert codec.compute_digest(revoked) == license.integrity_digest
        assert codec.validate(revoked) is True

    def test_LIC_002_id_format(self, license):
        assert re.match(r"^DPL-\d{13}-[0-9a-f]{16}$", license.id)

    def test_LIC_002_generate_license_id_uses_timestamp(self):
        assert generate_license_id(1700000000123).startswith("DPL-1700000000123-")

    def test_LIC_002_created_at_millisecond_precision(self, license):
        assert license.created_at.microsecond % 1000 == 0
        assert license.created_at.tzinfo is not None

    def test_LIC_002_expiration_normalized_to_utc(self, codec):
        expires = datetime(2030, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        license = codec.generate("pre-clearance", "Jane", "c", expiration=expires)

        assert license.to_dict()["expires_at"] == "2030-01-01T10:00:00+00:00"


class TestLIC003Signature:
    """LIC_003: signature déterministe sur canonique + digest."""

    def test_LIC_003_sha256_scheme(self, codec, license):
        canonical = codec.canonicalize(license)
        expected = hashlib.sha256(f"{canonical}:{license.integrity_digest}".encode("utf-8")).hexdigest()
        assert license.signature == expected

    def test_LIC_003_ed25519_scheme(self):
        settings = CodecSettings(signature_scheme=SignatureScheme.ED25519)
        codec = LicenseCodec(CryptoProvider(SignatureScheme.ED25519), settings)

        license = codec.generate("nda-enforcement", "Jane", "secret doc")

        assert len(license.signature) == 128
        assert codec.validate(license) is True

    def test_LIC_003_ed25519_foreign_key_rejected(self):
        settings = CodecSettings(signature_scheme=SignatureScheme.ED25519)
        issuer = LicenseCodec(CryptoProvider(SignatureScheme.ED25519), settings)
        verifier = LicenseCodec(CryptoProvider(SignatureScheme.ED25519), settings)

        license = issuer.generate("nda-enforcement", "Jane", "secret doc")

        assert verifier.validate(license) is False

    def test_LIC_003_forged_signature_rejected(self, codec, license):
        forged = dataclasses.replace(license, signature="0" * 64)
        assert codec.validate(forged) is False


class TestLIC004ContentDigest:
    """LIC_004: seul le digest du contenu est conservé."""

    def test_LIC_004_content_hashed(self, license):
        assert license.content_digest == hashlib.sha256(b"dataset contents").hexdigest()

    def test_LIC_004_bytes_and_str_equivalent(self, codec):
        first = codec.generate("do-not-train", "Jane", "abc")
        second = codec.generate("do-not-train", "Jane", b"abc")
        assert first.content_digest == second.content_digest

    def test_LIC_004_content_absent_from_record(self, license):
        assert "dataset contents" not in json.dumps(license.to_dict())

    def test_LIC_004_invalid_content_type(self, codec):
        with pytest.raises(LicenseCodecError):
            codec.generate("do-not-train", "Jane", 42)

    def test_empty_creator_rejected(self, codec):
        with pytest.raises(LicenseCodecError):
            codec.generate("do-not-train", "  ", "abc")


class TestLIC005Validation:
    """LIC_005: validate ne lève jamais."""

    def test_LIC_005_valid_license(self, codec, license):
        assert codec.validate(license) is True

    def test_LIC_005_valid_stored_record(self, codec, license):
        assert codec.validate(license.to_dict()) is True

    def test_LIC_005_tampered_restrictions(self, codec, license):
        record = license.to_dict()
        record["restrictions"]["ai_training"] = True
        assert codec.validate(record) is False

    def test_LIC_005_tampered_creator(self, codec, license):
        assert codec.validate(dataclasses.replace(license, creator="Mallory")) is False

    @pytest.mark.parametrize(
        "field",
        ["id", "type", "creator", "content_digest", "restrictions", "created_at", "expires_at", "version"],
    )
    def test_LIC_005_single_character_change_detected(self, codec, field):
        license = codec.generate(
            LicenseType.DO_NOT_TRAIN,
            "Jane Doe",
            "dataset contents",
            {"ai_training": False},
            expiration=datetime.now(timezone.utc) + timedelta(days=30),
        )
        record = license.to_dict()

        if field == "type":
            record["type"] = "do-not-trail"
        elif field == "restrictions":
            record["restrictions"] = {"ai_trainins": False}
        else:
            value = record[field]
            record[field] = value[:-1] + ("x" if value[-1] != "x" else "y")

        assert record[field] != license.to_dict()[field]
        assert codec.validate(record) is False

    def test_LIC_005_missing_field(self, codec, license):
        record = license.to_dict()
        del record["content_digest"]
        assert codec.validate(record) is False

    def test_LIC_005_unknown_type_in_record(self, codec, license):
        record = dict(license.to_dict(), type="public-domain")
        assert codec.validate(record) is False

    @pytest.mark.parametrize("record", [{}, {"integrity_digest": None, "signature": "x"}, []])
    def test_LIC_005_malformed_input(self, codec, record):
        assert codec.validate(record) is False

    def test_LIC_005_mismatch_logged(self, license):
        logger = StructuredLogger("test.codec")
        codec = LicenseCodec(logger=logger)
        record = dict(license.to_dict(), creator="Mallory")

        codec.validate(record)

        assert any(e.message == "License digest mismatch" for e in logger.get_entries())


class TestLIC006Immutability:
    """LIC_006: licence figée, seul status change par copie."""

    def test_LIC_006_frozen(self, license):
        with pytest.raises(dataclasses.FrozenInstanceError):
            license.creator = "Mallory"

    def test_LIC_006_with_status_keeps_digest(self, license):
        revoked = license.with_status(LicenseStatus.REVOKED)

        assert revoked.status == LicenseStatus.REVOKED
        assert license.status == LicenseStatus.ACTIVE
        assert revoked.integrity_digest == license.integrity_digest

    def test_LIC_006_dict_roundtrip(self, license):
        assert License.from_dict(license.to_dict()) == license


class TestEffectiveStatus:
    def test_expired_license(self, codec):
        license = codec.generate("do-not-train", "Jane", "c", expiration=datetime(2020, 1, 1, tzinfo=timezone.utc))

        assert license.is_expired() is True
        assert license.effective_status() == LicenseStatus.EXPIRED

    def test_no_expiration(self, license):
        assert license.is_expired() is False
        assert license.effective_status() == LicenseStatus.ACTIVE

    def test_revoked_stays_revoked(self, codec):
        license = codec.generate("do-not-train", "Jane", "c", expiration=datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert license.with_status(LicenseStatus.REVOKED).effective_status() == LicenseStatus.REVOKED

    def test_from_dict_accepts_z_suffix(self, license):
        record = dict(license.to_dict(), created_at="2024-01-01T00:00:00Z")
        assert License.from_dict(record).created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
