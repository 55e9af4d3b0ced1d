"""
LOT 2: Licensing - License Codec

Génération et validation des licences de protection.

Invariants:
    LIC_001: Type de licence dans l'énumération fermée, sinon rejet
    LIC_002: Digest = SHA-256 de la sérialisation canonique
    LIC_003: Signature = schéma configuré sur canonique + ":" + digest
    LIC_004: Contenu jamais stocké, seulement son digest SHA-256
    LIC_005: Validation ne lève jamais, retourne False
"""

import json
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from src.core.crypto_provider import CryptoProvider
from src.core.interfaces import CodecSettings, ICryptoProvider
from src.logging.structured_logger import StructuredLogger

from .interfaces import ILicenseCodec, License, LicenseType, RestrictionValue

# Champs couverts par le digest (LIC_002). status exclu: il évolue après création.
CANONICAL_FIELDS = (
    "id",
    "type",
    "creator",
    "content_digest",
    "restrictions",
    "created_at",
    "expires_at",
    "version",
)


class LicenseCodecError(Exception):
    """Erreur de génération de licence."""

    pass


class UnsupportedLicenseTypeError(LicenseCodecError):
    """Type de licence hors énumération - LIC_001."""

    def __init__(self, license_type: Any) -> None:
        self.license_type = license_type
        super().__init__(
            f"Unsupported license type: {license_type} "
            f"(supported: {', '.join(LicenseType.values())}) - LIC_001"
        )


def generate_license_id(now_ms: Optional[int] = None) -> str:
    """
    Génère un identifiant DPL-<epoch ms>-<16 hex>.

    Triable par date de création, unicité probabiliste.
    """
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"DPL-{millis:013d}-{secrets.token_hex(8)}"


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class LicenseCodec(ILicenseCodec):
    """
    Codec des licences: canonicalisation, digest, signature, validation.

    Conformité:
        LIC_001: _resolve_type rejette tout type inconnu
        LIC_002: canonicalize trie les clés à toute profondeur
        LIC_003: signature sur canonique + ":" + digest
        LIC_005: validate capture toute erreur et retourne False

    Example:
        codec = LicenseCodec()
        license = codec.generate("do-not-train", "Jane", "abc", {"ai_training": False})
        codec.validate(license)  # True
    """

    def __init__(
        self,
        crypto_provider: Optional[ICryptoProvider] = None,
        settings: Optional[CodecSettings] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._settings = settings or CodecSettings()
        self._crypto = crypto_provider or CryptoProvider(self._settings.signature_scheme)
        self._logger = logger or StructuredLogger("licensing.codec")

    @property
    def settings(self) -> CodecSettings:
        return self._settings

    def generate(
        self,
        license_type: Union[LicenseType, str],
        creator: str,
        content: Union[str, bytes],
        restrictions: Optional[Mapping[str, RestrictionValue]] = None,
        expiration: Optional[datetime] = None,
    ) -> License:
        """
        Génère une licence complète.

        Processus:
            1. Vérifie le type (LIC_001)
            2. Hash du contenu brut (LIC_004)
            3. Sérialisation canonique puis digest (LIC_002)
            4. Signature sur canonique + digest (LIC_003)

        Raises:
            UnsupportedLicenseTypeError: Type inconnu
            LicenseCodecError: creator vide ou content de type invalide
        """
        resolved_type = self._resolve_type(license_type)

        if not isinstance(creator, str) or not creator.strip():
            raise LicenseCodecError("Creator cannot be empty")

        if isinstance(content, str):
            raw = content.encode("utf-8")
        elif isinstance(content, (bytes, bytearray)):
            raw = bytes(content)
        else:
            raise LicenseCodecError(f"Content must be str or bytes, got {type(content).__name__}")

        # Précision milliseconde, alignée sur l'identifiant
        now = datetime.now(timezone.utc)
        now = now.replace(microsecond=now.microsecond // 1000 * 1000)
        record = {
            "id": generate_license_id(int(now.timestamp() * 1000)),
            "type": resolved_type.value,
            "creator": creator,
            "content_digest": self._crypto.hash(raw),
            "restrictions": dict(restrictions or {}),
            "created_at": _format_timestamp(now),
            "expires_at": _format_timestamp(expiration),
            "version": self._settings.schema_version,
        }

        canonical = self.canonicalize(record)
        digest = self._crypto.hash(canonical.encode("utf-8"))
        signature = self._sign(canonical, digest)

        license = License.from_dict({**record, "integrity_digest": digest, "signature": signature})

        self._logger.info(
            "License generated",
            license_digest=digest,
            license_id=license.id,
            license_type=resolved_type.value,
        )
        return license

    def validate(self, license: Union[License, Mapping[str, Any]]) -> bool:
        """
        Recalcule digest et signature depuis les champs de la licence.

        Returns:
            True si digest et signature identiques aux valeurs stockées.
            False sur toute divergence, champ manquant ou structure invalide.
        """
        try:
            record = license.to_dict() if isinstance(license, License) else dict(license)
            stored_digest = record["integrity_digest"]
            stored_signature = record["signature"]
            if not isinstance(stored_digest, str) or not isinstance(stored_signature, str):
                return False

            LicenseType(record["type"])

            canonical = self.canonicalize(record)
            digest = self._crypto.hash(canonical.encode("utf-8"))
            if digest != stored_digest:
                self._logger.warn("License digest mismatch", license_digest=stored_digest)
                return False

            if not self._crypto.verify_signature(
                self._signature_input(canonical, digest),
                stored_signature,
                self._settings.signing_key_id,
            ):
                self._logger.warn("License signature mismatch", license_digest=stored_digest)
                return False

            return True
        except Exception as e:
            self._logger.warn("License validation failed", error=str(e), error_type=type(e).__name__)
            return False

    def canonicalize(self, license: Union[License, Mapping[str, Any]]) -> str:
        """
        Sérialisation canonique (LIC_002).

        JSON compact, clés triées à toute profondeur, limité à CANONICAL_FIELDS.
        L'ordre d'insertion des champs et des restrictions n'a aucun effet.

        Raises:
            KeyError: Si un champ canonique manque
        """
        record = license.to_dict() if isinstance(license, License) else license
        payload = {name: record[name] for name in CANONICAL_FIELDS}
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def compute_digest(self, license: Union[License, Mapping[str, Any]]) -> str:
        """Digest SHA-256 hex de la sérialisation canonique."""
        return self._crypto.hash(self.canonicalize(license).encode("utf-8"))

    def _sign(self, canonical: str, digest: str) -> str:
        return self._crypto.sign(self._signature_input(canonical, digest), self._settings.signing_key_id)

    @staticmethod
    def _signature_input(canonical: str, digest: str) -> bytes:
        return f"{canonical}:{digest}".encode("utf-8")

    @staticmethod
    def _resolve_type(license_type: Union[LicenseType, str]) -> LicenseType:
        if isinstance(license_type, LicenseType):
            return license_type
        try:
            return LicenseType(license_type)
        except ValueError:
            raise UnsupportedLicenseTypeError(license_type) from None
