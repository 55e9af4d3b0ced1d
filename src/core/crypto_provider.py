"""
DATASHIELD Framework - Crypto Provider Implementation
Hash SHA-256 et signatures des licences.
"""

import hashlib
import hmac
from pathlib import Path
from typing import Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .interfaces import ICryptoProvider, SignatureScheme


class CryptoProviderError(Exception):
    """Erreur de configuration cryptographique."""

    pass


class CryptoProvider(ICryptoProvider):
    """
    Implémentation des opérations cryptographiques.

    Schémas:
        SHA256: signature = SHA-256(données), sans secret. Reproduit le format
            historique des licences, n'apporte aucune authenticité.
        ED25519: signature Ed25519 (déterministe), clé par key_id.
    """

    def __init__(self, scheme: SignatureScheme = SignatureScheme.SHA256):
        self.scheme = scheme
        self._keys: Dict[str, Ed25519PrivateKey] = {}

    def _get_or_create_key(self, key_id: str) -> Ed25519PrivateKey:
        """Récupère ou crée une clé Ed25519."""
        if key_id not in self._keys:
            self._keys[key_id] = Ed25519PrivateKey.generate()
        return self._keys[key_id]

    def load_private_key(self, key_id: str, pem_data: bytes, password: Optional[bytes] = None) -> None:
        """
        Charge une clé privée Ed25519 PEM.

        Raises:
            CryptoProviderError: Si la clé n'est pas une clé Ed25519
        """
        try:
            key = serialization.load_pem_private_key(pem_data, password=password)
        except (ValueError, TypeError) as e:
            raise CryptoProviderError(f"Clé PEM illisible pour {key_id}: {e}") from e

        if not isinstance(key, Ed25519PrivateKey):
            raise CryptoProviderError(f"Clé {key_id} n'est pas une clé Ed25519")
        self._keys[key_id] = key

    def load_private_key_file(self, key_id: str, path: str) -> None:
        """Charge une clé privée Ed25519 depuis un fichier PEM."""
        key_path = Path(path)
        if not key_path.exists():
            raise CryptoProviderError(f"Fichier de clé introuvable: {path}")
        self.load_private_key(key_id, key_path.read_bytes())

    def public_key_pem(self, key_id: str) -> bytes:
        """Exporte la clé publique (pour vérification externe)."""
        public_key = self._get_or_create_key(key_id).public_key()
        return public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-256.

        Returns:
            Hash hex string (64 caractères)
        """
        return hashlib.sha256(data).hexdigest()

    def sign(self, data: bytes, key_id: str) -> str:
        """
        Signe des données.

        Args:
            data: Données à signer
            key_id: ID de la clé (ignoré en SHA256)

        Returns:
            Signature hex
        """
        if self.scheme == SignatureScheme.ED25519:
            private_key = self._get_or_create_key(key_id)
            return private_key.sign(data).hex()

        return hashlib.sha256(data).hexdigest()

    def verify_signature(self, data: bytes, signature: str, key_id: str) -> bool:
        """Vérifie une signature."""
        if not isinstance(signature, str) or not signature:
            return False

        if self.scheme == SignatureScheme.ED25519:
            if key_id not in self._keys:
                return False
            try:
                public_key = self._keys[key_id].public_key()
                public_key.verify(bytes.fromhex(signature), data)
                return True
            except (InvalidSignature, ValueError):
                return False

        return hmac.compare_digest(hashlib.sha256(data).hexdigest(), signature)
