"""
LOT 2: Licensing

Invariants couverts:
- LIC_001-006 (Génération, digest, signature, validation)
- LIC_010-012 (Artefacts de diffusion)
"""
from .interfaces import (
    # Enums
    LicenseType,
    LicenseStatus,
    # Dataclasses
    License,
    PlatformArtifacts,
    # Interfaces
    ILicenseCodec,
)
from .license_codec import (
    LicenseCodec,
    generate_license_id,
    CANONICAL_FIELDS,
    # Exceptions
    LicenseCodecError,
    UnsupportedLicenseTypeError,
)
from .artifacts import (
    LicenseArtifactBuilder,
    UnsupportedPlatformArtifactError,
)

__all__ = [
    # Enums
    "LicenseType",
    "LicenseStatus",
    # Dataclasses
    "License",
    "PlatformArtifacts",
    # Interfaces
    "ILicenseCodec",
    # Implementations
    "LicenseCodec",
    "LicenseArtifactBuilder",
    "generate_license_id",
    "CANONICAL_FIELDS",
    # Exceptions
    "LicenseCodecError",
    "UnsupportedLicenseTypeError",
    "UnsupportedPlatformArtifactError",
]
