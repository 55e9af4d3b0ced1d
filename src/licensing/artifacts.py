"""
LOT 2: Licensing - Artifacts

Artefacts publiés avec une licence: directives crawler, bloc JSON-LD,
balises HTML, en-têtes HTTP et fichiers par plateforme.

Toutes les méthodes sont des fonctions pures d'une License.

Invariants:
    LIC_010: Artefacts dérivés uniquement des champs de la licence
    LIC_011: Valeurs d'attributs HTML échappées
    LIC_012: Chaque fichier plateforme contient le digest d'intégrité
"""

import html
import json
from typing import Any, Callable, Dict, List, Optional

from src.core.interfaces import ArtifactSettings

from .interfaces import License, LicenseType, PlatformArtifacts

LICENSE_TEXTS: Dict[LicenseType, str] = {
    LicenseType.DO_NOT_TRAIN: "This content is protected from AI model training and machine learning purposes.",
    LicenseType.COMMERCIAL_RESTRICTIONS: "Commercial use of this content requires explicit permission.",
    LicenseType.ATTRIBUTION_REQUIRED: "Attribution to the original creator is required for any use.",
    LicenseType.NDA_ENFORCEMENT: "This content is confidential and protected under NDA terms.",
    LicenseType.PRE_CLEARANCE: "Pre-approval is required before any model deployment using this content.",
}

AI_CRAWLER_RULES: Dict[LicenseType, List[str]] = {
    LicenseType.DO_NOT_TRAIN: [
        "Disallow: /ai-training",
        "Disallow: /machine-learning",
        "Disallow: /data-mining",
    ],
    LicenseType.COMMERCIAL_RESTRICTIONS: [
        "Disallow: /commercial-use",
        "User-agent: CommercialBot",
        "Disallow: /",
    ],
    LicenseType.ATTRIBUTION_REQUIRED: ["# Attribution required for any use"],
    LicenseType.NDA_ENFORCEMENT: ["Disallow: /", "User-agent: *", "Disallow: /"],
    LicenseType.PRE_CLEARANCE: ["# Pre-approval required", "User-agent: AIBot", "Disallow: /"],
}

PERMISSIONS_POLICY = "microphone=(), camera=(), geolocation=(), payment=()"


def _attr(value: Any) -> str:
    return html.escape(str(value), quote=True)


class UnsupportedPlatformArtifactError(Exception):
    """Aucun générateur de fichiers pour cette plateforme."""

    def __init__(self, platform: str, supported: List[str]) -> None:
        self.platform = platform
        super().__init__(
            f"Platform {platform} not supported (supported: {', '.join(supported)})"
        )


class LicenseArtifactBuilder:
    """
    Génère les artefacts de diffusion d'une licence.

    Example:
        builder = LicenseArtifactBuilder()
        builder.http_headers(license)["X-Data-Protection-License-Hash"]
        builder.platform_files("github", license).names
        # ['.dataprotection', 'DATA_PROTECTION.md']
    """

    def __init__(self, settings: Optional[ArtifactSettings] = None) -> None:
        self._settings = settings or ArtifactSettings()
        self._generators: Dict[str, Callable[[License], Dict[str, str]]] = {
            "github": self._github_files,
            "huggingface": self._huggingface_files,
            "kaggle": self._kaggle_files,
            "docker": self._docker_files,
            "npm": self._npm_files,
            "web": self._web_files,
        }

    @property
    def supported_platforms(self) -> List[str]:
        return sorted(self._generators.keys())

    def verify_url(self, license: License) -> str:
        return f"{self._settings.verify_base_url}/verify/{license.integrity_digest}"

    def license_url(self, license: License) -> str:
        return f"{self._settings.verify_base_url}/licenses/{license.id}"

    @staticmethod
    def license_text(license_type: LicenseType) -> str:
        """Phrase lisible décrivant la restriction d'un type."""
        return LICENSE_TEXTS.get(license_type, "Custom data protection license applied.")

    def json_ld(self, license: License) -> Dict[str, Any]:
        """Bloc schema.org CreativeWork lisible par machine."""
        record = license.to_dict()
        return {
            "@context": "https://schema.org/",
            "@type": "CreativeWork",
            "name": f"Data Protection License - {license.type.value}",
            "creator": {"@type": "Person", "name": license.creator},
            "license": {
                "@type": "CreativeWorkLicense",
                "name": f"Data Protection License - {license.type.value.upper()}",
                "identifier": license.id,
                "url": self.license_url(license),
                "text": self.license_text(license.type),
                "dateCreated": record["created_at"],
                "validThrough": record["expires_at"],
            },
            "protection": {
                "@type": "DataProtection",
                "method": "cryptographic-hash",
                "algorithm": "SHA-256",
                "hash": license.integrity_digest,
                "restrictions": record["restrictions"],
            },
            "copyrightNotice": f"Protected by Data Protection License. Hash: {license.integrity_digest}",
            "usageInfo": f"{self._settings.verify_base_url}/usage-guidelines",
        }

    def robots_txt(
        self,
        license: License,
        base_rules: Optional[List[str]] = None,
        sitemap_url: Optional[str] = None,
    ) -> str:
        """Document de directives crawler avec en-tête de licence."""
        record = license.to_dict()
        lines = [
            "# Data Protection License - robots.txt",
            f"# License ID: {license.id}",
            f"# Created: {record['created_at']}",
            f"# Hash: {license.integrity_digest}",
            "",
            "# License Information",
            f"# Type: {license.type.value}",
            f"# Creator: {license.creator}",
            "",
            "# Machine-readable license data",
            f"# JSON-LD: {json.dumps(self.json_ld(license), separators=(',', ':'))}",
            "",
            "# Access Rules",
            *(base_rules or []),
            "",
            "# AI Training Restrictions",
            *AI_CRAWLER_RULES.get(license.type, ["# Custom restrictions apply"]),
            "",
            "User-agent: *",
            "Crawl-delay: 1",
            f"Sitemap: {sitemap_url or self._settings.sitemap_url}",
            "",
            "# Data Protection Notice",
            f"# This content is protected under license {license.id}",
            f"# Verify at: {self.verify_url(license)}",
        ]
        return "\n".join(lines)

    def html_meta_tags(self, license: License) -> str:
        """Balises meta, JSON-LD embarqué, Open Graph et Dublin Core (LIC_011)."""
        record = license.to_dict()
        # "</" interdit dans un bloc <script>
        embedded = json.dumps(self.json_ld(license), indent=2).replace("</", "<\\/")
        type_name = f"Data Protection License - {license.type.value}"

        return "\n".join(
            [
                "<!-- Data Protection License Meta Tags -->",
                f'<meta name="data-protection-license-id" content="{_attr(license.id)}">',
                f'<meta name="data-protection-license-type" content="{_attr(license.type.value)}">',
                f'<meta name="data-protection-license-hash" content="{_attr(license.integrity_digest)}">',
                f'<meta name="data-protection-creator" content="{_attr(license.creator)}">',
                f'<meta name="data-protection-created" content="{_attr(record["created_at"])}">',
                f'<meta name="data-protection-verify-url" content="{_attr(self.verify_url(license))}">',
                "",
                "<!-- JSON-LD Structured Data -->",
                '<script type="application/ld+json">',
                embedded,
                "</script>",
                "",
                "<!-- Open Graph Protocol -->",
                f'<meta property="og:license" content="{_attr(type_name)}">',
                f'<meta property="og:license:id" content="{_attr(license.id)}">',
                f'<meta property="og:license:hash" content="{_attr(license.integrity_digest)}">',
                "",
                "<!-- Dublin Core -->",
                f'<meta name="DC.rights" content="{_attr(type_name)}">',
                f'<meta name="DC.rights.license" content="{_attr(self.license_url(license))}">',
                f'<meta name="DC.rights.hash" content="{_attr(license.integrity_digest)}">',
                "",
            ]
        )

    def http_headers(self, license: License) -> Dict[str, str]:
        """En-têtes HTTP de diffusion de la licence."""
        base = self._settings.verify_base_url
        return {
            "X-Data-Protection-License-ID": license.id,
            "X-Data-Protection-License-Type": license.type.value,
            "X-Data-Protection-License-Hash": license.integrity_digest,
            "X-Data-Protection-Creator": license.creator,
            "X-Data-Protection-Created": license.to_dict()["created_at"],
            "X-Data-Protection-Verify-URL": self.verify_url(license),
            "Content-Security-Policy": (
                f"default-src 'self'; script-src 'self' {base}; "
                f"report-uri {base}/csp-report/{license.integrity_digest}"
            ),
            "Permissions-Policy": PERMISSIONS_POLICY,
            "Link": f'<{self.license_url(license)}>; rel="license"; type="application/ld+json"',
        }

    def platform_files(self, platform: str, license: License) -> PlatformArtifacts:
        """
        Fichiers à publier sur une plateforme (LIC_012).

        Raises:
            UnsupportedPlatformArtifactError: Plateforme sans générateur
        """
        generator = self._generators.get(platform)
        if generator is None:
            raise UnsupportedPlatformArtifactError(platform, self.supported_platforms)
        return PlatformArtifacts(platform=platform, files=generator(license))

    # ──────────────────────────────────────────────────────────────────────
    # Générateurs par plateforme
    # ──────────────────────────────────────────────────────────────────────

    def _github_files(self, license: License) -> Dict[str, str]:
        dataprotection = {
            "license": license.to_dict(),
            "jsonLD": self.json_ld(license),
            "verification": self.verify_url(license),
        }
        readme = "\n".join(
            [
                "# Data Protection License",
                "",
                "This repository is protected under Data Protection License.",
                "",
                f"- **License ID**: {license.id}",
                f"- **Type**: {license.type.value}",
                f"- **Hash**: {license.integrity_digest}",
                f"- **Creator**: {license.creator}",
                "",
                "## Verification",
                "",
                f"Verify this license at: {self.verify_url(license)}",
                "",
                "## Usage Rights",
                "",
                self.license_text(license.type),
                "",
                "---",
                "*This file was automatically generated by the Data Protection Platform*",
                "",
            ]
        )
        return {
            ".dataprotection": json.dumps(dataprotection, indent=2),
            "DATA_PROTECTION.md": readme,
        }

    def _huggingface_files(self, license: License) -> Dict[str, str]:
        payload = {
            "license": license.to_dict(),
            "huggingface_compatible": True,
            "restrictions": dict(license.restrictions),
        }
        return {"dataset_protection.json": json.dumps(payload, indent=2)}

    def _kaggle_files(self, license: License) -> Dict[str, str]:
        payload = {
            "license": license.to_dict(),
            "kaggle_metadata": {
                "title": f"Data Protection License - {license.type.value}",
                "description": self.license_text(license.type),
            },
        }
        return {"kaggle-license.json": json.dumps(payload, indent=2)}

    def _docker_files(self, license: License) -> Dict[str, str]:
        labels = [
            ("data.protection.license.id", license.id),
            ("data.protection.license.type", license.type.value),
            ("data.protection.license.hash", license.integrity_digest),
            ("data.protection.creator", license.creator),
            ("data.protection.verify.url", self.verify_url(license)),
        ]
        body = "\n".join(f"LABEL {key}={json.dumps(value)}" for key, value in labels)
        return {"Dockerfile.license": f"# Data Protection License Layer\n{body}\n"}

    def _npm_files(self, license: License) -> Dict[str, str]:
        payload = {
            "dataProtection": {
                "license": license.to_dict(),
                "verification": self.verify_url(license),
            }
        }
        return {"package-license.json": json.dumps(payload, indent=2)}

    def _web_files(self, license: License) -> Dict[str, str]:
        return {
            "robots.txt": self.robots_txt(license),
            "license-meta.html": self.html_meta_tags(license),
            "license-headers.json": json.dumps(self.http_headers(license), indent=2),
        }
