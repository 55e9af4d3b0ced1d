"""
Tests unitaires pour LicenseArtifactBuilder.

Invariants testés:
    LIC_010: Artefacts dérivés uniquement des champs de la licence
    LIC_011: Valeurs d'attributs HTML échappées
    LIC_012: Chaque fichier plateforme contient le digest d'intégrité
"""

import json

import pytest

from src.core.interfaces import ArtifactSettings
from src.licensing import LicenseArtifactBuilder, LicenseCodec, LicenseType, UnsupportedPlatformArtifactError


@pytest.fixture
def builder() -> LicenseArtifactBuilder:
    return LicenseArtifactBuilder(ArtifactSettings(verify_base_url="https://verify.example/"))


@pytest.fixture
def license():
    return LicenseCodec().generate("do-not-train", "Jane Doe", "content", {"ai_training": False})


class TestLIC010DerivedArtifacts:
    """LIC_010: fonctions pures de la licence."""

    def test_LIC_010_deterministic(self, builder, license):
        assert builder.json_ld(license) == builder.json_ld(license)
        assert builder.robots_txt(license) == builder.robots_txt(license)

    def test_LIC_010_json_ld_fields(self, builder, license):
        block = builder.json_ld(license)

        assert block["@type"] == "CreativeWork"
        assert block["creator"]["name"] == "Jane Doe"
        assert block["license"]["identifier"] == license.id
        assert block["license"]["validThrough"] is None
        assert block["protection"]["hash"] == license.integrity_digest
        assert block["protection"]["restrictions"] == {"ai_training": False}

    def test_LIC_010_urls(self, builder, license):
        assert builder.verify_url(license) == f"https://verify.example/verify/{license.integrity_digest}"
        assert builder.license_url(license) == f"https://verify.example/licenses/{license.id}"

    @pytest.mark.parametrize("license_type", list(LicenseType))
    def test_LIC_010_license_text_per_type(self, license_type):
        assert LicenseArtifactBuilder.license_text(license_type)

    def test_LIC_010_robots_txt_rules(self, builder, license):
        robots = builder.robots_txt(license, base_rules=["Allow: /public"], sitemap_url="/map.xml")

        assert "Disallow: /ai-training" in robots
        assert "Allow: /public" in robots
        assert "Sitemap: /map.xml" in robots
        assert f"# Hash: {license.integrity_digest}" in robots

    def test_LIC_010_robots_default_sitemap(self, builder, license):
        assert "Sitemap: /sitemap.xml" in builder.robots_txt(license)

    def test_LIC_010_http_headers(self, builder, license):
        headers = builder.http_headers(license)

        assert headers["X-Data-Protection-License-Hash"] == license.integrity_digest
        assert headers["X-Data-Protection-License-Type"] == "do-not-train"
        assert "csp-report/" + license.integrity_digest in headers["Content-Security-Policy"]
        assert headers["Link"].endswith('rel="license"; type="application/ld+json"')


class TestLIC011HtmlEscaping:
    """LIC_011: aucune injection via les champs de la licence."""

    def test_LIC_011_creator_escaped(self, builder):
        license = LicenseCodec().generate("attribution-required", '"><script>alert(1)</script>', "c")
        tags = builder.html_meta_tags(license)

        assert (
            '<meta name="data-protection-creator" '
            'content="&quot;&gt;&lt;script&gt;alert(1)&lt;/script&gt;">'
        ) in tags
        assert tags.count("</script>") == 1

    def test_LIC_011_script_block_not_closed_early(self, builder):
        license = LicenseCodec().generate("attribution-required", "</script><b>", "c")
        tags = builder.html_meta_tags(license)

        assert tags.count("</script>") == 1


class TestLIC012PlatformFiles:
    """LIC_012: digest présent dans chaque fichier."""

    @pytest.mark.parametrize("platform", ["github", "huggingface", "kaggle", "docker", "npm", "web"])
    def test_LIC_012_digest_in_every_file(self, builder, license, platform):
        artifacts = builder.platform_files(platform, license)

        assert artifacts.platform == platform
        assert artifacts.files
        for name, content in artifacts.files.items():
            assert license.integrity_digest in content, name

    def test_LIC_012_github_file_names(self, builder, license):
        assert builder.platform_files("github", license).names == [".dataprotection", "DATA_PROTECTION.md"]

    def test_LIC_012_github_dataprotection_json(self, builder, license):
        files = builder.platform_files("github", license).files
        payload = json.loads(files[".dataprotection"])

        assert payload["license"]["integrity_digest"] == license.integrity_digest
        assert payload["verification"] == builder.verify_url(license)

    def test_LIC_012_docker_labels_quoted(self, builder):
        license = LicenseCodec().generate("do-not-train", 'Jane "JD" Doe', "c")
        dockerfile = builder.platform_files("docker", license).files["Dockerfile.license"]

        assert 'LABEL data.protection.creator="Jane \\"JD\\" Doe"' in dockerfile

    def test_LIC_012_web_files(self, builder, license):
        assert builder.platform_files("web", license).names == [
            "license-headers.json",
            "license-meta.html",
            "robots.txt",
        ]

    def test_unsupported_platform(self, builder, license):
        with pytest.raises(UnsupportedPlatformArtifactError) as exc_info:
            builder.platform_files("myspace", license)

        assert exc_info.value.platform == "myspace"
        assert "github" in str(exc_info.value)

    def test_supported_platforms_sorted(self, builder):
        assert builder.supported_platforms == ["docker", "github", "huggingface", "kaggle", "npm", "web"]
