"""
DATASHIELD Framework - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

import pytest
from pathlib import Path


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def default_config_path(fixtures_path: Path) -> Path:
    return fixtures_path / "configs" / "default.yaml"


@pytest.fixture
def default_raw_config(default_config_path: Path) -> dict:
    """Charge la configuration par défaut."""
    import yaml
    with open(default_config_path) as f:
        return yaml.safe_load(f)


@pytest.fixture
def all_invariants() -> dict:
    """Retourne tous les invariants."""
    from src.invariants.rules import ALL_INVARIANTS
    return ALL_INVARIANTS
