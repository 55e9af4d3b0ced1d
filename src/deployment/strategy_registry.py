"""
LOT 6: Deployment - Strategy Registry

Table plateforme -> stratégie de diffusion.

Invariants:
    DEPL_001: Une stratégie par plateforme, contrat deploy + verify
    DEPL_002: Plateforme sans stratégie = UnknownPlatformError
    DEPL_003: Stratégies composées, jamais dérivées les unes des autres
"""

from typing import Dict, List, Optional

from .interfaces import IDeploymentStrategy


class DeploymentError(Exception):
    """Erreur de diffusion."""

    pass


class UnknownPlatformError(DeploymentError):
    """Aucune stratégie enregistrée - DEPL_002."""

    def __init__(self, platform: str, known: Optional[List[str]] = None) -> None:
        self.platform = platform
        known_text = ", ".join(known) if known else "none"
        super().__init__(f"Unknown platform: {platform} (registered: {known_text}) - DEPL_002")


class DeploymentStrategyRegistry:
    """
    Registre des stratégies.

    Ajouter une plateforme = enregistrer une stratégie, sans modifier
    l'orchestrateur.
    """

    def __init__(self, strategies: Optional[Dict[str, IDeploymentStrategy]] = None) -> None:
        self._strategies: Dict[str, IDeploymentStrategy] = {}
        for platform, strategy in (strategies or {}).items():
            self.register(platform, strategy)

    def register(self, platform: str, strategy: IDeploymentStrategy) -> None:
        """
        Enregistre (ou remplace) la stratégie d'une plateforme.

        Raises:
            ValueError: Identifiant vide
            TypeError: strategy n'implémente pas IDeploymentStrategy
        """
        if not platform or not platform.strip():
            raise ValueError("Platform identifier cannot be empty")
        if not isinstance(strategy, IDeploymentStrategy):
            raise TypeError(f"Strategy for {platform} must implement IDeploymentStrategy")
        self._strategies[platform.strip()] = strategy

    def unregister(self, platform: str) -> bool:
        """Retire une stratégie. Retourne False si absente."""
        return self._strategies.pop(platform, None) is not None

    def get(self, platform: str) -> IDeploymentStrategy:
        """
        Raises:
            UnknownPlatformError: Plateforme non enregistrée
        """
        strategy = self._strategies.get(platform)
        if strategy is None:
            raise UnknownPlatformError(platform, self.platforms())
        return strategy

    def has(self, platform: str) -> bool:
        return platform in self._strategies

    def platforms(self) -> List[str]:
        return sorted(self._strategies.keys())

    def __len__(self) -> int:
        return len(self._strategies)

    def __contains__(self, platform: object) -> bool:
        return platform in self._strategies
