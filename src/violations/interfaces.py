"""
LOT 4: Interfaces Violations

Réception, enregistrement et triage des violations de licence.

Invariants:
    VIOL_001: Identifiant et date de détection attribués au report
    VIOL_002: Sévérité HIGH/CRITICAL déclenche la réponse immédiate avant retour
    VIOL_003: Sévérité LOW/MEDIUM ne déclenche jamais la réponse immédiate
    VIOL_004: Report idempotent sur l'identifiant
    VIOL_005: Transitions de statut selon la machine à états, terminaux figés
    VIOL_006: Mise à jour de statut conditionnelle (compare-and-set)
    VIOL_007: Ordre de traitement préservé par digest de licence
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional


class ViolationSeverity(Enum):
    """Sévérité ordonnée: LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: "ViolationSeverity") -> bool:
        if not isinstance(other, ViolationSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: "ViolationSeverity") -> bool:
        if not isinstance(other, ViolationSeverity):
            return NotImplemented
        return self.rank <= other.rank

    @property
    def requires_immediate_response(self) -> bool:
        """VIOL_002/VIOL_003: seuil de réponse immédiate."""
        return self.rank >= _SEVERITY_RANK[ViolationSeverity.HIGH]


_SEVERITY_RANK = {
    ViolationSeverity.LOW: 0,
    ViolationSeverity.MEDIUM: 1,
    ViolationSeverity.HIGH: 2,
    ViolationSeverity.CRITICAL: 3,
}


class ResolutionStatus(Enum):
    """Statut de résolution d'une violation."""

    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "ResolutionStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


# VIOL_005
ALLOWED_TRANSITIONS: Dict[ResolutionStatus, FrozenSet[ResolutionStatus]] = {
    ResolutionStatus.OPEN: frozenset(
        {ResolutionStatus.INVESTIGATING, ResolutionStatus.RESOLVED, ResolutionStatus.FALSE_POSITIVE}
    ),
    ResolutionStatus.INVESTIGATING: frozenset({ResolutionStatus.RESOLVED, ResolutionStatus.FALSE_POSITIVE}),
    ResolutionStatus.RESOLVED: frozenset(),
    ResolutionStatus.FALSE_POSITIVE: frozenset(),
}


class StreamTopic(Enum):
    """Topics du flux d'événements."""

    DATA_ACCESS_EVENTS = "data-access-events"
    LICENSE_VIOLATIONS = "license-violations"
    PLATFORM_CRAWLS = "platform-crawls"
    AI_TRAINING_ATTEMPTS = "ai-training-attempts"
    COMPLIANCE_ALERTS = "compliance-alerts"
    IMMEDIATE_RESPONSES = "immediate-responses"


class ViolationType:
    """Types de violation connus (tag libre, liste non fermée)."""

    UNAUTHORIZED_ACCESS = "unauthorized-access"
    UNAUTHORIZED_TRAINING = "unauthorized-training"
    LICENSE_TAMPERING = "license-tampering"
    COMMERCIAL_VIOLATION = "commercial-violation"
    ATTRIBUTION_MISSING = "attribution-missing"
    NDA_BREACH = "nda-breach"
    PRE_CLEARANCE_VIOLATION = "pre-clearance-violation"


@dataclass(frozen=True)
class ViolationReport:
    """Signalement entrant, avant enregistrement."""

    type: str
    license_digest: Optional[str]
    platform: str = "unknown"
    source: str = "unknown"
    severity: ViolationSeverity = ViolationSeverity.MEDIUM
    details: Any = None
    id: Optional[str] = None  # Fourni lors d'une redélivrance


@dataclass(frozen=True)
class Violation:
    """
    Violation enregistrée.

    Conformité:
        VIOL_001: id et detected_at attribués par le pipeline
        VIOL_005: seul status évolue après création
    """

    id: str
    type: str
    severity: ViolationSeverity
    license_digest: Optional[str]
    platform: str
    source: str
    details: Any
    detected_at: datetime
    status: ResolutionStatus = ResolutionStatus.OPEN
    notes: Optional[str] = None
    status_updated_at: Optional[datetime] = None

    @property
    def detected_at_ms(self) -> int:
        return int(self.detected_at.timestamp() * 1000)

    def to_event(self) -> Dict[str, Any]:
        """Représentation publiée sur license-violations."""
        return {
            "id": self.id,
            "timestamp": self.detected_at.isoformat(),
            "type": self.type,
            "severity": self.severity.value,
            "licenseHash": self.license_digest,
            "platform": self.platform,
            "source": self.source,
            "details": self.details,
            "detectedAt": self.detected_at_ms,
            "status": self.status.value,
        }


@dataclass
class ImmediateResponse:
    """Commande de blocage émise pour une violation grave."""

    event_id: Optional[str]
    license_digest: Optional[str]
    severity: str
    action: str = "immediate-block"
    auto_blocked: bool = True
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_event(self) -> Dict[str, Any]:
        return {
            "eventId": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "severity": self.severity,
            "autoBlocked": self.auto_blocked,
            "licenseHash": self.license_digest,
        }


@dataclass
class ComplianceSummary:
    """Agrégats d'un rapport de conformité."""

    total_checks: int
    compliant_checks: int
    violations: int
    compliance_rate: float
    average_response_ms: float


@dataclass
class ComplianceReport:
    """Rapport de conformité calculé depuis le stockage."""

    generated_at: datetime
    since: Optional[datetime]
    summary: ComplianceSummary
    by_severity: Dict[str, int]
    by_type: Dict[str, int]
    by_platform: Dict[str, int]
    open_violations: int
    recommendations: List[str]


@dataclass
class MonitoringCycleResult:
    """Résultat d'un cycle de surveillance des plateformes."""

    started_at: datetime
    platforms: List[str]
    reported: List[Violation] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class ViolationQuery:
    """Filtres de lecture des violations."""

    since: Optional[datetime] = None
    platforms: Optional[List[str]] = None
    severities: Optional[List[ViolationSeverity]] = None
    license_digest: Optional[str] = None
    statuses: Optional[List[ResolutionStatus]] = None

    def matches(self, violation: Violation) -> bool:
        if self.since is not None and violation.detected_at < self.since:
            return False
        if self.platforms and violation.platform not in self.platforms:
            return False
        if self.severities and violation.severity not in self.severities:
            return False
        if self.license_digest is not None and violation.license_digest != self.license_digest:
            return False
        if self.statuses and violation.status not in self.statuses:
            return False
        return True


class IViolationStore(ABC):
    """
    Violations indexées par identifiant.

    Append-only, seul le statut est modifiable et uniquement par
    mise à jour conditionnelle (VIOL_006).
    """

    @abstractmethod
    async def insert(self, violation: Violation) -> None:
        """
        Insertion append-only.

        Raises:
            DuplicateRecordError: Identifiant déjà présent
        """
        pass

    @abstractmethod
    async def get(self, violation_id: str) -> Optional[Violation]:
        pass

    @abstractmethod
    async def list(self, query: Optional[ViolationQuery] = None) -> List[Violation]:
        """Violations filtrées, triées par date de détection."""
        pass

    @abstractmethod
    async def compare_and_set_status(
        self,
        violation_id: str,
        expected: ResolutionStatus,
        new_status: ResolutionStatus,
        notes: Optional[str] = None,
    ) -> Optional[Violation]:
        """
        Mise à jour conditionnelle du statut.

        Returns:
            Violation mise à jour, None si le statut courant != expected

        Raises:
            RecordNotFoundError: Identifiant inconnu
        """
        pass


class IImmediateResponder(ABC):
    """Collaborateur de blocage / alerte (VIOL_002)."""

    @abstractmethod
    async def trigger(self, response: ImmediateResponse) -> None:
        """
        Déclenche la réponse immédiate.

        Raises:
            Exception: Propagée à l'appelant de report
        """
        pass


class IPlatformScanner(ABC):
    """Recherche de violations suspectées sur une plateforme."""

    @abstractmethod
    async def scan(self, platform: str) -> List[ViolationReport]:
        """Retourne les violations suspectées (liste vide si aucune)."""
        pass


class IViolationPipeline(ABC):
    """Interface pipeline de violations."""

    @abstractmethod
    async def report(self, report: ViolationReport) -> Violation:
        """Enregistre et publie une violation (VIOL_001-004)."""
        pass

    @abstractmethod
    async def update_status(
        self,
        violation_id: str,
        status: ResolutionStatus,
        notes: Optional[str] = None,
    ) -> Violation:
        """Change le statut de résolution (VIOL_005-006)."""
        pass

    @abstractmethod
    async def handle_message(self, topic: str, key: Optional[str], payload: Mapping[str, Any]) -> bool:
        """Traite un message du flux (VIOL_007)."""
        pass
