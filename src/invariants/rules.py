"""
DATASHIELD Framework - Invariants
Ces règles sont IMMUABLES et ne peuvent être modifiées par configuration.
Total: 42 règles
"""

from enum import Enum
from typing import Final


class Severity(Enum):
    """Criticité d'un invariant."""

    BLOCKING = "blocking"
    WARNING = "warning"


class Invariant:
    """Définition d'un invariant."""

    def __init__(self, id: str, rule: str, severity: Severity = Severity.BLOCKING):
        self.id = id
        self.rule = rule
        self.severity = severity

    def __repr__(self) -> str:
        return f"Invariant({self.id})"


# ══════════════════════════════════════════════════════════════════════════════
# LICENSING (LIC_001-012) - 9 règles
# ══════════════════════════════════════════════════════════════════════════════

LIC_001 = Invariant("LIC_001", "Type de licence dans l'énumération fermée, sinon rejet")
LIC_002 = Invariant("LIC_002", "Digest = SHA-256 de la sérialisation canonique")
LIC_003 = Invariant("LIC_003", "Signature = fonction déterministe de la sérialisation canonique + digest")
LIC_004 = Invariant("LIC_004", "Contenu jamais stocké, seulement son digest SHA-256")
LIC_005 = Invariant("LIC_005", "Validation ne lève jamais, retourne False")
LIC_006 = Invariant("LIC_006", "Licence immuable après création, sauf status")
LIC_010 = Invariant("LIC_010", "Artefacts dérivés uniquement des champs de la licence")
LIC_011 = Invariant("LIC_011", "Valeurs d'attributs HTML échappées")
LIC_012 = Invariant("LIC_012", "Chaque fichier plateforme contient le digest d'intégrité")

# ══════════════════════════════════════════════════════════════════════════════
# EVALUATION (EVAL_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

EVAL_001 = Invariant("EVAL_001", "Table de règles fixe par type de licence")
EVAL_002 = Invariant("EVAL_002", "violations vide si et seulement si compliant")
EVAL_003 = Invariant("EVAL_003", "Intégrité vérifiée avant toute règle (fail-closed)")
EVAL_004 = Invariant("EVAL_004", "Altération de licence toujours escaladée en CRITICAL")
EVAL_005 = Invariant("EVAL_005", "Toute erreur d'évaluation = non conforme (jamais fail-open)")
EVAL_006 = Invariant("EVAL_006", "Durée mesurée autour de la vérification complète", Severity.WARNING)

# ══════════════════════════════════════════════════════════════════════════════
# DEPLOYMENT (DEPL_001-016) - 10 règles
# ══════════════════════════════════════════════════════════════════════════════

# Registre
DEPL_001 = Invariant("DEPL_001", "Une stratégie par plateforme, contrat deploy + verify")
DEPL_002 = Invariant("DEPL_002", "Plateforme sans stratégie = UnknownPlatformError")
DEPL_003 = Invariant("DEPL_003", "Stratégies composées, jamais dérivées les unes des autres", Severity.WARNING)

# Fan-out
DEPL_010 = Invariant("DEPL_010", "Échec d'une plateforme n'annule ni ne retarde les autres")
DEPL_011 = Invariant("DEPL_011", "Chaque plateforme dans exactement un de successful / failed")
DEPL_012 = Invariant("DEPL_012", "Concurrence bornée (max_concurrency)")
DEPL_013 = Invariant("DEPL_013", "Classification retryable / non-retryable indicative, jamais de retry")
DEPL_014 = Invariant("DEPL_014", "success_rate = successful / total * 100, 0 si total = 0")
DEPL_015 = Invariant("DEPL_015", "Échec de vérification attaché au résultat, jamais un échec de déploiement")
DEPL_016 = Invariant("DEPL_016", "Jeton jamais journalisé ni inclus dans un résultat")

# ══════════════════════════════════════════════════════════════════════════════
# VIOLATIONS (VIOL_001-011) - 9 règles
# ══════════════════════════════════════════════════════════════════════════════

VIOL_001 = Invariant("VIOL_001", "Identifiant et date de détection attribués au report")
VIOL_002 = Invariant("VIOL_002", "Sévérité HIGH/CRITICAL déclenche la réponse immédiate avant retour")
VIOL_003 = Invariant("VIOL_003", "Sévérité LOW/MEDIUM ne déclenche jamais la réponse immédiate")
VIOL_004 = Invariant("VIOL_004", "Report idempotent sur l'identifiant")
VIOL_005 = Invariant("VIOL_005", "Transitions de statut selon la machine à états, terminaux figés")
VIOL_006 = Invariant("VIOL_006", "Mise à jour de statut conditionnelle (compare-and-set)")
VIOL_007 = Invariant("VIOL_007", "Ordre de traitement préservé par digest de licence")
VIOL_010 = Invariant("VIOL_010", "Échec d'une plateforme isolé, listé dans errors")
VIOL_011 = Invariant("VIOL_011", "Tâche planifiée arrêtable par jeton d'annulation", Severity.WARNING)

# ══════════════════════════════════════════════════════════════════════════════
# PROTECTION (PROT_001-002) - 2 règles
# ══════════════════════════════════════════════════════════════════════════════

PROT_001 = Invariant("PROT_001", "Licence stockée avant toute diffusion")
PROT_002 = Invariant("PROT_002", "Révocation = changement de status, digest inchangé")

# ══════════════════════════════════════════════════════════════════════════════
# LOGGING (LOG_001-005) - 5 règles
# ══════════════════════════════════════════════════════════════════════════════

LOG_001 = Invariant("LOG_001", "Format JSON structuré obligatoire")
LOG_002 = Invariant("LOG_002", "Champs obligatoires: timestamp, level, correlation_id, logger, message")
LOG_003 = Invariant("LOG_003", "Timestamp ISO 8601 UTC avec millisecondes")
LOG_004 = Invariant("LOG_004", "Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL")
LOG_005 = Invariant("LOG_005", "Tokens et secrets JAMAIS en clair")

# ══════════════════════════════════════════════════════════════════════════════
# OBSERVABILITY (OBS_001) - 1 règle
# ══════════════════════════════════════════════════════════════════════════════

OBS_001 = Invariant("OBS_001", "Aucun compteur global mutable, recorder injecté à la construction")


# ══════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ══════════════════════════════════════════════════════════════════════════════

ALL_INVARIANTS: Final[dict[str, Invariant]] = {
    # LIC (9)
    "LIC_001": LIC_001,
    "LIC_002": LIC_002,
    "LIC_003": LIC_003,
    "LIC_004": LIC_004,
    "LIC_005": LIC_005,
    "LIC_006": LIC_006,
    "LIC_010": LIC_010,
    "LIC_011": LIC_011,
    "LIC_012": LIC_012,
    # EVAL (6)
    "EVAL_001": EVAL_001,
    "EVAL_002": EVAL_002,
    "EVAL_003": EVAL_003,
    "EVAL_004": EVAL_004,
    "EVAL_005": EVAL_005,
    "EVAL_006": EVAL_006,
    # DEPL (10)
    "DEPL_001": DEPL_001,
    "DEPL_002": DEPL_002,
    "DEPL_003": DEPL_003,
    "DEPL_010": DEPL_010,
    "DEPL_011": DEPL_011,
    "DEPL_012": DEPL_012,
    "DEPL_013": DEPL_013,
    "DEPL_014": DEPL_014,
    "DEPL_015": DEPL_015,
    "DEPL_016": DEPL_016,
    # VIOL (9)
    "VIOL_001": VIOL_001,
    "VIOL_002": VIOL_002,
    "VIOL_003": VIOL_003,
    "VIOL_004": VIOL_004,
    "VIOL_005": VIOL_005,
    "VIOL_006": VIOL_006,
    "VIOL_007": VIOL_007,
    "VIOL_010": VIOL_010,
    "VIOL_011": VIOL_011,
    # PROT (2)
    "PROT_001": PROT_001,
    "PROT_002": PROT_002,
    # LOG (5)
    "LOG_001": LOG_001,
    "LOG_002": LOG_002,
    "LOG_003": LOG_003,
    "LOG_004": LOG_004,
    "LOG_005": LOG_005,
    # OBS (1)
    "OBS_001": OBS_001,
}

# Comptage attendu par section
EXPECTED_COUNTS: Final[dict[str, int]] = {
    "LIC": 9,
    "EVAL": 6,
    "DEPL": 10,
    "VIOL": 9,
    "PROT": 2,
    "LOG": 5,
    "OBS": 1,
}

TOTAL_INVARIANTS: Final[int] = len(ALL_INVARIANTS)
