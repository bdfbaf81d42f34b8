import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ReferencingSource(Protocol):
    """The only surface a dependent service must expose."""

    def find_all_referencing(self, patient_id: str) -> Sequence: ...


@dataclass
class DeletionCheck:
    allowed: bool
    blocking_reasons: List[str] = field(default_factory=list)


class DependencyChecker:
    """Decides whether a patient can be removed without orphaning records.

    ``dependents`` maps a kind label (``"appointment"``, ``"bill"``) to the
    service holding records of that kind.  A ``None`` entry means the
    dependent is not wired yet; it is treated as having no references, which
    is why :meth:`assert_wired` should be called once at startup.
    """

    def __init__(self, dependents: Dict[str, Optional[ReferencingSource]] | None = None):
        self.dependents: Dict[str, Optional[ReferencingSource]] = dict(dependents or {})

    def register(self, kind: str, source: ReferencingSource):
        self.dependents[kind] = source

    def assert_wired(self, required_kinds: Iterable[str]):
        missing = [k for k in required_kinds if self.dependents.get(k) is None]
        if missing:
            raise ConfigurationError(
                f"Dependency checker is missing dependents: {', '.join(missing)}"
            )

    def can_delete(self, patient_id: str) -> DeletionCheck:
        reasons = []
        for kind, source in self.dependents.items():
            if source is None:
                logger.warning("No %s service wired, assuming no %s references %s", kind, kind, patient_id)
                continue
            referencing = source.find_all_referencing(patient_id) or []
            if referencing:
                reasons.append(f"{len(referencing)} {kind}(s)")

        return DeletionCheck(allowed=not reasons, blocking_reasons=reasons)
