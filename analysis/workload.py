from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from normalize.quantity import Quantity


class WorkloadKind(str, Enum):
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSets"


class Action(str, Enum):
    GOOD = "Good"
    NEED_UPDATE = "Need update"
    NEED_REMOVE = "Need remove"


@dataclass(frozen=True)
class WorkloadIdentity:
    kind: WorkloadKind
    namespace: str
    name: str


@dataclass
class Resources:
    cpu: Quantity = field(default_factory=Quantity.zero)
    memory: Quantity = field(default_factory=Quantity.zero)

    def add(self, cpu: Quantity, memory: Quantity) -> None:
        self.cpu += cpu
        self.memory += memory


@dataclass
class WorkloadSnapshot:
    """Aggregated state of one workload for one report row.

    `replicas` counts live pods seen by the metrics API, not the desired
    replica count of the workload spec.
    """
    identity: WorkloadIdentity
    replicas: int = 0
    requested: Resources = field(default_factory=Resources)
    observed: Resources = field(default_factory=Resources)


@dataclass(frozen=True)
class Verdict:
    action: Action
    note: Optional[str] = None
