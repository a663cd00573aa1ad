"""
Core data models shared by trackers and their collaborators.
"""

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Any, List, Optional

from hub_tracker.utils.errors import ValidationError


class RepositoryKind(IntEnum):
    """Kind of a repository; selects the tracker implementation."""
    HELM = 0
    FALCO = 1
    OPA = 2
    OLM = 3
    TBACTION = 4
    KREW = 5
    HELM_PLUGIN = 6
    TEKTON_TASK = 7
    KEDA_SCALER = 8
    COREDNS = 9
    KEPTN = 10
    TEKTON_PIPELINE = 11

    @classmethod
    def from_name(cls, name: str) -> "RepositoryKind":
        """
        Parse a kind name such as 'helm' or 'tekton-task'.

        Raises:
            ValidationError: If the name is unknown
        """
        normalized = name.strip().upper().replace("-", "_")
        try:
            return cls[normalized]
        except KeyError:
            raise ValidationError(
                f"Invalid repository kind: {name}",
                {"valid_kinds": [k.name.lower() for k in cls]}
            )


@dataclass(frozen=True)
class Repository:
    """
    A repository registered in the hub.

    Instances are read-only snapshots; changes are persisted through the
    repository manager.
    """
    repository_id: str
    name: str
    kind: RepositoryKind
    url: str
    branch: Optional[str] = None
    digest: Optional[str] = None
    verified_publisher: bool = False
    disabled: bool = False


@dataclass(frozen=True)
class Owner:
    """Repository owner declared in the metadata file."""
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class IgnoreEntry:
    """Package the publisher asks the hub to ignore."""
    name: str
    version: Optional[str] = None

    def matches(self, name: str, version: str) -> bool:
        if self.name != name:
            return False
        if not self.version:
            return True
        return re.search(self.version, version) is not None


@dataclass(frozen=True)
class RepositoryMetadata:
    """Content of a repository metadata file (artifacthub-repo.yml)."""
    repository_id: Optional[str] = None
    owners: List[Owner] = field(default_factory=list)
    ignore: List[IgnoreEntry] = field(default_factory=list)

    def ignores(self, name: str, version: str) -> bool:
        """Check whether the package version is in the ignore list."""
        return any(entry.matches(name, version) for entry in self.ignore)


@dataclass
class Package:
    """A package version available in a repository."""
    repository_id: str
    name: str
    version: str
    digest: str
    description: Optional[str] = None
    app_version: Optional[str] = None
    logo_url: Optional[str] = None
    logo_image_id: Optional[str] = None
    content_url: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return package_key(self.name, self.version)

    def validate(self) -> None:
        """
        Validate required package fields.

        Raises:
            ValidationError: If the package is incomplete
        """
        errors = []
        if not self.name:
            errors.append("name not provided")
        if not self.version:
            errors.append("version not provided")
        if not self.digest:
            errors.append("digest not provided")
        if errors:
            raise ValidationError(
                "Invalid package",
                {"package": self.key, "error": ", ".join(errors)}
            )


def package_key(name: str, version: str) -> str:
    """Key identifying a package version within a repository."""
    return f"{name}@{version}"


def split_package_key(key: str) -> tuple:
    """Inverse of package_key: returns (name, version)."""
    name, _, version = key.rpartition("@")
    return name, version
