"""
Loading and validation of the metadata files publishers keep in their
repositories.

Two files are supported:
- artifacthub-repo.yml: repository ownership claim and ignore list
- artifacthub-pkg.yml: description of a single package version
"""

import hashlib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from jsonschema import validate, ValidationError as SchemaValidationError

from hub_tracker.hub.models import IgnoreEntry, Owner, Package, RepositoryMetadata
from hub_tracker.utils.errors import MetadataError


REPOSITORY_METADATA_FILE = "artifacthub-repo.yml"
PACKAGE_METADATA_FILES = ("artifacthub-pkg.yml", "artifacthub-pkg.yaml")

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

REPOSITORY_METADATA_SCHEMA = {
    "type": "object",
    "properties": {
        "repositoryID": {"type": "string", "pattern": UUID_PATTERN},
        "owners": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": ["string", "null"]},
                    "email": {"type": ["string", "null"]}
                }
            }
        },
        "ignore": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "version": {"type": ["string", "null"]}
                },
                "required": ["name"]
            }
        }
    }
}

PACKAGE_METADATA_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "version": {"type": ["string", "number"]},
        "displayName": {"type": ["string", "null"]},
        "description": {"type": ["string", "null"]},
        "appVersion": {"type": ["string", "number", "null"]},
        "logoURL": {"type": ["string", "null"]}
    },
    "required": ["name", "version"]
}


def is_remote(location: str) -> bool:
    return location.startswith("http://") or location.startswith("https://")


def read_location(location: str, http_getter=None) -> bytes:
    """
    Read the raw content of a local path or a remote URL.

    Raises:
        MetadataError: If the content cannot be read
    """
    if is_remote(location):
        if http_getter is None:
            raise MetadataError("No HTTP getter available", {"location": location})
        try:
            resp = http_getter.get(location)
        except Exception as e:
            raise MetadataError(
                "Error fetching metadata file",
                {"location": location, "error": str(e)}
            )
        if resp.status_code != 200:
            raise MetadataError(
                f"Unexpected status code received: {resp.status_code}",
                {"location": location}
            )
        return resp.content

    try:
        return Path(location).read_bytes()
    except OSError as e:
        raise MetadataError(
            "Error reading metadata file",
            {"location": location, "error": str(e)}
        )


def parse_yaml(content: bytes, location: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse YAML content and validate it against a schema.

    Raises:
        MetadataError: If the content is malformed or invalid
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise MetadataError(
            "Error unmarshaling metadata file",
            {"location": location, "error": str(e)}
        )

    if not isinstance(data, dict):
        raise MetadataError("Invalid metadata file: not a mapping", {"location": location})

    try:
        validate(instance=data, schema=schema)
    except SchemaValidationError as e:
        raise MetadataError(
            "Invalid metadata file",
            {"location": location, "error": e.message}
        )

    return data


def load_repository_metadata(location: str, http_getter=None) -> RepositoryMetadata:
    """
    Load a repository metadata file from a path or URL.

    Raises:
        MetadataError: If the file is not found, malformed or unreachable
    """
    data = parse_yaml(read_location(location, http_getter), location, REPOSITORY_METADATA_SCHEMA)

    owners = [
        Owner(name=o.get("name"), email=o.get("email"))
        for o in data.get("owners") or []
    ]
    ignore = [
        IgnoreEntry(name=i["name"], version=i.get("version"))
        for i in data.get("ignore") or []
    ]

    return RepositoryMetadata(
        repository_id=data.get("repositoryID"),
        owners=owners,
        ignore=ignore
    )


def load_package_metadata(path: str, repository_id: str) -> Package:
    """
    Build a package from a package metadata file.

    The package digest is the sha256 of the file content, so any change in
    the file causes the package to be registered again.

    Raises:
        MetadataError: If the file is missing, malformed or invalid
    """
    content = read_location(path)
    data = parse_yaml(content, path, PACKAGE_METADATA_SCHEMA)

    app_version = data.get("appVersion")
    return Package(
        repository_id=repository_id,
        name=data["name"],
        version=str(data["version"]),
        digest=hashlib.sha256(content).hexdigest(),
        description=data.get("description"),
        app_version=str(app_version) if app_version is not None else None,
        logo_url=data.get("logoURL"),
        data={"display_name": data.get("displayName")} if data.get("displayName") else {}
    )


def find_package_metadata_files(packages_path: str) -> Tuple[str, ...]:
    """Paths of every package metadata file below packages_path, sorted."""
    base = Path(packages_path)
    found = []
    for file_name in PACKAGE_METADATA_FILES:
        found.extend(str(p) for p in base.rglob(file_name) if p.is_file())
    return tuple(sorted(found))


def repository_metadata_location(base: str) -> str:
    """Location of the repository metadata file under a path or URL."""
    if is_remote(base):
        return f"{base.rstrip('/')}/{REPOSITORY_METADATA_FILE}"
    return str(Path(base) / REPOSITORY_METADATA_FILE)
