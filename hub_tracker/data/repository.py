"""
SQLite implementations of the repository manager, package manager and
image store.
"""

import hashlib
import json
from datetime import datetime
from typing import Dict, List, Optional

from hub_tracker.hub.interfaces import HTTPGetter, ImageStore, PackageManager, RepositoryManager
from hub_tracker.hub.metadata import load_repository_metadata
from hub_tracker.hub.models import Package, Repository, RepositoryKind, RepositoryMetadata, package_key
from hub_tracker.utils.errors import DatabaseError
from hub_tracker.utils.logging import get_business_logger
from .sqlite_database import SQLiteDatabaseManager


def _check_ctx(ctx) -> None:
    if ctx is not None:
        ctx.raise_if_cancelled()


class SQLiteRepositoryManager(RepositoryManager):
    """Repositories stored in the hub database."""

    def __init__(self, db_manager: SQLiteDatabaseManager, http_getter: Optional[HTTPGetter] = None):
        self.db_manager = db_manager
        self.http_getter = http_getter
        self.logger = get_business_logger('repository')

    def add(self, r: Repository) -> None:
        """Add a repository to the hub."""
        self.db_manager.execute_update(
            """
            INSERT INTO repositories
                (repository_id, name, kind, url, branch, digest, verified_publisher, disabled)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (r.repository_id, r.name, int(r.kind), r.url, r.branch, r.digest,
             int(r.verified_publisher), int(r.disabled))
        )
        self.logger.info(f"Repository added: {r.name}")

    def get_by_name(self, name: str) -> Optional[Repository]:
        rows = self.db_manager.execute_query(
            "SELECT * FROM repositories WHERE name = ?", (name,)
        )
        return self._row_to_repository(rows[0]) if rows else None

    def get_all(
        self,
        names: Optional[List[str]] = None,
        kinds: Optional[List[RepositoryKind]] = None,
        include_disabled: bool = False
    ) -> List[Repository]:
        query = "SELECT * FROM repositories WHERE 1 = 1"
        params: list = []

        if names:
            query += f" AND name IN ({', '.join('?' for _ in names)})"
            params.extend(names)
        if kinds:
            query += f" AND kind IN ({', '.join('?' for _ in kinds)})"
            params.extend(int(k) for k in kinds)
        if not include_disabled:
            query += " AND disabled = 0"
        query += " ORDER BY name"

        rows = self.db_manager.execute_query(query, tuple(params))
        return [self._row_to_repository(row) for row in rows]

    def get_metadata(self, path: str) -> RepositoryMetadata:
        return load_repository_metadata(path, self.http_getter)

    def set_verified_publisher(self, ctx, repository_id: str, verified: bool) -> None:
        _check_ctx(ctx)
        updated = self.db_manager.execute_update(
            "UPDATE repositories SET verified_publisher = ? WHERE repository_id = ?",
            (int(verified), repository_id)
        )
        if updated == 0:
            raise DatabaseError("Repository not found", {"repository_id": repository_id})

    def set_last_tracking_results(self, ctx, repository_id: str, errors: str) -> None:
        self.db_manager.execute_update(
            """
            UPDATE repositories
            SET last_tracking_ts = ?, last_tracking_errors = ?
            WHERE repository_id = ?
            """,
            (datetime.now().isoformat(), errors or None, repository_id)
        )

    def get_last_tracking_errors(self, repository_id: str) -> Optional[str]:
        rows = self.db_manager.execute_query(
            "SELECT last_tracking_errors FROM repositories WHERE repository_id = ?",
            (repository_id,)
        )
        return rows[0]["last_tracking_errors"] if rows else None

    def update_digest(self, ctx, repository_id: str, digest: str) -> None:
        _check_ctx(ctx)
        self.db_manager.execute_update(
            "UPDATE repositories SET digest = ? WHERE repository_id = ?",
            (digest, repository_id)
        )

    @staticmethod
    def _row_to_repository(row) -> Repository:
        return Repository(
            repository_id=row["repository_id"],
            name=row["name"],
            kind=RepositoryKind(row["kind"]),
            url=row["url"],
            branch=row["branch"],
            digest=row["digest"],
            verified_publisher=bool(row["verified_publisher"]),
            disabled=bool(row["disabled"])
        )


class SQLitePackageManager(PackageManager):
    """Packages registered in the hub database."""

    def __init__(self, db_manager: SQLiteDatabaseManager):
        self.db_manager = db_manager
        self.logger = get_business_logger('repository')

    def get_packages_digest(self, ctx, repository_id: str) -> Dict[str, str]:
        _check_ctx(ctx)
        rows = self.db_manager.execute_query(
            "SELECT name, version, digest FROM packages WHERE repository_id = ?",
            (repository_id,)
        )
        return {package_key(row["name"], row["version"]): row["digest"] for row in rows}

    def register(self, ctx, package: Package) -> None:
        _check_ctx(ctx)
        self.db_manager.execute_update(
            """
            INSERT INTO packages
                (repository_id, name, version, digest, description, app_version,
                 logo_url, logo_image_id, content_url, data)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(repository_id, name, version) DO UPDATE SET
                digest = excluded.digest,
                description = excluded.description,
                app_version = excluded.app_version,
                logo_url = excluded.logo_url,
                logo_image_id = excluded.logo_image_id,
                content_url = excluded.content_url,
                data = excluded.data,
                updated_at = CURRENT_TIMESTAMP
            """,
            (package.repository_id, package.name, package.version, package.digest,
             package.description, package.app_version, package.logo_url,
             package.logo_image_id, package.content_url, json.dumps(package.data))
        )

    def unregister(self, ctx, repository_id: str, name: str, version: str) -> None:
        _check_ctx(ctx)
        self.db_manager.execute_update(
            "DELETE FROM packages WHERE repository_id = ? AND name = ? AND version = ?",
            (repository_id, name, version)
        )

    def get_package(self, repository_id: str, name: str, version: str) -> Optional[Package]:
        rows = self.db_manager.execute_query(
            "SELECT * FROM packages WHERE repository_id = ? AND name = ? AND version = ?",
            (repository_id, name, version)
        )
        if not rows:
            return None
        row = rows[0]
        return Package(
            repository_id=row["repository_id"],
            name=row["name"],
            version=row["version"],
            digest=row["digest"],
            description=row["description"],
            app_version=row["app_version"],
            logo_url=row["logo_url"],
            logo_image_id=row["logo_image_id"],
            content_url=row["content_url"],
            data=json.loads(row["data"]) if row["data"] else {}
        )


class SQLiteImageStore(ImageStore):
    """Images stored in the hub database, identified by their sha256."""

    def __init__(self, db_manager: SQLiteDatabaseManager):
        self.db_manager = db_manager

    def save_image(self, ctx, data: bytes) -> str:
        _check_ctx(ctx)
        image_id = hashlib.sha256(data).hexdigest()
        self.db_manager.execute_update(
            "INSERT OR IGNORE INTO images (image_id, data) VALUES (?, ?)",
            (image_id, data)
        )
        return image_id

    def get_image(self, image_id: str) -> Optional[bytes]:
        rows = self.db_manager.execute_query(
            "SELECT data FROM images WHERE image_id = ?", (image_id,)
        )
        return bytes(rows[0]["data"]) if rows else None
