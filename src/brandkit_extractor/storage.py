from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from brandkit_extractor.models import BrandKit

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Project:
    project_id: str
    url: str
    created_at: str
    updated_at: str
    brand_kit: BrandKit
    current_version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.project_id,
            "url": self.url,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "currentVersion": self.current_version,
            **self.brand_kit.to_dict(),
        }


@dataclass(frozen=True)
class ProjectVersion:
    project_id: str
    version_number: int
    created_at: str
    data: BrandKit

    def to_dict(self, include_data: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "projectId": self.project_id,
            "versionNumber": self.version_number,
            "createdAt": self.created_at,
        }
        if include_data:
            out["data"] = self.data.to_dict()
        return out


class ProjectStore:
    """
    One directory per project:

        projects/<id>/project.json        current record
        projects/<id>/versions/v<n>.json  append-only snapshots of earlier kits

    Writes are last-write-wins; there is no conflict detection.
    """

    def __init__(self, root_dir: Path | str) -> None:
        self.root_dir = Path(root_dir).resolve()
        self.projects_dir = self.root_dir / "projects"
        self.projects_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._index: set[str] = set()
        self.refresh()

    def refresh(self) -> None:
        """Re-scan the disk; picks up projects written by other processes."""
        self._index = {p.parent.name for p in self.projects_dir.glob("*/project.json")}

    def create_project(self, url: str, brand_kit: BrandKit) -> Project:
        project_id = uuid.uuid4().hex[:12]
        (self.projects_dir / project_id / "versions").mkdir(parents=True, exist_ok=True)
        now = _now_iso()
        proj = Project(
            project_id=project_id,
            url=url,
            created_at=now,
            updated_at=now,
            brand_kit=brand_kit,
        )
        self._write_project(proj)
        self._index.add(project_id)
        return proj

    def list_projects(self) -> list[Project]:
        out: list[Project] = []
        for project_id in sorted(self._index):
            try:
                out.append(self.read_project(project_id))
            except (OSError, ValueError, KeyError) as exc:
                # A half-written or foreign directory should not break the listing.
                logger.warning("Skipping unreadable project %s: %s", project_id, exc)
        out.sort(key=lambda p: p.created_at, reverse=True)
        return out

    def read_project(self, project_id: str) -> Project:
        data = json.loads(self._project_path(project_id).read_text("utf-8"))
        return Project(
            project_id=data["project_id"],
            url=data["url"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at") or data["created_at"],
            brand_kit=BrandKit.from_dict(data.get("brand_kit")),
            current_version=int(data.get("current_version", 0)),
        )

    def exists(self, project_id: str) -> bool:
        return self._project_path(project_id).exists()

    def save_brand_kit(self, project_id: str, brand_kit: BrandKit) -> Project:
        """
        Replace the project's kit. The kit being replaced is appended to the
        version history first, so history only ever grows.
        """
        with self._lock:
            proj = self.read_project(project_id)
            if proj.brand_kit.to_dict() == brand_kit.to_dict():
                return proj
            version_number = self._next_version_number(project_id)
            self._write_version(
                ProjectVersion(
                    project_id=project_id,
                    version_number=version_number,
                    created_at=proj.updated_at,
                    data=proj.brand_kit,
                )
            )
            proj.brand_kit = brand_kit
            proj.current_version = version_number
            proj.updated_at = _now_iso()
            self._write_project(proj)
            return proj

    def list_versions(self, project_id: str) -> list[ProjectVersion]:
        versions_dir = self.projects_dir / project_id / "versions"
        out = [self._read_version_file(p) for p in versions_dir.glob("v*.json")]
        out.sort(key=lambda v: v.version_number, reverse=True)
        return out

    def read_version(self, project_id: str, version_number: int) -> ProjectVersion:
        path = self.projects_dir / project_id / "versions" / f"v{int(version_number)}.json"
        return self._read_version_file(path)

    def delete_project(self, project_id: str) -> bool:
        """Remove the whole record. Returns False when nothing was deleted."""
        if project_id not in self._index:
            return False
        proj_dir = (self.projects_dir / project_id).resolve()
        if not str(proj_dir).startswith(str(self.projects_dir) + os.sep):
            raise ValueError("Refusing to delete outside projects_dir")
        self._index.discard(project_id)
        if not proj_dir.exists():
            return False
        shutil.rmtree(proj_dir)
        return True

    def _project_path(self, project_id: str) -> Path:
        if not project_id or "/" in project_id or ".." in project_id:
            raise FileNotFoundError(project_id)
        return self.projects_dir / project_id / "project.json"

    def _next_version_number(self, project_id: str) -> int:
        existing = [v.version_number for v in self.list_versions(project_id)]
        return max(existing, default=0) + 1

    def _read_version_file(self, path: Path) -> ProjectVersion:
        data = json.loads(path.read_text("utf-8"))
        return ProjectVersion(
            project_id=data["project_id"],
            version_number=int(data["version_number"]),
            created_at=data["created_at"],
            data=BrandKit.from_dict(data.get("data")),
        )

    def _write_version(self, version: ProjectVersion) -> None:
        versions_dir = self.projects_dir / version.project_id / "versions"
        versions_dir.mkdir(parents=True, exist_ok=True)
        path = versions_dir / f"v{version.version_number}.json"
        payload = {
            "project_id": version.project_id,
            "version_number": version.version_number,
            "created_at": version.created_at,
            "data": version.data.to_dict(),
        }
        # "x" mode: an existing snapshot is never overwritten.
        with path.open("x", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

    def _write_project(self, proj: Project) -> None:
        proj_dir = self.projects_dir / proj.project_id
        proj_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "project_id": proj.project_id,
            "url": proj.url,
            "created_at": proj.created_at,
            "updated_at": proj.updated_at,
            "current_version": proj.current_version,
            "brand_kit": proj.brand_kit.to_dict(),
        }
        tmp = proj_dir / "project.json.tmp"
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(proj_dir / "project.json")
