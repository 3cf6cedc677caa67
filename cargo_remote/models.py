from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CopyBack:
    """Request to pull build output back; an empty selector means the whole target dir."""

    selector: str = ""

    @classmethod
    def from_value(cls, value: Any) -> Optional["CopyBack"]:
        if value is None or value is False:
            return None
        if value is True:
            return cls()
        return cls(selector=str(value))


@dataclass(frozen=True)
class BuildOptions:
    """Resolved configuration for one remote build."""

    build_server: str
    build_env: Tuple[str, ...] = ("RUST_BACKTRACE=1",)
    toolchain: str = "stable"
    env_profile: str = "/etc/profile"
    copy_back: Optional[CopyBack] = None
    copy_lock: bool = True
    transfer_hidden: bool = False
    pass_through_args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ProjectContext:
    """Where the project lives locally and where it is built remotely."""

    root: Path
    build_path: str
    manifest_path: Path

    @property
    def lockfile(self) -> Path:
        return self.root / "Cargo.lock"


@dataclass
class StageResult:
    """Summary emitted by a pipeline stage."""

    name: str
    status: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.name, "status": self.status, "details": self.details}

    @property
    def failed(self) -> bool:
        return self.status == "failed"


@dataclass
class PipelineOutcome:
    """Final exit code of a run together with every stage result."""

    exit_code: int
    results: List[StageResult] = field(default_factory=list)
    build_returncode: Optional[int] = None

    def stage(self, name: str) -> Optional[StageResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exit_code": self.exit_code,
            "build_returncode": self.build_returncode,
            "stages": [result.to_dict() for result in self.results],
        }
