"""Offload cargo builds to a remote machine over rsync and ssh."""

__version__ = "0.2.0"

from .config import ConfigError, resolve_options
from .models import BuildOptions, CopyBack, ProjectContext
from .pipeline import RemotePipeline, PipelineContext, Stage, derive_build_path, render_remote_command

__all__ = [
    "BuildOptions",
    "ConfigError",
    "CopyBack",
    "PipelineContext",
    "ProjectContext",
    "RemotePipeline",
    "Stage",
    "derive_build_path",
    "render_remote_command",
    "resolve_options",
]
