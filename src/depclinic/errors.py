"""
Error types raised by the dependency analysis.

Every error carries the artifact, class or file it is about so callers can
report it without a stack trace.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class DepClinicError(Exception):
    """Base class for all depclinic failures."""


class ClassFileError(DepClinicError):
    """A class file could not be parsed."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Unable to parse class file {source}: {reason}")


class UnresolvableArtifactError(DepClinicError):
    """An artifact's binary content could not be opened or analyzed."""

    def __init__(self, artifact: str, path: Optional[Union[str, Path]] = None, reason: str = ""):
        self.artifact = artifact
        self.path = path
        msg = f"Unable to analyze artifact {artifact}"
        if path is not None:
            msg += f" ({path})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class MalformedReferenceGraphError(DepClinicError):
    """A reference graph file is not a parseable edge list."""

    def __init__(self, path: Union[str, Path], line: Optional[int] = None, reason: str = ""):
        self.path = path
        self.line = line
        where = f"{path}:{line}" if line is not None else str(path)
        super().__init__(f"Unable to analyze reference graph {where}" + (f": {reason}" if reason else ""))


class BuildModelError(DepClinicError):
    """The resolved dependency graph exported by the build tool is invalid."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = path
        super().__init__(f"Invalid build model {path}: {reason}")


class ReportWriteError(DepClinicError):
    """The dependency report could not be written."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = path
        super().__init__(f"Unable to write dependency report {path}: {reason}")


class ReportReadError(DepClinicError):
    """The dependency report could not be read back."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = path
        super().__init__(f"Error reading dependency report {path}: {reason}")


class ConfigError(DepClinicError):
    """The depclinic configuration file is missing, unreadable or invalid."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = path
        super().__init__(f"配置加载失败 {path}: {reason}")
