"""
Pydantic-based schema validation for depclinic configuration (depclinic.yaml
or ``[tool.depclinic]`` in pyproject.toml).

Goals
- Catch unknown or misspelled keys early
- Enforce proper types for every field
- Check ignore entries look like ``group:artifact`` (fnmatch wildcards allowed)
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DepClinicConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Optional[str] = None
    build_model: Optional[str] = None
    classes: Optional[str] = None
    dot_dir: Optional[str] = None
    classpath_configuration: Optional[str] = None
    configurations: Optional[List[str]] = None
    source_only_configurations: Optional[List[str]] = None
    ignore: List[str] = Field(default_factory=list)
    ignore_unused: Optional[List[str]] = None
    ignore_implicit: Optional[List[str]] = None
    output: Optional[str] = None
    report_name: Optional[str] = None
    workers: Optional[int] = Field(default=None, ge=1)
    render: Optional[str] = None

    @field_validator("ignore", "ignore_unused", "ignore_implicit")
    @classmethod
    def _group_artifact(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        for entry in value:
            group, sep, artifact = entry.partition(":")
            if not sep or not group or not artifact:
                raise ValueError(f"ignore entry '{entry}' must be 'group:artifact'")
        return value

    @field_validator("configurations")
    @classmethod
    def _non_empty(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is not None and not value:
            raise ValueError("configurations must list at least one configuration")
        return value

    @field_validator("render")
    @classmethod
    def _render_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in {"svg", "png", "pdf"}:
            raise ValueError("render must be one of svg, png, pdf")
        return value


def validate_config_data(data: dict) -> DepClinicConfigModel:
    """Validate loaded config data.

    Raises:
        pydantic.ValidationError if validation fails.
    """
    return DepClinicConfigModel.model_validate(data)
