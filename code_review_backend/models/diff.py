"""Diff-related data models"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class SectionLabel(str, Enum):
    """Labels of the sections a diff bundle can hold"""

    STAGED = "STAGED CHANGES"
    UNSTAGED = "UNSTAGED CHANGES"
    BRANCH = "BRANCH DIFF"


class DiffSection(BaseModel):
    """A labeled chunk of raw `git diff` output"""

    model_config = ConfigDict(frozen=True)

    label: SectionLabel
    body: str  # Raw diff text, kept verbatim

    @field_validator("body")
    @classmethod
    def body_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("diff section body must not be empty")
        return value

    def render(self) -> str:
        return f"=== {self.label.value} ===\n{self.body}"


class DiffBundle(BaseModel):
    """Ordered, immutable collection of diff sections for one request"""

    model_config = ConfigDict(frozen=True)

    sections: tuple[DiffSection, ...] = ()

    @classmethod
    def from_sections(cls, sections: Iterable[tuple[SectionLabel, str]]) -> DiffBundle:
        """Build a bundle, dropping sections whose body is only whitespace"""
        return cls(
            sections=tuple(
                DiffSection(label=label, body=body)
                for label, body in sections
                if body.strip()
            )
        )

    @property
    def is_empty(self) -> bool:
        return not self.sections

    @property
    def labels(self) -> list[SectionLabel]:
        return [section.label for section in self.sections]

    def get(self, label: SectionLabel) -> DiffSection | None:
        for section in self.sections:
            if section.label == label:
                return section
        return None

    def render(self) -> str:
        """Concatenate the labeled sections in bundle order"""
        return "\n".join(section.render() for section in self.sections)


class ResolvedRef(BaseModel):
    """Result of resolving a user-supplied branch name"""

    model_config = ConfigDict(frozen=True)

    name: str  # As requested
    ref: str  # As accepted by `git rev-parse --verify`
    is_remote: bool = False
