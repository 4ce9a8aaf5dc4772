"""Parsed document models produced by the markdown parser"""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StepKind(str, Enum):
    """How a step was recognised in the source text"""
    numbered = "numbered"
    action = "action"


class CodeBlock(BaseModel):
    """A fenced block; content is not validated against its language."""
    model_config = ConfigDict(frozen=True)

    language: str
    content: str
    line: Optional[int] = None      # 0-based source line of the opening fence


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: Optional[int] = None    # None for action bullets
    kind: StepKind
    instruction_text: str
    snippet: Optional[CodeBlock] = None
    line: Optional[int] = None      # 0-based source line of the step


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    level: int
    raw_content: str
    steps: list[Step] = []
    line: Optional[int] = None      # 0-based source line of the heading


class Link(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    target: str


class ProviderReference(BaseModel):
    """A pointer to a provider-specific auth document, e.g. GithubAuth.md"""
    model_config = ConfigDict(frozen=True)

    name: str
    file: str


class ParsedDocument(BaseModel):
    """Structured view of one markdown setup guide; immutable once parsed."""
    model_config = ConfigDict(frozen=True)

    path: Path
    title: str
    sections: list[Section] = []
    steps: list[Step] = []
    code_blocks: list[CodeBlock] = []
    links: list[Link] = []
    requirements: list[str] = []
    provider_references: list[ProviderReference] = []
    hash: str = ""
