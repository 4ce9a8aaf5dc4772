"""Database table definitions for the migration run ledger"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import Mapped
from sqlmodel import Field, Relationship, SQLModel


class MigrationRun(SQLModel, table=True):
    """One invocation of the migrate command against a destination tree"""
    __tablename__ = "migration_runs"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    source: str = Field(..., sa_column=Column(Text, nullable=False))
    destination: str = Field(..., sa_column=Column(Text, nullable=False))
    target_phase: int = Field(..., nullable=False, description="Highest phase requested")
    success: Optional[bool] = Field(default=None, description="None while the run is in progress")
    dual_mode: bool = Field(default=False, nullable=False)
    started_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    finished_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=False), nullable=True))
    phases: Mapped[List["PhaseRecord"]] = Relationship(back_populates="run")
    mutations: Mapped[List["MutationRecord"]] = Relationship(back_populates="run")


class PhaseRecord(SQLModel, table=True):
    """Outcome of one phase within a run"""
    __tablename__ = "phase_records"
    __table_args__ = (UniqueConstraint("run_id", "phase", name="uq_phase_run_num"),)
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    run_id: UUID = Field(..., foreign_key="migration_runs.id", index=True, nullable=False)
    phase: int = Field(..., nullable=False)
    name: str = Field(..., nullable=False)
    success: bool = Field(..., nullable=False)
    steps_completed: int = Field(default=0, nullable=False)
    steps_total: int = Field(default=0, nullable=False)
    passed: int = Field(default=0, nullable=False)
    failed: int = Field(default=0, nullable=False)
    warnings: int = Field(default=0, nullable=False)
    summary: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    errors: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True, comment="Newline-joined"))
    run: Mapped[Optional[MigrationRun]] = Relationship(back_populates="phases")


class MutationRecord(SQLModel, table=True):
    """A single primitive outcome: which file, which strategy, what happened"""
    __tablename__ = "mutation_records"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    run_id: UUID = Field(..., foreign_key="migration_runs.id", index=True, nullable=False)
    phase: int = Field(..., nullable=False)
    position: int = Field(..., nullable=False, description="Order within the run")
    path: str = Field(..., sa_column=Column(Text, nullable=False))
    primitive: str = Field(..., nullable=False)
    strategy: str = Field(..., nullable=False)
    status: str = Field(..., nullable=False)
    detail: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    run: Mapped[Optional[MigrationRun]] = Relationship(back_populates="mutations")
