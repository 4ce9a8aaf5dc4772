"""Run ledger persistence: start/finish runs, record phases and the mutation journal"""

from datetime import datetime
from uuid import UUID

from sqlmodel import Session, select

from mdmigrate.core.context import JournalEntry
from mdmigrate.core.phases import PhaseReport
from mdmigrate.crud.models import MigrationRun, MutationRecord, PhaseRecord


def start_run(session: Session, source: str, destination: str, target_phase: int) -> MigrationRun:
    """Insert an in-progress run and return it (flushed, so its id is usable)."""
    run = MigrationRun(source=source, destination=destination, target_phase=target_phase)
    session.add(run)
    session.flush()
    return run


def record_phase(session: Session, run: MigrationRun, rep: PhaseReport) -> PhaseRecord:
    """Store one phase report; a re-recorded phase replaces the earlier row."""
    existing = session.exec(
        select(PhaseRecord)
        .where(PhaseRecord.run_id == run.id)
        .where(PhaseRecord.phase == int(rep.phase))
    ).one_or_none()
    if existing is not None:
        session.delete(existing)
        session.flush()

    counts = rep.validation.counts()
    record = PhaseRecord(
        run_id=run.id,
        phase=int(rep.phase),
        name=rep.name,
        success=rep.success,
        steps_completed=rep.steps_completed,
        steps_total=rep.steps_total,
        passed=counts['passed'],
        failed=counts['failed'],
        warnings=len(rep.warnings),
        summary=rep.summary or None,
        errors="\n".join(rep.errors) or None,
    )
    session.add(record)
    session.flush()
    return record


def record_journal(session: Session, run: MigrationRun, journal: list[JournalEntry]) -> int:
    """Append journal entries not yet stored for the run; returns the number added."""
    stored = len(session.exec(select(MutationRecord.id).where(MutationRecord.run_id == run.id)).all())
    for position, entry in enumerate(journal[stored:], start=stored):
        o = entry.outcome
        session.add(MutationRecord(
            run_id=run.id, phase=entry.phase, position=position,
            path=o.path, primitive=o.primitive, strategy=o.strategy, status=o.status, detail=o.detail or None,
        ))
    session.flush()
    return max(len(journal) - stored, 0)


def finish_run(session: Session, run: MigrationRun, success: bool, dual_mode: bool = False) -> MigrationRun:
    run.success = success
    run.dual_mode = dual_mode
    run.finished_at = datetime.now()
    session.add(run)
    session.flush()
    return run


def list_runs(session: Session, limit: int = 20) -> list[MigrationRun]:
    """Return the most recent runs, newest first."""
    return list(session.exec(select(MigrationRun).order_by(MigrationRun.started_at.desc()).limit(limit)).all())


def get_run(session: Session, run_id: UUID) -> MigrationRun | None:
    return session.get(MigrationRun, run_id)


def get_phases(session: Session, run_id: UUID) -> list[PhaseRecord]:
    """Return phase records for a run ordered by phase number."""
    return list(session.exec(select(PhaseRecord).where(PhaseRecord.run_id == run_id).order_by(PhaseRecord.phase)).all())


def get_mutations(session: Session, run_id: UUID, status: str = None) -> list[MutationRecord]:
    """Return the run's mutation journal in order, optionally filtered by status."""
    query = select(MutationRecord).where(MutationRecord.run_id == run_id)
    if status:
        query = query.where(MutationRecord.status == status)
    return list(session.exec(query.order_by(MutationRecord.position)).all())
