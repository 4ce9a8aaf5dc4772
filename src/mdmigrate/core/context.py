"""Per-run migration context shared by the executor, phases and plugin handlers"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from mdmigrate.config import Settings
from mdmigrate.core.merge.accumulator import ConfigAccumulator
from mdmigrate.core.mutate.targets import MutationOutcome, TargetRole, resolve_role
from mdmigrate.core.utils.fs import FileSystem


logger = logging.getLogger(__name__)


@dataclass
class JournalEntry:
    phase: int
    outcome: MutationOutcome


@dataclass
class MigrationContext:
    """Everything a phase needs; the accumulator lives for the whole run."""
    settings:         Settings
    source:           Path
    destination:      Path
    fs:               FileSystem = field(default_factory=FileSystem)
    values:           dict[str, str] = field(default_factory=dict)
    accumulator:      ConfigAccumulator | None = None
    phase:            int = 0
    normalize:        bool = False      # rewrite <Name>/YOUR_NAME placeholders in config blocks
    warnings:         list[str] = field(default_factory=list)
    errors:           list[str] = field(default_factory=list)
    journal:          list[JournalEntry] = field(default_factory=list)
    pending_packages: list[str] = field(default_factory=list)

    def __post_init__(self):
        self.source = Path(self.source)
        self.destination = Path(self.destination)
        if self.accumulator is None:
            self.accumulator = ConfigAccumulator(
                self.settings.template_config, self.settings.local_config, self.fs,
            )

    @property
    def docs(self) -> Path:
        return self.source / self.settings.docs_dir

    @property
    def template_config(self) -> Path:
        return self.destination / self.settings.template_config

    @property
    def local_config(self) -> Path:
        return self.destination / self.settings.local_config

    def path_for(self, role: TargetRole) -> Path:
        return resolve_role(role, self.destination, self.settings.role_paths)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def record(self, outcome: MutationOutcome) -> MutationOutcome:
        self.journal.append(JournalEntry(self.phase, outcome))
        logger.debug("%s %s %s via %s", outcome.status, outcome.primitive, outcome.path, outcome.strategy)
        return outcome
