"""Engine settings shared by the MkDocs plugin and the command-line generator."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class GeneratorConfig:
    # Macro names treated as defined when evaluating conditional blocks
    defined: frozenset = field(default_factory=frozenset)
    show_internal: bool = False
    show_excluded: bool = False
    jobs: int = 1
    # Keep caller order unless asked to sort inputs by path
    sort_files: bool = False

    def __post_init__(self):
        self.defined = frozenset(self.defined)
        self.jobs = max(1, int(self.jobs or 1))
