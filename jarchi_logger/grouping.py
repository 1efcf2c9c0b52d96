from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .records import LogRecord


@dataclass
class ModuleGroup:
    name: str
    entries: list[LogRecord] = field(default_factory=list)


@dataclass
class ApplicationGroup:
    name: str
    modules: list[ModuleGroup] = field(default_factory=list)

    def module(self, name: str) -> ModuleGroup:
        for group in self.modules:
            if group.name == name:
                return group
        group = ModuleGroup(name)
        self.modules.append(group)
        return group


class LogGroups:
    """Application -> module -> entries, in display order.

    Mirrors what the browser does with live events: a new application is
    prepended, new module sections are appended inside it, and entries are
    newest-first within a module.
    """

    def __init__(self, records: Iterable[LogRecord] = ()) -> None:
        self.applications: list[ApplicationGroup] = []
        for record in records:
            self.insert(record)

    def application(self, name: str) -> ApplicationGroup:
        for group in self.applications:
            if group.name == name:
                return group
        group = ApplicationGroup(name)
        self.applications.insert(0, group)
        return group

    def insert(self, record: LogRecord) -> None:
        module = self.application(record.application).module(record.module)
        module.entries.insert(0, record)

    def __len__(self) -> int:
        return sum(len(m.entries) for app in self.applications for m in app.modules)
