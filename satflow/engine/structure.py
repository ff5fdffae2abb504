"""Fixed two-section, two-module test structure."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, NamedTuple

from satflow.engine.errors import ConfigurationError
from satflow.engine.questions import Section

SECTION_COUNT = 2
MODULES_PER_SECTION = 2


class ModuleRef(NamedTuple):
    """Zero-based (section, module) position in the structure."""

    section_index: int
    module_index: int

    @property
    def module_number(self) -> int:
        return self.module_index + 1


@dataclass(frozen=True)
class ModuleConfig:
    section: str
    module_number: int
    questions: int
    time_seconds: int

    @property
    def time_minutes(self) -> int:
        return self.time_seconds // 60


@dataclass(frozen=True)
class SectionConfig:
    name: str
    display_name: str
    modules: tuple[ModuleConfig, ...]

    @property
    def total_questions(self) -> int:
        return sum(module.questions for module in self.modules)

    @property
    def total_time_seconds(self) -> int:
        return sum(module.time_seconds for module in self.modules)


@dataclass(frozen=True)
class TestStructure:
    sections: tuple[SectionConfig, ...]

    def validate(self) -> "TestStructure":
        """Reject tables that cannot drive a countdown or a module."""
        if len(self.sections) != SECTION_COUNT:
            raise ConfigurationError(
                f"Expected {SECTION_COUNT} sections, got {len(self.sections)}"
            )
        names = [section.name for section in self.sections]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate section names: {names}")
        for section in self.sections:
            if len(section.modules) != MODULES_PER_SECTION:
                raise ConfigurationError(
                    f"Section '{section.name}' must have {MODULES_PER_SECTION} "
                    f"modules, got {len(section.modules)}"
                )
            for module in section.modules:
                if module.section != section.name:
                    raise ConfigurationError(
                        f"Module {module.module_number} is tagged "
                        f"'{module.section}' inside section '{section.name}'"
                    )
                if module.questions <= 0:
                    raise ConfigurationError(
                        f"{section.name} module {module.module_number} "
                        "has no questions"
                    )
                if module.time_seconds <= 0:
                    raise ConfigurationError(
                        f"{section.name} module {module.module_number} "
                        "has no time limit"
                    )
        return self

    def refs(self) -> Iterator[ModuleRef]:
        """All module positions in delivery order."""
        for section_index, section in enumerate(self.sections):
            for module_index in range(len(section.modules)):
                yield ModuleRef(section_index, module_index)

    def first_ref(self) -> ModuleRef:
        return ModuleRef(0, 0)

    def section(self, ref: ModuleRef) -> SectionConfig:
        return self.sections[ref.section_index]

    def module(self, ref: ModuleRef) -> ModuleConfig:
        return self.sections[ref.section_index].modules[ref.module_index]

    def section_name(self, ref: ModuleRef) -> str:
        return self.sections[ref.section_index].name

    def is_last_in_section(self, ref: ModuleRef) -> bool:
        return ref.module_index == len(self.section(ref).modules) - 1

    def is_last_section(self, ref: ModuleRef) -> bool:
        return ref.section_index == len(self.sections) - 1

    def next_in_section(self, ref: ModuleRef) -> ModuleRef:
        return ModuleRef(ref.section_index, ref.module_index + 1)

    def first_of_next_section(self, ref: ModuleRef) -> ModuleRef:
        return ModuleRef(ref.section_index + 1, 0)

    @property
    def total_questions(self) -> int:
        return sum(section.total_questions for section in self.sections)


def build_structure(
    rows: dict[str, tuple[str, list[tuple[int, int]]]],
) -> TestStructure:
    """
    Build a structure from ``{name: (display_name, [(questions, seconds), ...])}``.
    Sections are delivered in mapping order.
    """
    sections = []
    for name, (display_name, modules) in rows.items():
        sections.append(
            SectionConfig(
                name=name,
                display_name=display_name,
                modules=tuple(
                    ModuleConfig(
                        section=name,
                        module_number=index + 1,
                        questions=questions,
                        time_seconds=seconds,
                    )
                    for index, (questions, seconds) in enumerate(modules)
                ),
            )
        )
    return TestStructure(sections=tuple(sections)).validate()


SAT_TEST_STRUCTURE = build_structure(
    {
        Section.READING_WRITING.value: (
            "Reading and Writing",
            [(27, 32 * 60), (27, 32 * 60)],
        ),
        Section.MATH.value: ("Math", [(22, 35 * 60), (22, 35 * 60)]),
    }
)


MODULE_DIRECTIONS: dict[str, dict[int, str]] = {
    Section.READING_WRITING.value: {
        1: (
            "The questions in this section address a number of important "
            "reading and writing skills. Each question includes one or more "
            "passages, which may include a table or graph. Read each passage "
            "and question carefully, and then choose the best answer to the "
            "question based on the passage(s).\n\n"
            "All questions in this section are multiple-choice with four "
            "answer choices. Each question has a single best answer."
        ),
        2: "The second module continues the section. Keep answering carefully "
        "and strategically.",
    },
    Section.MATH.value: {
        1: (
            "The questions in this section address a number of important math "
            "skills.\n\nUse of a calculator is permitted for all questions.\n\n"
            "Unless otherwise indicated, all variables and expressions "
            "represent real numbers, figures provided are drawn to scale and "
            "all figures lie in a plane."
        ),
        2: "The second module continues the section.",
    },
}


def module_directions(structure: TestStructure, ref: ModuleRef) -> dict[str, object]:
    """Directions screen payload for a module."""
    section = structure.section(ref)
    module = structure.module(ref)
    text = MODULE_DIRECTIONS.get(section.name, {}).get(module.module_number, "")
    return {
        "title": f"{section.display_name} - Module {module.module_number}",
        "timeMinutes": module.time_minutes,
        "questions": module.questions,
        "text": text,
    }
