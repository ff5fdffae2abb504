"""Timed multi-module test delivery engine."""
from satflow.engine.errors import (
    ConfigurationError,
    EngineError,
    InvalidTransitionError,
    ModuleFinalizedError,
    PersistenceError,
    UnknownQuestionError,
)
from satflow.engine.flow import Phase, Trigger, next_state
from satflow.engine.orchestrator import SessionOrchestrator
from satflow.engine.questions import Question, Section
from satflow.engine.report import FinalReport, build_final_report
from satflow.engine.scoring import (
    ScoreResult,
    Tally,
    calculate_score,
    composite_score,
    scaled_section_score,
)
from satflow.engine.store import ModuleData, TestSession
from satflow.engine.structure import SAT_TEST_STRUCTURE, ModuleRef, TestStructure
from satflow.engine.timer import ModuleTimer

__all__ = [
    "ConfigurationError",
    "EngineError",
    "InvalidTransitionError",
    "ModuleFinalizedError",
    "PersistenceError",
    "UnknownQuestionError",
    "Phase",
    "Trigger",
    "next_state",
    "SessionOrchestrator",
    "Question",
    "Section",
    "FinalReport",
    "build_final_report",
    "ScoreResult",
    "Tally",
    "calculate_score",
    "composite_score",
    "scaled_section_score",
    "ModuleData",
    "TestSession",
    "SAT_TEST_STRUCTURE",
    "ModuleRef",
    "TestStructure",
    "ModuleTimer",
]
