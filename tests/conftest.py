import pytest
from sqlalchemy.orm import sessionmaker

from satflow.database import init_db, make_engine, make_session_factory
from satflow.engine.questions import Question
from satflow.engine.structure import TestStructure, build_structure


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def make_questions(
    section: str, count: int, prefix: str | None = None, topic: str = "general"
) -> list[Question]:
    prefix = prefix or section[:2]
    return [
        Question(
            id=f"{prefix}{index}",
            section=section,
            topic=topic,
            correct_answer="A",
        )
        for index in range(1, count + 1)
    ]


def small_structure(per_module: int = 2, seconds: int = 30) -> TestStructure:
    return build_structure(
        {
            "reading_writing": (
                "Reading and Writing",
                [(per_module, seconds), (per_module, seconds)],
            ),
            "math": ("Math", [(per_module, seconds), (per_module, seconds)]),
        }
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def structure() -> TestStructure:
    return small_structure()


@pytest.fixture
def questions() -> list[Question]:
    return make_questions("reading_writing", 4, "rw") + make_questions("math", 4, "m")


@pytest.fixture
def session_factory() -> sessionmaker:
    engine = make_engine("sqlite://")
    init_db(engine)
    return make_session_factory(engine)
