import argparse
import json
import sys
from pathlib import Path

from core.logging_setup import setup_console_logging
from satflow.engine.errors import ConfigurationError
from satflow.engine.report import build_final_report
from satflow.engine.scoring import calculate_score
from satflow.engine.store import TestSession, questions_from_records
from satflow.engine.structure import SAT_TEST_STRUCTURE


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check and score generated SAT question sets"
    )
    parser.add_argument("questions", type=Path, help="JSON file with a list of questions")
    parser.add_argument(
        "--answers",
        type=Path,
        help="JSON object mapping question id to answer; prints a score report",
    )
    parser.add_argument(
        "--attempt-id",
        type=str,
        default="local",
        help="Attempt id shown in the report",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        records = json.loads(args.questions.read_text(encoding="utf-8"))
        questions = questions_from_records(records)
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        print(f"Invalid question set: malformed record ({e!r})", file=sys.stderr)
        return 1

    try:
        session = TestSession.from_questions(
            args.attempt_id, questions, SAT_TEST_STRUCTURE
        )
    except ConfigurationError as e:
        print(f"Invalid question set: {e}", file=sys.stderr)
        return 1

    if args.answers is None:
        for ref, module in session.items():
            section = SAT_TEST_STRUCTURE.section(ref)
            print(
                f"{section.display_name} module {ref.module_number}: "
                f"{len(module.questions)} questions"
            )
        return 0

    answers = json.loads(args.answers.read_text(encoding="utf-8"))
    for ref, module in session.items():
        for question in module.questions:
            if question.id in answers:
                session.set_answer(ref, question.id, str(answers[question.id]))
        result = calculate_score(module.questions, module.answers)
        session.finalize_module(ref, result.score, 0)

    report = build_final_report(session)
    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    setup_console_logging()
    sys.exit(main())
