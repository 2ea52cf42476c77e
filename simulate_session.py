"""
Simulate a timed session end to end: answer some right, some wrong, skip the
rest, then grade. Verifies the marking scheme (correct +4, wrong/skipped MCQ in
mock -1, everything else 0) against a hand count.

Run: python simulate_session.py [--count 20] [--mode mock]
"""
import argparse
import logging
import random

from engine import CORRECT_SCORE, INCORRECT_SCORE
from assessment.models import PracticeMode, QuestionKind
from assessment.session import AssessmentSession, SessionCallbacks

OPTIONS = ["A", "B", "C", "D"]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def main():
    parser = argparse.ArgumentParser(description="Simulate a session to verify grading.")
    parser.add_argument("--count", type=int, default=20, help="Number of questions (default 20)")
    parser.add_argument("--mode", choices=["custom", "mock"], default="mock", help="Practice mode (default mock)")
    parser.add_argument("--correct-ratio", type=float, default=0.5, help="Fraction to answer correctly (default 0.5)")
    parser.add_argument("--wrong-ratio", type=float, default=0.3, help="Fraction to answer wrongly (default 0.3)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    args = parser.parse_args()

    rng = random.Random(args.seed)
    mode = PracticeMode.MOCK_EXAM if args.mode == "mock" else PracticeMode.CUSTOM
    key = {str(n): rng.choice(OPTIONS) for n in range(1, args.count + 1)}
    clock = FakeClock()
    completed = {}
    session = AssessmentSession.from_ranges(
        f"1-{args.count}",
        mode,
        subject="Simulation",
        answer_key=key,
        callbacks=SessionCallbacks(on_session_complete=lambda d, s, k: completed.update(duration=d, solved=s, skipped=k)),
        monotonic=clock,
    )

    correct_ratio = max(0, min(1, args.correct_ratio))
    wrong_ratio = max(0, min(1 - correct_ratio, args.wrong_ratio))

    session.start()
    rows = []
    while session.is_active:
        q = session.current_question
        r = rng.random()
        if r < correct_ratio:
            outcome, choice = "correct", key[str(q.number)]
        elif r < correct_ratio + wrong_ratio:
            outcome, choice = "wrong", rng.choice([o for o in OPTIONS if o != key[str(q.number)]])
        else:
            outcome, choice = "skip", None
        if choice is not None:
            session.answer(choice)
        clock.now += rng.randint(20, 90)
        if session.feedback is not None:
            session.advance_after_feedback()
        else:
            session.next()
        session.settle_navigation()
        rows.append((q.number, q.kind, choice, outcome))

    expected = 0
    for _, kind, _, outcome in rows:
        if outcome == "correct":
            expected += CORRECT_SCORE
        elif mode is PracticeMode.MOCK_EXAM and kind is QuestionKind.MCQ:
            expected += INCORRECT_SCORE

    result = session.result
    print()
    print("=" * 60)
    print(f"SESSION SIMULATION ({mode.value})")
    print("=" * 60)
    print(f"  Questions:  {len(rows)}")
    print(f"  Solved:     {completed.get('solved')}  Skipped: {len(completed.get('skipped', []))}")
    print(f"  Duration:   {completed.get('duration')}s")
    print(f"  Score:      {result.score}")
    print(f"  Mistakes:   {', '.join(result.mistakes) or '-'}")
    print()
    print("Per question (first 15):")
    print("-" * 60)
    for number, kind, choice, outcome in rows[:15]:
        print(f"  Q{number:3d}  {kind.value:12s} key={key[str(number)]}  chosen={choice or 'skip':4s}  {outcome}")
    if len(rows) > 15:
        print(f"  ... and {len(rows) - 15} more")
    print()
    net = int(result.score.split("/")[0])
    if net == expected:
        print("Score matches the marking scheme.")
    else:
        print(f"WARNING: Score mismatch (expected {expected}).")
    print()


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    main()
