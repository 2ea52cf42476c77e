"""Pure session constants: marking scheme, durations, UI delays. No UI."""
# Marking: correct +4, wrong MCQ in mock -1, skipped MCQ in mock -1, everything else 0
# Total marks: mock = 300, custom = 4 * question count

CORRECT_SCORE = 4
INCORRECT_SCORE = -1
SKIPPED_SCORE = 0
MOCK_EXAM_TOTAL = 300
MOCK_DURATION_MINUTES = 180
DEFAULT_PER_QUESTION_SECONDS = 120

# Seconds
NAVIGATION_DELAY = 0.3
NAVIGATION_SETTLE = 0.05
FEEDBACK_DELAY_GRADED = 1.0
FEEDBACK_DELAY_NEUTRAL = 1.5
TICK_INTERVAL = 1.0

REATTEMPT_MARKER = "[RE-ATTEMPT]"
REATTEMPT_TIME = "21:00"
MAX_RANGE_SPAN = 1000
