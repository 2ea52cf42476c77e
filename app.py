"""PrepMaster Sessions: timed practice and mock exams."""
import logging
import sys
import time
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from engine import DEFAULT_PER_QUESTION_SECONDS, MOCK_DURATION_MINUTES
from assessment.ai_grading import ExternalGradingAdapter, encode_image
from assessment.answers import format_answer, parse_answer_key
from assessment.errors import EmptyQuestionSetError, GradingServiceError
from assessment.models import HomeworkSource, PracticeMode, QuestionKind, SessionState
from assessment.session import AssessmentSession, NavigationOutcome, SessionCallbacks
from db import get_results, get_supabase, get_weaknesses, load_homework, supabase_callbacks

logger = logging.getLogger(__name__)

st.set_page_config(page_title="PrepMaster Sessions", layout="wide")
st.sidebar.title("PrepMaster Sessions")
student_id = st.sidebar.text_input("Student ID", value=st.session_state.get("student_id", ""))
st.session_state["student_id"] = student_id


def _callbacks() -> tuple[SessionCallbacks, list]:
    """Supabase-backed callbacks when configured, else keep outcomes in the page state."""
    weaknesses = []
    if student_id:
        try:
            client = get_supabase()
            weaknesses = get_weaknesses(client, student_id)
            return supabase_callbacks(client, student_id), weaknesses
        except Exception as e:
            logger.warning(f"Supabase unavailable for {student_id}: {e}")
            st.sidebar.warning(f"Results will not be saved (Supabase unavailable): {e}")
    log = st.session_state.setdefault("local_log", [])
    return SessionCallbacks(
        on_session_complete=lambda d, s, k: log.append(("session", d, s, k)),
        on_log_result=lambda r: log.append(("result", r.to_dict())),
        on_update_weaknesses=lambda w: log.append(("weaknesses", w)),
        on_save_task=lambda t: log.append(("task", t.to_dict())),
    ), weaknesses


if "session" not in st.session_state:
    st.session_state["session"] = None

session: AssessmentSession | None = st.session_state["session"]

# ----- Setup -----
if session is None:
    st.header("New Session")
    mode_label = st.radio("Mode", ["Custom practice", "JEE Mains mock"], horizontal=True)
    mode = PracticeMode.MOCK_EXAM if mode_label == "JEE Mains mock" else PracticeMode.CUSTOM

    homework: HomeworkSource | None = st.session_state.get("homework")
    if mode is PracticeMode.CUSTOM:
        task_id = st.text_input("Homework task ID (optional)", value=homework.id if homework else "")
        if st.button("Load task") and task_id.strip():
            try:
                homework = load_homework(get_supabase(), task_id.strip())
            except Exception as e:
                logger.warning(f"Supabase unavailable while loading task {task_id}: {e}")
                homework = None
            st.session_state["homework"] = homework
            if homework is None:
                st.error(f"Could not load homework task {task_id}.")
        if homework is not None:
            st.caption(f"Practising: {homework.title} ({homework.subject_tag})" + (" · key attached" if homework.answers else ""))
            if st.button("Clear task"):
                st.session_state["homework"] = None
                st.rerun()
    else:
        homework = None

    default_ranges = "1-75" if mode is PracticeMode.MOCK_EXAM else (homework.q_ranges if homework else "")
    q_ranges = st.text_input("Question ranges", value=default_ranges, placeholder="e.g. 1-25, 30-35")
    subject = st.text_input("Subject", value=homework.subject_tag if homework and homework.subject_tag else "PHYSICS")
    syllabus = st.text_input("Syllabus", value=homework.title if homework else "")
    if mode is PracticeMode.MOCK_EXAM:
        per_question = DEFAULT_PER_QUESTION_SECONDS
        st.caption(f"{MOCK_DURATION_MINUTES} minutes · Correct +4, Wrong MCQ -1, Skipped MCQ -1")
    else:
        per_question = st.number_input("Seconds per question", min_value=10, max_value=1800, value=DEFAULT_PER_QUESTION_SECONDS, step=10)
        st.caption("Correct +4 · no negative marking · instant feedback when a key is given")
    key_text = st.text_area("Answer key (optional)", placeholder='{"1": "A"} or 1:A, 2:B, 3:[A,C]')
    key_file = st.file_uploader("...or upload a key file", type=["json", "txt"])
    if key_file is not None:
        key_text = key_file.getvalue().decode("utf-8", errors="replace")

    if st.button("Start", type="primary"):
        key = parse_answer_key(key_text)
        if key_text.strip() and not key:
            st.warning("Could not read the answer key; continuing without one.")
        if not key and homework is not None and homework.answers:
            key = dict(homework.answers)
        callbacks, weaknesses = _callbacks()
        try:
            st.session_state["session"] = AssessmentSession.from_ranges(
                q_ranges, mode, subject=subject, answer_key=key, syllabus=syllabus, homework=homework,
                per_question_time=int(per_question), callbacks=callbacks, weaknesses=weaknesses,
            )
            st.session_state["session"].start()
            st.rerun()
        except EmptyQuestionSetError:
            st.error('No questions to attempt. Please enter valid question ranges (e.g., "1-25, 30-35").')
    st.stop()

# ----- Running -----
if session.state is SessionState.ACTIVE:
    session.catch_up()

if session.state is SessionState.ACTIVE:
    q = session.current_question
    nav = session.navigator
    st.sidebar.metric("Time left", session.clock.format_time())
    st.sidebar.progress(session.sheet.solved_count() / len(session.questions))
    st.sidebar.caption(f"{session.sheet.solved_count()}/{len(session.questions)} answered")
    if session.clock.paused:
        st.info("Paused. The clock is stopped.")
        if st.button("Resume", type="primary"):
            session.resume()
            st.rerun()
        st.stop()
    if session.feedback is None and st.sidebar.button("Pause"):
        session.pause()
        st.rerun()
    palette_filter = st.sidebar.radio("Palette", ["all", "attempted", "unattempted", "marked"], horizontal=True)
    cols = st.sidebar.columns(5)
    for i, idx in enumerate(nav.palette(palette_filter)):
        status = nav.palette_status(idx)
        label = f"{session.questions[idx].number}" + ("*" if "marked" in status else "") + ("✓" if "answered" in status else "")
        if cols[i % 5].button(label, key=f"pal_{idx}"):
            if session.jump_to(idx) is NavigationOutcome.MOVING:
                session.settle_navigation()
                st.rerun()

    st.subheader(f"{q.section} · Question {nav.index + 1} of {len(session.questions)} (Q.{q.number}, {q.kind.value})")
    st.write(q.text)
    current = session.sheet.answer_for(q.number)

    if q.kind is QuestionKind.NUM:
        value = st.text_input("Your answer", value=current or "", key=f"num_{q.number}")
        if st.button("Save answer") and value.strip():
            session.answer(value)
            st.rerun()
    elif q.kind is QuestionKind.MULTI_CHOICE:
        picked = st.multiselect("Choose all that apply", list(q.options), default=list(current or []), key=f"multi_{q.number}")
        if st.button("Save answer") and picked:
            session.answer(picked)
            st.rerun()
    else:
        opts = ["(skip)"] + list(q.options)
        idx = opts.index(current) if current in opts else 0
        choice = st.radio("Choose one:", opts, index=idx, key=f"mcq_{q.number}")
        if choice != opts[idx] and choice != opts[0]:
            session.answer(choice)
            st.rerun()

    if session.feedback is not None:
        fb = session.feedback
        if fb.status.value == "correct":
            st.success("✓ Correct!")
        elif fb.status.value == "incorrect":
            st.error(f"✗ Incorrect. The correct answer is {format_answer(fb.correct_answer)}.")
        else:
            st.info("Answer saved.")
        time.sleep(fb.delay)
        session.advance_after_feedback()
        session.settle_navigation()
        st.rerun()

    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        if st.button("Previous") and session.previous() is NavigationOutcome.MOVING:
            session.settle_navigation()
            st.rerun()
    with col2:
        if st.button("Next"):
            session.next()
            session.settle_navigation()
            st.rerun()
    with col3:
        if st.button("Mark for review"):
            session.mark_for_review()
            session.settle_navigation()
            st.rerun()
    with col4:
        if st.button("Clear"):
            session.clear_answer()
            st.rerun()
    with col5:
        if st.button("Submit", type="primary"):
            session.submit()
            st.rerun()
    st.stop()

# ----- Finished -----
st.header("Session finished")
st.caption(f"Duration: {session.duration_seconds or 0}s · Solved {session.sheet.solved_count()} of {len(session.questions)}")

if session.result is None:
    st.info("No answer key was available. Add one to see your score.")
    key_text = st.text_area("Paste the answer key", placeholder="1:A, 2:B, 3:[A,C]")
    if st.button("Grade with key"):
        key = parse_answer_key(key_text)
        if not key:
            st.error("Could not read the answer key.")
        else:
            session.submit_answer_key(key)
            st.rerun()
    image = st.file_uploader("...or upload a photo of the answer key for AI grading", type=["jpg", "jpeg", "png"])
    if image is not None and st.button("Grade with AI", disabled=session.grading_in_flight):
        with st.spinner("Grading..."):
            session.grade_with_ai(ExternalGradingAdapter(), encode_image(image.getvalue()))
        st.rerun()
    if session.grading_error:
        st.error(session.grading_error)
else:
    result = session.result
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Score", result.score)
    with col2:
        st.metric("Mistakes", len(result.mistakes))
    if result.analysis is not None:
        st.subheader("AI analysis")
        st.write(result.analysis.ai_suggestions)
        st.json(result.analysis.chapter_scores)
    if result.mistakes:
        st.subheader("Analyze a mistake")
        number = st.selectbox("Question", [int(m) for m in result.mistakes])
        topic = st.text_input("Topic to add to your weaknesses")
        if st.button("Save weakness") and topic.strip():
            try:
                updated = session.tag_mistake(number, topic)
                st.success(f"Weaknesses: {', '.join(updated)}")
            except ValueError as e:
                st.error(str(e))
        prompt = st.text_area("Describe what went wrong (optional, for AI analysis)")
        if st.button("Ask AI about this mistake") and prompt.strip():
            try:
                analysis = ExternalGradingAdapter().analyze_mistake(number, prompt)
                st.markdown(f"**{analysis['mistake_topic']}**")
                st.markdown(analysis["explanation"])
            except GradingServiceError as e:
                st.error(e.message)

if student_id:
    try:
        history = get_results(get_supabase(), student_id, limit=10)
    except Exception as e:
        logger.warning(f"Supabase unavailable for {student_id}: {e}")
        history = []
    if history:
        st.subheader("Recent results")
        st.table([{"Date": r.get("date"), "Syllabus": r.get("syllabus"), "Score": r.get("score")} for r in history])

if st.button("Start a new session"):
    session.close()
    st.session_state["homework"] = None
    st.session_state["session"] = None
    st.rerun()
