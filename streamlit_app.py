"""
Classroom Screen - Streamlit Application
Slide deck with freehand ink and live classroom tools for the teacher's screen
"""

import asyncio

import cv2
import numpy as np
import plotly.graph_objects as go
import streamlit as st
import streamlit.components.v1 as components

from classroom_screen import ClassroomSession, LocalStorage, configure_logging, load_config
from classroom_screen.constants import (
    ERROR_MESSAGES,
    PEN_COLORS,
    PEN_WIDTHS,
    TIMER_PRESET_MINUTES,
)
from classroom_screen.deck import ContentKind
from classroom_screen.export_helpers import quiz_to_docx, quiz_to_pdf
from classroom_screen.overlay import (
    ActivityState,
    Light,
    OverlayTool,
    QuizState,
)
from classroom_screen.sound_cues import build_sound_cue


# Page configuration
st.set_page_config(
    page_title="شاشة الفصل",
    page_icon="🖥️",
    layout="wide",
    initial_sidebar_state="expanded"
)

TOOL_LABELS = {
    OverlayTool.PICKER: "🎲 القرعة",
    OverlayTool.TIMER: "⏱️ المؤقت",
    OverlayTool.GROUPS: "👥 المجموعات",
    OverlayTool.REWARDS: "🏆 النقاط",
    OverlayTool.HALL_PASS: "🚪 الاستئذان",
    OverlayTool.TRAFFIC_LIGHT: "🚦 الإشارة",
    OverlayTool.POLL: "📊 التصويت",
    OverlayTool.SOUND_BOARD: "🔔 الأصوات",
    OverlayTool.STICKY_NOTE: "📝 ملاحظة",
    OverlayTool.AI_QUIZ: "✨ اختبار سريع",
    OverlayTool.PANIC: "🆘 نشاط سريع",
    OverlayTool.EXIT_TICKET: "🎟️ بطاقة الخروج",
}

LIGHT_LABELS = {Light.GREEN: "🟢 عمل حر", Light.YELLOW: "🟡 همس", Light.RED: "🔴 صمت"}


# Initialize session state
def initialize_session_state():
    """Build the classroom session once per browser session"""
    if 'initialized' not in st.session_state:
        config = load_config()
        configure_logging(config.log_level)

        st.session_state.audio_queue = []
        audio_queue = st.session_state.audio_queue
        sound = build_sound_cue(config.sound_enabled,
                                sink=lambda buffer, rate: audio_queue.append((buffer, rate)))

        st.session_state.classroom = ClassroomSession(config, LocalStorage(config.data_dir), sound=sound)
        st.session_state.classroom.apply_suggested_class()
        st.session_state.initialized = True


def play_pending_audio():
    queue = st.session_state.audio_queue
    while queue:
        buffer, rate = queue.pop(0)
        st.audio(buffer, sample_rate=rate, autoplay=True)


# Sidebar: class selector and roster
def render_sidebar(session: ClassroomSession):
    with st.sidebar:
        st.title("🖥️ شاشة الفصل")

        classes = session.classes
        if not classes:
            st.info("لا توجد فصول. أضف الطلاب أولاً.")
        else:
            choice = st.selectbox("الفصل", classes, index=classes.index(session.selected_class))
            if choice != session.selected_class:
                session.select_class(choice)
                st.rerun()

        present = len(session.present_students)
        st.metric("الحضور", f"{present} / {len(session.class_students)}")
        if session.absent_count:
            st.caption(f"⚠️ تم استبعاد {session.absent_count} طلاب غائبين")

        st.dataframe(session.roster_table(), use_container_width=True, hide_index=True)

        if st.button("🔄 تحديث البيانات", use_container_width=True):
            session.refresh()
            st.rerun()

        links = session.lesson_links
        if links:
            st.divider()
            st.subheader("🔗 روابط الدروس")
            for link in links:
                if st.button(link.title or link.url, key=f"link_{link.id}", use_container_width=True):
                    session.add_link_page(link.id)
                    st.rerun()


# Deck navigation and content
def render_deck_controls(session: ClassroomSession):
    deck = session.deck
    prev_col, label_col, next_col, add_col, del_col = st.columns([1, 2, 1, 1, 1])
    with prev_col:
        if st.button("◀", use_container_width=True, disabled=deck.current_index == 0):
            session.previous_page()
            st.rerun()
    with label_col:
        st.markdown(f"**الشريحة {deck.current_index + 1} من {len(deck)}**")
    with next_col:
        if st.button("▶", use_container_width=True, disabled=deck.current_index >= len(deck) - 1):
            session.next_page()
            st.rerun()
    with add_col:
        if st.button("➕ شريحة", use_container_width=True):
            session.add_page()
            st.rerun()
    with del_col:
        if st.button("🗑️ حذف", use_container_width=True):
            session.delete_page()
            st.rerun()

    with st.expander("📎 محتوى الشريحة"):
        upload = st.file_uploader("صورة أو ملف PDF", type=["png", "jpg", "jpeg", "pdf"],
                                  key=f"upload_{deck.current_page.id}")
        if upload is not None and st.button("عرض الملف"):
            if upload.type == "application/pdf":
                session.set_document(upload.getvalue(), upload.type)
            else:
                session.set_image(upload.getvalue(), upload.type)
            st.rerun()

        url = st.text_input("رابط (يوتيوب أو موقع)", key=f"embed_{deck.current_page.id}")
        embed_col, clear_col = st.columns(2)
        with embed_col:
            if st.button("تضمين الرابط", disabled=not url.strip()):
                session.set_embed(url)
                st.rerun()
        with clear_col:
            if st.button("مسح المحتوى"):
                session.clear_content()
                st.rerun()


def render_pen_controls(session: ClassroomSession):
    overlay = session.overlay
    cols = st.columns([1, 1, 2, 2, 1, 1])
    with cols[0]:
        if st.button("✏️ القلم" + (" ✓" if overlay.pen_enabled else ""), use_container_width=True):
            overlay.toggle_pen()
            st.rerun()
    with cols[1]:
        if st.button("🔦 المؤشر" + (" ✓" if overlay.laser_enabled else ""), use_container_width=True):
            overlay.toggle_laser()
            st.rerun()
    if not overlay.pen_enabled:
        return
    with cols[2]:
        color = st.select_slider("اللون", options=PEN_COLORS, value=session.pen.color)
    with cols[3]:
        width = st.select_slider("السُمك", options=PEN_WIDTHS, value=session.pen.stroke_width)
    with cols[4]:
        eraser = st.toggle("ممحاة", value=session.pen.is_eraser)
    session.set_pen(color=color, stroke_width=width, is_eraser=eraser)
    with cols[5]:
        if st.button("🧽 مسح الحبر", use_container_width=True):
            session.clear_annotation()
            st.rerun()


def _slide_background(session: ClassroomSession) -> np.ndarray:
    """RGB background for the ink figure; also sizes the ink raster to the slide."""
    image = None
    page = session.deck.current_page
    entry = session.deck.blobs.get(page.content_ref) if page.content_kind is ContentKind.IMAGE else None
    if entry is not None:
        image = cv2.imdecode(np.frombuffer(entry[0], dtype=np.uint8), cv2.IMREAD_COLOR)

    if image is None:
        session.fit_canvas()
        surface = session.surface
        return np.full((surface.height, surface.width, 3), 255, dtype=np.uint8)

    session.fit_canvas((image.shape[1], image.shape[0]))
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def render_slide(session: ClassroomSession):
    page = session.deck.current_page
    surface = session.surface

    if page.content_kind is ContentKind.EMBEDDED_FRAME:
        components.iframe(page.content_ref, height=480)
    elif page.content_kind is ContentKind.DOCUMENT:
        entry = session.deck.blobs.get(page.content_ref)
        if entry:
            st.download_button("📄 فتح المستند", entry[0], file_name="slide.pdf", mime=entry[1])

    composite = surface.composite_over(_slide_background(session))
    fig = go.Figure(go.Image(z=composite))

    # Sparse invisible grid so lasso selections report their path
    step = 40
    xs, ys = np.meshgrid(np.arange(0, surface.width, step), np.arange(0, surface.height, step))
    fig.add_trace(go.Scatter(x=xs.ravel(), y=ys.ravel(), mode="markers",
                             marker={"opacity": 0}, hoverinfo="none", showlegend=False))

    overlay = session.overlay
    fig.update_layout(
        margin={"l": 0, "r": 0, "t": 0, "b": 0},
        dragmode="lasso" if overlay.pen_enabled else "pan",
        height=540,
    )
    fig.update_xaxes(visible=False, showspikes=overlay.laser_enabled, spikecolor="red", spikethickness=4)
    fig.update_yaxes(visible=False, showspikes=overlay.laser_enabled, spikecolor="red", spikethickness=4)

    event = st.plotly_chart(
        fig,
        use_container_width=True,
        config={"displayModeBar": False},
        on_select="rerun" if overlay.pen_enabled else "ignore",
        selection_mode="lasso",
        key=f"ink_{page.id}_{page.revision}",
    )
    if overlay.pen_enabled and event:
        for lasso in event.selection.get("lasso", []):
            path = list(zip(lasso.get("x", []), lasso.get("y", [])))
            session.draw_path(path)
        if event.selection.get("lasso"):
            st.rerun()


# Tool toolbar
def render_toolbar(session: ClassroomSession):
    overlay = session.overlay
    tools = list(TOOL_LABELS)
    cols = st.columns(len(tools))
    for col, tool in zip(cols, tools):
        with col:
            kind = "primary" if overlay.is_active(tool) else "secondary"
            if st.button(TOOL_LABELS[tool], key=f"tool_{tool.value}", type=kind, use_container_width=True):
                overlay.toggle(tool)
                st.rerun()


# ── Tool panels ──────────────────────────────────────────────────────────────

def render_picker(session, picker):
    st.markdown(f"<h1 style='text-align:center'>{picker.display_name if session.present_students else ERROR_MESSAGES['no_students']}</h1>",
                unsafe_allow_html=True)
    if picker.winner and not picker.is_rolling:
        st.success(f"🏆 {picker.winner.name}")
    if st.button("🎲 اختر طالب" if not picker.is_rolling else "جاري الاختيار...",
                 disabled=picker.is_rolling or not session.present_students):
        picker.spin()


def render_timer(session, timer):
    color = {"critical": "red", "warning": "orange"}.get(timer.urgency(), "inherit")
    st.markdown(f"<h1 style='text-align:center;color:{color};font-family:monospace'>{timer.format_time()}</h1>",
                unsafe_allow_html=True)
    st.progress(timer.progress())
    play_col, reset_col = st.columns(2)
    with play_col:
        if st.button("⏸️ إيقاف" if timer.is_active else "▶️ تشغيل", use_container_width=True):
            timer.toggle()
    with reset_col:
        if st.button("🔄 إعادة", use_container_width=True):
            timer.reset()
    preset_cols = st.columns(len(TIMER_PRESET_MINUTES))
    for col, minutes in zip(preset_cols, TIMER_PRESET_MINUTES):
        with col:
            if st.button(f"{minutes} د", key=f"preset_{minutes}", use_container_width=True):
                timer.set_minutes(minutes)


def render_groups(session, groups):
    minus_col, count_col, plus_col, go_col = st.columns([1, 1, 1, 3])
    with minus_col:
        if st.button("➖"):
            groups.decrement()
    with count_col:
        st.markdown(f"**{groups.group_count}**")
    with plus_col:
        if st.button("➕"):
            groups.increment()
    with go_col:
        if st.button("توزيع المجموعات", disabled=not session.present_students):
            groups.generate(session.present_students)
    if groups.groups:
        cols = st.columns(min(4, len(groups.groups)))
        for idx, group in enumerate(groups.groups):
            with cols[idx % len(cols)]:
                st.markdown(f"**المجموعة {idx + 1}**")
                for student in group:
                    st.write(student.name)


def render_rewards(session, rewards):
    if rewards.celebrating:
        st.success(f"🎉 {rewards.celebrating.name}")
    cols = st.columns(4)
    for idx, student in enumerate(session.present_students):
        with cols[idx % 4]:
            if st.button(f"⭐ {student.name} ({rewards.points_for(student.id)})", key=f"reward_{student.id}",
                         use_container_width=True):
                rewards.award(student)
                st.balloons()


def render_hall_pass(session, hall_pass):
    names = [s.name for s in session.present_students if not hall_pass.is_out(s.name)]
    name = st.selectbox("الطالب", names, index=None, key="hall_pass_name")
    if st.button("إصدار تصريح", disabled=not name):
        hall_pass.issue(name)
    for ticket in hall_pass.tickets:
        minutes, seconds = divmod(hall_pass.elapsed_seconds(ticket), 60)
        name_col, back_col = st.columns([3, 1])
        with name_col:
            st.write(f"🚶 {ticket.student_name}: {minutes:02d}:{seconds:02d}")
        with back_col:
            if st.button("عاد", key=f"return_{ticket.id}"):
                hall_pass.return_pass(ticket.id)


def render_traffic_light(session, light):
    st.markdown(f"<h1 style='text-align:center'>{LIGHT_LABELS[light.light]}</h1>", unsafe_allow_html=True)
    cols = st.columns(len(Light))
    for col, value in zip(cols, Light):
        with col:
            if st.button(LIGHT_LABELS[value], key=f"light_{value.value}", use_container_width=True):
                light.set_light(value)


def render_poll(session, poll):
    poll.question = st.text_input("السؤال", value=poll.question, key="poll_question")
    cols = st.columns(len(poll.votes))
    for col, option in zip(cols, poll.votes):
        with col:
            if st.button(f"{option} ({poll.votes[option]})", key=f"vote_{option}", use_container_width=True):
                poll.vote(option)
    frame = poll.to_frame()
    fig = go.Figure(go.Bar(x=frame["option"], y=frame["votes"], text=frame["percent"].map(lambda p: f"{p}%")))
    fig.update_layout(height=260, margin={"l": 0, "r": 0, "t": 10, "b": 0})
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})
    if st.button("تصفير"):
        poll.reset()


def render_sound_board(session, board):
    cols = st.columns(len(board.cues))
    for col, cue in zip(cols, board.cues):
        with col:
            if st.button(cue, key=f"cue_{cue}", use_container_width=True):
                board.play(cue)


def render_sticky_note(session, note):
    text = st.text_area("ملاحظات الحصة", value=note.text, height=200, key="sticky_note")
    if text != note.text and not note.set_text(text):
        st.warning("تعذر حفظ الملاحظة")


def render_exit_ticket(session, ticket):
    st.markdown(f"<h2 style='text-align:center'>{ticket.current_prompt}</h2>", unsafe_allow_html=True)
    if st.button("السؤال التالي"):
        ticket.next_prompt()
    custom = st.text_input("سؤال مخصص", key="exit_custom")
    if st.button("استخدام السؤال المخصص", disabled=not custom.strip()):
        ticket.set_custom(custom)


def render_ai_quiz(session, quiz):
    page = session.deck.current_page
    if quiz.state is QuizState.SHOWING_RESULTS:
        if quiz.error:
            st.info(quiz.error)
        for idx, q in enumerate(quiz.questions):
            st.markdown(f"**{idx + 1}. {q.question}**")
            for opt in q.options:
                st.write(f"- {opt}")
            if idx in quiz.revealed:
                st.success(f"✔ {q.answer}")
                if q.explanation:
                    st.caption(q.explanation)
            elif st.button("إظهار الإجابة", key=f"reveal_{idx}"):
                quiz.reveal(idx)
                st.rerun()
        if quiz.questions:
            docx_col, pdf_col = st.columns(2)
            with docx_col:
                st.download_button("⬇️ Word", quiz_to_docx(quiz.questions, topic=quiz.topic),
                                   file_name="quiz.docx")
            with pdf_col:
                st.download_button("⬇️ PDF", quiz_to_pdf(quiz.questions, topic=quiz.topic),
                                   file_name="quiz.pdf", mime="application/pdf")
        if st.button("اختبار جديد"):
            quiz.new_quiz()
            st.rerun()
        return

    if quiz.error:
        st.error(quiz.error)
    topic = ""
    if quiz.accepts_topic(page):
        topic = st.text_input("موضوع الاختبار", value=quiz.topic, key="quiz_topic")
    else:
        st.caption("سيتم إنشاء الأسئلة من صورة الشريحة الحالية")
    if st.button("✨ إنشاء", disabled=quiz.accepts_topic(page) and not topic.strip()):
        with st.spinner("جاري إنشاء الأسئلة..."):
            asyncio.run(session.generate_quiz(topic))
        st.rerun()


def render_panic(session, panic):
    if panic.state is ActivityState.SUGGESTED and panic.suggestion:
        activity = panic.suggestion
        st.subheader(activity.title)
        st.write(activity.description)
        for step in activity.steps:
            st.write(f"- {step}")
        st.caption(f"⏱️ {activity.duration_minutes} د")
        if st.button("اقترح نشاطاً آخر"):
            panic.ask_again()
            st.rerun()
        return

    if panic.error:
        st.error(panic.error)
    if st.button("🆘 أحتاج نشاطاً الآن"):
        with st.spinner("جاري التفكير..."):
            asyncio.run(session.suggest_activity())
        st.rerun()


PANELS = {
    OverlayTool.PICKER: render_picker,
    OverlayTool.TIMER: render_timer,
    OverlayTool.GROUPS: render_groups,
    OverlayTool.REWARDS: render_rewards,
    OverlayTool.HALL_PASS: render_hall_pass,
    OverlayTool.TRAFFIC_LIGHT: render_traffic_light,
    OverlayTool.POLL: render_poll,
    OverlayTool.SOUND_BOARD: render_sound_board,
    OverlayTool.STICKY_NOTE: render_sticky_note,
    OverlayTool.AI_QUIZ: render_ai_quiz,
    OverlayTool.PANIC: render_panic,
    OverlayTool.EXIT_TICKET: render_exit_ticket,
}


@st.fragment(run_every=0.25)
def render_live_panel():
    """Drives the scheduler and redraws the active tool a few times a second"""
    session = st.session_state.classroom
    session.tick()

    overlay = session.overlay
    if overlay.active is not OverlayTool.NONE:
        with st.container(border=True):
            title_col, close_col = st.columns([6, 1])
            with title_col:
                st.subheader(TOOL_LABELS[overlay.active])
            with close_col:
                if st.button("✖", key="close_tool"):
                    overlay.close()
                    st.rerun()
            PANELS[overlay.active](session, overlay.active_tool)

    play_pending_audio()


def main():
    initialize_session_state()
    session = st.session_state.classroom

    render_sidebar(session)
    render_toolbar(session)
    render_live_panel()
    render_deck_controls(session)
    render_pen_controls(session)
    render_slide(session)


if __name__ == "__main__":
    main()
