"""
Shared Constants for the Classroom Screen
Used by the session engine, the widgets and the Streamlit chrome
"""

# Picker Configuration
PICKER_TICK_SECONDS = 0.1
PICKER_SPIN_SECONDS = 2.0
PICKER_PLACEHOLDER = "???"

# Timer Configuration
TIMER_DEFAULT_SECONDS = 300  # 5 minutes
TIMER_PRESET_MINUTES = [1, 5, 10, 15, 30]
TIMER_WARNING_SECONDS = 60
TIMER_CRITICAL_SECONDS = 30

# Group Generator
MIN_GROUPS = 2
MAX_GROUPS = 10
DEFAULT_GROUPS = 4

# Rewards
CELEBRATION_SECONDS = 3.0
REWARD_NOTE = "نقطة تميز"

# Annotation Configuration
DEFAULT_CANVAS_WIDTH = 1280
DEFAULT_CANVAS_HEIGHT = 720
PEN_COLORS = ["#ef4444", "#3b82f6", "#22c55e", "#eab308", "#000000", "#ffffff"]
PEN_WIDTHS = [3, 6, 10]
DEFAULT_PEN_COLOR = "#ef4444"
DEFAULT_PEN_WIDTH = 3
ERASER_WIDTH = 30  # Always wider than the widest pen

# Audio Configuration
SAMPLE_RATE = 44100

# Poll Configuration
POLL_OPTIONS = ["A", "B", "C", "D"]

# Image payloads sent to the AI service
MAX_IMAGE_DIMENSION = 1024
IMAGE_JPEG_QUALITY = 85

# AI Configuration (defaults)
AI_BACKENDS = ["bedrock", "ollama"]
BEDROCK_MODEL_ID = "amazon.nova-lite-v1:0"
BEDROCK_REGION = "us-east-1"
OLLAMA_MODEL = "llama3.2:3b"
OLLAMA_HOST = "http://localhost:11434"
AI_DEFAULT_TEMPERATURE = 0.7
AI_MAX_TOKENS = 2000
QUIZ_QUESTION_COUNT = 5
RESPONSE_LANGUAGE = "Arabic"

# AI request categories and the settings flag each one checks
AI_CATEGORY_FLAGS = {
    "quiz": "enable_quiz",
    "activity": "enable_planning",
    "report": "enable_reports",
}

# Exit ticket prompts
EXIT_TICKET_PROMPTS = [
    "ما أهم شيء تعلمته اليوم؟",
    "ما السؤال الذي ما زال يدور في ذهنك؟",
    "اشرح فكرة الدرس لزميلك في جملة واحدة.",
    "قيّم فهمك للدرس من 1 إلى 5 ولماذا؟",
]

# Prompt Templates
QUIZ_SYSTEM_PROMPT = """You are an expert teacher preparing a quick in-class check for understanding.
Output ONLY a raw JSON array. Do NOT use markdown, code fences, or any explanation.
Required format:
[
    {
        "question":    "string",
        "options":     ["string", "string", "string", "string"],
        "answer":      "string (one of the options, verbatim)",
        "explanation": "string"
    }
]"""

QUIZ_TOPIC_PROMPT = """Create {count} short multiple-choice questions about: {topic}.
Each question has 3 or 4 options and exactly one correct answer.
Write every question, option and explanation in {language}."""

QUIZ_IMAGE_PROMPT = """The attached image is the slide currently shown to the class.
Create {count} short multiple-choice questions that check understanding of its content.
Each question has 3 or 4 options and exactly one correct answer.
Write every question, option and explanation in {language}."""

ACTIVITY_SYSTEM_PROMPT = """You are an experienced classroom coach. The teacher needs a quick
activity right now to re-energise or refocus the class.
Output ONLY a raw JSON object. Do NOT use markdown, code fences, or any explanation.
Required format:
{
    "title":            "string",
    "description":      "string",
    "steps":            ["string", "string"],
    "duration_minutes": 5
}"""

ACTIVITY_PROMPT_TEMPLATE = """Class: {class_name}
Students present: {present_count}
Current slide topic: {topic}
Suggest one activity of at most {max_minutes} minutes that needs no materials.
Write the answer in {language}."""

# Error Messages
ERROR_MESSAGES = {
    "quiz_failed": "تعذر إنشاء الأسئلة. حاول مرة أخرى.",
    "quiz_empty": "لم يتم استخراج أي أسئلة من الرد.",
    "activity_failed": "تعذر اقتراح نشاط. حاول مرة أخرى.",
    "feature_disabled": "هذه الميزة معطلة في إعدادات الذكاء الاصطناعي.",
    "image_unavailable": "تعذر قراءة صورة الشريحة الحالية.",
    "no_students": "لا يوجد طلاب حاضرين",
}

# Feature Flags
FEATURES = {
    "sound": True,
    "ai_quiz": True,
    "panic_activity": True,
    "lasso_ink": True,
}

# API Timeouts
TIMEOUTS = {
    "ai_generation": 60,
    "image_download": 15,
}
