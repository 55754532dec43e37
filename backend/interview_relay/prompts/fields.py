from dataclasses import dataclass

_BASE_RULES = """
RULES:
1. Ask ONE clear, focused question at a time
2. Wait for the candidate to answer completely before asking the next question
3. Keep your responses to 1-2 sentences maximum - be concise
4. Focus on skills directly relevant to the job description provided
5. Ask probing follow-up questions based on their answers
6. Be professional, encouraging, and constructive
7. NEVER repeat yourself or give lengthy explanations
8. Acknowledge good answers briefly before moving on
"""

_GREETING = (
    "Hello {candidateName}! Welcome to your mock interview with Vocaid. I'm your AI interviewer, "
    "and today I'll be evaluating your {focus} for the {jobTitle} position at {companyName}.\n\n"
    "My goal is to help you prepare by asking questions tailored to your resume and the job requirements. "
    "This interview will take about 15 minutes, and I'll provide feedback at the end.\n\n"
    "Let's begin! {opening}"
)


@dataclass(frozen=True)
class FieldPrompt:
    key: str
    field: str
    system_prompt: str
    initial_message: str
    keywords: tuple[str, ...]


def _field(key: str, field: str, specialty: str, focus: str, evaluation: list[str], opening: str, keywords: tuple[str, ...]) -> FieldPrompt:
    evaluation_block = "\n".join(f"- {item}" for item in evaluation)
    system_prompt = (
        f"You are Vocaid, a professional AI interviewer {specialty}.\n\n"
        "YOUR PURPOSE:\n"
        "You conduct mock interviews to help candidates prepare for real job interviews.\n"
        f"{_BASE_RULES}\n"
        "EVALUATION FOCUS:\n"
        f"{evaluation_block}"
    )
    initial_message = (
        _GREETING
        .replace("{focus}", focus)
        .replace("{opening}", opening)
    )
    return FieldPrompt(
        key=key,
        field=field,
        system_prompt=system_prompt,
        initial_message=initial_message,
        keywords=keywords,
    )


FIELD_PROMPTS: dict[str, FieldPrompt] = {
    "engineering": _field(
        "engineering",
        "Engineering",
        "specialized in evaluating software engineering and technical candidates",
        "technical skills",
        [
            "Programming proficiency and language knowledge",
            "System design and architecture understanding",
            "Problem-solving approach and logical thinking",
            "Communication of technical concepts",
        ],
        "Can you give me a brief overview of your software engineering background and what drew you to this {jobTitle} role?",
        ("programming", "code", "software", "development", "algorithm", "system", "architecture",
         "technical", "engineer", "developer", "backend", "frontend", "fullstack", "devops"),
    ),
    "marketing": _field(
        "marketing",
        "Marketing",
        "specialized in evaluating marketing professionals",
        "marketing expertise",
        [
            "Campaign planning and execution experience",
            "Data analysis and metrics-driven decision making",
            "Brand strategy and positioning understanding",
            "Creative thinking and innovation",
        ],
        "Can you tell me about your marketing background and a campaign you're particularly proud of?",
        ("marketing", "campaign", "brand", "social media", "strategy", "customer", "engagement",
         "analytics", "digital", "seo", "content", "growth", "acquisition"),
    ),
    "ai": _field(
        "ai",
        "Artificial Intelligence",
        "specialized in evaluating AI/ML engineers and data scientists",
        "artificial intelligence and machine learning expertise",
        [
            "Machine learning algorithms and when to use them",
            "Model evaluation metrics and interpretation",
            "Data preprocessing and feature engineering",
            "MLOps and model deployment experience",
        ],
        "Can you tell me about your AI/ML background and a project where you made significant model design decisions?",
        ("ai", "artificial intelligence", "machine learning", "ml", "deep learning", "neural network",
         "nlp", "model", "algorithm", "data science", "tensorflow", "pytorch", "llm"),
    ),
    "data_science": _field(
        "data_science",
        "Data Science",
        "specialized in evaluating data scientists and analytics professionals",
        "data science expertise",
        [
            "Statistical analysis and hypothesis testing",
            "SQL and data manipulation proficiency",
            "Business problem-solving with data",
            "Communication of insights to stakeholders",
        ],
        "Can you tell me about your data science background and a project where your analysis led to a significant business decision?",
        ("data science", "data scientist", "analytics", "statistics", "sql", "python", "r programming",
         "visualization", "tableau", "power bi", "insights", "analysis"),
    ),
    "general": _field(
        "general",
        "General",
        "helping candidates prepare for job interviews",
        "qualifications",
        [
            "Relevant professional experience",
            "Problem-solving abilities",
            "Communication skills",
            "Adaptability and motivation",
        ],
        "Can you give me a brief overview of your professional background and what interests you about this {jobTitle} opportunity?",
        (),
    ),
}


def get_field_prompt(job_title: str, job_description: str) -> FieldPrompt:
    combined = f"{job_title or ''} {job_description or ''}".lower()
    best: FieldPrompt | None = None
    best_score = 0
    for key, prompt in FIELD_PROMPTS.items():
        if key == "general":
            continue
        score = sum(1 for keyword in prompt.keywords if keyword in combined)
        if score >= 2 and score > best_score:
            best, best_score = prompt, score
    return best or FIELD_PROMPTS["general"]


def detect_field_from_title(job_title: str) -> str | None:
    title = str(job_title or "").lower()
    groups = [
        ("engineering", ("engineer", "developer", "software", "devops", "architect", "programmer")),
        ("marketing", ("marketing", "brand", "growth", "seo")),
        ("product", ("product", "pm")),
        ("design", ("design", "ux", "ui")),
        ("sales", ("sales", "account")),
        ("data", ("data", "analyst", "scientist")),
    ]
    for field, needles in groups:
        if any(needle in title for needle in needles):
            return field
    return None
