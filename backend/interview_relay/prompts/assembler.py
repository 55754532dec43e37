from __future__ import annotations

from dataclasses import dataclass

from interview_relay.context.metadata import InterviewMetadata
from interview_relay.prompts.fields import FieldPrompt, detect_field_from_title, get_field_prompt
from interview_relay.prompts.languages import DEFAULT_LANGUAGE, get_language, resolve_language

GENERIC_ENGLISH_GREETING = (
    "Hello! Welcome to your mock interview with Vocaid. I'm your AI interviewer, and I'll be helping you "
    "prepare for your job interview today. This session will take about 15 minutes. "
    "Let's begin - can you tell me about your professional background?"
)

GENERIC_SYSTEM_PROMPT = """
You are Vocaid, a professional AI interviewer helping candidates prepare for job interviews.
Be conversational, professional, and encouraging.
Keep responses concise (1-2 sentences max).
Ask one question at a time and adapt based on candidate responses.
""".strip()


@dataclass(frozen=True)
class InterviewPrompt:
    language: str
    field: str
    system_prompt: str
    greeting: str


def _placeholders(metadata: InterviewMetadata | None) -> dict[str, str]:
    return {
        "{candidateName}": (metadata.first_name if metadata else "") or "there",
        "{jobTitle}": (metadata.job_title if metadata else "") or "this position",
        "{companyName}": (metadata.company_name if metadata else "") or "your target company",
    }


def fill_template(template: str, metadata: InterviewMetadata | None) -> str:
    text = template
    for key, value in _placeholders(metadata).items():
        text = text.replace(key, value)
    return text


def build_multilingual_system_prompt(language: str, field: str | None = None) -> str:
    config = get_language(language)
    field_block = f"\n<field>{field}</field>\n" if field else ""
    return f"""
<agent_identity>
  <name>Vocaid</name>
  <role>Professional AI Interview Coach</role>
  <purpose>Conduct realistic mock interviews to help candidates prepare for job interviews</purpose>
</agent_identity>

<language_instructions>
  <rule priority="critical">
    You MUST conduct this ENTIRE interview in {config.name} ({config.english_name}).
    All questions, responses, acknowledgments, and feedback must be in {config.name}.
  </rule>
  <rule>Technical terms and acronyms may remain in English if commonly used that way in the industry.</rule>
  <rule>If the candidate switches languages, gently redirect them back to {config.name}.</rule>
</language_instructions>

<core_interview_rules>
  <rule>Ask ONE clear, focused question at a time.</rule>
  <rule>Keep your responses to 1-2 sentences maximum.</rule>
  <rule>Avoid bullet points, numbered lists, or formatting not suitable for speech.</rule>
</core_interview_rules>
{field_block}""".strip()


def _english_prompt(metadata: InterviewMetadata, field_prompt: FieldPrompt, job_limit: int, resume_limit: int) -> str:
    job = metadata.job_description[:job_limit]
    resume = metadata.resume_text[:resume_limit]
    return f"""{field_prompt.system_prompt}

CONTEXT: {metadata.first_name} for {metadata.job_title} at {metadata.company_name}

JOB: {job}

RESUME: {resume}

RULES: 1-2 sentences max. ONE question at a time. Reference their resume."""


def _multilingual_prompt(metadata: InterviewMetadata, language: str, job_limit: int, resume_limit: int) -> str:
    config = get_language(language)
    base = build_multilingual_system_prompt(language, detect_field_from_title(metadata.job_title))
    return f"""{base}

<interview_context>
  <candidate>{metadata.first_name}</candidate>
  <position>{metadata.job_title}</position>
  <company>{metadata.company_name}</company>
</interview_context>

<job_description>
{metadata.job_description[:job_limit]}
</job_description>

<candidate_resume>
{metadata.resume_text[:resume_limit]}
</candidate_resume>

<response_rules>
  <rule>Keep responses to 1-2 sentences maximum</rule>
  <rule>Ask ONE question at a time</rule>
  <rule>Reference specific items from the candidate's resume</rule>
  <rule>Conduct the ENTIRE interview in {config.name}</rule>
</response_rules>"""


def assemble_interview_prompt(
    metadata: InterviewMetadata | None,
    job_description_limit: int = 500,
    resume_limit: int = 1000,
) -> InterviewPrompt:
    language = resolve_language(metadata.preferred_language if metadata else None)
    multilingual = language != DEFAULT_LANGUAGE

    if metadata is None:
        if multilingual:
            config = get_language(language)
            system_prompt = build_multilingual_system_prompt(language)
            greeting = fill_template(config.greeting, None)
        else:
            system_prompt = GENERIC_SYSTEM_PROMPT
            greeting = GENERIC_ENGLISH_GREETING
        return InterviewPrompt(language=language, field="General", system_prompt=system_prompt, greeting=greeting)

    field_prompt = get_field_prompt(metadata.job_title, metadata.job_description)
    if multilingual:
        system_prompt = _multilingual_prompt(metadata, language, job_description_limit, resume_limit)
        greeting = fill_template(get_language(language).greeting, metadata)
    else:
        system_prompt = _english_prompt(metadata, field_prompt, job_description_limit, resume_limit)
        greeting = fill_template(field_prompt.initial_message, metadata)

    return InterviewPrompt(
        language=language,
        field=field_prompt.field,
        system_prompt=system_prompt,
        greeting=greeting,
    )
