import logging
import os
import re
from typing import List, Optional, Sequence

from openai import OpenAI

from config import EngineConfig
from models import Priority, SectionScore, SkillMatchResult, score_band

logger = logging.getLogger(__name__)

SUMMARY_PROMPT_TEMPLATE = """
You are an expert technical recruiter. Write a 2-3 sentence synopsis of the resume below for the candidate.
Mention the overall assessment, the strongest areas and the most important gaps. Do not invent facts.

Overall score: {overall_score}/100 ({band})
Section scores: {section_scores}
Matched skills: {matched_skills}
Missing skills: {missing_skills}
Skills compared against: {reference}

Resume Text:
---
{resume_text}
---
"""

SECTION_PRIORITY = (
    "experience",
    "project",
    "employment",
    "work history",
    "skills",
    "summary",
    "objective",
    "profile",
)


def _default_client() -> Optional[OpenAI]:
    api_key = os.getenv("OPENROUTER_API_KEY") or os.getenv("OPENAI_API_KEY")
    if not api_key:
        logger.error("Summarizer: missing API key. Set OPENROUTER_API_KEY or OPENAI_API_KEY.")
        return None

    base_url = os.getenv("OPENAI_BASE_URL") or None
    try:
        client = OpenAI(api_key=api_key, base_url=base_url)
        logger.info("Summarizer: initialized OpenAI-compatible client for base_url=%s", base_url or "default")
        return client
    except Exception as exc:  # pragma: no cover - best effort logging
        logger.exception("Summarizer: failed to initialize client: %s", exc)
        return None


def _reference_label(has_job_description: bool) -> str:
    return "the job description" if has_job_description else "the baseline market skill set"


def build_template_summary(
    overall_score: int,
    sections: Sequence[SectionScore],
    skill_match: SkillMatchResult,
    has_job_description: bool,
) -> str:
    band = score_band(overall_score)
    sentences = [f"{band.value} resume with an overall score of {overall_score}/100."]

    reference = _reference_label(has_job_description)
    matched_names = [record.name for record in skill_match.matched]
    if skill_match.reference_size:
        skill_sentence = f"Matches {len(matched_names)} of {skill_match.reference_size} skills from {reference}"
        if matched_names:
            skill_sentence += f" including {', '.join(matched_names[:4])}"
        sentences.append(skill_sentence + ".")
    else:
        sentences.append(f"No recognised skills were found in {reference} to match against.")

    if sections:
        strongest = max(sections, key=lambda section: section.score)
        weakest = min(sections, key=lambda section: section.score)
        sentences.append(
            f"Strongest section: {strongest.name} ({strongest.score}); "
            f"weakest: {weakest.name} ({weakest.score})."
        )

    gaps = [record.name for record in skill_match.missing if record.priority == Priority.HIGH]
    if gaps:
        sentences.append(f"Priority gaps: {', '.join(gaps[:3])}.")

    return " ".join(sentences)


def generate_summary(
    overall_score: int,
    sections: Sequence[SectionScore],
    skill_match: SkillMatchResult,
    has_job_description: bool,
    resume_text: str = "",
    config: Optional[EngineConfig] = None,
    client: Optional[OpenAI] = None,
) -> str:
    """Narrative summary; the template is used unless the LLM mode is configured and succeeds."""
    template = build_template_summary(overall_score, sections, skill_match, has_job_description)
    config = config or EngineConfig()
    if config.summary_mode != "llm":
        return template

    llm_client = client or _default_client()
    if llm_client is None:
        return template

    prompt = SUMMARY_PROMPT_TEMPLATE.format(
        overall_score=overall_score,
        band=score_band(overall_score).value,
        section_scores=", ".join(f"{section.name}: {section.score}" for section in sections),
        matched_skills=_format_focus_list([record.name for record in skill_match.matched]),
        missing_skills=_format_focus_list([record.name for record in skill_match.missing]),
        reference=_reference_label(has_job_description),
        resume_text=_prepare_resume_excerpt(resume_text),
    )
    messages = [
        {"role": "system", "content": "You are a concise career coach. Respond with plain text only."},
        {"role": "user", "content": prompt},
    ]

    try:
        response = llm_client.chat.completions.create(model=config.llm_model, messages=messages)
        raw = response.choices[0].message.content or ""
    except Exception as exc:  # pragma: no cover - network/runtime failure path
        logger.exception("LLM summary failed, falling back to template: %s", exc)
        return template

    logger.debug("Summarizer raw response: %s", raw)
    cleaned = re.sub(r"\s+", " ", raw).strip()
    return cleaned or template


def _prepare_resume_excerpt(resume_text: str, max_chars: int = 6000) -> str:
    if not resume_text:
        return ""
    cleaned = resume_text.strip()
    if len(cleaned) <= max_chars:
        return cleaned

    sections = re.split(r"\n{2,}", cleaned)
    prioritized: List[str] = []
    others: List[str] = []
    for section in sections:
        if not section.strip():
            continue
        first_line = section.splitlines()[0].lower()
        if any(keyword in first_line for keyword in SECTION_PRIORITY):
            prioritized.append(section.strip())
        else:
            others.append(section.strip())
    return "\n\n".join(prioritized + others)[:max_chars]


def _format_focus_list(items: List[str]) -> str:
    if not items:
        return "None"
    return ", ".join(items[:12])
