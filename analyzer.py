"""Rule-based resume analysis engine.

Pipeline: extraction -> (section scoring || keyword and skill extraction) ->
skill matching -> score aggregation -> recommendations -> summary. Every stage
is a pure function of its inputs; ``ResumeAnalysisEngine`` only holds the
reference data and configuration it was constructed with.
"""

import asyncio
import logging
import math
import re
from collections import Counter
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import spacy
from spacy.matcher import PhraseMatcher
from spacy.util import filter_spans

from config import EngineConfig
from errors import INPUT_ERRORS, AnalysisError, OversizedDocument
from models import (
    AWARDS,
    CANONICAL_SECTIONS,
    CERTIFICATIONS,
    CONTACT_INFORMATION,
    EDUCATION,
    PROFESSIONAL_SUMMARY,
    PROJECTS,
    SKILLS,
    WORK_EXPERIENCE,
    AnalysisFailure,
    AnalysisResult,
    DemandLevel,
    ExtractedText,
    KeywordExtraction,
    MissingSkill,
    Priority,
    ProficiencyLevel,
    RawDocument,
    SectionScore,
    SectionStatus,
    SkillMatchResult,
    SkillRecord,
    score_band,
)
from parser import extract_document, normalize_text, section_body
from skills import SkillTaxonomy, load_taxonomy
from summarizer import generate_summary

logger = logging.getLogger(__name__)

# --- Constants & Regex helpers -------------------------------------------------

PRESENCE_POINTS = 40
DENSITY_POINTS = 30
INDICATOR_POINTS = 30
EMPTY_SECTION_SCORE = 15

SECTION_WORD_TARGETS: Dict[str, int] = {
    CONTACT_INFORMATION: 8,
    PROFESSIONAL_SUMMARY: 40,
    WORK_EXPERIENCE: 30,
    EDUCATION: 15,
    SKILLS: 12,
    PROJECTS: 40,
    CERTIFICATIONS: 6,
    AWARDS: 6,
}

QUANTIFIED_LINE_WORDS = 10

SECTION_WEIGHT = 0.6
SKILL_MATCH_WEIGHT = 0.4

WORD_RE = re.compile(r"\w+")
EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
PHONE_RE = re.compile(r"(?:\+?\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}\b")
LINK_RE = re.compile(r"(https?://|www\.|linkedin\.com|github\.com|gitlab\.com)", re.IGNORECASE)
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
MONTH_YEAR_RE = re.compile(r"\b\d{1,2}\s*[/.-]\s*(?:19|20)\d{2}\b")
CURRENCY_RE = re.compile(r"[$€£]\s?\d")
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
LIST_SPLIT_RE = re.compile(r"[,;|\n]+|\s-\s")
INSTITUTION_RE = re.compile(
    r"\b(university|college|institute|school|academy|polytechnic|faculty)\b", re.IGNORECASE
)
DEGREE_RE = re.compile(
    r"(\bb\.?tech\b|\bbachelor|\bb\.e\b|\bbsc\b|\bb\.sc\b|\bb\.s\.|\bb\.a\.|\bmaster|\bm\.tech\b|"
    r"\bm\.s\.|\bmsc\b|\bmba\b|\bph\.?d\b|\bdiploma\b|\bdegree\b|\bassociate of\b)",
    re.IGNORECASE,
)
CERTIFICATION_KEYWORDS = {
    "cert",
    "license",
    "credential",
    "foundation",
    "practitioner",
    "accredit",
    "pmp",
    "scrum",
    "aws",
    "azure",
    "gcp",
    "oracle",
    "microsoft",
    "google",
    "cisco",
    "salesforce",
    "itil",
    "six sigma",
    "coursera",
    "udemy",
}
LIST_TRIM_CHARS = " -\t*"

ADVANCED_MODIFIERS = {
    "expert",
    "expertise",
    "advanced",
    "extensive",
    "extensively",
    "proficient",
    "proficiency",
    "strong",
    "deep",
    "mastery",
    "senior",
    "seasoned",
    "fluent",
}
BEGINNER_MODIFIERS = {
    "basic",
    "basics",
    "beginner",
    "familiar",
    "familiarity",
    "exposure",
    "learning",
    "introductory",
    "novice",
    "elementary",
    "foundational",
}
MODIFIER_WINDOW_BEFORE = 6
MODIFIER_WINDOW_AFTER = 4
LIST_SEPARATORS = {",", ";", "|", "."}

PRIORITY_BY_DEMAND = {
    DemandLevel.MEDIUM: Priority.MEDIUM,
    DemandLevel.LOW: Priority.LOW,
}

SECTION_RECOMMENDATIONS: Dict[str, str] = {
    CONTACT_INFORMATION: (
        "Complete your contact information with a professional email, a phone number "
        "and a LinkedIn profile or portfolio URL."
    ),
    PROFESSIONAL_SUMMARY: (
        "Add a concise professional summary that states your years of experience "
        "and your key achievements."
    ),
    WORK_EXPERIENCE: (
        "Strengthen your work experience with clear dates, action verbs and measurable "
        "results for each role."
    ),
    EDUCATION: "List your education with the institution, the degree earned and the graduation date.",
    SKILLS: "Add a dedicated skills section that groups your technical and soft skills by category.",
    PROJECTS: "Add a projects section that shows the tech stack and the outcome of your most relevant work.",
    CERTIFICATIONS: (
        "Include relevant industry certifications with the issuing organization and completion date."
    ),
    AWARDS: "Mention professional awards or recognition with dates and a short description.",
}
MISSING_SKILL_RECOMMENDATION = "Consider adding {skill} ({category}) if you have experience with it: {reason}."
JOB_DESCRIPTION_RECOMMENDATION = (
    "Paste the job description you are targeting to get a tailored skill match and keyword suggestions."
)
QUANTIFY_RECOMMENDATION = (
    "Include quantifiable achievements and metrics, such as percentages, revenue or time saved, "
    "to demonstrate impact."
)
QUANTIFY_THRESHOLD = 90


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


# --- Section scoring -----------------------------------------------------------

def _section_bodies(extracted: ExtractedText, label: str) -> Optional[str]:
    bodies = [section_body(span.text) for span in extracted.sections if span.label == label]
    if not bodies:
        return None
    return "\n".join(body for body in bodies if body)


def _body_lines(body: str) -> List[str]:
    return [line.strip(LIST_TRIM_CHARS) for line in body.splitlines() if line.strip(LIST_TRIM_CHARS)]


def _list_items(body: str) -> List[str]:
    items = [item.strip(LIST_TRIM_CHARS) for item in LIST_SPLIT_RE.split(body)]
    return [item for item in items if WORD_RE.search(item)]


def _has_date(body: str) -> bool:
    return bool(YEAR_RE.search(body) or MONTH_YEAR_RE.search(body))


def _is_quantified(line: str) -> bool:
    """A line carries a metric when it has a number that is not just a date."""
    if CURRENCY_RE.search(line):
        return True
    without_dates = YEAR_RE.sub(" ", MONTH_YEAR_RE.sub(" ", line))
    return bool(re.search(r"\d", without_dates))


def _quantified_line_count(body: str) -> int:
    return sum(1 for line in _body_lines(body) if _is_quantified(line))


def _indicator_ratio(name: str, body: str) -> float:
    lowered = body.lower()
    if name == CONTACT_INFORMATION:
        hits = [EMAIL_RE.search(body), PHONE_RE.search(body), LINK_RE.search(body)]
        return sum(1 for hit in hits if hit) / 3.0
    if name == PROFESSIONAL_SUMMARY:
        sentences = [s for s in SENTENCE_SPLIT_RE.split(body) if WORD_RE.search(s)]
        hits = [len(sentences) >= 2, bool(re.search(r"\d", body))]
        return sum(1 for hit in hits if hit) / 2.0
    if name == WORK_EXPERIENCE:
        return min(1.0, _quantified_line_count(body) / 3.0)
    if name == PROJECTS:
        return min(1.0, _quantified_line_count(body) / 2.0)
    if name == EDUCATION:
        hits = [_has_date(body), INSTITUTION_RE.search(body), DEGREE_RE.search(body)]
        return sum(1 for hit in hits if hit) / 3.0
    if name == CERTIFICATIONS:
        issuer = "certif" in lowered or any(keyword in lowered for keyword in CERTIFICATION_KEYWORDS)
        return sum(1 for hit in (_has_date(body), issuer) if hit) / 2.0
    if name == SKILLS:
        return min(1.0, len(_list_items(body)) / 8.0)
    if name == AWARDS:
        return sum(1 for hit in (_has_date(body), len(_body_lines(body)) >= 2) if hit) / 2.0
    return 0.0


def score_section(name: str, body: Optional[str]) -> int:
    """Completeness score for one canonical section; ``None`` means the section is absent."""
    if body is None:
        return 0
    words = WORD_RE.findall(body)
    if not words:
        return EMPTY_SECTION_SCORE

    word_count = len(words)
    if name in (WORK_EXPERIENCE, PROJECTS):
        # Each quantified bullet counts as a full line of content.
        word_count = max(word_count, QUANTIFIED_LINE_WORDS * _quantified_line_count(body))

    target = SECTION_WORD_TARGETS.get(name, 20)
    density = min(1.0, word_count / float(target))
    raw = PRESENCE_POINTS + DENSITY_POINTS * density + INDICATOR_POINTS * _indicator_ratio(name, body)
    return _clamp(_round_half_up(raw))


def classify_sections(extracted: ExtractedText) -> Tuple[SectionScore, ...]:
    """Score all eight canonical sections in their fixed order."""
    return tuple(
        SectionScore(name=name, score=score_section(name, _section_bodies(extracted, name)))
        for name in CANONICAL_SECTIONS
    )


# --- Skill & keyword extraction ------------------------------------------------

@lru_cache(maxsize=1)
def _load_spacy_model():
    """Lazy-load a blank English pipeline once per process; only the tokenizer is needed."""
    return spacy.blank("en")


def _alias_variants(nlp, aliases: Sequence[str]) -> List[str]:
    """Aliases plus a plural form for single-word ones, so "microservice" matches "microservices"."""
    variants: List[str] = []
    for alias in aliases:
        variants.append(alias)
        if alias.isalpha() and len(alias) > 3 and not alias.lower().endswith("s"):
            if len(nlp.make_doc(alias)) == 1:
                variants.append(alias + "s")
    return variants


class SkillLookup:
    """Phrase lookup of taxonomy aliases, built once per taxonomy.

    Aliases match case-insensitively, except the ones the taxonomy marks as
    exact ("Rust", "Excel", ...), which only match as written.
    """

    def __init__(self, taxonomy: SkillTaxonomy):
        self.taxonomy = taxonomy
        self.nlp = _load_spacy_model()
        self.matcher = PhraseMatcher(self.nlp.vocab, attr="LOWER")
        self.exact_matcher = PhraseMatcher(self.nlp.vocab, attr="ORTH")
        for official_name, aliases in taxonomy.aliases.items():
            loose = [alias for alias in aliases if alias not in taxonomy.exact_aliases]
            exact = [alias for alias in aliases if alias in taxonomy.exact_aliases]
            if loose:
                self.matcher.add(
                    official_name, [self.nlp.make_doc(alias) for alias in _alias_variants(self.nlp, loose)]
                )
            if exact:
                self.exact_matcher.add(
                    official_name, [self.nlp.make_doc(alias) for alias in _alias_variants(self.nlp, exact)]
                )

    def spans(self, doc):
        """Longest non-overlapping skill spans; each span's label is the official name."""
        found = list(self.matcher(doc, as_spans=True)) + list(self.exact_matcher(doc, as_spans=True))
        return filter_spans(found)


def find_skill_mentions(text: str, lookup: SkillLookup) -> List[str]:
    """Official skill names mentioned in ``text``, in order of first appearance."""
    if not text or not text.strip():
        return []
    doc = lookup.nlp.make_doc(text)
    found: List[str] = []
    for span in lookup.spans(doc):
        if span.label_ not in found:
            found.append(span.label_)
    return found


def _modifier_level(token_text: str) -> Optional[ProficiencyLevel]:
    lowered = token_text.lower()
    if lowered in ADVANCED_MODIFIERS:
        return ProficiencyLevel.ADVANCED
    if lowered in BEGINNER_MODIFIERS:
        return ProficiencyLevel.BEGINNER
    return None


def _ends_clause(token) -> bool:
    return "\n" in token.text or token.text in LIST_SEPARATORS


def infer_proficiency(doc, start: int, end: int) -> ProficiencyLevel:
    """Nearest modifier in the same list item wins; words before the skill take precedence."""
    for idx in range(start - 1, max(-1, start - 1 - MODIFIER_WINDOW_BEFORE), -1):
        token = doc[idx]
        if _ends_clause(token):
            break
        level = _modifier_level(token.text)
        if level:
            return level
    for idx in range(end, min(len(doc), end + MODIFIER_WINDOW_AFTER)):
        token = doc[idx]
        if _ends_clause(token):
            break
        level = _modifier_level(token.text)
        if level:
            return level
    return ProficiencyLevel.INTERMEDIATE


def count_keywords(doc, skill_spans=()) -> Mapping[str, int]:
    """Case-folded keyword counts; a skill mention counts once under its own text."""
    counts: Counter = Counter()
    covered = set()
    for span in skill_spans:
        counts[span.text.lower()] += 1
        covered.update(range(span.start, span.end))

    for token in doc:
        if token.i in covered:
            continue
        if token.is_space or token.is_punct or token.is_stop or token.like_num:
            continue
        if token.like_email or token.like_url:
            continue
        lowered = token.lower_.strip()
        if len(lowered) < 2 or not any(char.isalpha() for char in lowered):
            continue
        counts[lowered] += 1
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return MappingProxyType(dict(ordered))


def extract_keywords(extracted: ExtractedText, lookup: SkillLookup) -> KeywordExtraction:
    """Keyword frequency table plus the candidate skills found in the resume."""
    doc = lookup.nlp.make_doc(extracted.text)
    spans = lookup.spans(doc)
    keywords = count_keywords(doc, spans)

    levels: Dict[str, ProficiencyLevel] = {}
    for span in spans:
        level = infer_proficiency(doc, span.start, span.end)
        current = levels.get(span.label_)
        if current is None or level.rank > current.rank:
            levels[span.label_] = level

    taxonomy = lookup.taxonomy
    skills = tuple(
        SkillRecord(
            name=name,
            category=taxonomy.category_of(name),
            proficiency=levels[name],
            demand=taxonomy.demand_of(name),
        )
        for name in sorted(levels, key=str.lower)
    )
    return KeywordExtraction(keywords=keywords, skills=skills)


# --- Skill matching ------------------------------------------------------------

def reference_skills(job_description: str, lookup: SkillLookup) -> List[str]:
    """Skills named in the job description, or the taxonomy baseline when there is none."""
    if job_description and job_description.strip():
        return find_skill_mentions(normalize_text(job_description), lookup)
    return list(lookup.taxonomy.baseline)


def match_skills(
    candidates: Sequence[SkillRecord],
    job_description: str,
    lookup: SkillLookup,
) -> SkillMatchResult:
    taxonomy = lookup.taxonomy
    top_tier = taxonomy.top_demand_tier
    by_name = {record.name.lower(): record for record in candidates}

    matched: List[SkillRecord] = []
    missing: List[MissingSkill] = []
    seen = set()
    for name in reference_skills(job_description, lookup):
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        record = by_name.get(key)
        if record is not None:
            matched.append(record)
            continue
        category = taxonomy.category_of(name)
        if name in top_tier:
            priority = Priority.HIGH
        else:
            priority = PRIORITY_BY_DEMAND[taxonomy.demand_of(name)]
        missing.append(
            MissingSkill(
                name=name,
                category=category,
                priority=priority,
                reason=taxonomy.reason_for(category),
            )
        )

    return SkillMatchResult(
        matched=tuple(sorted(matched, key=lambda record: record.name.lower())),
        missing=tuple(sorted(missing, key=lambda record: record.name.lower())),
    )


# --- Scoring & recommendations -------------------------------------------------

def aggregate_score(sections: Sequence[SectionScore], skill_match: SkillMatchResult) -> int:
    section_mean = sum(section.score for section in sections) / len(sections) if sections else 0.0
    raw = SECTION_WEIGHT * section_mean + SKILL_MATCH_WEIGHT * skill_match.match_percentage
    return _clamp(_round_half_up(raw))


def generate_recommendations(
    sections: Sequence[SectionScore],
    skill_match: SkillMatchResult,
    has_job_description: bool,
    max_recommendations: int,
) -> Tuple[str, ...]:
    """Highest-impact first: section deficits, high-priority gaps, then generic advice."""
    recommendations: List[str] = []

    order = {name: idx for idx, name in enumerate(CANONICAL_SECTIONS)}
    deficits = [
        section
        for section in sections
        if section.status in (SectionStatus.NEEDS_IMPROVEMENT, SectionStatus.MISSING)
    ]
    deficits.sort(key=lambda section: (section.score, order.get(section.name, len(order))))
    for section in deficits:
        message = SECTION_RECOMMENDATIONS.get(section.name)
        if message:
            recommendations.append(message)

    for skill in skill_match.missing:
        if skill.priority == Priority.HIGH:
            recommendations.append(
                MISSING_SKILL_RECOMMENDATION.format(
                    skill=skill.name, category=skill.category, reason=skill.reason.lower()
                )
            )

    if not has_job_description:
        recommendations.append(JOB_DESCRIPTION_RECOMMENDATION)

    experience = next((section for section in sections if section.name == WORK_EXPERIENCE), None)
    if experience is None or experience.score < QUANTIFY_THRESHOLD:
        recommendations.append(QUANTIFY_RECOMMENDATION)

    return tuple(recommendations[:max_recommendations])


# --- Main analysis entry point -------------------------------------------------

class ResumeAnalysisEngine:
    """Stateless analysis pipeline bound to one taxonomy and one configuration."""

    def __init__(self, taxonomy: SkillTaxonomy, config: Optional[EngineConfig] = None, llm_client=None):
        self.taxonomy = taxonomy
        self.config = config or EngineConfig()
        self._lookup = SkillLookup(taxonomy)
        self._llm_client = llm_client

    @classmethod
    def from_config(cls, config: Optional[EngineConfig] = None) -> "ResumeAnalysisEngine":
        """Load the configured taxonomy; raises TaxonomyUnavailable if it cannot be read."""
        config = config or EngineConfig.from_env()
        return cls(load_taxonomy(config.taxonomy_path), config)

    def analyze(
        self, document: RawDocument, job_description: str = ""
    ) -> Union[AnalysisResult, AnalysisFailure]:
        _check_job_description(job_description)
        try:
            extracted = self._extract(document)
        except INPUT_ERRORS as exc:
            return self._failure(document, exc)

        sections = classify_sections(extracted)
        extraction = extract_keywords(extracted, self._lookup)
        return self._finish(document, extracted, job_description, sections, extraction)

    async def analyze_async(
        self, document: RawDocument, job_description: str = ""
    ) -> Union[AnalysisResult, AnalysisFailure]:
        """Same result as ``analyze``; section scoring and keyword extraction run concurrently."""
        _check_job_description(job_description)
        try:
            extracted = await asyncio.to_thread(self._extract, document)
        except INPUT_ERRORS as exc:
            return self._failure(document, exc)

        sections, extraction = await asyncio.gather(
            asyncio.to_thread(classify_sections, extracted),
            asyncio.to_thread(extract_keywords, extracted, self._lookup),
        )
        return await asyncio.to_thread(
            self._finish, document, extracted, job_description, sections, extraction
        )

    def _extract(self, document: RawDocument) -> ExtractedText:
        limit = self.config.max_upload_size_bytes
        if document.size > limit:
            raise OversizedDocument(f"{document.filename!r} is {document.size} bytes; the limit is {limit}")
        return extract_document(document, limit)

    def _finish(
        self,
        document: RawDocument,
        extracted: ExtractedText,
        job_description: str,
        sections: Tuple[SectionScore, ...],
        extraction: KeywordExtraction,
    ) -> AnalysisResult:
        has_job_description = bool(job_description.strip())
        skill_match = match_skills(extraction.skills, job_description, self._lookup)
        overall_score = aggregate_score(sections, skill_match)
        recommendations = generate_recommendations(
            sections, skill_match, has_job_description, self.config.max_recommendations
        )

        summary = ""
        if self.config.enable_summary_generation:
            summary = generate_summary(
                overall_score,
                sections,
                skill_match,
                has_job_description,
                resume_text=extracted.text,
                config=self.config,
                client=self._llm_client,
            )

        logger.info(
            "Analyzed %s: score=%d band=%s matched=%d missing=%d",
            document.filename,
            overall_score,
            score_band(overall_score).value,
            len(skill_match.matched),
            len(skill_match.missing),
        )
        return AnalysisResult(
            overall_score=overall_score,
            skill_match=skill_match,
            sections=sections,
            keywords=extraction.keywords,
            summary=summary,
            recommendations=recommendations,
        )

    @staticmethod
    def _failure(document: RawDocument, exc: AnalysisError) -> AnalysisFailure:
        logger.warning("Analysis of %s failed (%s): %s", document.filename, exc.kind, exc.detail)
        return AnalysisFailure(kind=exc.kind, message=exc.user_message)


def _check_job_description(job_description: str) -> None:
    if not isinstance(job_description, str):
        raise TypeError("job_description must be a string; pass '' when there is none")
