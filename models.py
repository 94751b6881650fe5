"""Data model shared by the extractor, the analyzer and the HTTP layer."""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

CONTACT_INFORMATION = "Contact Information"
PROFESSIONAL_SUMMARY = "Professional Summary"
WORK_EXPERIENCE = "Work Experience"
EDUCATION = "Education"
SKILLS = "Skills"
PROJECTS = "Projects"
CERTIFICATIONS = "Certifications"
AWARDS = "Awards"
UNCLASSIFIED = "Unclassified"

CANONICAL_SECTIONS: Tuple[str, ...] = (
    CONTACT_INFORMATION,
    PROFESSIONAL_SUMMARY,
    WORK_EXPERIENCE,
    EDUCATION,
    SKILLS,
    PROJECTS,
    CERTIFICATIONS,
    AWARDS,
)


class SectionStatus(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    NEEDS_IMPROVEMENT = "Needs Improvement"
    MISSING = "Missing"


class ProficiencyLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @property
    def rank(self) -> int:
        return _PROFICIENCY_ORDER.index(self)


_PROFICIENCY_ORDER = [ProficiencyLevel.BEGINNER, ProficiencyLevel.INTERMEDIATE, ProficiencyLevel.ADVANCED]


class DemandLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ScoreBand(str, Enum):
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"


def status_for_score(score: int) -> SectionStatus:
    if score >= 90:
        return SectionStatus.EXCELLENT
    if score >= 70:
        return SectionStatus.GOOD
    if score >= 40:
        return SectionStatus.NEEDS_IMPROVEMENT
    return SectionStatus.MISSING


def score_band(score: int) -> ScoreBand:
    """Poor [0,40), Fair [40,70), Good [70,85), Excellent [85,100]."""
    if score >= 85:
        return ScoreBand.EXCELLENT
    if score >= 70:
        return ScoreBand.GOOD
    if score >= 40:
        return ScoreBand.FAIR
    return ScoreBand.POOR


@dataclass(frozen=True)
class RawDocument:
    content: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class SectionSpan:
    label: str
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class ExtractedText:
    """Normalized document text plus contiguous labelled spans covering all of it."""

    text: str
    sections: Tuple[SectionSpan, ...] = ()


@dataclass(frozen=True)
class SectionScore:
    name: str
    score: int

    @property
    def status(self) -> SectionStatus:
        return status_for_score(self.score)

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "score": self.score, "status": self.status.value}


@dataclass(frozen=True)
class SkillRecord:
    name: str
    category: str
    proficiency: ProficiencyLevel = ProficiencyLevel.INTERMEDIATE
    demand: DemandLevel = DemandLevel.MEDIUM

    def to_dict(self) -> Dict[str, str]:
        return {
            "skill": self.name,
            "category": self.category,
            "level": self.proficiency.value,
            "demand": self.demand.value,
        }


@dataclass(frozen=True)
class MissingSkill:
    name: str
    category: str
    priority: Priority
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "skill": self.name,
            "category": self.category,
            "priority": self.priority.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class SkillMatchResult:
    matched: Tuple[SkillRecord, ...] = ()
    missing: Tuple[MissingSkill, ...] = ()

    @property
    def reference_size(self) -> int:
        return len(self.matched) + len(self.missing)

    @property
    def match_percentage(self) -> float:
        """Exact coverage ratio in percent; 50 when there is nothing to match against."""
        if not self.reference_size:
            return 50.0
        return 100.0 * len(self.matched) / self.reference_size

    def to_dict(self) -> Dict[str, object]:
        return {
            "matched": len(self.matched),
            "missing": len(self.missing),
            "details": {
                "matched": [record.to_dict() for record in self.matched],
                "missing": [record.to_dict() for record in self.missing],
            },
        }


@dataclass(frozen=True)
class KeywordExtraction:
    keywords: Mapping[str, int]
    skills: Tuple[SkillRecord, ...]


@dataclass(frozen=True)
class AnalysisResult:
    overall_score: int
    skill_match: SkillMatchResult
    sections: Tuple[SectionScore, ...]
    keywords: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    summary: str = ""
    recommendations: Tuple[str, ...] = ()

    @property
    def band(self) -> ScoreBand:
        return score_band(self.overall_score)

    def to_dict(self) -> Dict[str, object]:
        return {
            "overallScore": self.overall_score,
            "skillMatch": self.skill_match.to_dict(),
            "sections": [section.to_dict() for section in self.sections],
            "keywords": dict(self.keywords),
            "summary": self.summary,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class AnalysisFailure:
    kind: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind, "message": self.message}
