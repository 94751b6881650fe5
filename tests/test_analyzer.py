import asyncio

import pytest

import analyzer
from analyzer import (
    JOB_DESCRIPTION_RECOMMENDATION,
    QUANTIFY_RECOMMENDATION,
    SECTION_RECOMMENDATIONS,
    ResumeAnalysisEngine,
    SkillLookup,
    aggregate_score,
    classify_sections,
    extract_keywords,
    find_skill_mentions,
    generate_recommendations,
    match_skills,
    score_section,
)
from config import EngineConfig
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
    Priority,
    ProficiencyLevel,
    RawDocument,
    ScoreBand,
    SectionScore,
    SectionStatus,
    SkillMatchResult,
    SkillRecord,
    score_band,
)
from parser import DOCX_MIME, PDF_MIME
from skills import SkillTaxonomy

ZERO_OVERLAP_JD = "Looking for Terraform, Golang and Elasticsearch experience."


def _record(name, proficiency=ProficiencyLevel.INTERMEDIATE):
    return SkillRecord(name=name, category="Programming", proficiency=proficiency, demand=DemandLevel.HIGH)


def _scores(extracted):
    return {section.name: section.score for section in classify_sections(extracted)}


# --- Section classification ----------------------------------------------------

def test_all_canonical_sections_scored_in_order(sample_resume, extracted_from_text):
    sections = classify_sections(extracted_from_text(sample_resume))
    assert tuple(section.name for section in sections) == CANONICAL_SECTIONS
    assert all(0 <= section.score <= 100 for section in sections)


def test_sample_resume_section_scores(sample_resume, extracted_from_text):
    scores = _scores(extracted_from_text(sample_resume))
    assert scores == {
        CONTACT_INFORMATION: 100,
        PROFESSIONAL_SUMMARY: 88,
        WORK_EXPERIENCE: 100,
        EDUCATION: 84,
        SKILLS: 95,
        PROJECTS: 0,
        CERTIFICATIONS: 0,
        AWARDS: 0,
    }


def test_quantified_experience_and_missing_sections(engine, sample_docx):
    result = engine.analyze(sample_docx)
    assert isinstance(result, AnalysisResult)

    by_name = {section.name: section for section in result.sections}
    assert by_name[WORK_EXPERIENCE].score >= 80
    for name in (CERTIFICATIONS, AWARDS):
        assert by_name[name].score == 0
        assert by_name[name].status == SectionStatus.MISSING
        assert SECTION_RECOMMENDATIONS[name] in result.recommendations


def test_three_short_quantified_bullets_score_well(extracted_from_text):
    text = (
        "Jane Doe\njane@example.com\n\n"
        "Experience\n- Increased sales by 20%\n- Cut hosting costs by 15%\n- Grew the team to 12 engineers"
    )
    assert _scores(extracted_from_text(text))[WORK_EXPERIENCE] >= 80


def test_empty_section_scores_low_but_present(extracted_from_text):
    text = "Jane Doe\njane@example.com\n\nAwards\n\nSkills: Python, SQL"
    scores = _scores(extracted_from_text(text))
    assert scores[AWARDS] == analyzer.EMPTY_SECTION_SCORE
    assert scores[PROJECTS] == 0


def test_absent_section_scores_zero():
    assert score_section(PROJECTS, None) == 0


def test_unquantified_experience_scores_lower():
    plain = "Software Engineer at Acme, 2019 - 2023\n- Worked on the backend\n- Helped the team"
    quantified = plain + "\n- Cut build times by 35%\n- Shipped 4 releases"
    assert score_section(WORK_EXPERIENCE, plain) < score_section(WORK_EXPERIENCE, quantified)


@pytest.mark.parametrize(
    "score, status",
    [(100, SectionStatus.EXCELLENT), (90, SectionStatus.EXCELLENT), (89, SectionStatus.GOOD),
     (70, SectionStatus.GOOD), (69, SectionStatus.NEEDS_IMPROVEMENT), (40, SectionStatus.NEEDS_IMPROVEMENT),
     (39, SectionStatus.MISSING), (0, SectionStatus.MISSING)],
)
def test_section_status_thresholds(score, status):
    assert SectionScore(name=SKILLS, score=score).status == status


@pytest.mark.parametrize(
    "score, band",
    [(39, ScoreBand.POOR), (40, ScoreBand.FAIR), (69, ScoreBand.FAIR), (70, ScoreBand.GOOD),
     (84, ScoreBand.GOOD), (85, ScoreBand.EXCELLENT), (100, ScoreBand.EXCELLENT)],
)
def test_score_band_boundaries(score, band):
    assert score_band(score) == band


# --- Keywords and skills -------------------------------------------------------

def test_keyword_frequency(lookup, sample_resume, extracted_from_text):
    extraction = extract_keywords(extracted_from_text(sample_resume), lookup)
    assert extraction.keywords["python"] == 2
    assert extraction.keywords["docker"] == 2
    assert "the" not in extraction.keywords
    assert "jane.doe@example.com" not in extraction.keywords
    counts = list(extraction.keywords.values())
    assert counts == sorted(counts, reverse=True)
    assert sum(counts) >= len(extraction.skills)


def test_symbol_skills_are_counted_as_keywords(lookup, extracted_from_text):
    extraction = extract_keywords(extracted_from_text("C++ C# .NET developer"), lookup)

    assert {record.name for record in extraction.skills} == {"C#", "C++"}
    assert extraction.keywords["c++"] == 1
    assert extraction.keywords["c#"] == 1
    assert sum(extraction.keywords.values()) >= len(extraction.skills)


def test_candidate_skills_and_proficiency(lookup, sample_resume, extracted_from_text):
    extraction = extract_keywords(extracted_from_text(sample_resume), lookup)
    levels = {record.name: record.proficiency for record in extraction.skills}

    assert set(levels) == {
        "Docker", "Git", "JavaScript", "Kubernetes", "Python", "React", "Redis", "RESTful APIs", "Rust", "SQL",
    }
    assert levels["Python"] == ProficiencyLevel.ADVANCED
    assert levels["Rust"] == ProficiencyLevel.BEGINNER
    assert levels["SQL"] == ProficiencyLevel.INTERMEDIATE
    assert levels["RESTful APIs"] == ProficiencyLevel.INTERMEDIATE


def test_skill_lookup_is_case_insensitive_and_handles_plurals(lookup, extracted_from_text):
    text = "Designed MICROSERVICE architecture on k8s with postgresql; wrote unit tests."
    extraction = extract_keywords(extracted_from_text(text), lookup)
    names = {record.name for record in extraction.skills}
    assert {"Kubernetes", "SQL", "Unit Testing"} <= names

    plural = extract_keywords(extracted_from_text("Containerized legacy services with Dockers"), lookup)
    assert "Docker" in {record.name for record in plural.skills}


def test_everyday_words_are_not_skills(lookup, extracted_from_text):
    prose = "Took a week off to rest. I excel at mentoring and fixed a rust stain."
    assert extract_keywords(extracted_from_text(prose), lookup).skills == ()
    assert find_skill_mentions("Candidates who rest well and react calmly", lookup) == []


def test_ambiguous_skills_match_when_written_as_names(lookup):
    text = "Shipped services in Rust, built reports in Excel and designed a rest api with React"
    assert find_skill_mentions(text, lookup) == ["Rust", "Excel", "RESTful APIs", "React"]


def test_unknown_skill_demand_defaults_to_medium(lookup, extracted_from_text):
    extraction = extract_keywords(extracted_from_text("Experienced with Confluence and Flask"), lookup)
    demand = {record.name: record.demand for record in extraction.skills}
    assert demand["Flask"] == DemandLevel.MEDIUM
    assert demand["Confluence"] == DemandLevel.LOW


# --- Skill matching ------------------------------------------------------------

def test_baseline_match_percentage(synthetic_taxonomy):
    lookup = SkillLookup(synthetic_taxonomy)
    result = match_skills([_record("JavaScript"), _record("React")], "", lookup)

    assert [record.name for record in result.matched] == ["JavaScript", "React"]
    assert [record.name for record in result.missing] == ["SQL"]
    assert round(result.match_percentage) == 67
    assert result.missing[0].priority == Priority.MEDIUM
    assert result.missing[0].reason == "Essential for data storage"


def test_matching_is_case_insensitive(synthetic_taxonomy):
    lookup = SkillLookup(synthetic_taxonomy)
    result = match_skills([_record("javascript")], "We need strong JS and React skills", lookup)
    assert [record.name for record in result.matched] == ["javascript"]
    assert [record.name for record in result.missing] == ["React"]
    assert result.missing[0].priority == Priority.HIGH


def test_missing_priority_follows_top_demand_tier():
    taxonomy = SkillTaxonomy.from_dict(
        {
            "version": "tiers",
            "skills": {
                "Kubernetes": {"category": "DevOps", "demand": "High"},
                "Redis": {"category": "Database"},
                "Elasticsearch": {"category": "Database", "demand": "Low"},
            },
            "baseline": ["Kubernetes", "Redis", "Elasticsearch"],
        }
    )
    result = match_skills([], "", SkillLookup(taxonomy))

    priorities = {record.name: record.priority for record in result.missing}
    assert taxonomy.top_demand_tier == frozenset({"Kubernetes"})
    assert priorities == {"Kubernetes": Priority.HIGH, "Redis": Priority.MEDIUM, "Elasticsearch": Priority.LOW}


def test_matched_and_missing_partition_reference(lookup, sample_resume, extracted_from_text):
    extraction = extract_keywords(extracted_from_text(sample_resume), lookup)
    result = match_skills(extraction.skills, "", lookup)

    matched = {record.name for record in result.matched}
    missing = {record.name for record in result.missing}
    assert not matched & missing
    assert matched | missing == set(lookup.taxonomy.baseline)
    assert missing == {"AWS", "CI/CD", "Unit Testing", "Agile Methodology", "Communication", "Problem Solving"}


def test_empty_reference_set_is_neutral():
    taxonomy = SkillTaxonomy.from_dict({"version": "empty", "skills": {"Python": {}}})
    result = match_skills([_record("Python")], "", SkillLookup(taxonomy))
    assert result.matched == () and result.missing == ()
    assert result.match_percentage == 50.0


def test_aggregate_score():
    sections = [SectionScore(name=name, score=100) for name in CANONICAL_SECTIONS]
    skill_match = SkillMatchResult(matched=(_record("JavaScript"), _record("React")), missing=())
    assert aggregate_score(sections, skill_match) == 100
    assert aggregate_score([SectionScore(name=name, score=0) for name in CANONICAL_SECTIONS], SkillMatchResult()) == 20


# --- Recommendations -----------------------------------------------------------

def test_recommendations_order_and_cap(engine, sample_docx):
    result = engine.analyze(sample_docx)
    assert result.recommendations == (
        SECTION_RECOMMENDATIONS[PROJECTS],
        SECTION_RECOMMENDATIONS[CERTIFICATIONS],
        SECTION_RECOMMENDATIONS[AWARDS],
        "Consider adding Agile Methodology (Methodology) if you have experience with it: "
        "shows how you plan and deliver with a team.",
        "Consider adding AWS (Cloud) if you have experience with it: most teams now deploy to the cloud.",
    )


def test_recommendations_without_cap(taxonomy, sample_docx):
    engine = ResumeAnalysisEngine(taxonomy, EngineConfig(max_recommendations=20))
    result = engine.analyze(sample_docx)
    assert len(result.recommendations) == 8
    assert result.recommendations[-1] == JOB_DESCRIPTION_RECOMMENDATION
    assert QUANTIFY_RECOMMENDATION not in result.recommendations


def test_quantify_recommendation_when_experience_is_weak():
    sections = [SectionScore(name=name, score=95) for name in CANONICAL_SECTIONS]
    sections[2] = SectionScore(name=WORK_EXPERIENCE, score=75)
    recommendations = generate_recommendations(sections, SkillMatchResult(), True, 5)
    assert recommendations == (QUANTIFY_RECOMMENDATION,)


def test_zero_overlap_job_description(engine, sample_docx):
    result = engine.analyze(sample_docx, ZERO_OVERLAP_JD)

    assert result.skill_match.matched == ()
    assert {record.name for record in result.skill_match.missing} == {"Terraform", "Golang", "Elasticsearch"}
    assert JOB_DESCRIPTION_RECOMMENDATION not in result.recommendations


def test_whitespace_job_description_uses_baseline(engine, sample_docx):
    result = engine.analyze(sample_docx, "   \n ")
    assert result.skill_match.reference_size == len(engine.taxonomy.baseline)


def test_recommendations_can_be_disabled(taxonomy, sample_docx):
    engine = ResumeAnalysisEngine(taxonomy, EngineConfig(max_recommendations=0))
    assert engine.analyze(sample_docx).recommendations == ()


# --- Engine --------------------------------------------------------------------

def test_overall_score_and_payload(engine, sample_docx):
    result = engine.analyze(sample_docx)

    assert result.overall_score == 55
    assert result.band == ScoreBand.FAIR
    payload = result.to_dict()
    assert set(payload) == {"overallScore", "skillMatch", "sections", "keywords", "summary", "recommendations"}
    assert payload["skillMatch"]["matched"] == 6
    assert payload["skillMatch"]["missing"] == 6
    assert payload["sections"][0] == {"name": CONTACT_INFORMATION, "score": 100, "status": "Excellent"}


def test_oversized_document_is_rejected_before_extraction(taxonomy, monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("extraction must not run")

    monkeypatch.setattr(analyzer, "extract_document", _fail)
    engine = ResumeAnalysisEngine(taxonomy, EngineConfig(max_upload_size_bytes=1024))
    document = RawDocument(content=b"x" * 1025, mime_type=DOCX_MIME, filename="big.docx")

    result = engine.analyze(document)

    assert isinstance(result, AnalysisFailure)
    assert result.to_dict()["error"] == "OversizedDocument"


def test_input_failures_are_returned_not_raised(engine):
    document = RawDocument(content=b"hello", mime_type="text/plain", filename="cv.txt")
    result = engine.analyze(document)
    assert isinstance(result, AnalysisFailure)
    assert result.kind == "UnsupportedFormat"


def test_job_description_must_be_text(engine, sample_docx):
    with pytest.raises(TypeError):
        engine.analyze(sample_docx, None)


def test_analysis_is_deterministic(engine, sample_docx):
    first = engine.analyze(sample_docx, "Python and AWS developer")
    second = engine.analyze(sample_docx, "Python and AWS developer")
    concurrent = asyncio.run(engine.analyze_async(sample_docx, "Python and AWS developer"))
    assert first == second == concurrent


def test_analyze_async_reports_failures(engine):
    document = RawDocument(content=b"not a pdf", mime_type=PDF_MIME, filename="cv.pdf")
    result = asyncio.run(engine.analyze_async(document))
    assert isinstance(result, AnalysisFailure)
    assert result.kind == "CorruptDocument"


def test_resume_bytes_are_not_mutated(engine, sample_resume, make_docx):
    content = make_docx(sample_resume)
    document = RawDocument(content=content, mime_type=DOCX_MIME, filename="cv.docx")
    engine.analyze(document)
    assert document.content == content
