# skills.py
# Central "knowledge base" for all skills: aliases, categories, market demand and
# the reasons shown next to a missing skill. The built-in tables below are the
# default taxonomy; a JSON file with the same shape can replace them at startup.

import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from errors import TaxonomyUnavailable
from models import DemandLevel

logger = logging.getLogger(__name__)

TAXONOMY_VERSION = "2024.1"

# The "key" is the official skill name.
# The "value" is a list of all possible ways it might be written (case-insensitivity is handled by the matcher).
MASTER_SKILL_LIST: Dict[str, List[str]] = {
    # --- Programming languages ---
    "Python": ["Python"],
    "JavaScript": ["JavaScript", "JS", "ES6"],
    "TypeScript": ["TypeScript"],
    "Java": ["Java"],
    "C++": ["C++"],
    "C#": ["C#", ".NET", "dotnet"],
    "Golang": ["Golang"],
    "Rust": ["Rust"],
    # --- Frontend ---
    "React": ["React", "React.js", "ReactJS"],
    "Angular": ["Angular", "AngularJS"],
    "Vue.js": ["Vue.js", "Vue", "VueJS"],
    "HTML": ["HTML", "HTML5"],
    "CSS": ["CSS", "CSS3", "Sass", "Tailwind"],
    "Webpack": ["Webpack"],
    # --- Backend ---
    "Node.js": ["Node.js", "NodeJS"],
    "Express.js": ["Express.js", "ExpressJS"],
    "Django": ["Django"],
    "Flask": ["Flask"],
    "FastAPI": ["FastAPI"],
    "Spring Boot": ["Spring Boot", "Spring Framework"],
    "RESTful APIs": ["RESTful APIs", "REST API", "REST APIs", "REST"],
    "GraphQL": ["GraphQL"],
    # --- Data stores ---
    "SQL": ["SQL", "PostgreSQL", "MySQL", "MSSQL"],
    "MongoDB": ["MongoDB", "Mongo"],
    "Redis": ["Redis"],
    "Elasticsearch": ["Elasticsearch", "Elastic Search"],
    # --- Cloud & infrastructure ---
    "AWS": ["AWS", "Amazon Web Services"],
    "Azure": ["Azure", "Microsoft Azure"],
    "GCP": ["GCP", "Google Cloud Platform", "Google Cloud"],
    "Docker": ["Docker"],
    "Kubernetes": ["Kubernetes", "K8s"],
    "Terraform": ["Terraform"],
    "CI/CD": ["CI/CD", "Continuous Integration", "Continuous Deployment"],
    "Jenkins": ["Jenkins"],
    "Microservices": ["Microservices", "Microservice Architecture"],
    # --- Tooling & testing ---
    "Git": ["Git", "GitHub", "GitLab"],
    "Linux": ["Linux", "Unix", "Bash"],
    "Jest": ["Jest"],
    "Unit Testing": ["Unit Testing", "Unit Tests", "TDD", "Test-Driven Development"],
    "JIRA": ["JIRA", "Atlassian JIRA"],
    "Confluence": ["Confluence"],
    # --- Data & AI ---
    "Machine Learning": ["Machine Learning", "ML"],
    "Artificial Intelligence": ["Artificial Intelligence", "AI"],
    "TensorFlow": ["TensorFlow"],
    "PyTorch": ["PyTorch"],
    "Scikit-learn": ["Scikit-learn", "sklearn"],
    "Pandas": ["Pandas"],
    "NumPy": ["NumPy"],
    "Tableau": ["Tableau"],
    "PowerBI": ["Power BI", "PowerBI"],
    "Excel": ["Excel", "Microsoft Excel"],
    # --- Methodology & project management ---
    "Agile Methodology": ["Agile", "Agile Methodology"],
    "Scrum": ["Scrum", "Scrum Master"],
    "Kanban": ["Kanban"],
    "PMP": ["PMP", "Project Management Professional"],
    "Risk Management": ["Risk Management", "Risk Mitigation"],
    "Stakeholder Management": ["Stakeholder Management", "Stakeholder Communication"],
    "Budget Management": ["Budget Management", "Budgeting", "Financial Planning"],
    "Change Management": ["Change Management", "Change Control"],
    "ITIL": ["ITIL", "Information Technology Infrastructure Library"],
    # --- HR & finance ---
    "Recruitment": ["Recruitment", "Recruiting", "Talent Acquisition"],
    "Onboarding": ["Onboarding", "Employee Onboarding"],
    "HRIS": ["HRIS", "Human Resources Information System"],
    "Financial Reporting": ["Financial Reporting"],
    "Financial Modeling": ["Financial Modeling", "Financial Modelling"],
    "Forecasting": ["Forecasting"],
    # --- Core soft skills ---
    "Leadership": ["Leadership", "Team Leadership"],
    "Communication": ["Communication", "Verbal Communication", "Written Communication"],
    "Problem Solving": ["Problem Solving", "Analytical Skills"],
    "Negotiation": ["Negotiation"],
}

SKILL_CATEGORIES: Dict[str, str] = {
    "Python": "Programming",
    "JavaScript": "Programming",
    "TypeScript": "Programming",
    "Java": "Programming",
    "C++": "Programming",
    "C#": "Programming",
    "Golang": "Programming",
    "Rust": "Programming",
    "React": "Frontend",
    "Angular": "Frontend",
    "Vue.js": "Frontend",
    "HTML": "Frontend",
    "CSS": "Frontend",
    "Webpack": "Tools",
    "Node.js": "Backend",
    "Express.js": "Backend",
    "Django": "Backend",
    "Flask": "Backend",
    "FastAPI": "Backend",
    "Spring Boot": "Backend",
    "RESTful APIs": "Backend",
    "GraphQL": "Backend",
    "SQL": "Database",
    "MongoDB": "Database",
    "Redis": "Database",
    "Elasticsearch": "Database",
    "AWS": "Cloud",
    "Azure": "Cloud",
    "GCP": "Cloud",
    "Docker": "DevOps",
    "Kubernetes": "DevOps",
    "Terraform": "Infrastructure",
    "CI/CD": "DevOps",
    "Jenkins": "DevOps",
    "Microservices": "Architecture",
    "Git": "Tools",
    "Linux": "Tools",
    "Jest": "Testing",
    "Unit Testing": "Testing",
    "JIRA": "Tools",
    "Confluence": "Tools",
    "Machine Learning": "AI/ML",
    "Artificial Intelligence": "AI/ML",
    "TensorFlow": "AI/ML",
    "PyTorch": "AI/ML",
    "Scikit-learn": "AI/ML",
    "Pandas": "Data",
    "NumPy": "Data",
    "Tableau": "Analytics",
    "PowerBI": "Analytics",
    "Excel": "Analytics",
    "Agile Methodology": "Methodology",
    "Scrum": "Methodology",
    "Kanban": "Methodology",
    "PMP": "Project Management",
    "Risk Management": "Project Management",
    "Stakeholder Management": "Project Management",
    "Budget Management": "Project Management",
    "Change Management": "Project Management",
    "ITIL": "Project Management",
    "Recruitment": "Human Resources",
    "Onboarding": "Human Resources",
    "HRIS": "Human Resources",
    "Financial Reporting": "Finance",
    "Financial Modeling": "Finance",
    "Forecasting": "Finance",
    "Leadership": "Soft Skills",
    "Communication": "Soft Skills",
    "Problem Solving": "Soft Skills",
    "Negotiation": "Soft Skills",
}

# Skills not listed here default to Medium demand.
SKILL_DEMAND: Dict[str, str] = {
    "Python": "High",
    "JavaScript": "High",
    "TypeScript": "High",
    "React": "High",
    "Node.js": "High",
    "RESTful APIs": "High",
    "SQL": "High",
    "AWS": "High",
    "Docker": "High",
    "Kubernetes": "High",
    "CI/CD": "High",
    "Microservices": "High",
    "Git": "High",
    "Machine Learning": "High",
    "Agile Methodology": "High",
    "Communication": "High",
    "Webpack": "Low",
    "Jenkins": "Low",
    "Kanban": "Low",
    "Confluence": "Low",
    "Elasticsearch": "Low",
    "ITIL": "Low",
}

CATEGORY_REASONS: Dict[str, str] = {
    "Programming": "Core language for this kind of role",
    "Frontend": "Needed to build modern user interfaces",
    "Backend": "Needed to build and integrate services",
    "Database": "Essential for data storage and retrieval",
    "Cloud": "Most teams now deploy to the cloud",
    "DevOps": "Required for scaling and deployment automation",
    "Infrastructure": "Infrastructure as Code is widely expected",
    "Architecture": "Demonstrates system design ability",
    "Tools": "Standard tooling in day-to-day work",
    "Testing": "Shows commitment to code quality",
    "AI/ML": "Increasingly requested for data-driven products",
    "Data": "Common for data analysis work",
    "Analytics": "Helps turn data into business insight",
    "Methodology": "Shows how you plan and deliver with a team",
    "Project Management": "Shows you can run work end to end",
    "Human Resources": "Core HR capability for this role",
    "Finance": "Core finance capability for this role",
    "Soft Skills": "Highly valued by hiring managers",
}
DEFAULT_CATEGORY = "General"
DEFAULT_REASON = "Frequently requested for this kind of role"

# Aliases that are also everyday English words; these only match with the casing shown.
EXACT_CASE_ALIASES: FrozenSet[str] = frozenset(
    {
        "Rust",
        "Excel",
        "REST",
        "Java",
        "React",
        "Angular",
        "Bash",
        "Confluence",
        "Tailwind",
        "Jest",
        "ML",
    }
)

# Representative of general market demand; used when no job description is supplied.
BASELINE_SKILLS: List[str] = [
    "Python",
    "JavaScript",
    "SQL",
    "Git",
    "RESTful APIs",
    "AWS",
    "Docker",
    "CI/CD",
    "Unit Testing",
    "Agile Methodology",
    "Communication",
    "Problem Solving",
]


@dataclass(frozen=True)
class SkillTaxonomy:
    """Versioned skill reference data handed to the engine at construction."""

    version: str
    aliases: Mapping[str, Tuple[str, ...]]
    categories: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    demand: Mapping[str, DemandLevel] = field(default_factory=lambda: MappingProxyType({}))
    reasons: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    baseline: Tuple[str, ...] = ()
    exact_aliases: FrozenSet[str] = frozenset()

    def category_of(self, skill: str) -> str:
        return self.categories.get(skill, DEFAULT_CATEGORY)

    def demand_of(self, skill: str) -> DemandLevel:
        return self.demand.get(skill, DemandLevel.MEDIUM)

    def reason_for(self, category: str) -> str:
        return self.reasons.get(category, DEFAULT_REASON)

    @property
    def top_demand_tier(self) -> FrozenSet[str]:
        return frozenset(name for name in self.aliases if self.demand_of(name) == DemandLevel.HIGH)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SkillTaxonomy":
        """Build a taxonomy from the JSON shape ``{version, skills, reasons, baseline}``.

        ``skills`` maps the official name to ``{"aliases": [...], "exact_aliases": [...],
        "category": ..., "demand": ...}``; exact aliases only match with the casing given.
        Raises TaxonomyUnavailable when the data is malformed.
        """
        try:
            version = str(data["version"])
            raw_skills = data["skills"]
            if not isinstance(raw_skills, Mapping):
                raise TypeError("'skills' must be an object")

            aliases: Dict[str, Tuple[str, ...]] = {}
            categories: Dict[str, str] = {}
            demand: Dict[str, DemandLevel] = {}
            exact: List[str] = []
            for name, entry in raw_skills.items():
                official = str(name).strip()
                if not official:
                    raise ValueError("skill names must not be blank")
                entry = entry or {}
                alias_list = [str(alias).strip() for alias in entry.get("aliases") or [] if str(alias).strip()]
                exact_list = [
                    str(alias).strip() for alias in entry.get("exact_aliases") or [] if str(alias).strip()
                ]
                alias_list.extend(alias for alias in exact_list if alias not in alias_list)
                if official not in alias_list:
                    alias_list.insert(0, official)
                exact.extend(exact_list)
                aliases[official] = tuple(alias_list)
                if entry.get("category"):
                    categories[official] = str(entry["category"])
                if entry.get("demand"):
                    demand[official] = DemandLevel(str(entry["demand"]).strip().title())

            reasons = {str(key): str(value) for key, value in (data.get("reasons") or {}).items()}
            baseline = tuple(str(name) for name in data.get("baseline") or [])
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise TaxonomyUnavailable(f"Malformed skill taxonomy: {exc}") from exc

        unknown = [name for name in baseline if name not in aliases]
        if unknown:
            raise TaxonomyUnavailable(
                f"Baseline references skills missing from the taxonomy: {', '.join(unknown)}"
            )

        return cls(
            version=version,
            aliases=MappingProxyType(aliases),
            categories=MappingProxyType(categories),
            demand=MappingProxyType(demand),
            reasons=MappingProxyType(reasons),
            baseline=baseline,
            exact_aliases=frozenset(exact),
        )


def default_taxonomy_data() -> Dict[str, Any]:
    return {
        "version": TAXONOMY_VERSION,
        "skills": {
            name: {
                "aliases": list(aliases),
                "exact_aliases": [alias for alias in aliases if alias in EXACT_CASE_ALIASES],
                "category": SKILL_CATEGORIES.get(name, DEFAULT_CATEGORY),
                "demand": SKILL_DEMAND.get(name, DemandLevel.MEDIUM.value),
            }
            for name, aliases in MASTER_SKILL_LIST.items()
        },
        "reasons": dict(CATEGORY_REASONS),
        "baseline": list(BASELINE_SKILLS),
    }


def load_taxonomy(path: Optional[str] = None) -> SkillTaxonomy:
    """Load the taxonomy from a JSON file, or the built-in tables when no path is given."""
    if not path:
        taxonomy = SkillTaxonomy.from_dict(default_taxonomy_data())
    else:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            logger.error("Skill taxonomy could not be loaded from %s: %s", path, exc)
            raise TaxonomyUnavailable(f"Could not read skill taxonomy at {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise TaxonomyUnavailable(f"Skill taxonomy at {path} must be a JSON object")
        taxonomy = SkillTaxonomy.from_dict(data)

    logger.info(
        "Loaded skill taxonomy version %s (%d skills, %d baseline)",
        taxonomy.version,
        len(taxonomy.aliases),
        len(taxonomy.baseline),
    )
    return taxonomy
