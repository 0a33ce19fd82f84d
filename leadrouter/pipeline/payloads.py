"""
Partner payload builder.

Base shape is the same for every partner; some categories add typed extra
fields derived from the inspection issues. Keys go out camelCase.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple

from leadrouter.config import SUBMISSION_SOURCE
from leadrouter.database import utcnow


# Category → keywords matched against issue titles and tags (case-insensitive).
# A category with no keywords receives every issue.
CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'utility_connect':      (),
    'internet_cable_phone': (),
    'home_warranty':        ('hvac', 'heating', 'cooling', 'furnace', 'water heater',
                             'plumbing', 'electrical', 'appliance'),
    'home_security':        ('door', 'lock', 'window', 'alarm', 'smoke', 'detector'),
    'insurance_home_auto':  ('roof', 'foundation', 'fire', 'water damage', 'leak', 'electrical'),
    'insurance_life':       (),
    'solar':                ('roof', 'electrical', 'panel', 'attic'),
    'ev_charger':           ('electrical', 'panel', 'breaker', 'garage', 'wiring'),
    'pest_control':         ('pest', 'termite', 'insect', 'rodent', 'wood destroying', 'damage'),
    'moving_companies':     (),
    'cleaning_services':    ('mold', 'debris', 'dust', 'stain', 'dryer vent'),
    'lawn_service':         ('grading', 'drainage', 'vegetation', 'tree', 'landscap',
                             'irrigation', 'sprinkler'),
}

# System name → keywords, used for home warranty submissions
SYSTEM_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('HVAC', ('hvac', 'heating', 'cooling')),
    ('Electrical', ('electrical', 'electric')),
    ('Plumbing', ('plumbing', 'water')),
    ('Roofing', ('roof',)),
)

AGE_KEYWORDS = ('old', 'aging', 'worn')


def _title(issue) -> str:
    return str(issue.get('title') or '').lower()


def _tags(issue) -> List[str]:
    return [str(t).lower() for t in (issue.get('tags') or []) if t]


def issue_matches(issue: Dict[str, Any], keywords) -> bool:
    title = _title(issue)
    tags = _tags(issue)
    return any(kw in title or any(kw in tag for tag in tags) for kw in keywords)


def filter_issues_by_category(issues: List[Dict[str, Any]], category_key: str) -> List[Dict[str, Any]]:
    keywords = CATEGORY_KEYWORDS.get(category_key, ())
    if not keywords:
        return list(issues)
    return [issue for issue in issues if issue_matches(issue, keywords)]


# ── Category extensions ──────────────────────────────────────────────────────

@dataclass
class SolarDetails:
    roofType: str
    estimatedUsage: str = 'standard'

    @classmethod
    def from_issues(cls, issues):
        roof_issues = [
            i for i in issues
            if 'roof' in _title(i) or 'roofing' in _tags(i)
        ]
        return cls(roofType='needs_inspection' if roof_issues else 'good_condition')


@dataclass
class HomeWarrantyDetails:
    systemsInvolved: List[str]
    propertyAge: int

    @classmethod
    def from_issues(cls, issues):
        systems = []
        for name, keywords in SYSTEM_KEYWORDS:
            if any(kw in _title(i) for i in issues for kw in keywords):
                systems.append(name)
        aging = [i for i in issues if any(kw in _title(i) for kw in AGE_KEYWORDS)]
        return cls(systemsInvolved=systems, propertyAge=25 if len(aging) > 3 else 10)


CATEGORY_EXTENSIONS = {
    'solar': SolarDetails,
    'home_warranty': HomeWarrantyDetails,
}


# ── Base payload ─────────────────────────────────────────────────────────────

@dataclass
class LeadPayload:
    leadId: str
    category: str
    customerName: str
    customerEmail: str
    customerPhone: str
    propertyAddress: str
    state: str
    issues: List[Dict[str, Any]]
    source: str
    submittedAt: str
    details: Optional[Any] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        details = data.pop('details')
        if details:
            data.update(details)
        return data


def build_payload(submission, profile, submitted_at=None) -> Dict[str, Any]:
    """Assemble the outbound JSON for one submission."""
    issues = list((profile.issues if profile else None) or [])
    extension = CATEGORY_EXTENSIONS.get(submission.category_key)

    payload = LeadPayload(
        leadId=submission.id,
        category=submission.category_key,
        customerName=profile.client_name if profile else '',
        customerEmail=profile.client_email if profile else '',
        customerPhone=profile.client_phone if profile else '',
        propertyAddress=profile.address if profile else '',
        state=profile.region if profile else '',
        issues=filter_issues_by_category(issues, submission.category_key),
        source=SUBMISSION_SOURCE,
        submittedAt=(submitted_at or utcnow()).isoformat(),
        details=extension.from_issues(issues) if extension else None,
    )
    return payload.to_dict()
