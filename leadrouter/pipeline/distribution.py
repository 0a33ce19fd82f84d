"""
Distribution engine — picks which partner or contractor gets a lead.

Three strategies, chosen per (lane, category) by an administered
DistributionRule:

  round_robin    oldest last-assigned first, ties by insertion order
  score_based    weighted rating / conversion / priority flag
  priority_list  first active id in an ordered list

Anything missing (rule, weights, list) degrades to round robin. The only way to
get no assignment is to have no active candidates at all.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from leadrouter.config import DEFAULT_SCORING_WEIGHTS
from leadrouter.database import utcnow
from leadrouter.models.contractor import Contractor, DistributionRule
from leadrouter.models.partner import Partner, StatePartnerMapping

logger = logging.getLogger('pipeline.distribution')

LANE_MODELS = {
    'partner': Partner,
    'contractor': Contractor,
}


def default_partner_for(session, region, category_key) -> Optional[Partner]:
    """Top-priority active StatePartnerMapping whose partner is also active."""
    return (
        session.query(Partner)
        .join(StatePartnerMapping, StatePartnerMapping.partner_id == Partner.id)
        .filter(
            StatePartnerMapping.region == region,
            StatePartnerMapping.category_key == category_key,
            StatePartnerMapping.is_active.is_(True),
            Partner.is_active.is_(True),
        )
        .order_by(StatePartnerMapping.priority)
        .first()
    )


def conversion_rate(candidate) -> float:
    total = candidate.total_leads or 0
    if total <= 0:
        return 0.0
    return (candidate.converted_leads or 0) / total


def score_candidate(candidate, weights: Dict[str, float]) -> float:
    """w_rating * rating/5 + w_conversion * conversion + w_availability * priority."""
    rating = min(max(candidate.rating or 0.0, 0.0), 5.0) / 5.0
    return (
        rating * weights.get('rating', 0.0)
        + conversion_rate(candidate) * weights.get('conversion', 0.0)
        + (1.0 if candidate.is_priority else 0.0) * weights.get('availability', 0.0)
    )


def _round_robin_key(candidate):
    # Never-assigned candidates go first, then oldest assignment, then insertion order
    last = candidate.last_assigned_at
    return (
        last is not None,
        last or datetime.min,
        candidate.seq or 0,
        candidate.id,
    )


class LeadDistributor:
    """
    Selects and records an assignment within one lane.

    The caller owns the session and commits; assign() only flushes the
    candidate's updated last_assigned_at / total_leads.
    """

    def __init__(self, session, lane: str = 'contractor', clock=utcnow):
        if lane not in LANE_MODELS:
            raise ValueError(f"Unknown distribution lane '{lane}'")
        self.session = session
        self.lane = lane
        self.model = LANE_MODELS[lane]
        self.clock = clock

    # ── Public API ────────────────────────────────────────────────────

    def assign(self, category: str, service_areas: List[str] = None):
        """Pick a candidate using the category's rule and record the assignment."""
        rule = self._rule(category)
        method = rule.method if rule else 'round_robin'

        if method == 'score_based':
            chosen = self.score_based(category, service_areas, rule)
        elif method == 'priority_list':
            chosen = self.priority_list(category, service_areas, rule)
        else:
            chosen = self.round_robin(category, service_areas)

        if chosen is None:
            logger.info("No active %s candidates for %s", self.lane, category)
            return None

        self._record_assignment(chosen)
        logger.info("Assigned %s %s for %s via %s", self.lane, chosen.id, category, method)
        return chosen

    def round_robin(self, category, service_areas=None):
        candidates = self.candidates(category, service_areas)
        return candidates[0] if candidates else None

    def score_based(self, category, service_areas=None, rule=None):
        if rule is None:
            return self.round_robin(category, service_areas)

        weights = dict(DEFAULT_SCORING_WEIGHTS)
        weights.update(rule.scoring_weights or {})

        candidates = self.candidates(category, service_areas)
        if not candidates:
            return None
        # candidates are already in round-robin order and sorted() is stable
        ranked = sorted(candidates, key=lambda c: score_candidate(c, weights), reverse=True)
        return ranked[0]

    def priority_list(self, category, service_areas=None, rule=None):
        priority_ids = (rule.priority_ids if rule else None) or []
        if not priority_ids:
            return self.round_robin(category, service_areas)

        candidates = self.candidates(category, service_areas)
        by_id = {str(c.id): c for c in candidates}
        for candidate_id in priority_ids:
            chosen = by_id.get(str(candidate_id))
            if chosen is not None:
                return chosen

        logger.info("No priority %s active for %s — falling back to round robin", self.lane, category)
        return candidates[0] if candidates else None

    def candidates(self, category, service_areas=None):
        """Active candidates for category, region-filtered, in round-robin order."""
        rows = self.session.query(self.model).filter(
            self.model.category == category,
            self.model.is_active.is_(True),
        ).all()

        wanted = {a for a in (service_areas or []) if a}
        if wanted:
            rows = [c for c in rows if wanted.intersection(c.service_regions())]

        return sorted(rows, key=_round_robin_key)

    # ── Internals ─────────────────────────────────────────────────────

    def _rule(self, category) -> Optional[DistributionRule]:
        return self.session.query(DistributionRule).filter_by(
            lane=self.lane, category=category, is_active=True,
        ).first()

    def _record_assignment(self, candidate):
        candidate.last_assigned_at = self.clock()
        candidate.total_leads = (candidate.total_leads or 0) + 1
        self.session.flush()
