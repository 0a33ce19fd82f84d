"""
Contractor marketplace lane — contractors, ad-hoc leads and the administered
distribution rules shared with the partner lane.

These leads are not gated by the consent ledger.
"""
from sqlalchemy import (
    Column, Integer, Float, Text, Boolean, DateTime, JSON, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import synonym
from sqlalchemy.sql import func

from leadrouter.database import Base


class Contractor(Base):
    __tablename__ = 'contractors'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_name = Column(Text, nullable=False)
    contact_name = Column(Text, default='')
    email = Column(Text, default='')
    phone = Column(Text, default='')
    region = Column(Text, nullable=True)
    category = Column(Text, nullable=False, index=True)
    service_areas = Column(JSON, default=list)          # zip codes or region codes
    rating = Column(Float, default=0.0)                 # 0-5
    is_active = Column(Boolean, default=True)
    is_priority = Column(Boolean, default=False)
    last_assigned_at = Column(DateTime, nullable=True)
    total_leads = Column(Integer, default=0)
    converted_leads = Column(Integer, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # autoincrement id is already insertion order
    seq = synonym('id')

    def service_regions(self):
        areas = list(self.service_areas or [])
        if self.region and self.region not in areas:
            areas.append(self.region)
        return areas

    def to_dict(self):
        return {
            'id': self.id,
            'companyName': self.company_name,
            'contactName': self.contact_name,
            'email': self.email,
            'phone': self.phone,
            'region': self.region,
            'category': self.category,
            'serviceAreas': self.service_areas or [],
            'rating': self.rating,
            'isActive': bool(self.is_active),
            'isPriority': bool(self.is_priority),
            'lastAssignedAt': self.last_assigned_at.isoformat() if self.last_assigned_at else None,
            'totalLeads': self.total_leads or 0,
            'convertedLeads': self.converted_leads or 0,
        }


class ContractorLead(Base):
    __tablename__ = 'contractor_leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Text, nullable=True, index=True)
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=True)
    customer_phone = Column(Text, nullable=True)
    property_address = Column(Text, nullable=False)
    region = Column(Text, nullable=True)
    category = Column(Text, nullable=False)
    service_needed = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Text, default='medium')
    source = Column(Text, default='inspection_flagged')
    status = Column(Text, default='new')
    is_flagged = Column(Boolean, default=True)
    estimated_value = Column(Integer, nullable=True)    # cents
    quote_amount = Column(Integer, nullable=True)       # cents
    contractor_id = Column(Integer, ForeignKey('contractors.id'), nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    contacted_at = Column(DateTime, nullable=True)
    quoted_at = Column(DateTime, nullable=True)
    won_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'reportId': self.report_id,
            'customerName': self.customer_name,
            'customerEmail': self.customer_email,
            'customerPhone': self.customer_phone,
            'propertyAddress': self.property_address,
            'region': self.region,
            'category': self.category,
            'serviceNeeded': self.service_needed,
            'description': self.description,
            'priority': self.priority,
            'source': self.source,
            'status': self.status,
            'isFlagged': bool(self.is_flagged),
            'estimatedValue': self.estimated_value,
            'quoteAmount': self.quote_amount,
            'contractorId': self.contractor_id,
            'assignedAt': self.assigned_at.isoformat() if self.assigned_at else None,
            'wonAt': self.won_at.isoformat() if self.won_at else None,
        }


class DistributionRule(Base):
    __tablename__ = 'distribution_rules'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lane = Column(Text, nullable=False, default='contractor')   # partner / contractor
    category = Column(Text, nullable=False)
    method = Column(Text, nullable=False, default='round_robin')
    scoring_weights = Column(JSON, nullable=True)
    priority_ids = Column(JSON, nullable=True)          # ordered candidate ids
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('lane', 'category', name='uq_distribution_rule_lane_category'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'lane': self.lane,
            'category': self.category,
            'method': self.method,
            'scoringWeights': self.scoring_weights,
            'priorityIds': self.priority_ids,
            'isActive': bool(self.is_active),
        }
