"""Tests for leadrouter.pipeline.finalization — profile upsert, matrix seeding, assets."""
import pytest
from unittest.mock import patch

from leadrouter.config import LEAD_CATEGORIES
from leadrouter.errors import ValidationError
from leadrouter.models.lead_matrix import LeadMatrixEntry
from leadrouter.models.lead_profile import LeadProfile, LeadAsset
from leadrouter.pipeline.finalization import (
    ReportFinalizedEvent, on_report_finalized, seed_lead_matrix,
)


def _rows(session, report_id='R1'):
    return {
        e.category_key: e
        for e in session.query(LeadMatrixEntry).filter_by(report_id=report_id).all()
    }


class TestEventParsing:

    def test_from_dict_reads_camel_case_body(self):
        event = ReportFinalizedEvent.from_dict({
            'reportId': 'R1',
            'address': '1 Elm St',
            'state': 'tx',
            'client': {'name': 'Jane', 'email': 'j@example.com', 'phone': '555'},
            'issues': [{'title': 'Leak'}],
            'photoUrls': ['https://img/1.jpg', ''],
        })
        assert event.report_id == 'R1'
        assert event.region == 'TX'
        assert event.client_email == 'j@example.com'
        assert event.photo_urls == ['https://img/1.jpg']

    def test_missing_report_id_rejected(self):
        with pytest.raises(ValidationError):
            ReportFinalizedEvent.from_dict({'state': 'TX'})

    def test_missing_state_rejected(self):
        with pytest.raises(ValidationError):
            ReportFinalizedEvent.from_dict({'reportId': 'R1'})

    @pytest.mark.parametrize('body', [None, ['R1'], 'R1'])
    def test_body_must_be_an_object(self, body):
        with pytest.raises(ValidationError, match='JSON object body required'):
            ReportFinalizedEvent.from_dict(body)

    def test_address_must_be_a_string(self):
        with pytest.raises(ValidationError):
            ReportFinalizedEvent.from_dict({'reportId': 'R1', 'state': 'TX', 'address': {'line1': 'x'}})

    def test_issues_must_be_objects(self):
        with pytest.raises(ValidationError):
            ReportFinalizedEvent.from_dict({'reportId': 'R1', 'state': 'TX', 'issues': ['roof']})


class TestSeeding:

    def test_one_row_per_category(self, db_session, finalized_report):
        finalized_report()
        rows = _rows(db_session)
        assert set(rows) == set(LEAD_CATEGORIES)
        assert not any(r.is_interested for r in rows.values())

    def test_default_partner_from_mapping(self, db_session, finalized_report, make_partner, make_mapping):
        make_mapping(make_partner('sunpower', category='solar'))
        finalized_report()
        rows = _rows(db_session)
        assert rows['solar'].partner_id == 'sunpower'
        assert rows['pest_control'].partner_id is None

    def test_lowest_priority_active_mapping_wins(self, db_session, finalized_report, make_partner, make_mapping):
        make_mapping(make_partner('first', category='solar', is_active=False), priority=1)
        make_mapping(make_partner('second', category='solar'), priority=2)
        make_mapping(make_partner('third', category='solar'), priority=3)
        finalized_report()
        assert _rows(db_session)['solar'].partner_id == 'second'

    def test_mapping_for_other_region_ignored(self, db_session, finalized_report, make_partner, make_mapping):
        make_mapping(make_partner('ca-solar', category='solar'), region='CA')
        finalized_report(region='TX')
        assert _rows(db_session)['solar'].partner_id is None

    def test_refinalize_keeps_existing_rows(self, db_session, finalized_report, make_partner, make_mapping):
        finalized_report()
        row = _rows(db_session)['solar']
        row.is_interested = True
        db_session.commit()

        # A mapping added later must not overwrite an already-seeded row
        make_mapping(make_partner('late', category='solar'))
        finalized_report()

        rows = _rows(db_session)
        assert len(rows) == len(LEAD_CATEGORIES)
        assert rows['solar'].is_interested is True
        assert rows['solar'].partner_id is None

    def test_seed_returns_created_count(self, db_session, finalized_report):
        finalized_report()
        assert seed_lead_matrix(db_session, 'R1', 'TX') == 0


class TestProfileAndAssets:

    def test_profile_upserted(self, db_session, finalized_report):
        finalized_report(issues=[{'title': 'Old'}])
        finalized_report(issues=[{'title': 'New'}])
        profiles = db_session.query(LeadProfile).filter_by(report_id='R1').all()
        assert len(profiles) == 1
        assert profiles[0].issues == [{'title': 'New'}]

    def test_assets_replaced_wholesale(self, db_session, finalized_report):
        finalized_report(photo_urls=['a.jpg', 'b.jpg'])
        finalized_report(photo_urls=['c.jpg'])
        assets = db_session.query(LeadAsset).all()
        assert [a.url for a in assets] == ['c.jpg']
        assert assets[0].kind == 'photo'
        assert assets[0].meta == {'originalSource': 'inspection_report'}

    def test_failure_rolls_back_everything(self, db_session):
        event = ReportFinalizedEvent(report_id='R9', address='x', region='TX')
        with patch('leadrouter.pipeline.finalization.seed_lead_matrix', side_effect=RuntimeError('db down')):
            with pytest.raises(RuntimeError):
                on_report_finalized(db_session, event)
        assert db_session.query(LeadProfile).filter_by(report_id='R9').count() == 0
