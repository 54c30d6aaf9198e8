"""
Tests for the audit trail and the hierarchy integrity scan/repair.
"""
from sqlalchemy import text

from extensions import db
from models import PartnerHierarchy, AuditLog
from partners.audit import AuditHelper, HierarchyIntegrityHelper


class TestAuditHelper:

    def test_log_event_and_history(self, app_ctx, make_partner):
        actor = make_partner()

        AuditHelper.log_event('referral_created', 'referral', 7, actor_id=actor.id, details={'k': 'v'})
        AuditHelper.log_event('referral_status_changed', 'referral', 7, actor_id=actor.id)
        AuditHelper.log_event('referral_created', 'referral', 8)
        db.session.commit()

        history = AuditHelper.get_entity_history('referral', 7)

        assert [entry.action for entry in history] == ['referral_status_changed', 'referral_created']
        assert history[1].details == {'k': 'v'}
        assert history[0].details == {}


class TestIntegrityScan:

    def test_consistent_network(self, app_ctx, make_chain):
        make_chain(5)

        assert HierarchyIntegrityHelper.find_inconsistencies() == []

    def test_missing_edge_reported_and_repaired(self, app_ctx, make_chain):
        root, middle, leaf = make_chain(3)
        PartnerHierarchy.query.filter_by(child_id=leaf.id, level=2).delete()
        db.session.commit()

        issues = HierarchyIntegrityHelper.find_inconsistencies()
        assert issues == [{
            'type': 'missing_edge',
            'partner_id': leaf.id,
            'ancestor_id': root.id,
            'level': 2,
            'indexed_ancestor_id': None,
        }]

        inserted = HierarchyIntegrityHelper.repair_missing_edges()
        db.session.commit()

        assert inserted == 1
        assert HierarchyIntegrityHelper.find_inconsistencies() == []
        assert AuditLog.query.filter_by(action='hierarchy_repaired').count() == 1

    def test_unexpected_edge_reported_not_removed(self, app_ctx, make_partner):
        a = make_partner()
        b = make_partner()
        db.session.add(PartnerHierarchy(child_id=b.id, parent_id=a.id, level=1))
        db.session.commit()

        issues = HierarchyIntegrityHelper.find_inconsistencies()
        assert [issue['type'] for issue in issues] == ['unexpected_edge']

        assert HierarchyIntegrityHelper.repair_missing_edges() == 0
        assert PartnerHierarchy.query.count() == 1

    def test_cycle_reported(self, app_ctx, make_partner):
        a = make_partner()
        b = make_partner(parent=a)
        db.session.execute(
            text("UPDATE users SET parent_partner_id = :b WHERE id = :a"), {"a": a.id, "b": b.id}
        )
        db.session.commit()

        issues = HierarchyIntegrityHelper.find_inconsistencies()
        cycles = [issue for issue in issues if issue['type'] == 'cycle']

        assert {issue['partner_id'] for issue in cycles} == {a.id, b.id}

    def test_repair_is_noop_when_consistent(self, app_ctx, make_chain):
        make_chain(4)

        assert HierarchyIntegrityHelper.repair_missing_edges() == 0
        assert AuditLog.query.filter_by(action='hierarchy_repaired').count() == 0
