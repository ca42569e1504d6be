"""
Tests for case upsert, human actions and the audit trail.

1. One live case per (product_sku, failure_mode)
2. Rescan refreshes metrics, keeps identity, appends rescan_update
3. Notifier fires once, only on creation, and never undoes the write
4. Terminal statuses reject actions; a recurring signal opens a new case
5. Audit entries are append-only
"""
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from verdictrace.exceptions import (
    AuditImmutableError,
    CasePersistError,
    CaseNotFoundError,
    InvalidCaseTransition,
    NotificationFailed,
)
from verdictrace.models.db_models import CaseAuditEntryDB, CaseDB
from verdictrace.models.signals import (
    AuditAction,
    AuditActor,
    CaseStatus,
    Exemplar,
    SeverityTier,
)
from verdictrace.services.cases import AuditTrail, CaseActionService, CaseResolver

from helpers import make_scored


ANALYST = AuditActor(actor_id="u-42", actor_name="Dana Analyst")


def _exemplars(n=2):
    return [
        Exemplar(complaint_id=f"c-{i}", title="Melted", summary="Overheated", location="TX", injury=False)
        for i in range(n)
    ]


def _upsert(resolver, window, scored=None, narrative="Narrative v1"):
    return resolver.upsert(
        scored or make_scored(),
        _exemplars(),
        narrative,
        window,
        confidence_threshold=0.70,
        query_trace={"exemplar_query": {"size": 5}},
    )


@pytest.fixture
def resolver(db, mock_notifier):
    return CaseResolver(db, notifier=mock_notifier)


@pytest.fixture
def actions(db, mock_notifier):
    return CaseActionService(db, notifier=mock_notifier)


# =============================================================================
# UPSERT
# =============================================================================

class TestUpsert:

    def test_creates_case_with_evidence(self, db, resolver, window):
        result = _upsert(resolver, window)
        case = result.case

        assert result.created is True
        assert case.title == "SKU-100 - Overheating Cluster"
        assert case.tier == SeverityTier.CRITICAL
        assert case.status == CaseStatus.ESCALATED
        assert case.complaint_count == 50
        assert case.injury_count == 10
        assert case.geo_regions == ["NA", "EU", "APAC", "LATAM", "MEA"]
        assert case.exemplar_ids == ["c-0", "c-1"]
        assert case.narrative == "Narrative v1"
        assert case.query_trace == {"exemplar_query": {"size": 5}}
        assert case.live_flag is True
        assert case.date_range_end == window.end.replace(tzinfo=None)
        assert db.query(CaseDB).count() == 1

    def test_created_entry_records_threshold(self, resolver, window):
        case = _upsert(resolver, window).case

        assert len(case.audit_log) == 1
        entry = case.audit_log[0]
        assert entry.action == AuditAction.CREATED
        assert entry.actor_id == "system"
        assert "exceeded threshold 0.7" in entry.reason

    def test_low_tier_case_is_open(self, resolver, window):
        scored = make_scored(count=8, injury_count=1, regions=("NA",), counts=(4, 4))
        case = _upsert(resolver, window, scored=scored).case

        assert case.tier == SeverityTier.INVESTIGATE
        assert case.status == CaseStatus.OPEN

    def test_rescan_updates_same_case(self, db, resolver, window):
        first = _upsert(resolver, window).case
        case_id, created_at = first.id, first.created_at

        scored = make_scored(count=60, injury_count=12)
        second = _upsert(resolver, window, scored=scored, narrative="Narrative v2")

        assert second.created is False
        assert second.case.id == case_id
        assert second.case.created_at == created_at
        assert second.case.complaint_count == 60
        assert second.case.narrative == "Narrative v2"
        assert db.query(CaseDB).count() == 1

    def test_rescan_appends_rescan_update(self, resolver, window):
        _upsert(resolver, window)
        case = _upsert(resolver, window).case

        actions = [e.action for e in case.audit_log]
        assert actions == [AuditAction.CREATED, AuditAction.RESCAN_UPDATE]
        assert "Rescan detected 50 complaints" in case.audit_log[-1].reason

    def test_different_keys_get_different_cases(self, db, resolver, window):
        _upsert(resolver, window, scored=make_scored(failure_mode="overheating"))
        _upsert(resolver, window, scored=make_scored(failure_mode="cracking"))

        assert db.query(CaseDB).count() == 2

    def test_rescan_overwrites_human_status(self, db, resolver, actions, window):
        """Recomputed status replaces a human-set investigating status."""
        scored = make_scored(count=3, injury_count=0, regions=("NA",), counts=(1, 1, 1))
        case = _upsert(resolver, window, scored=scored).case
        assert case.tier == SeverityTier.MONITOR

        actions.escalate(case.id, ANALYST, "looks real")
        assert case.status == CaseStatus.INVESTIGATING

        refreshed = _upsert(resolver, window, scored=scored).case
        assert refreshed.id == case.id
        assert refreshed.status == CaseStatus.OPEN
        assert refreshed.tier == SeverityTier.MONITOR


# =============================================================================
# NOTIFICATION
# =============================================================================

class TestUpsertNotification:

    def test_notifies_once_on_create(self, resolver, mock_notifier, window):
        result = _upsert(resolver, window)

        assert result.notified is True
        mock_notifier.notify.assert_called_once()
        assert mock_notifier.notify.call_args[0][0] is result.case
        assert mock_notifier.notify.call_args[1]["kind"] == "case_created"

    def test_no_notification_on_refresh(self, resolver, mock_notifier, window):
        _upsert(resolver, window)
        _upsert(resolver, window)
        _upsert(resolver, window)

        assert mock_notifier.notify.call_count == 1

    def test_notifier_failure_keeps_case(self, db, resolver, mock_notifier, window):
        mock_notifier.notify.side_effect = NotificationFailed("x", ["smtp down"])

        result = _upsert(resolver, window)

        assert result.created is True
        assert result.notified is False
        assert db.query(CaseDB).filter(CaseDB.id == result.case.id).count() == 1

    def test_works_without_notifier(self, db, window):
        result = _upsert(CaseResolver(db), window)
        assert result.created is True
        assert result.notified is False


# =============================================================================
# HUMAN ACTIONS
# =============================================================================

class TestCaseActions:

    def test_escalate_raises_tier(self, resolver, actions, mock_notifier, window):
        scored = make_scored(count=8, injury_count=1, regions=("NA",), counts=(4, 4))
        case = _upsert(resolver, window, scored=scored).case
        mock_notifier.notify.reset_mock()

        actions.escalate(case.id, ANALYST, "pattern confirmed")

        assert case.tier == SeverityTier.ESCALATE
        assert case.status == CaseStatus.ESCALATED
        mock_notifier.notify.assert_called_once()
        assert mock_notifier.notify.call_args[1]["title"] == "Case escalated to Escalate"
        assert mock_notifier.notify.call_args[1]["kind"] == "escalation"

    def test_escalate_caps_at_critical(self, resolver, actions, window):
        case = _upsert(resolver, window).case

        actions.escalate(case.id, ANALYST, "")

        assert case.tier == SeverityTier.CRITICAL

    def test_escalate_notifier_failure_is_absorbed(self, resolver, actions, mock_notifier, window):
        case = _upsert(resolver, window).case
        mock_notifier.notify.side_effect = NotificationFailed(case.id, ["boom"])

        updated = actions.escalate(case.id, ANALYST, "")

        assert updated.audit_log[-1].action == AuditAction.ESCALATE

    def test_dismiss_is_terminal_and_frees_key(self, resolver, actions, window):
        case = _upsert(resolver, window).case

        actions.dismiss(case.id, ANALYST, "duplicate reports")

        assert case.status == CaseStatus.DISMISSED
        assert case.live_flag is None
        assert case.is_live is False

    def test_resolve_is_terminal(self, resolver, actions, window):
        case = _upsert(resolver, window).case

        actions.resolve(case.id, ANALYST, "recall issued")

        assert case.status == CaseStatus.RESOLVED
        assert case.audit_log[-1].reason == "recall issued"

    def test_terminal_case_rejects_escalate(self, resolver, actions, window):
        case = _upsert(resolver, window).case
        actions.resolve(case.id, ANALYST, "")

        with pytest.raises(InvalidCaseTransition):
            actions.escalate(case.id, ANALYST, "")

    def test_terminal_case_rejects_reopen_via_dismiss(self, resolver, actions, window):
        case = _upsert(resolver, window).case
        actions.dismiss(case.id, ANALYST, "")

        with pytest.raises(InvalidCaseTransition):
            actions.resolve(case.id, ANALYST, "")

    def test_comment_allowed_on_terminal_case(self, resolver, actions, window):
        case = _upsert(resolver, window).case
        actions.resolve(case.id, ANALYST, "")

        actions.comment(case.id, ANALYST, "follow-up filed")

        assert case.status == CaseStatus.RESOLVED
        assert case.audit_log[-1].action == AuditAction.COMMENT

    def test_every_action_sets_updated_at(self, resolver, actions, window):
        case = _upsert(resolver, window).case
        before = case.updated_at

        actions.comment(case.id, ANALYST, "note")

        assert case.updated_at >= before

    def test_unknown_case(self, actions):
        with pytest.raises(CaseNotFoundError):
            actions.comment("missing", ANALYST, "")

    def test_dismissed_signal_recurs_as_new_case(self, db, resolver, actions, window):
        first = _upsert(resolver, window).case
        actions.dismiss(first.id, ANALYST, "noise")

        second = _upsert(resolver, window)

        assert second.created is True
        assert second.case.id != first.id
        assert resolver.resolve("SKU-100", "overheating").id == second.case.id
        assert db.query(CaseDB).count() == 2


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class TestAuditTrail:

    def test_timeline_most_recent_first(self, resolver, actions, window):
        case = _upsert(resolver, window).case
        actions.comment(case.id, ANALYST, "first note")
        actions.dismiss(case.id, ANALYST, "closing")

        timeline = actions.timeline(case.id)

        assert [e.action for e in timeline] == [
            AuditAction.DISMISS,
            AuditAction.COMMENT,
            AuditAction.CREATED,
        ]
        assert [e.sequence for e in timeline] == [3, 2, 1]

    def test_serialize(self, resolver, window):
        case = _upsert(resolver, window).case
        data = AuditTrail.serialize(case.audit_log[0])

        assert data["action"] == "created"
        assert data["actor_name"] == "VerdictTrace Scanner"
        assert data["sequence"] == 1

    def test_entries_cannot_be_edited(self, db, resolver, window):
        case = _upsert(resolver, window).case
        entry = case.audit_log[0]

        entry.reason = "rewritten history"
        with pytest.raises(AuditImmutableError):
            db.commit()
        db.rollback()

    def test_entries_cannot_be_deleted(self, db, resolver, window):
        case = _upsert(resolver, window).case
        entry = db.query(CaseAuditEntryDB).filter(CaseAuditEntryDB.case_id == case.id).first()

        db.delete(entry)
        with pytest.raises(AuditImmutableError):
            db.commit()
        db.rollback()


# =============================================================================
# LIVE CASE GUARD
# =============================================================================

def _live_count(session, product_sku, failure_mode):
    return session.query(CaseDB).filter(
        CaseDB.product_sku == product_sku,
        CaseDB.failure_mode == failure_mode,
        CaseDB.status.notin_([CaseStatus.RESOLVED, CaseStatus.DISMISSED]),
    ).count()


def _rival_case(product_sku="SKU-100", failure_mode="overheating"):
    return CaseDB(
        id=str(uuid4()),
        title="Written by another worker",
        product_sku=product_sku,
        failure_mode=failure_mode,
        live_flag=True,
        status=CaseStatus.OPEN,
    )


class TestLiveCaseGuard:

    def test_separator_in_keys_does_not_collide(self, db, resolver, window):
        first = _upsert(resolver, window, scored=make_scored(product_sku="A|B", failure_mode="C"))
        second = _upsert(resolver, window, scored=make_scored(product_sku="A", failure_mode="B|C"))

        assert first.created is True
        assert second.created is True
        assert first.case.id != second.case.id
        assert db.query(CaseDB).count() == 2

    def test_terminal_cases_do_not_block_each_other(self, db, resolver, actions, window):
        for _ in range(3):
            case = _upsert(resolver, window).case
            actions.dismiss(case.id, ANALYST, "noise")

        assert db.query(CaseDB).count() == 3
        assert _live_count(db, "SKU-100", "overheating") == 0

    def test_concurrent_writer_after_lookup_is_persist_error(self, db, session_factory, resolver, window):
        """Another process commits a live case between our lookup and our insert."""
        rival = session_factory()

        def lookup_then_rival_commits(product_sku, failure_mode):
            rival.add(_rival_case(product_sku, failure_mode))
            rival.commit()
            return None

        try:
            with patch.object(resolver, "resolve", side_effect=lookup_then_rival_commits):
                with pytest.raises(CasePersistError, match="Live case conflict"):
                    _upsert(resolver, window)
        finally:
            rival.close()

        # Rolled back and still usable
        assert _live_count(db, "SKU-100", "overheating") == 1
        refreshed = _upsert(resolver, window)
        assert refreshed.created is False
        assert refreshed.case.title == "Written by another worker"
        assert _live_count(db, "SKU-100", "overheating") == 1

    def test_second_live_case_rejected_by_store(self, db, session_factory, resolver, window):
        _upsert(resolver, window)
        rival = session_factory()
        try:
            rival.add(_rival_case())
            with pytest.raises(IntegrityError):
                rival.commit()
            rival.rollback()
        finally:
            rival.close()

        assert _live_count(db, "SKU-100", "overheating") == 1

    def test_conflict_does_not_notify(self, resolver, mock_notifier, window):
        with patch.object(resolver, "resolve", return_value=None):
            _upsert(resolver, window)
            with pytest.raises(CasePersistError):
                _upsert(resolver, window)

        mock_notifier.notify.assert_called_once()
