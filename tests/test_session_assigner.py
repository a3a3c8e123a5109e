# tests/test_session_assigner.py

from datetime import timedelta

import pytest

from tracker.config import TrackerConfig
from tracker.record_store import MATCHES, find_column_index
from tracker.records import parse_match_rows
from tracker.session_assigner import (
    REASON_CONTINUED,
    REASON_GAP_EXCEEDED,
    REASON_LOOKUP_FAILED,
    REASON_MISSING_SESSION_ID,
    REASON_NO_PRIOR_MATCH,
    REASON_VENUE_CHANGED,
    assign_session,
    backfill_session_ids,
    resolve_session_for_new_match,
)
from tests.helpers import BASE_TIME, add_matches, make_match


class TestAssignSession:

    def test_no_prior_match_starts_session(self):
        result = assign_session(None, 6, "Home", now=BASE_TIME)
        assert result.is_new
        assert result.reason == REASON_NO_PRIOR_MATCH
        assert result.session_id

    def test_venue_change_overrides_short_gap(self):
        prior = make_match(venue="Home", session_id="S1")
        result = assign_session(prior, 6, "Park", now=BASE_TIME + timedelta(minutes=10))
        assert result.is_new
        assert result.reason == REASON_VENUE_CHANGED
        assert result.session_id != "S1"

    def test_gap_exceeded_starts_session(self):
        prior = make_match(venue="Home", session_id="S1")
        result = assign_session(prior, 6, "Home", now=BASE_TIME + timedelta(hours=7))
        assert result.is_new
        assert result.reason == REASON_GAP_EXCEEDED
        assert result.session_id != "S1"

    def test_continuation_within_gap(self):
        prior = make_match(venue="Home", session_id="S1")
        result = assign_session(prior, 6, "Home", now=BASE_TIME + timedelta(hours=1))
        assert not result.is_new
        assert result.reason == REASON_CONTINUED
        assert result.session_id == "S1"

    def test_exactly_at_gap_continues(self):
        prior = make_match(venue="Home", session_id="S1")
        result = assign_session(prior, 6, "Home", now=BASE_TIME + timedelta(hours=6))
        assert result.session_id == "S1"

    @pytest.mark.parametrize("prior_venue,new_venue", [("", "Park"), ("Home", ""), ("", "")])
    def test_empty_venue_never_splits(self, prior_venue, new_venue):
        prior = make_match(venue=prior_venue, session_id="S1")
        result = assign_session(prior, 6, new_venue, now=BASE_TIME + timedelta(minutes=30))
        assert result.session_id == "S1"

    def test_venue_compared_after_trimming(self):
        prior = make_match(venue="Home", session_id="S1")
        result = assign_session(prior, 6, "  Home ", now=BASE_TIME + timedelta(minutes=30))
        assert result.session_id == "S1"

    def test_prior_without_session_id_starts_session(self):
        prior = make_match(venue="Home", session_id="")
        result = assign_session(prior, 6, "Home", now=BASE_TIME + timedelta(minutes=5))
        assert result.is_new
        assert result.reason == REASON_MISSING_SESSION_ID

    def test_fresh_ids_are_unique(self):
        ids = {assign_session(None, 6, "Home").session_id for _ in range(20)}
        assert len(ids) == 20


class TestResolveSessionForNewMatch:

    def test_uses_last_appended_match(self, store, config):
        add_matches(
            store,
            make_match(session_id="OLD", minutes=0),
            make_match(session_id="LATEST", minutes=30),
        )
        result = resolve_session_for_new_match(
            store, config, "Home", now=BASE_TIME + timedelta(minutes=45)
        )
        assert result.session_id == "LATEST"

    def test_empty_store_starts_session(self, store, config):
        result = resolve_session_for_new_match(store, config, "Home", now=BASE_TIME)
        assert result.reason == REASON_NO_PRIOR_MATCH

    def test_gap_comes_from_config(self, store):
        add_matches(store, make_match(session_id="S1"))
        short_gap = TrackerConfig(roster=("Alice", "Bob"), session_gap_hours=0.5)
        result = resolve_session_for_new_match(
            store, short_gap, "Home", now=BASE_TIME + timedelta(hours=1)
        )
        assert result.reason == REASON_GAP_EXCEEDED

    def test_lookup_failure_falls_back_to_new_session(self, store, config, monkeypatch):
        def broken(_table):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(store, "get_all_rows", broken)
        result = resolve_session_for_new_match(store, config, "Home", now=BASE_TIME)
        assert result.is_new
        assert result.reason == REASON_LOOKUP_FAILED


class TestBackfillSessionIds:

    def test_assigns_ids_by_gap_and_venue(self, store, config):
        add_matches(
            store,
            make_match(session_id="", minutes=0),
            make_match(session_id="", minutes=20),
            make_match(session_id="", minutes=20 + 8 * 60),       # gap
            make_match(session_id="", minutes=21 + 8 * 60, venue="Park"),  # venue
        )
        assert backfill_session_ids(store, config) == 4

        records = parse_match_rows(store.get_all_rows(MATCHES))
        ids = [r.session_id for r in records]
        assert all(ids)
        assert ids[0] == ids[1]
        assert len({ids[1], ids[2], ids[3]}) == 3

    def test_existing_ids_untouched_and_continued(self, store, config):
        add_matches(
            store,
            make_match(session_id="KEEP", minutes=0),
            make_match(session_id="", minutes=10),
        )
        assert backfill_session_ids(store, config) == 1
        rows = store.get_all_rows(MATCHES)
        col = find_column_index(rows[0], "SessionId")
        assert [r[col] for r in rows[1:]] == ["KEEP", "KEEP"]

    def test_nothing_to_do(self, store, config):
        assert backfill_session_ids(store, config) == 0
        add_matches(store, make_match())
        assert backfill_session_ids(store, config) == 0
