# tests/test_stats_aggregator.py

from datetime import timedelta

from tracker.records import Outcome
from tracker.stats_aggregator import compute_session_stats
from tests.helpers import BASE_TIME, make_match


class TestComputeSessionStats:

    def three_match_session(self):
        return [
            make_match("A", "B", Outcome.A, intensity=2, session_id="S1", minutes=0),
            make_match("A", "B", Outcome.B, intensity=1, session_id="S1", minutes=10),
            make_match("A", "B", Outcome.DRAW, intensity=3, session_id="S1", minutes=20),
        ]

    def test_three_match_example(self):
        stats = compute_session_stats("S1", self.three_match_session(), ["A", "B"])
        summary = stats.summary
        assert summary.match_count == 3
        assert (summary.a_wins, summary.b_wins, summary.draws) == (1, 1, 1)
        assert summary.avg_intensity == 2.0

        a = stats.players["A"]
        assert (a.matches, a.wins, a.losses, a.draws) == (3, 1, 1, 1)
        assert (a.inflicted, a.suffered) == (2, 4)

        b = stats.players["B"]
        assert (b.matches, b.wins, b.losses, b.draws) == (3, 1, 1, 1)
        assert (b.inflicted, b.suffered) == (1, 5)

    def test_side_qualified_counters(self):
        stats = compute_session_stats("S1", self.three_match_session(), ["A", "B"])
        a, b = stats.players["A"], stats.players["B"]
        # A always sits on side A, B on side B
        assert (a.wins_as_a, a.losses_as_a, a.draws_as_a) == (1, 1, 1)
        assert (a.wins_as_b, a.losses_as_b, a.draws_as_b) == (0, 0, 0)
        assert (b.wins_as_b, b.losses_as_b, b.draws_as_b) == (1, 1, 1)
        assert (b.wins_as_a, b.losses_as_a, b.draws_as_a) == (0, 0, 0)

    def test_draw_attribution_is_symmetric(self):
        draw = make_match("Alice", "Bob", Outcome.DRAW, intensity=4)
        stats = compute_session_stats("S1", [draw], ["Alice", "Bob"])
        for name in ("Alice", "Bob"):
            assert stats.players[name].suffered == 4
            assert stats.players[name].inflicted == 0
            assert stats.players[name].draws == 1

    def test_side_b_winner_inflicts(self):
        match = make_match("Alice", "Bob", Outcome.B, intensity=5)
        stats = compute_session_stats("S1", [match], ["Alice", "Bob"])
        bob, alice = stats.players["Bob"], stats.players["Alice"]
        assert (bob.wins, bob.wins_as_b, bob.inflicted) == (1, 1, 5)
        assert (alice.losses, alice.losses_as_a, alice.suffered) == (1, 1, 5)

    def test_only_target_session_counted(self):
        matches = [
            make_match(session_id="S1", intensity=1),
            make_match(session_id="S2", intensity=5),
            make_match(session_id="S1", intensity=3, minutes=5),
        ]
        stats = compute_session_stats("S1", matches, ["Alice", "Bob"])
        assert stats.summary.match_count == 2
        assert stats.summary.avg_intensity == 2.0

    def test_start_and_end_are_min_and_max_timestamp(self):
        # Out-of-order input
        matches = [
            make_match(minutes=30),
            make_match(minutes=-15),
            make_match(minutes=5),
        ]
        stats = compute_session_stats("S1", matches, ["Alice", "Bob"])
        assert stats.summary.start_time == BASE_TIME - timedelta(minutes=15)
        assert stats.summary.end_time == BASE_TIME + timedelta(minutes=30)

    def test_players_outside_roster_are_ignored(self):
        match = make_match("Alice", "Mallory", Outcome.A, intensity=2)
        stats = compute_session_stats("S1", [match], ["Alice", "Bob"])
        assert set(stats.players) == {"Alice", "Bob"}
        assert stats.players["Alice"].wins == 1
        assert stats.players["Bob"].matches == 0
        assert [s.player for s in stats.played()] == ["Alice"]

    def test_roster_players_who_sat_out_are_zeroed(self):
        stats = compute_session_stats("S1", [make_match()], ["Alice", "Bob", "Carol"])
        carol = stats.players["Carol"]
        assert carol.matches == carol.wins == carol.suffered == 0
        assert [s.player for s in stats.played()] == ["Alice", "Bob"]

    def test_empty_session_returns_zero_summary(self):
        stats = compute_session_stats("NOPE", [make_match()], ["Alice", "Bob"])
        assert stats.summary.match_count == 0
        assert stats.summary.avg_intensity == 0
        assert stats.summary.start_time is None
        assert stats.summary.end_time is None
        assert stats.played() == []

    def test_repeat_calls_give_same_result(self):
        matches = self.three_match_session()
        first = compute_session_stats("S1", matches, ["A", "B"], computed_at=BASE_TIME)
        second = compute_session_stats("S1", matches, ["A", "B"], computed_at=BASE_TIME)
        assert first == second

    def test_average_is_exact_quotient(self):
        matches = [
            make_match(intensity=1),
            make_match(intensity=1, minutes=1),
            make_match(intensity=2, minutes=2),
        ]
        stats = compute_session_stats("S1", matches, ["Alice", "Bob"])
        assert stats.summary.avg_intensity == 4 / 3
