from datetime import datetime, timedelta

import pytest

from betpool.models import Prediction
from betpool.services.rankings import (
    RankedUser,
    UserAggregate,
    build_aggregates,
    compute_aggregates,
    load_scored_predictions,
    rank_aggregates,
)
from betpool.services.scoring import record_final_score
from betpool.services.streaks import ScoredPick

NOW = datetime(2026, 6, 1, 12, 0)


def pick(user_id, match_id, points):
    return ScoredPick(user_id=user_id, match_id=match_id, kickoff=NOW + timedelta(days=match_id), points=points)


def test_build_aggregates_totals():
    users = [RankedUser(1, "Ann"), RankedUser(2, "Ben")]
    scored = [pick(1, 1, 3), pick(1, 2, 1), pick(1, 3, 0), pick(2, 1, 1)]

    ann, ben = build_aggregates(users, scored)

    assert ann.total_predictions == 3
    assert ann.total_points == 4
    assert ann.accuracy == 44.44
    assert ann.average_points == 1.33
    assert (ann.exact_count, ann.correct_count) == (1, 1)
    assert ann.longest_streak == 2
    assert ann.exact_streak == 1

    assert ben.total_points == 1
    assert ben.accuracy == 33.33


def test_user_without_predictions_gets_zeros():
    (aggregate,) = build_aggregates([RankedUser(7, "Zed")], [])

    assert aggregate.total_predictions == 0
    assert aggregate.total_points == 0
    assert aggregate.accuracy == 0
    assert aggregate.average_points == 0
    assert aggregate.longest_streak == 0


def test_picks_of_unknown_users_are_ignored():
    (aggregate,) = build_aggregates([RankedUser(1, "Ann")], [pick(1, 1, 3), pick(9, 1, 3)])

    assert aggregate.total_points == 3


def test_competition_wins_are_attached():
    (aggregate,) = build_aggregates([RankedUser(1, "Ann")], [], wins={1: 2})

    assert aggregate.competitions_won == 2


def test_sequential_ranking_for_ties():
    aggregates = [
        UserAggregate(user_id=1, display_name="A", total_points=50),
        UserAggregate(user_id=2, display_name="B", total_points=50),
        UserAggregate(user_id=3, display_name="C", total_points=30),
    ]

    ranked = rank_aggregates(aggregates)

    assert [(a.display_name, a.rank) for a in ranked] == [("A", 1), ("B", 2), ("C", 3)]


def test_ranking_sorts_descending():
    aggregates = [
        UserAggregate(user_id=1, display_name="A", total_points=10, average_points=2.0),
        UserAggregate(user_id=2, display_name="B", total_points=30, average_points=1.0),
        UserAggregate(user_id=3, display_name="C", total_points=20, average_points=2.5),
    ]

    assert [a.user_id for a in rank_aggregates(aggregates, "points")] == [2, 3, 1]
    assert [a.user_id for a in rank_aggregates(aggregates, "average")] == [3, 1, 2]


def test_ranking_does_not_mutate_input():
    aggregates = [UserAggregate(user_id=1, display_name="A", total_points=5)]

    rank_aggregates(aggregates)

    assert aggregates[0].rank is None


def test_unknown_sort_key():
    with pytest.raises(ValueError):
        rank_aggregates([], "wins")


def _finished_match(session, make_match, competition_id, hours_ago, predictions, final):
    match = make_match(NOW - timedelta(hours=hours_ago), competition_id=competition_id, status="live")
    for user, (home, away) in predictions:
        session.add(Prediction(user_id=user.id, match_id=match.id, predicted_home=home, predicted_away=away))
    session.commit()
    record_final_score(session, match.id, *final, now=NOW)
    return match


def test_competition_points_are_conserved(session, make_user, make_match, make_competition):
    ann, ben, cat = make_user("ann"), make_user("ben"), make_user("cat")
    competition = make_competition("Cup", members=[ann, ben, cat])

    _finished_match(session, make_match, competition.id, 30,
                    [(ann, (2, 1)), (ben, (1, 0)), (cat, (0, 2))], (2, 1))
    _finished_match(session, make_match, competition.id, 20,
                    [(ann, (0, 0)), (ben, (1, 1)), (cat, (1, 1))], (1, 1))
    _finished_match(session, make_match, competition.id, 10,
                    [(ann, (3, 0)), (cat, (0, 1))], (0, 2))

    aggregates = compute_aggregates(session, competition.id)

    total = sum(a.total_points for a in aggregates)
    assert total == sum(3 * a.exact_count + a.correct_count for a in aggregates)
    # Match 1: 3 + 1 + 0, match 2: 1 + 3 + 3, match 3: 0 + 1
    assert total == 12


def test_competition_ranking_only_counts_members_and_its_matches(session, make_user, make_match, make_competition):
    ann, ben, outsider = make_user("ann"), make_user("ben"), make_user("out")
    competition = make_competition("Cup", members=[ann, ben])

    _finished_match(session, make_match, competition.id, 30,
                    [(ann, (1, 0)), (ben, (1, 0)), (outsider, (1, 0))], (1, 0))
    # A match outside the competition
    _finished_match(session, make_match, None, 20, [(ann, (2, 2))], (2, 2))

    aggregates = compute_aggregates(session, competition.id)

    assert [a.user_id for a in aggregates] == [ann.id, ben.id]
    assert [a.total_points for a in aggregates] == [3, 3]


def test_unfinished_matches_are_not_scored(session, user, make_match):
    match = make_match(NOW + timedelta(days=1))
    session.add(Prediction(user_id=user.id, match_id=match.id, predicted_home=1, predicted_away=0))
    session.commit()

    assert load_scored_predictions(session) == []


def test_scored_predictions_are_chronological(session, user, make_match):
    later = _finished_match(session, make_match, None, 1, [(user, (1, 0))], (1, 0))
    earlier = _finished_match(session, make_match, None, 5, [(user, (0, 0))], (1, 0))

    assert [p.match_id for p in load_scored_predictions(session)] == [earlier.id, later.id]
