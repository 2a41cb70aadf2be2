from datetime import timedelta

from betpool.models import Match, Prediction
from betpool.services.competitions import join_competition
from betpool.services.scoring import record_final_score
from betpool.timeutils import utcnow


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_unauthorized_access(client):
    response = client.get("/api/predictions")
    assert response.status_code == 401


def test_list_matches(user_client, make_match):
    make_match(utcnow() + timedelta(days=1))
    make_match(utcnow() - timedelta(days=1), status="live")

    response = user_client.get("/api/matches")
    assert response.status_code == 200
    data = response.json()
    assert [m["betting_open"] for m in data] == [False, True]
    assert data[1]["home_team"] == "Lions"


def test_place_update_and_read_prediction(user_client, make_match):
    match = make_match(utcnow() + timedelta(days=1))

    response = user_client.put(f"/api/predictions/match/{match.id}",
                               json={"predicted_home": 2, "predicted_away": 1})
    assert response.status_code == 200
    first = response.json()
    assert first["points"] is None

    response = user_client.put(f"/api/predictions/match/{match.id}",
                               json={"predicted_home": 0, "predicted_away": 0})
    assert response.status_code == 200
    assert response.json()["id"] == first["id"]

    response = user_client.get(f"/api/predictions/match/{match.id}")
    assert response.status_code == 200
    assert (response.json()["predicted_home"], response.json()["predicted_away"]) == (0, 0)

    response = user_client.get("/api/predictions")
    assert len(response.json()) == 1


def test_prediction_after_kickoff_is_rejected(user_client, make_match):
    match = make_match(utcnow() - timedelta(minutes=1))

    response = user_client.put(f"/api/predictions/match/{match.id}",
                               json={"predicted_home": 1, "predicted_away": 0})
    assert response.status_code == 409
    assert response.json()["error"] == "BETTING_CLOSED"


def test_negative_prediction_is_rejected(user_client, make_match):
    match = make_match(utcnow() + timedelta(days=1))

    response = user_client.put(f"/api/predictions/match/{match.id}",
                               json={"predicted_home": -1, "predicted_away": 0})
    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"


def test_missing_prediction_and_match(user_client):
    assert user_client.get("/api/predictions/match/77").status_code == 404
    response = user_client.put("/api/predictions/match/77", json={"predicted_home": 1, "predicted_away": 0})
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_admin_routes_need_admin(user_client):
    response = user_client.post("/admin/teams", json={"name": "Bears"})
    assert response.status_code == 403


def test_admin_match_flow(admin_client, session, user, teams):
    home, away = teams
    kickoff = utcnow() + timedelta(minutes=30)
    response = admin_client.post("/admin/matches", json={
        "home_team_id": home.id,
        "away_team_id": away.id,
        "kickoff": kickoff.isoformat()
    })
    assert response.status_code == 201
    match_id = response.json()["id"]
    assert response.json()["betting_open"] is True

    session.add(Prediction(user_id=user.id, match_id=match_id, predicted_home=1, predicted_away=1))
    session.commit()

    # Not kicked off yet
    response = admin_client.put(f"/admin/matches/{match_id}/result", json={"home_score": 1, "away_score": 1})
    assert response.status_code == 409

    match = session.get(Match, match_id)
    match.kickoff = utcnow() - timedelta(minutes=100)
    session.add(match)
    session.commit()

    response = admin_client.post("/admin/matches/advance")
    assert response.json() == {"updated": 1}

    response = admin_client.put(f"/admin/matches/{match_id}/result", json={"home_score": 1, "away_score": 1})
    assert response.status_code == 200
    assert response.json()["predictions_scored"] == 1

    response = admin_client.get(f"/api/stats/users/{user.id}")
    assert response.json()["total_points"] == 3

    # Correction is visible straight away
    admin_client.put(f"/admin/matches/{match_id}/result", json={"home_score": 2, "away_score": 0})
    response = admin_client.get(f"/api/stats/users/{user.id}")
    assert response.json()["total_points"] == 0


def test_admin_delete_prediction(admin_client, session, user, make_match):
    match = make_match(utcnow() + timedelta(days=1))
    prediction = Prediction(user_id=user.id, match_id=match.id, predicted_home=1, predicted_away=0)
    session.add(prediction)
    session.commit()

    response = admin_client.delete(f"/admin/predictions/{prediction.id}")
    assert response.status_code == 200
    assert admin_client.delete(f"/admin/predictions/{prediction.id}").status_code == 404


def test_admin_edit_prediction(admin_client, session, user, make_match):
    match = make_match(utcnow() - timedelta(hours=3), status="live")
    prediction = Prediction(user_id=user.id, match_id=match.id, predicted_home=0, predicted_away=0)
    session.add(prediction)
    session.commit()
    admin_client.put(f"/admin/matches/{match.id}/result", json={"home_score": 1, "away_score": 0})

    response = admin_client.put(f"/admin/predictions/{prediction.id}", json={"predicted_home": 2, "predicted_away": 0})
    assert response.status_code == 200
    assert response.json()["points"] == 1

    response = admin_client.get(f"/api/stats/users/{user.id}")
    assert response.json()["total_points"] == 1

    response = admin_client.put("/admin/predictions/404", json={"predicted_home": 1, "predicted_away": 0})
    assert response.status_code == 404


def test_competition_flow(admin_client, session, make_user, make_match):
    now = utcnow()
    response = admin_client.post("/admin/competitions", json={
        "name": "Summer Cup",
        "start_date": (now - timedelta(days=10)).isoformat(),
        "end_date": (now + timedelta(days=10)).isoformat()
    })
    assert response.status_code == 201
    competition_id = response.json()["id"]
    assert response.json()["is_active"] is True

    ann, ben = make_user("ann"), make_user("ben")
    join_competition(session, competition_id, ann.id)
    join_competition(session, competition_id, ben.id)

    match = make_match(now - timedelta(days=2), competition_id=competition_id, status="live")
    session.add_all([
        Prediction(user_id=ann.id, match_id=match.id, predicted_home=0, predicted_away=1),
        Prediction(user_id=ben.id, match_id=match.id, predicted_home=2, predicted_away=1),
    ])
    session.commit()
    admin_client.put(f"/admin/matches/{match.id}/result", json={"home_score": 2, "away_score": 1})

    response = admin_client.get(f"/api/competitions/{competition_id}/standings")
    assert [(row["user_id"], row["rank"]) for row in response.json()] == [(ben.id, 1), (ann.id, 2)]

    # Still running
    response = admin_client.post(f"/admin/competitions/{competition_id}/close")
    assert response.status_code == 409


def test_join_competition_endpoint(user_client, make_competition):
    now = utcnow()
    competition = make_competition("Cup", start=now - timedelta(days=1), end=now + timedelta(days=1))

    response = user_client.post(f"/api/competitions/{competition.id}/join")
    assert response.status_code == 201

    response = user_client.post(f"/api/competitions/{competition.id}/join")
    assert response.status_code == 409


def test_stats_endpoints(user_client, user, session, make_match):
    match = make_match(utcnow() - timedelta(days=1), status="live")
    session.add(Prediction(user_id=user.id, match_id=match.id, predicted_home=1, predicted_away=0))
    session.commit()
    record_final_score(session, match.id, 1, 0)

    me = user_client.get("/api/stats/me").json()
    assert me["total_points"] == 3
    assert me["rank"] == 1

    board = user_client.get("/api/stats/leaderboard", params={"sort": "points", "limit": 5}).json()
    assert board[0]["user_id"] == user.id

    streaks = user_client.get("/api/stats/streaks", params={"kind": "exact"}).json()
    assert streaks[0]["streak_length"] == 1

    recent = user_client.get("/api/stats/me/recent").json()
    assert recent[0]["result"] == "exact"

    response = user_client.get("/api/stats/leaderboard", params={"sort": "wins"})
    assert response.status_code == 422


def test_palmares(user_client, make_competition):
    make_competition("Old Cup")

    response = user_client.get("/api/competitions/palmares")
    assert response.status_code == 200
    assert response.json()[0]["name"] == "Old Cup"
