import pytest
from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient
from sqlalchemy import select

from tunematch.auth import decode_access_token
from tunematch.errors import PersistenceError, UpstreamServiceError
from tunematch.main import app
from tunematch.models.chat import ChatMessage, Conversation
from tunematch.models.user import UserProfile
from tunematch.utils.spotify import SpotifyClient

TOKEN_INFO = {
    "access_token": "test_access_token",
    "refresh_token": "test_refresh_token",
    "token_type": "Bearer",
    "scope": "user-read-private user-top-read",
    "expires_in": 3600
}


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def spotify_login():
    """Patch the Spotify calls made during /callback."""
    with patch.object(SpotifyClient, "exchange_code", AsyncMock(return_value=TOKEN_INFO)) as exchange, \
            patch.object(SpotifyClient, "get_current_user",
                         AsyncMock(return_value={"id": "spotify-sam", "display_name": "Sam"})), \
            patch.object(SpotifyClient, "get_top_artist_names",
                         AsyncMock(return_value=["Radiohead", "Bjork", "Radiohead"])):
        yield exchange


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_login_redirects_to_spotify(client):
    response = client.get("/login", follow_redirects=False)

    assert response.status_code == 307
    location = urlparse(response.headers["location"])
    params = parse_qs(location.query)
    assert location.netloc == "accounts.spotify.com"
    assert location.path == "/authorize"
    assert params["response_type"] == ["code"]
    assert params["client_id"] == ["test_client_id"]
    assert params["scope"] == ["user-read-private user-top-read"]
    assert params["redirect_uri"] == ["http://localhost:8888/callback"]


def test_callback_stores_profile_and_issues_token(client, sync_db, spotify_login):
    response = client.get("/callback", params={"code": "test_code"}, follow_redirects=False)

    assert response.status_code == 303
    location = urlparse(response.headers["location"])
    assert f"{location.scheme}://{location.netloc}" == "http://localhost:3000"
    token = parse_qs(location.query)["token"][0]

    profile = sync_db.execute(select(UserProfile).filter_by(spotify_id="spotify-sam")).scalar_one()
    assert profile.display_name == "Sam"
    assert profile.top_artists == ["Radiohead", "Bjork", "Radiohead"]
    assert profile.access_token == "test_access_token"
    assert profile.refresh_token == "test_refresh_token"

    claims = decode_access_token(token)
    assert claims.user_id == profile.id
    assert claims.spotify_id == "spotify-sam"
    spotify_login.assert_awaited_once_with("test_code")


def test_repeated_login_updates_same_profile(client, sync_db, make_profile, spotify_login):
    existing = make_profile("spotify-sam", ["Old Artist"], display_name="Old Name")

    client.get("/callback", params={"code": "test_code"}, follow_redirects=False)

    sync_db.expire_all()
    profiles = sync_db.execute(select(UserProfile)).scalars().all()
    assert len(profiles) == 1
    assert profiles[0].id == existing.id
    assert profiles[0].display_name == "Sam"
    assert profiles[0].top_artists == ["Radiohead", "Bjork", "Radiohead"]


def test_callback_upstream_failure(client, sync_db):
    failing = AsyncMock(side_effect=UpstreamServiceError("invalid_grant", status=400))
    with patch.object(SpotifyClient, "exchange_code", failing):
        response = client.get("/callback", params={"code": "bad_code"}, follow_redirects=False)

    assert response.status_code == 500
    assert response.json() == {"detail": "Authentication failed."}
    assert sync_db.execute(select(UserProfile)).first() is None


def test_callback_with_spotify_error(client):
    response = client.get("/callback", params={"error": "access_denied"}, follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "http://localhost:3000/?error=access_denied"


def test_match_requires_token(client):
    response = client.get("/api/match")
    assert response.status_code == 401
    assert response.json() == {"detail": "Authentication Failed"}

    response = client.get("/api/match", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Authentication Failed"}


def test_match_returns_best_candidate(client, make_profile, auth_headers_for):
    me = make_profile("me", ["A", "B", "C"])
    make_profile("x", ["A", "B"], display_name="X")
    make_profile("y", ["A", "B", "C", "D"], display_name="Y")

    response = client.get("/api/match", headers=auth_headers_for(me))

    assert response.status_code == 200
    assert response.json() == {
        "match": "Y",
        "matchId": "y",
        "matchTopArtists": ["A", "B", "C", "D"],
        "sharedArtists": ["A", "B", "C"],
    }


def test_match_without_candidates(client, make_profile, auth_headers_for):
    me = make_profile("me", ["A"])
    make_profile("silent", [])

    response = client.get("/api/match", headers=auth_headers_for(me))

    assert response.status_code == 200
    assert response.json() == {"match": "No match found. Invite your friends!"}


def test_match_without_own_artists(client, make_profile, auth_headers_for):
    me = make_profile("me", [])
    make_profile("other", ["A"])

    response = client.get("/api/match", headers=auth_headers_for(me))

    assert response.status_code == 404
    assert response.json() == {"detail": "Current user not found or no top artists"}


def test_match_store_failure(client, make_profile, auth_headers_for):
    me = make_profile("me", ["A"])
    failing = AsyncMock(side_effect=PersistenceError("database unavailable"))

    with patch("tunematch.routes.match.find_other_profiles", failing):
        response = client.get("/api/match", headers=auth_headers_for(me))

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to find a match."}


def test_top_artists_from_stored_profile(client, make_profile, auth_headers_for):
    me = make_profile("me", ["A", "B"])

    response = client.get("/api/spotify/top-artists", headers=auth_headers_for(me))

    assert response.status_code == 200
    assert response.json() == {"items": ["A", "B"]}


def test_top_artists_requires_token(client):
    assert client.get("/api/spotify/top-artists").status_code == 401


def test_top_artists_store_failure(client, make_profile, auth_headers_for):
    me = make_profile("me", ["A"])
    failing = AsyncMock(side_effect=PersistenceError("database unavailable"))

    with patch("tunematch.routes.match.get_profile", failing):
        response = client.get("/api/spotify/top-artists", headers=auth_headers_for(me))

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to load top artists."}


def seed_chat(sync_db, first, second, messages):
    low, high = sorted([first, second])
    conversation = Conversation(participant_low=low, participant_high=high)
    sync_db.add(conversation)
    sync_db.flush()
    for sender, body in messages:
        sync_db.add(ChatMessage(conversation_id=conversation.id, sender_id=sender, body=body))
    sync_db.commit()
    return conversation


def test_chat_history_for_participant(client, sync_db, make_profile, auth_headers_for):
    me = make_profile("me", ["A"])
    conversation = seed_chat(sync_db, "me", "you", [("me", "hi"), ("you", "hello")])

    response = client.get(f"/api/chat/{conversation.id}/messages", headers=auth_headers_for(me))

    assert response.status_code == 200
    body = response.json()
    assert body["chatId"] == str(conversation.id)
    assert sorted(body["participants"]) == ["me", "you"]
    assert [(m["senderId"], m["message"]) for m in body["messages"]] == [("me", "hi"), ("you", "hello")]


def test_chat_history_hidden_from_outsiders(client, sync_db, make_profile, auth_headers_for):
    outsider = make_profile("outsider", ["A"])
    conversation = seed_chat(sync_db, "me", "you", [("me", "secret")])

    response = client.get(f"/api/chat/{conversation.id}/messages", headers=auth_headers_for(outsider))

    assert response.status_code == 403


def test_chat_history_unknown_chat(client, make_profile, auth_headers_for):
    me = make_profile("me", ["A"])

    response = client.get("/api/chat/999/messages", headers=auth_headers_for(me))

    assert response.status_code == 404


def test_chat_history_store_failure(client, sync_db, make_profile, auth_headers_for):
    me = make_profile("me", ["A"])
    conversation = seed_chat(sync_db, "me", "you", [("me", "hi")])
    failing = AsyncMock(side_effect=PersistenceError("database unavailable"))

    with patch("tunematch.routes.match.list_messages", failing):
        response = client.get(f"/api/chat/{conversation.id}/messages", headers=auth_headers_for(me))

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to load chat history."}
