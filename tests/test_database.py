import sqlite3
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from tubely.database import Database, RefreshToken, User, Video

PASSWORD = "password"


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "tubely.db"))
    yield database
    database.close()


def make_user(db, email="alice@example.com"):
    password = PASSWORD
    return db.create_user(email, password)


def test_create_and_get_user(db):
    user = make_user(db)
    assert isinstance(user, User)
    assert user.email == "alice@example.com"
    assert user.password == PASSWORD
    assert user.created_at is not None and user.created_at.tzinfo is not None
    fetched = db.get_user(user.id)
    assert fetched == user
    assert db.get_user(str(user.id)) == user


def test_get_user_by_email(db):
    user = make_user(db)
    assert db.get_user_by_email("alice@example.com") == user
    assert db.get_user_by_email("nobody@example.com") is None


def test_missing_user_is_none(db):
    assert db.get_user(uuid.uuid4()) is None


def test_duplicate_email_rejected(db):
    make_user(db)
    with pytest.raises(sqlite3.IntegrityError):
        make_user(db)


def test_get_users_only_id_and_email(db):
    a = make_user(db, "a@example.com")
    b = make_user(db, "b@example.com")
    users = db.get_users()
    assert {(u.id, u.email) for u in users} == {(a.id, a.email), (b.id, b.email)}
    assert all(u.password == "" and u.created_at is None for u in users)


def test_delete_user(db):
    user = make_user(db)
    db.delete_user(user.id)
    assert db.get_user(user.id) is None
    assert db.get_users() == []


def test_refresh_token_round_trip(db):
    user = make_user(db)
    expires = datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    rt = db.create_refresh_token("token", user.id, expires)
    assert isinstance(rt, RefreshToken)
    assert rt.token == "token"
    assert rt.user_id == user.id
    assert rt.expires_at == expires
    assert rt.revoked_at is None
    assert db.get_refresh_token("token") == rt


def test_naive_expiry_treated_as_utc(db):
    user = make_user(db)
    naive = datetime(2030, 5, 6, 7, 8, 9)
    rt = db.create_refresh_token("token", user.id, naive)
    assert rt.expires_at == naive.replace(tzinfo=timezone.utc)


def test_revoke_refresh_token(db):
    user = make_user(db)
    expires = datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    created = db.create_refresh_token("token", user.id, expires)
    assert created.revoked_at is None
    before = datetime.now(timezone.utc).replace(microsecond=0)
    db.revoke_refresh_token("token")
    after = datetime.now(timezone.utc)
    rt = db.get_refresh_token("token")
    assert rt.token == "token"
    assert rt.user_id == user.id
    assert rt.expires_at == expires
    assert before <= rt.revoked_at <= after + timedelta(seconds=1)


def test_user_by_refresh_token(db):
    user = make_user(db)
    db.create_refresh_token("token", user.id, datetime.now(timezone.utc))
    assert db.get_user_by_refresh_token("token") == user
    assert db.get_user_by_refresh_token("secret") is None


def test_delete_refresh_token(db):
    user = make_user(db)
    db.create_refresh_token("token", user.id, datetime.now(timezone.utc))
    db.delete_refresh_token("token")
    assert db.get_refresh_token("token") is None


def test_create_and_get_video(db):
    user = make_user(db)
    video = db.create_video("Title", "Desc", user.id)
    assert isinstance(video, Video)
    assert video.title == "Title"
    assert video.description == "Desc"
    assert video.user_id == user.id
    assert video.thumbnail_url is None and video.video_url is None
    assert db.get_video(video.id) == video


def test_update_video(db):
    user = make_user(db)
    video = db.create_video("Title", "Desc", user.id)
    video.title = "New"
    video.thumbnail_url = "http://localhost:8091/assets/x.png"
    video.video_url = "https://bucket.s3.region.amazonaws.com/landscape/x.mp4"
    db.update_video(video)
    fetched = db.get_video(video.id)
    assert fetched.title == "New"
    assert fetched.thumbnail_url == video.thumbnail_url
    assert fetched.video_url == video.video_url


def test_get_videos_filters_by_user(db):
    a = make_user(db, "a@example.com")
    b = make_user(db, "b@example.com")
    v1 = db.create_video("one", "", a.id)
    v2 = db.create_video("two", "", a.id)
    db.create_video("three", "", b.id)
    assert {v.id for v in db.get_videos(a.id)} == {v1.id, v2.id}
    assert db.get_videos(uuid.uuid4()) == []


def test_delete_video(db):
    user = make_user(db)
    video = db.create_video("t", "d", user.id)
    db.delete_video(video.id)
    assert db.get_video(video.id) is None


def test_reset_clears_everything(db):
    user = make_user(db)
    db.create_refresh_token("token", user.id, datetime.now(timezone.utc))
    db.create_video("t", "d", user.id)
    db.reset()
    assert db.get_users() == []
    assert db.get_refresh_token("token") is None
    assert db.get_videos(user.id) == []


def test_to_dict_keys_and_formats(db):
    user = make_user(db)
    video = db.create_video("t", "d", user.id)
    rt = db.create_refresh_token(
        "token", user.id, datetime(2030, 1, 1, tzinfo=timezone.utc)
    )
    ud = user.to_dict()
    assert set(ud) == {"id", "created_at", "updated_at", "email", "password"}
    assert ud["id"] == str(user.id)
    assert ud["created_at"].endswith("Z")
    vd = video.to_dict()
    assert set(vd) == {
        "id", "created_at", "updated_at", "thumbnail_url",
        "video_url", "title", "description", "user_id",
    }
    assert vd["user_id"] == str(user.id)
    assert vd["thumbnail_url"] is None
    rd = rt.to_dict()
    assert rd["expires_at"] == "2030-01-01T00:00:00Z"
    assert rd["revoked_at"] is None


def test_persists_across_connections(tmp_path):
    path = str(tmp_path / "data.db")
    with Database(path) as first:
        user = first.create_user("p@example.com", PASSWORD)
    with Database(path) as second:
        assert second.get_user(user.id) == user


def test_closed_database_raises(tmp_path):
    with Database(str(tmp_path / "c.db")) as database:
        pass
    with pytest.raises(sqlite3.ProgrammingError):
        database.get_users()