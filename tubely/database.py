"""SQLite storage for users, refresh tokens and videos."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        password TEXT NOT NULL,
        email TEXT UNIQUE NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_tokens (
        token TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        revoked_at TIMESTAMP,
        user_id TEXT NOT NULL,
        expires_at TIMESTAMP NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS videos (
        id TEXT PRIMARY KEY,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        title TEXT NOT NULL,
        description TEXT,
        thumbnail_url TEXT,
        video_url TEXT TEXT,
        user_id INTEGER,
        FOREIGN KEY(user_id) REFERENCES users(id)
    );
    """,
)

_VIDEO_COLUMNS = (
    "id, created_at, updated_at, title, description, thumbnail_url, video_url, user_id"
)


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _store_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(sep=" ")


def _format_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


@dataclass
class User:
    """A registered user."""

    id: uuid.UUID
    email: str
    password: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "email": self.email,
            "password": self.password,
        }


@dataclass
class Video:
    """Metadata for an uploaded video."""

    id: uuid.UUID
    title: str
    description: str
    user_id: uuid.UUID
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "thumbnail_url": self.thumbnail_url,
            "video_url": self.video_url,
            "title": self.title,
            "description": self.description,
            "user_id": str(self.user_id),
        }


@dataclass
class RefreshToken:
    """A long-lived token used to obtain new access tokens."""

    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "user_id": str(self.user_id),
            "expires_at": _format_time(self.expires_at),
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "revoked_at": _format_time(self.revoked_at),
        }


class Database:
    """A connection to the application's SQLite database."""

    def __init__(self, path: str) -> None:
        self._conn = sqlite3.connect(
            path, check_same_thread=False, isolation_level=None
        )
        self._lock = threading.Lock()
        with self._lock:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _execute(self, query: str, params: tuple = ()) -> None:
        with self._lock:
            self._conn.execute(query, params)

    def _fetchone(self, query: str, params: tuple = ()) -> Optional[tuple]:
        with self._lock:
            return self._conn.execute(query, params).fetchone()

    def _fetchall(self, query: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            return self._conn.execute(query, params).fetchall()

    def reset(self) -> None:
        """Delete every row from every table."""
        for table in ("refresh_tokens", "users", "videos"):
            try:
                self._execute(f"DELETE FROM {table}")
            except sqlite3.Error as exc:
                raise sqlite3.DatabaseError(
                    f"failed to reset table {table}: {exc}"
                ) from exc

    # Refresh tokens

    def create_refresh_token(
        self, token: str, user_id: uuid.UUID | str, expires_at: datetime
    ) -> Optional[RefreshToken]:
        self._execute(
            """
            INSERT INTO refresh_tokens (token, created_at, updated_at, user_id, expires_at)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (token, str(_as_uuid(user_id)), _store_time(expires_at)),
        )
        return self.get_refresh_token(token)

    def revoke_refresh_token(self, token: str) -> None:
        self._execute(
            "UPDATE refresh_tokens SET revoked_at = CURRENT_TIMESTAMP WHERE token = ?",
            (token,),
        )

    def get_refresh_token(self, token: str) -> Optional[RefreshToken]:
        row = self._fetchone(
            """
            SELECT token, created_at, updated_at, user_id, expires_at, revoked_at
            FROM refresh_tokens WHERE token = ?
            """,
            (token,),
        )
        if row is None:
            return None
        tok, created, updated, user_id, expires, revoked = row
        return RefreshToken(
            token=tok,
            user_id=uuid.UUID(user_id),
            expires_at=_parse_time(expires),
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
            revoked_at=_parse_time(revoked),
        )

    def delete_refresh_token(self, token: str) -> None:
        self._execute("DELETE FROM refresh_tokens WHERE token = ?", (token,))

    # Users

    def get_users(self) -> list[User]:
        """Return every user with only the id and e-mail filled in."""
        rows = self._fetchall("SELECT id, email FROM users")
        return [User(id=uuid.UUID(user_id), email=email) for user_id, email in rows]

    @staticmethod
    def _user_from_row(row: tuple) -> User:
        user_id, created, updated, email, password = row
        return User(
            id=uuid.UUID(user_id),
            email=email,
            password=password,
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
        )

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._fetchone(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE email = ?",
            (email,),
        )
        return None if row is None else self._user_from_row(row)

    def get_user_by_refresh_token(self, token: str) -> Optional[User]:
        row = self._fetchone(
            """
            SELECT u.id, u.created_at, u.updated_at, u.email, u.password
            FROM users u
            JOIN refresh_tokens rt ON u.id = rt.user_id
            WHERE rt.token = ?
            """,
            (token,),
        )
        return None if row is None else self._user_from_row(row)

    def create_user(self, email: str, password: str) -> Optional[User]:
        user_id = uuid.uuid4()
        self._execute(
            """
            INSERT INTO users (id, created_at, updated_at, email, password)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?)
            """,
            (str(user_id), email, password),
        )
        return self.get_user(user_id)

    def get_user(self, user_id: uuid.UUID | str) -> Optional[User]:
        row = self._fetchone(
            "SELECT id, created_at, updated_at, email, password FROM users WHERE id = ?",
            (str(_as_uuid(user_id)),),
        )
        return None if row is None else self._user_from_row(row)

    def delete_user(self, user_id: uuid.UUID | str) -> None:
        self._execute("DELETE FROM users WHERE id = ?", (str(_as_uuid(user_id)),))

    # Videos

    @staticmethod
    def _video_from_row(row: tuple) -> Video:
        vid, created, updated, title, description, thumb, video_url, user_id = row
        return Video(
            id=uuid.UUID(vid),
            title=title,
            description=description or "",
            user_id=uuid.UUID(str(user_id)),
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
            thumbnail_url=thumb,
            video_url=video_url,
        )

    def get_videos(self, user_id: uuid.UUID | str) -> list[Video]:
        rows = self._fetchall(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE user_id = ? ORDER BY created_at DESC",
            (str(_as_uuid(user_id)),),
        )
        return [self._video_from_row(row) for row in rows]

    def create_video(
        self, title: str, description: str, user_id: uuid.UUID | str
    ) -> Optional[Video]:
        video_id = uuid.uuid4()
        self._execute(
            """
            INSERT INTO videos (id, created_at, updated_at, title, description, user_id)
            VALUES (?, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP, ?, ?, ?)
            """,
            (str(video_id), title, description, str(_as_uuid(user_id))),
        )
        return self.get_video(video_id)

    def get_video(self, video_id: uuid.UUID | str) -> Optional[Video]:
        row = self._fetchone(
            f"SELECT {_VIDEO_COLUMNS} FROM videos WHERE id = ?",
            (str(_as_uuid(video_id)),),
        )
        return None if row is None else self._video_from_row(row)

    def update_video(self, video: Video) -> None:
        self._execute(
            """
            UPDATE videos
            SET title = ?, description = ?, thumbnail_url = ?, video_url = ?, user_id = ?
            WHERE id = ?
            """,
            (
                video.title,
                video.description,
                video.thumbnail_url,
                video.video_url,
                str(video.user_id),
                str(video.id),
            ),
        )

    def delete_video(self, video_id: uuid.UUID | str) -> None:
        self._execute("DELETE FROM videos WHERE id = ?", (str(_as_uuid(video_id)),))