"""The HTTP application and the command that serves it."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sqlite3
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
from werkzeug.routing import Map, Rule
from werkzeug.serving import run_simple
from werkzeug.utils import redirect, send_from_directory
from werkzeug.wrappers import Request, Response

from tubely.assets import ensure_assets_dir
from tubely.database import Database
from tubely.responses import error_response, json_response, no_cache

logger = logging.getLogger(__name__)

_REQUIRED = (
    ("db_path", "DB_PATH", "DB_URL must be set"),
    ("jwt_secret", "JWT_SECRET", "JWT_SECRET environment variable is not set"),
    ("platform", "PLATFORM", "PLATFORM environment variable is not set"),
    ("filepath_root", "FILEPATH_ROOT", "FILEPATH_ROOT environment variable is not set"),
    ("assets_root", "ASSETS_ROOT", "ASSETS_ROOT environment variable is not set"),
    ("s3_bucket", "S3_BUCKET", "S3_BUCKET environment variable is not set"),
    ("s3_region", "S3_REGION", "S3_REGION environment variable is not set"),
    ("s3_cf_distribution", "S3_CF_DISTRO", "S3_CF_DISTRO environment variable is not set"),
    ("port", "PORT", "PORT environment variable is not set"),
)


class ConfigError(Exception):
    """Raised when a required setting is missing."""


@dataclass(frozen=True)
class Config:
    """Server settings.

    ``authenticate`` turns a bearer token into the id of the user it belongs
    to and raises on an invalid token; without it every authenticated
    request is refused.
    """

    db_path: str
    jwt_secret: str
    platform: str
    filepath_root: str
    assets_root: str
    s3_bucket: str
    s3_region: str
    s3_cf_distribution: str
    port: str
    authenticate: Optional[Callable[[str], uuid.UUID]] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Read the settings from environment variables."""
        env = os.environ if environ is None else environ
        values = {}
        for field_name, variable, message in _REQUIRED:
            value = env.get(variable, "")
            if not value:
                raise ConfigError(message)
            values[field_name] = value
        return cls(**values)


class _ApiError(Exception):
    def __init__(self, code: int, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause


def _string_field(params: dict, name: str) -> str:
    value = params.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {name} must be a string")
    return value


class _Api:
    def __init__(self, config: Config, db: Database) -> None:
        self._config = config
        self._db = db
        self._urls = Map(
            [
                Rule("/api/videos", methods=["POST"], endpoint=self._create_video),
                Rule("/api/videos", methods=["GET"], endpoint=self._list_videos),
                Rule("/api/videos/<video_id>", methods=["GET"], endpoint=self._get_video),
                Rule(
                    "/api/videos/<video_id>", methods=["DELETE"], endpoint=self._delete_video
                ),
                Rule("/admin/reset", methods=["POST"], endpoint=self._reset),
            ]
        )

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        request = Request(environ)
        adapter = self._urls.bind_to_environ(environ)
        try:
            endpoint, values = adapter.match()
            response = endpoint(request, **values)
        except _ApiError as exc:
            response = error_response(exc.code, exc.message, exc.cause)
        except HTTPException as exc:
            response = exc
        return response(environ, start_response)

    def _user_id(self, request: Request) -> uuid.UUID:
        header = request.headers.get("Authorization", "")
        scheme, _, supplied = header.partition(" ")
        supplied = supplied.strip()
        if scheme != "Bearer" or not supplied:
            raise _ApiError(401, "Couldn't find JWT")
        if self._config.authenticate is None:
            raise _ApiError(401, "Couldn't validate JWT")
        try:
            return self._config.authenticate(supplied)
        except Exception as exc:
            raise _ApiError(401, "Couldn't validate JWT", exc) from exc

    @staticmethod
    def _parse_id(raw: str, message: str) -> uuid.UUID:
        try:
            return uuid.UUID(raw)
        except ValueError as exc:
            raise _ApiError(400, message, exc) from exc

    def _create_video(self, request: Request) -> Response:
        user_id = self._user_id(request)
        try:
            params = json.loads(request.get_data())
            if not isinstance(params, dict):
                raise ValueError("parameters must be a JSON object")
            title = _string_field(params, "title")
            description = _string_field(params, "description")
        except ValueError as exc:
            raise _ApiError(500, "Couldn't decode parameters", exc) from exc
        try:
            video = self._db.create_video(title, description, user_id)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't create video", exc) from exc
        return json_response(201, video)

    def _list_videos(self, request: Request) -> Response:
        user_id = self._user_id(request)
        try:
            videos = self._db.get_videos(user_id)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't retrieve videos", exc) from exc
        return json_response(200, videos)

    def _get_video(self, request: Request, video_id: str) -> Response:
        vid = self._parse_id(video_id, "Invalid video ID")
        try:
            video = self._db.get_video(vid)
        except sqlite3.Error as exc:
            raise _ApiError(404, "Couldn't get video", exc) from exc
        if video is None:
            raise _ApiError(404, "Couldn't get video")
        return json_response(200, video)

    def _delete_video(self, request: Request, video_id: str) -> Response:
        vid = self._parse_id(video_id, "Invalid ID")
        user_id = self._user_id(request)
        try:
            video = self._db.get_video(vid)
        except sqlite3.Error as exc:
            raise _ApiError(404, "Couldn't get video", exc) from exc
        if video is None:
            raise _ApiError(404, "Couldn't get video")
        if video.user_id != user_id:
            raise _ApiError(403, "You can't delete this video")
        try:
            self._db.delete_video(vid)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't delete video", exc) from exc
        return Response(status=204)

    def _reset(self, request: Request) -> Response:
        if self._config.platform != "dev":
            return Response(
                "Reset is only allowed in dev environment.", status=403, mimetype="text/plain"
            )
        try:
            self._db.reset()
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't reset database", exc) from exc
        return Response("Database reset to initial state", status=200, mimetype="text/plain")


def _static_app(root: str, prefix: str) -> Callable:
    @Request.application
    def serve(request: Request) -> Response:
        relative = request.path[len(prefix):].lstrip("/")
        if not relative or relative.endswith("/"):
            relative += "index.html"
        return send_from_directory(root, relative, request.environ)

    return serve


def create_app(config: Config, db: Database) -> Callable:
    """Build the WSGI application serving the site, the assets and the API."""
    api = _Api(config, db)
    site = _static_app(config.filepath_root, "/app")
    assets = no_cache(_static_app(config.assets_root, "/assets"))

    def application(environ: dict, start_response: Callable) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "") or "/"
        if path in ("/app", "/assets"):
            return redirect(path + "/", code=301)(environ, start_response)
        if path.startswith("/app/"):
            return site(environ, start_response)
        if path.startswith("/assets/"):
            return assets(environ, start_response)
        return api(environ, start_response)

    return application


def main(argv: Optional[list[str]] = None) -> int:
    """Read the settings and serve the application until interrupted."""
    parser = argparse.ArgumentParser(prog="tubely", description="Serve the video API.")
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    load_dotenv(".env")

    try:
        config = Config.from_env()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1
    try:
        port = int(config.port)
    except ValueError:
        logger.error("Invalid PORT: %s", config.port)
        return 1
    try:
        db = Database(config.db_path)
    except sqlite3.Error as exc:
        logger.error("Couldn't connect to database: %s", exc)
        return 1

    with db:
        try:
            ensure_assets_dir(config.assets_root)
        except OSError as exc:
            logger.error("Couldn't create assets directory: %s", exc)
            return 1
        app = create_app(config, db)
        logger.info("Serving on: http://localhost:%s/app/", config.port)
        run_simple("0.0.0.0", port, app, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())