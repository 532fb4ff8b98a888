# tubely

A small HTTP API for keeping video records. Videos belong to users and are
stored in SQLite; a front end and an assets directory are served as static
files, the assets with `Cache-Control: no-store`. Helper modules name asset
files, build their URLs, and inspect or remux MP4 files with `ffprobe` and
`ffmpeg`.

## Installing

```
pip install .
```

The helpers in `tubely.media` need `ffprobe` and `ffmpeg` on the `PATH`.

## Running the server

The `tubely` command reads its settings from the environment, and also from
a `.env` file in the working directory if one is present. Every setting is
required; the command logs the first one missing and exits with status 1:

```
DB_PATH=tubely.db
JWT_SECRET=secret
PLATFORM=dev
FILEPATH_ROOT=./app
ASSETS_ROOT=./assets
S3_BUCKET=tubely-example-bucket
S3_REGION=us-east-1
S3_CF_DISTRO=placeholder
PORT=8091
```

Then start it:

```
tubely
```

It creates the assets directory if it is missing and serves on all
interfaces at the given port:

- `/app/...` serves files from `FILEPATH_ROOT`; a path ending in `/` serves
  its `index.html`. `/app` redirects to `/app/`.
- `/assets/...` serves files from `ASSETS_ROOT` with `Cache-Control: no-store`.
  `/assets` redirects to `/assets/`.

The API routes:

| Method | Path                     | Purpose                                        |
|--------|--------------------------|------------------------------------------------|
| POST   | `/api/videos`            | create a video from `{"title", "description"}` for the caller (201) |
| GET    | `/api/videos`            | list the caller's videos, newest first         |
| GET    | `/api/videos/{videoID}`  | fetch one video (no authentication)            |
| DELETE | `/api/videos/{videoID}`  | delete a video the caller owns (204, or 403)   |
| POST   | `/admin/reset`           | empty every table; 403 unless `PLATFORM=dev`   |

Errors come back as JSON of the form `{"error": "..."}`. The caller is named
by an `Authorization: Bearer token` header.

## What the package does not do

- It does not issue or check access tokens by itself. `Config` has an
  `authenticate` setting, a callable that turns a bearer token into a user id
  (a `uuid.UUID`) and raises if the token is invalid. The `tubely` command
  does not set it, so when started that way every route that needs a caller
  answers 401 `"Couldn't validate JWT"`. To use those routes, build the
  application yourself with `create_app` and supply `authenticate`.
- It has no routes for signing up, logging in, refreshing or revoking
  tokens. The database layer stores users and refresh tokens, but nothing
  serves them over HTTP, and passwords are stored exactly as given.
- It has no upload routes for thumbnails or videos and does not send
  anything to S3. `S3_BUCKET`, `S3_REGION` and `S3_CF_DISTRO` are read and
  required, and `tubely.assets.object_url` builds an S3 URL, but no object is
  ever stored.

## Building the application yourself

```python
import dataclasses
import uuid

from werkzeug.serving import run_simple

from tubely.database import Database
from tubely.server import Config, create_app

def authenticate(bearer: str) -> uuid.UUID:
    ...  # return the user's id or raise

config = dataclasses.replace(Config.from_env(), authenticate=authenticate)
with Database(config.db_path) as db:
    run_simple("localhost", int(config.port), create_app(config, db))
```

`Config.from_env` takes an optional mapping in place of `os.environ` and
raises `ConfigError` when a setting is missing or empty.

## Using the pieces as a library

`tubely.database.Database` is a context manager over an SQLite file. It
creates its tables on opening, and its getters return `None` when nothing
matches:

```python
from tubely.database import Database

password = "password"
with Database("tubely.db") as db:
    user = db.create_user("alice@example.com", password)
    video = db.create_video("Boots", "A short clip", user.id)
    video.thumbnail_url = "http://localhost:8091/assets/thumb.png"
    db.update_video(video)
    print([v.to_dict() for v in db.get_videos(user.id)])
```

It also offers `get_user`, `get_user_by_email`, `get_user_by_refresh_token`,
`get_users` (id and e-mail only), `delete_user`, `get_video`,
`delete_video`, `create_refresh_token`, `get_refresh_token`,
`revoke_refresh_token`, `delete_refresh_token` and `reset`. `User`, `Video`
and `RefreshToken` are dataclasses with a `to_dict` method giving their JSON
form, with times in UTC ending in `Z`.

`tubely.assets` names files and builds paths and URLs:

```python
from tubely.assets import asset_url, get_asset_path, media_type_to_ext, object_url

media_type_to_ext("image/png")       # ".png"; ".bin" if there is no single "/"
name = get_asset_path("image/png")   # 43 random URL-safe characters + ".png"
asset_url("8091", name)              # "http://localhost:8091/assets/<name>"
object_url("bucket", "us-east-1", "landscape/x.mp4")
# "https://bucket.s3.us-east-1.amazonaws.com/landscape/x.mp4"
```

along with `ensure_assets_dir` and `asset_disk_path`.

`tubely.media` wraps `ffprobe` and `ffmpeg` and raises `MediaError` on
failure:

```python
from tubely.media import (
    aspect_ratio_directory,
    get_video_aspect_ratio,
    process_video_for_faster_start,
)

ratio = get_video_aspect_ratio("clip.mp4")        # "16:9", "9:16" or "other"
aspect_ratio_directory(ratio)                     # "landscape", "portrait" or "other"
process_video_for_faster_start("clip.mp4")        # "clip.mp4.processing"
```

`parse_probe_output` and `classify_aspect_ratio` do the same work on
`ffprobe` JSON or on a width and height.

`tubely.responses` has `json_response(code, payload)`,
`error_response(code, msg, err)` and the WSGI middleware `no_cache(app)`.

## Tests

```
pip install ".[test]"
pytest
```