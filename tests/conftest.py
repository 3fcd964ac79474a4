import shutil
import uuid
from pathlib import Path

import pytest

from tubely.auth import make_jwt
from tubely.config import Config
from tubely.db import Database
from tubely.main import create_app
from tubely.media import Dimensions, MediaError, classify

SECRET = "test-secret"


class FakeStorage:
    def __init__(self):
        self.uploads = []
        self.error = None

    def upload_file(self, path, key, content_type):
        if self.error is not None:
            raise self.error
        self.uploads.append({"key": key, "content_type": content_type, "data": Path(path).read_bytes()})

    def presign(self, key, expires_in):
        return f"https://signed.example/{key}?expires={expires_in}"


class FakeMedia:
    """Stands in for ffmpeg/ffprobe; copies the input as the remux output."""

    def __init__(self, dims=Dimensions(1920, 1080)):
        self.dims = dims
        self.calls = []
        self.fail_remux = False
        self.fail_probe = False

    async def remux(self, path):
        self.calls.append(("remux", Path(path)))
        if self.fail_remux:
            raise MediaError("ffmpeg fast-start failed: boom")
        out = Path(f"{path}.processed")
        shutil.copyfile(path, out)
        return out

    async def get_video_aspect_ratio(self, path):
        self.calls.append(("probe", Path(path)))
        if self.fail_probe:
            raise MediaError("ffprobe failed: no video stream")
        return classify(self.dims.width, self.dims.height)


@pytest.fixture
def config(tmp_path):
    return Config(
        jwt_secret=SECRET,
        s3_bucket="tubely-test",
        db_url=f"sqlite:///{tmp_path / 'tubely.db'}",
        assets_root=tmp_path / "assets",
        scratch_dir=tmp_path / "scratch",
        public_base_url="http://test",
    )


@pytest.fixture
def db(config):
    return Database(config.db_url)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def app(config, db, storage, media):
    return create_app(config, db=db, storage=storage, media=media)


@pytest.fixture
def owner_id():
    return str(uuid.uuid4())


@pytest.fixture
def auth_header(owner_id):
    return {"Authorization": f"Bearer {make_jwt(owner_id, SECRET)}"}


@pytest.fixture
def video(app, db, owner_id):
    return db.create_video(owner_id, "Boot camp", "first upload")
