import base64
import io
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image
from werkzeug.datastructures import FileStorage

# Add project root to Python path
root_path = str(Path(__file__).parent.parent)
if root_path not in sys.path:
    sys.path.insert(0, root_path)

from builder import GenerationRequest, IconImage, ReferenceFile  # noqa: E402

SAMPLE_APP_EASY = json.dumps({
    "appName": "Note Taker",
    "appVersion": "1.0.0",
    "startScreen": "main",
    "admobAppId": "ca-app-pub-123~456",
    "toolbar": {"title": "Note Taker"},
    "screens": [
        {"name": "main", "title": "Main", "widgets": []},
        {"name": "add", "title": "Add", "widgets": []},
    ],
    "actions": [{"id": "openAdd", "type": "navigate", "screen": "add"}],
})

SAMPLE_FILES = {
    "firebase/google-services.json": '{"project_info": {"project_id": "note-taker-project"}}',
    "res/drawable/app_icon.xml": "<vector android:width=\"24dp\"/>",
    "res/drawable/item1_icon.xml": "<vector android:width=\"24dp\"><path/></vector>",
    "res/drawable/item2_icon.xml": "<vector android:width=\"24dp\"><group/></vector>",
    "res/drawable/settings.xml": "<shape><corners android:radius=\"8dp\"/></shape>",
    "tree/app.easy": SAMPLE_APP_EASY,
}


@pytest.fixture(autouse=True)
def gemini_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.delenv("GEMINI_MODEL", raising=False)


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (139, 92, 246)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_upload():
    def _make(data, filename, content_type=None):
        return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=content_type)
    return _make


@pytest.fixture
def sample_files():
    return dict(SAMPLE_FILES)


@pytest.fixture
def generation_request(png_bytes):
    return GenerationRequest(
        app_name="Note Taker",
        feature_description="Add notes to a list and clear the list.",
        icon=IconImage(data=base64.b64encode(png_bytes).decode("utf-8"), mime_type="image/png"),
        ad_identifier="ca-app-pub-123~456",
        reference_files=[ReferenceFile(name="notes.md", content="# Notes")],
    )


@pytest.fixture
def mock_client():
    """Gemini client whose async generate_content returns the sample files."""
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=MagicMock(text="\n  " + json.dumps(SAMPLE_FILES) + "  \n")
    )
    return client
