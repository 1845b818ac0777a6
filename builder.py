"""Prompt construction and the Gemini round trip for the app builder.

Turns the form inputs into a ``GenerationRequest``, composes the instruction
text, sends it to Gemini together with the icon image and reads the six
project files back out of the JSON response.
"""
import asyncio
import base64
import io
import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from google import genai
from google.genai import types

from system_prompt import (
    BUILD_PROMPT,
    REFERENCE_FILE_BLOCK,
    REFERENCE_FILES_FOOTER,
    REFERENCE_FILES_HEADER,
)

logger = logging.getLogger(__name__)

AVAILABLE_MODELS = [
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-3.1-pro-preview",
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
]

DEFAULT_MODEL = "gemini-2.5-pro"

THINKING_LEVEL_MODELS = {
    "gemini-3.1-pro-preview",
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
}

GENERIC_MIME_TYPES = {"", "application/octet-stream"}


# ── Errors ──

class BuilderError(Exception):
    """Base class for everything a build attempt can fail with."""


class ValidationError(BuilderError):
    def __init__(self, field_name, message):
        super().__init__(message)
        self.field = field_name


class ConfigurationError(BuilderError):
    pass


class DecodeError(BuilderError):
    pass


class GenerationError(BuilderError):
    pass


class ResponseParseError(BuilderError):
    pass


class PackagingError(BuilderError):
    pass


class BuildInProgressError(BuilderError):
    pass


# ── Data model ──

@dataclass(frozen=True)
class IconImage:
    data: str  # base64
    mime_type: str

    def raw_bytes(self) -> bytes:
        return base64.b64decode(self.data)


@dataclass(frozen=True)
class ReferenceFile:
    name: str
    content: str


@dataclass(frozen=True)
class GenerationRequest:
    app_name: str
    feature_description: str
    icon: IconImage
    ad_identifier: str
    reference_files: List[ReferenceFile] = field(default_factory=list)


class ProjectFiles(BaseModel):
    """The six files of a generated project, keyed by archive path."""

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True, populate_by_name=True)

    google_services: str = Field(alias="firebase/google-services.json")
    app_icon: str = Field(alias="res/drawable/app_icon.xml")
    item1_icon: str = Field(alias="res/drawable/item1_icon.xml")
    item2_icon: str = Field(alias="res/drawable/item2_icon.xml")
    settings: str = Field(alias="res/drawable/settings.xml")
    app_easy: str = Field(alias="tree/app.easy")

    @classmethod
    def paths(cls) -> List[str]:
        return [f.alias for f in cls.model_fields.values()]

    @classmethod
    def from_dict(cls, data) -> "ProjectFiles":
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ResponseParseError(_describe_errors(e)) from e

    @classmethod
    def from_json(cls, text) -> "ProjectFiles":
        try:
            return cls.model_validate_json(text)
        except PydanticValidationError as e:
            raise ResponseParseError(_describe_errors(e)) from e

    def to_dict(self):
        return self.model_dump(by_alias=True)

    def get(self, path):
        return self.to_dict()[path]


def _describe_errors(exc):
    parts = []
    for err in exc.errors():
        loc = "/".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "Response does not match the project files schema: " + "; ".join(parts)


# Tab order and labels on the page.
FILE_ORDER = [
    "tree/app.easy",
    "firebase/google-services.json",
    "res/drawable/app_icon.xml",
    "res/drawable/item1_icon.xml",
    "res/drawable/item2_icon.xml",
    "res/drawable/settings.xml",
]

FILE_LABELS = {path: path.rsplit("/", 1)[-1] for path in FILE_ORDER}

DEFAULT_SELECTED = "tree/app.easy"

RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={path: types.Schema(type=types.Type.STRING) for path in ProjectFiles.paths()},
    required=ProjectFiles.paths(),
)


# ── Validation ──

def _is_blank(value):
    return value is None or not str(value).strip()


def validate_inputs(app_name, feature_description, icon_upload, ad_identifier):
    """Raise ValidationError for the first missing required input."""
    if _is_blank(app_name):
        raise ValidationError("appName", "Please provide a name for your app.")
    if _is_blank(feature_description):
        raise ValidationError(
            "prompt", "Please describe the features of the app you want to build."
        )
    if icon_upload is None or not getattr(icon_upload, "filename", ""):
        raise ValidationError("appIcon", "Please upload an app icon.")
    if _is_blank(ad_identifier):
        raise ValidationError("admobId", "Please provide an AdMob App ID.")


# ── File materializer ──

async def _read_upload(upload) -> bytes:
    try:
        return await asyncio.to_thread(upload.read)
    except OSError as e:
        raise DecodeError(f"Could not read {upload.filename!r}: {e}") from e


def _sniff_image_mime(raw: bytes, filename) -> str:
    try:
        with Image.open(io.BytesIO(raw)) as img:
            fmt = img.format
    except Exception as e:
        raise DecodeError(f"Could not tell the image type of {filename!r}: {e}") from e
    return Image.MIME.get(fmt, "image/png")


async def materialize_icon(upload) -> IconImage:
    raw = await _read_upload(upload)
    if not raw:
        raise DecodeError(f"App icon {upload.filename!r} is empty.")

    mime_type = (upload.mimetype or "").lower()
    if mime_type in GENERIC_MIME_TYPES:
        mime_type = await asyncio.to_thread(_sniff_image_mime, raw, upload.filename)

    return IconImage(
        data=base64.b64encode(raw).decode("utf-8"),
        mime_type=mime_type,
    )


async def materialize_text(upload) -> ReferenceFile:
    raw = await _read_upload(upload)
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DecodeError(f"Could not read {upload.filename!r} as text.") from e
    return ReferenceFile(name=upload.filename, content=content)


async def materialize_reference_files(uploads) -> List[ReferenceFile]:
    return list(await asyncio.gather(*(materialize_text(u) for u in uploads)))


async def build_request(app_name, feature_description, icon_upload, ad_identifier,
                        reference_uploads=()) -> GenerationRequest:
    validate_inputs(app_name, feature_description, icon_upload, ad_identifier)
    icon, reference_files = await asyncio.gather(
        materialize_icon(icon_upload),
        materialize_reference_files(reference_uploads),
    )
    return GenerationRequest(
        app_name=app_name,
        feature_description=feature_description,
        icon=icon,
        ad_identifier=ad_identifier,
        reference_files=reference_files,
    )


# ── Prompt composer ──

def project_slug(app_name):
    return re.sub(r"\s", "-", app_name.lower())


def compose_reference_section(reference_files):
    if not reference_files:
        return ""
    section = "\n" + REFERENCE_FILES_HEADER
    for ref in reference_files:
        section += REFERENCE_FILE_BLOCK.format(name=ref.name, content=ref.content)
    return section + REFERENCE_FILES_FOOTER


def compose_prompt(request: GenerationRequest) -> str:
    prompt = BUILD_PROMPT.format(
        app_name=request.app_name,
        admob_app_id=request.ad_identifier,
        project_slug=project_slug(request.app_name),
        description=request.feature_description,
    )
    return prompt + compose_reference_section(request.reference_files)


# ── Generation client ──

def resolve_model(model=None):
    model = model or os.environ.get("GEMINI_MODEL") or DEFAULT_MODEL
    if model not in AVAILABLE_MODELS:
        raise ConfigurationError(f"Unknown model: {model}")
    return model


def make_client():
    api_key = os.environ.get("GEMINI_API_KEY")
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY environment variable not set.")
    return genai.Client(api_key=api_key)


def build_config(model):
    kwargs = {
        "response_mime_type": "application/json",
        "response_schema": RESPONSE_SCHEMA,
    }
    if model in THINKING_LEVEL_MODELS:
        kwargs["thinking_config"] = types.ThinkingConfig(thinking_level="low")
    return types.GenerateContentConfig(**kwargs)


def parse_project_files(text: Optional[str]) -> ProjectFiles:
    json_string = (text or "").strip()
    if not json_string:
        raise ResponseParseError("Model returned an empty response.")
    return ProjectFiles.from_json(json_string)


async def generate(request: GenerationRequest, client=None, model=None) -> ProjectFiles:
    """Send one build request to Gemini and parse the six files it returns."""
    model = resolve_model(model)
    if client is None:
        client = make_client()

    contents = [
        types.Part.from_text(text=compose_prompt(request)),
        types.Part.from_bytes(data=request.icon.raw_bytes(), mime_type=request.icon.mime_type),
    ]

    logger.info(
        "Generating project %r with %s (%d reference files)",
        request.app_name, model, len(request.reference_files),
    )
    try:
        response = await client.aio.models.generate_content(
            model=model, contents=contents, config=build_config(model),
        )
    except Exception as e:
        raise GenerationError(str(e) or type(e).__name__) from e

    return parse_project_files(response.text)
