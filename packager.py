import io
import logging
import re
import zipfile

from builder import PackagingError, ProjectFiles

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "generated_app"


def archive_slug(app_name):
    slug = re.sub(r"\s+", "_", (app_name or "").strip().lower())
    slug = re.sub(r"[^a-z0-9_]", "", slug)
    return slug or DEFAULT_ARCHIVE_NAME


def archive_filename(app_name):
    return f"{archive_slug(app_name)}.zip"


def build_archive(files: ProjectFiles) -> bytes:
    """Zip the six project files under their project paths."""
    buf = io.BytesIO()
    try:
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for path, content in files.to_dict().items():
                zf.writestr(path, content.encode("utf-8"))
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise PackagingError(f"Could not create the zip file: {e}") from e
    logger.debug("Packed %d files into %d bytes", len(files.to_dict()), buf.tell())
    return buf.getvalue()
