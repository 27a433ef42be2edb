"""
Export bundle writers.

A bundle is the set of files produced by one export: label artifacts, copied
source images and class manifests. It is written either as a zip archive or
as a plain directory tree; encoders only see the `Bundle` interface.
"""

import io
import logging
import shutil
import zipfile
from pathlib import Path
from typing import Union

from annotix.models import ImageRecord

logger = logging.getLogger(__name__)


class Bundle:
    """Destination for export artifacts, addressed by relative POSIX paths."""

    def __init__(self):
        self.names: list[str] = []
        self.missing_images: list[str] = []

    def write_bytes(self, name: str, data: bytes) -> None:
        raise NotImplementedError

    def write_file(self, name: str, src: Union[str, Path]) -> None:
        raise NotImplementedError

    def write_text(self, name: str, text: str) -> None:
        self.write_bytes(name, text.encode("utf-8"))

    def write_image(self, name: str, image: ImageRecord) -> bool:
        """Copy an image's source bytes into the bundle, if there are any."""
        if image.data is not None:
            self.write_bytes(name, image.data)
            return True
        if image.path and Path(image.path).is_file():
            self.write_file(name, image.path)
            return True

        logger.warning(f"No image data for {image.name}, writing labels only")
        self.missing_images.append(image.name)
        return False

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ZipBundle(Bundle):
    """Bundle written into a zip archive, on disk or in memory."""

    def __init__(self, target: Union[str, Path, io.BytesIO]):
        super().__init__()
        if not isinstance(target, io.BytesIO):
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        self.target = target
        self._zf = zipfile.ZipFile(target, "w", zipfile.ZIP_DEFLATED)

    def write_bytes(self, name: str, data: bytes) -> None:
        self._zf.writestr(name, data)
        self.names.append(name)

    def write_file(self, name: str, src: Union[str, Path]) -> None:
        self._zf.write(src, name)
        self.names.append(name)

    def close(self) -> None:
        self._zf.close()


class DirectoryBundle(Bundle):
    """Bundle written as files under a root directory."""

    def __init__(self, root: Union[str, Path]):
        super().__init__()
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def write_bytes(self, name: str, data: bytes) -> None:
        with open(self._path(name), "wb") as f:
            f.write(data)
        self.names.append(name)

    def write_file(self, name: str, src: Union[str, Path]) -> None:
        shutil.copy2(src, self._path(name))
        self.names.append(name)


def open_bundle(out: Union[str, Path, io.BytesIO]) -> Bundle:
    """Zip archive for in-memory buffers and `.zip` paths, directory otherwise."""
    if isinstance(out, io.BytesIO) or str(out).lower().endswith(".zip"):
        return ZipBundle(out)
    return DirectoryBundle(out)
