import os
import logging
from dataclasses import dataclass, field
from typing import Optional

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png"}
VIDEO_EXTENSIONS = {"mp4"}
IMAGE_MIMETYPES = ("image/png", "image/jpg", "image/jpeg")

# ======================
# Path helpers
# ======================

def get_file_name(path):
    # Windows and POSIX separators are both accepted
    return path.split("\\")[-1].split("/")[-1]


def get_file_extension(path):
    name = get_file_name(path)
    if "." not in name:
        return None
    extension = name.rsplit(".", 1)[1]
    return extension.lower() or None


def list_files(root):
    """Return every file under ``root``, depth first, in directory read order."""
    files = []
    with os.scandir(root) as entries:
        for entry in entries:
            path = os.path.abspath(entry.path)
            if entry.is_dir(follow_symlinks=False):
                files.extend(list_files(path))
            else:
                files.append(path)
    return files

# ======================
# Run results
# ======================

@dataclass
class ItemResult:
    name: str
    ok: bool = True
    reason: Optional[str] = None
    skipped: bool = False
    matched_count: int = 0
    modified_count: int = 0
    fields: Optional[dict] = None


@dataclass
class RunSummary:
    flow: str
    total: int = 0
    processed: int = 0
    errors: int = 0
    results: list = field(default_factory=list)
    aborted: Optional[str] = None

    def record(self, result: ItemResult):
        self.processed += 1
        if not result.ok:
            self.errors += 1
        self.results.append(result)
        return result

    @property
    def failed(self):
        return [r for r in self.results if not r.ok]

    @property
    def updated(self):
        return [r for r in self.results if r.ok and r.fields is not None]

    def log(self):
        logging.info(f"[{self.flow}] processed {self.processed}/{self.total} item(s), "
                     f"{len(self.updated)} update(s), {self.errors} error(s)")
        if self.aborted:
            logging.error(f"[{self.flow}] run aborted: {self.aborted}")
