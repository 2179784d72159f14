"""Selection pipeline: fetch a photo, then display and save it concurrently."""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from flickr_viewer import SearchResult
from image_store import ImagePersister, ensure_tree
from naming import ArtifactKind, CounterRegistry, SaveOutcome

DISPLAY = "display"


@dataclass
class SelectionReport:
    result: SearchResult
    root: str
    outcomes: dict[ArtifactKind, SaveOutcome] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    displayed: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


class SelectionPipeline:
    """Runs the work triggered by selecting one search result.

    The image bytes are fetched first. The search folder tree is then
    provisioned, and display, full-image save and thumbnail save run as
    three concurrent units. A failing unit never stops its siblings.
    """

    def __init__(self, fetch: Callable[[str], bytes],
                 persister: Optional[ImagePersister] = None,
                 display: Optional[Callable[[bytes], None]] = None,
                 base_dir: str = "."):
        self._fetch = fetch
        self.persister = persister or ImagePersister(CounterRegistry())
        self._display = display
        self.base_dir = base_dir
        self.current_search: Optional[str] = None
        self._provisioned: set[str] = set()
        self._lock = threading.Lock()
        self._log_cb = None

    def set_callbacks(self, log_cb=None):
        self._log_cb = log_cb

    def _log(self, msg):
        if self._log_cb:
            self._log_cb(msg)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_search(self, tags: str) -> None:
        """Begin a new search session for *tags*."""
        with self._lock:
            self.current_search = tags
            self._provisioned.clear()

    def root_for(self, tags: str) -> str:
        return os.path.join(self.base_dir, tags)

    def select(self, result: SearchResult,
               search_tag: Optional[str] = None,
               base_dir: Optional[str] = None) -> SelectionReport:
        """Fetch, display and save *result*.

        The destination root is fixed when the call starts, so a search
        begun while the download is in flight does not move the files.

        Raises:
            FetchError: The download failed; nothing was displayed or saved.
            ValueError: No search is active and no *search_tag* was given.
        """
        tag = search_tag if search_tag is not None else self.current_search
        if tag is None:
            raise ValueError("No active search to save the selection under.")
        if base_dir is not None:
            root = os.path.join(base_dir, tag)
        else:
            root = self.root_for(tag)

        self._log(f"Downloading '{result.title}'...")
        data = self._fetch(result.url)

        self._provision(root)

        report = SelectionReport(result=result, root=root)
        with ThreadPoolExecutor(max_workers=3,
                                thread_name_prefix="selection") as pool:
            futures = {}
            if self._display is not None:
                futures[DISPLAY] = pool.submit(self._display, data)
            for kind in ArtifactKind:
                futures[kind] = pool.submit(
                    self.persister.save, kind, data, result.title, root)

        for key, future in futures.items():
            try:
                value = future.result()
            except Exception as e:
                name = key if key == DISPLAY else key.value
                report.errors[name] = str(e)
                self._log(f"  {name} failed: {e}")
                continue
            if key == DISPLAY:
                report.displayed = True
            else:
                report.outcomes[key] = value
                self._log(
                    f"  Saved {key.value} ({value.category.value}): {value.path}")
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _provision(self, root):
        with self._lock:
            if root in self._provisioned:
                return
            if ensure_tree(root):
                self._log(f"Created folders under {root}")
            self._provisioned.add(root)
