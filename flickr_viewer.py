#!/usr/bin/env python3
"""Flickr tag search and image download for the Flickr Viewer application."""

from dataclasses import dataclass

import flickrapi
import requests

RESULTS_PER_PAGE = 500
DOWNLOAD_TIMEOUT = 30

_PHOTO_URL = "https://farm{farm}.staticflickr.com/{server}/{id}_{secret}.jpg"


class SearchError(Exception):
    """Raised when the Flickr search call fails."""
    pass


class FetchError(Exception):
    """Raised when image bytes could not be downloaded."""
    pass


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str

    def __str__(self):
        return self.title


def photo_to_result(photo):
    """Build a SearchResult from a photo dict of a parsed-json search response."""
    title = photo.get("title", "") or ""
    if isinstance(title, dict):
        title = title.get("_content", "")
    return SearchResult(title=title, url=_PHOTO_URL.format(**photo))


class FlickrViewer:
    """Searches Flickr by tag and downloads the selected photos."""

    def __init__(self, api_key, api_secret):
        self.flickr = flickrapi.FlickrAPI(
            api_key, api_secret, format="parsed-json"
        )
        self._log_cb = None

    def set_callbacks(self, log_cb=None):
        self._log_cb = log_cb

    def _log(self, msg):
        if self._log_cb:
            self._log_cb(msg)

    def search_tags(self, text):
        """Search public photos carrying all of the tags in *text*.

        Args:
            text: Tags separated by spaces, as typed by the user.

        Returns:
            List of SearchResult, in the order Flickr returned them.
        """
        tags = ",".join(text.split())
        if not tags:
            return []

        self._log(f"Searching Flickr for tags: {tags}")
        try:
            resp = self.flickr.photos.search(
                tags=tags,
                tag_mode="all",
                per_page=RESULTS_PER_PAGE,
                privacy_filter=1,
            )
            results = [photo_to_result(p) for p in resp["photos"]["photo"]]
        except (flickrapi.exceptions.FlickrError,
                requests.RequestException, KeyError, TypeError) as e:
            raise SearchError(f"Search for '{text}' failed: {e}") from e

        self._log(f"Found {len(results)} photos.")
        return results

    def fetch_bytes(self, url):
        """Download *url* and return the response body."""
        try:
            resp = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"Could not download {url}: {e}") from e
        return resp.content
