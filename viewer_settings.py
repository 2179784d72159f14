"""Credentials and saved settings for the Flickr Viewer application."""

import json
import os
import sys

from dotenv import load_dotenv

SETTINGS_NAME = "settings.json"
ENV_NAME = ".env"

DEFAULTS = {
    "api_key": "",
    "api_secret": "",
    "save_dir": "",
    "last_search": "",
}


def get_base_path():
    """Get the directory where the exe or script lives."""
    if getattr(sys, "frozen", False):
        return os.path.dirname(sys.executable)
    return os.path.dirname(os.path.abspath(__file__))


def load_settings(path):
    """Read settings from *path*, filling in defaults for missing keys."""
    data = dict(DEFAULTS)
    try:
        with open(path, "r") as f:
            saved = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return data
    if isinstance(saved, dict):
        data.update({k: v for k, v in saved.items() if k in DEFAULTS})
    return data


def save_settings(path, data):
    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def load_credentials(env_path, settings):
    """Return (api_key, api_secret).

    Priority: settings.json (if non-empty) > .env file > empty.
    """
    load_dotenv(env_path)
    env_key = os.environ.get("FLICKR_API_KEY", "")
    env_secret = os.environ.get("FLICKR_API_SECRET", "")
    return (
        settings.get("api_key") or env_key,
        settings.get("api_secret") or env_secret,
    )
