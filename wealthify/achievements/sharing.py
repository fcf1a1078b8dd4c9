"""
Social sharing for unlocked achievements.

Builds the platform-specific share intent URL and hands it to a share
sink, the boundary that actually opens a browsing context.
"""

import webbrowser
from abc import ABC, abstractmethod
from urllib.parse import quote, urlencode

from wealthify.models.achievement import SharePlatform


class ShareSinkInterface(ABC):
    """Opens a share URL somewhere the user can see it."""

    @abstractmethod
    def open(self, url: str) -> None:
        pass


class BrowserShareSink(ShareSinkInterface):
    """Opens the share intent in a new browser tab on this machine."""

    def open(self, url: str) -> None:
        webbrowser.open_new_tab(url)


class RecordingShareSink(ShareSinkInterface):
    """
    Keeps every URL it is given.

    Used by the Streamlit page (which renders the last URL as a link)
    and by tests.
    """

    def __init__(self):
        self.urls: list[str] = []

    def open(self, url: str) -> None:
        self.urls.append(url)

    @property
    def last_url(self):
        return self.urls[-1] if self.urls else None


def build_share_message(name: str, icon: str, description: str, app_name: str) -> str:
    return f'🎉 I just unlocked the "{name}" achievement on {app_name}! {icon} {description}'


def build_share_url(
    platform: SharePlatform,
    name: str,
    icon: str,
    description: str,
    app_name: str,
    app_url: str,
) -> str:
    """
    Share intent URL for one platform.

    Raises:
        ValueError: For a platform outside SharePlatform
    """
    platform = SharePlatform(platform)
    message = build_share_message(name, icon, description, app_name)

    if platform == SharePlatform.TWITTER:
        base = "https://twitter.com/intent/tweet"
        params = {"text": message, "url": app_url}
    elif platform == SharePlatform.FACEBOOK:
        base = "https://www.facebook.com/sharer/sharer.php"
        params = {"u": app_url, "quote": message}
    else:
        base = "https://www.linkedin.com/shareArticle"
        params = {"mini": "true", "url": app_url, "title": name, "summary": message}

    query = urlencode(params, safe="", quote_via=quote)
    return f"{base}?{query}"
