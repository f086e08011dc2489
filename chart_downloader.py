"""
Chart Downloader Module
Logs into the Zabbix web UI and saves rendered graph images, checked with Pillow.
"""

import os
import re
import requests
from io import BytesIO
from urllib.parse import quote
from PIL import Image
import logging

from errors import ChartDownloadError, WebLoginError

logger = logging.getLogger(__name__)

SESSION_COOKIE = 'zbx_session'
PROFILE_IDX = 'web.graphs.filter'


def encode_time(value: str) -> str:
    """
    Percent-encode a time boundary for the chart URL.

    '2025-01-31 15:36:00' -> '2025-01-31%2015%3A36%3A00'
    """
    return quote(str(value), safe='')


def sanitize_filename(name: str) -> str:
    """
    Replace the path separator and NUL, the only characters a POSIX file
    name cannot hold. Everything else in the graph title is kept.

    Args:
        name: Graph display name

    Returns:
        Name usable as a file name
    """
    safe_name = re.sub(f"[/\x00{re.escape(os.sep)}]", '_', name)
    return safe_name or 'graph'


class ChartDownloader:
    """Downloads chart2.php graph images from the Zabbix web UI."""

    TIMEOUT = 30

    def __init__(self, base_url: str, username: str, password: str):
        """
        Args:
            base_url: Zabbix server base URL
            username: Username for web login
            password: Password for web login
        """
        self.base_url = base_url.rstrip('/')
        self.username = username
        self.password = password

    def web_login(self, session: requests.Session) -> str:
        """
        Perform web login to get the session cookie for chart access.

        Args:
            session: Fresh session whose cookie jar receives the cookie

        Returns:
            The zbx_session cookie value

        Raises:
            WebLoginError: If the request fails or no session cookie is set
        """
        login_url = f"{self.base_url}/index.php"
        login_payload = {
            'name': self.username,
            'password': self.password,
            'autologin': '1',
            'enter': 'Sign in',
        }

        logger.debug(f"Web login to: {login_url}")

        try:
            session.post(login_url, data=login_payload, timeout=self.TIMEOUT)
        except requests.RequestException as e:
            raise WebLoginError(f"Web login request failed: {str(e)}") from e

        cookies = session.cookies.get_dict()
        logger.debug(f"Cookies received: {list(cookies.keys())}")

        for key, value in cookies.items():
            if key.startswith(SESSION_COOKIE) and value:
                return value

        raise WebLoginError("Failed to retrieve session cookie!")

    def build_chart_url(self, graph_id: str, time_from: str, time_to: str,
                        width: int = 1200, height: int = 600) -> str:
        """Build the chart2.php URL for one graph over a time window."""
        params = [
            f"graphid={graph_id}",
            f"from={encode_time(time_from)}",
            f"to={encode_time(time_to)}",
            f"width={width}",
            f"height={height}",
            f"profileIdx={PROFILE_IDX}",
        ]
        return f"{self.base_url}/chart2.php?{'&'.join(params)}"

    def _fetch_chart(self, session: requests.Session, chart_url: str) -> bytes:
        """Fetch a rendered chart, requiring an HTTP 200 image response."""
        try:
            response = session.get(chart_url, timeout=self.TIMEOUT)
        except requests.RequestException as e:
            raise ChartDownloadError(f"Request failed: {str(e)}") from e

        logger.debug(f"Response status: {response.status_code}, "
                     f"Content-Type: {response.headers.get('Content-Type', 'N/A')}, "
                     f"Content-Length: {len(response.content)} bytes")

        if response.status_code != 200:
            raise ChartDownloadError(f"HTTP Error: {response.status_code}")

        content_type = response.headers.get('Content-Type', '')
        if 'image' not in content_type:
            # chart2.php answers with the login page when the cookie is not accepted
            raise ChartDownloadError(f"Unexpected content type: {content_type or 'N/A'}")

        if not response.content:
            raise ChartDownloadError("Empty image received")

        return response.content

    @staticmethod
    def save_image(image_bytes: bytes, output_path: str) -> str:
        """
        Check the bytes are a readable image, then write them as received.

        Raises:
            ChartDownloadError: If the bytes are not an image
            OSError: If the file cannot be written
        """
        try:
            with Image.open(BytesIO(image_bytes)) as image:
                image.verify()
        except (OSError, SyntaxError, EOFError, ValueError) as e:
            raise ChartDownloadError(f"Invalid image received: {str(e)}") from e

        with open(output_path, 'wb') as f:
            f.write(image_bytes)
        return output_path

    def download_graph(self, graph_id: str, title: str, time_from: str, time_to: str,
                       dest_dir: str, width: int = 1200, height: int = 600) -> bool:
        """
        Download one graph image into dest_dir/<title>.png.

        A new web session is opened for every graph and closed afterwards, so
        each download pays one login round-trip.

        Args:
            graph_id: The graph ID to render
            title: Graph name, used as file name
            time_from: Start of the window (e.g., '2025-01-31 15:36:00')
            time_to: End of the window or duration, passed as-is
            dest_dir: Directory to save the image in
            width: Chart width in pixels
            height: Chart height in pixels

        Returns:
            True if a non-empty image file was written
        """
        output_path = os.path.join(dest_dir, f"{sanitize_filename(title)}.png")
        output_file = os.path.basename(output_path)

        with requests.Session() as session:
            try:
                self.web_login(session)
                chart_url = self.build_chart_url(graph_id, time_from, time_to, width, height)
                logger.debug(f"Downloading graph: {chart_url}")
                image_bytes = self._fetch_chart(session, chart_url)
                self.save_image(image_bytes, output_path)
            except (WebLoginError, ChartDownloadError, OSError) as e:
                logger.error(f"Failed to download graph {output_file}: {str(e)}")
                self._remove_partial(output_path)
                return False

        if os.path.isfile(output_path) and os.path.getsize(output_path) > 0:
            logger.info(f"✓ Graph successfully downloaded: {output_file}")
            return True

        logger.error(f"Failed to download graph {output_file}: empty file")
        self._remove_partial(output_path)
        return False

    @staticmethod
    def _remove_partial(output_path: str) -> None:
        if os.path.exists(output_path):
            os.remove(output_path)
            logger.debug(f"Removed partial file: {output_path}")
