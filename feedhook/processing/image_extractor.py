"""
Image Extractor
===============

Best-effort lookup of a representative image in an entry's HTML description.
Failure of any kind degrades to "no image".
"""

import html
from typing import Optional

from bs4 import BeautifulSoup

from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator


class ImageExtractor:
    """Finds the first ``<img>`` of an HTML fragment."""

    def __init__(self):
        self.logger = get_logger_for_component("image_extractor")
        self.parser = "html.parser"  # Built-in parser, no external deps

    def extract_first_image(self, html_content: Optional[str]) -> Optional[str]:
        """Return the ``src`` of the first image if it is an absolute URL.

        Only the first ``<img>`` in document order is considered; a later
        image is never used as a fallback.

        Args:
            html_content: Entry description, possibly entity-escaped HTML

        Returns:
            Image URL or None
        """
        if not html_content or not html_content.strip():
            return None

        try:
            # Descriptions are often double-escaped (&lt;img ...&gt;)
            soup = BeautifulSoup(html.unescape(html_content), self.parser)
            img_tag = soup.find("img")
            if img_tag is None:
                return None

            src = img_tag.get("src")
            if isinstance(src, list):
                src = src[0] if src else None
            if not src:
                return None

            src = src.strip()
            if not URLValidator.is_absolute_url(src):
                self.logger.debug(f"Ignoring image with non-absolute src: {src!r}")
                return None

            return src

        except Exception as e:
            self.logger.warning(f"Failed to extract image: {e}")
            return None
