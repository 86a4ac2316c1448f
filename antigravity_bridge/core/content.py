"""Message content extraction.

OpenAI chat content is either a plain string or a list of typed fragments
(``{"type": "text"}``, ``{"type": "image_url"}``). These helpers turn either
shape into the pieces the converter needs.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

_DATA_IMAGE_RE = re.compile(r"^data:image/(\w+);base64,(.+)$", re.DOTALL)


@dataclass
class ExtractedContent:
    """Plain text plus inline images pulled out of message content."""

    text: str = ""
    images: List[Dict[str, Any]] = field(default_factory=list)


def parse_data_image_url(url: Any) -> Dict[str, Any]:
    """Parse a ``data:image/<fmt>;base64,<data>`` URL into an inlineData part.

    Returns an empty dict for anything else.
    """
    if not isinstance(url, str):
        return {}
    match = _DATA_IMAGE_RE.match(url)
    if not match:
        return {}
    image_format, data = match.groups()
    return {"inlineData": {"mimeType": f"image/{image_format}", "data": data}}


def _image_url_of(fragment: Dict[str, Any]) -> Any:
    image_url = fragment.get("image_url")
    if isinstance(image_url, dict):
        return image_url.get("url", "")
    return image_url or ""


def extract_content(content: Any) -> ExtractedContent:
    """Split user message content into text and inline images."""
    if isinstance(content, str):
        return ExtractedContent(text=content)

    result = ExtractedContent()
    if not isinstance(content, list):
        return result

    for fragment in content:
        if not isinstance(fragment, dict):
            continue
        fragment_type = fragment.get("type")
        if fragment_type == "text":
            text = fragment.get("text")
            if isinstance(text, str):
                result.text += text
        elif fragment_type == "image_url":
            image = parse_data_image_url(_image_url_of(fragment))
            if image:
                result.images.append(image)
            else:
                logger.debug("Skipping image fragment without a base64 data URL")
    return result


def extract_assistant_text(content: Any) -> str:
    """Concatenate the text fragments of assistant content."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    chunks = []
    for fragment in content:
        if isinstance(fragment, dict) and fragment.get("type") == "text":
            text = fragment.get("text")
            if isinstance(text, str):
                chunks.append(text)
    return "".join(chunks)


def extract_system_text(content: Any) -> str:
    """Extract the text of a system message (string or fragment list)."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    chunks = []
    for fragment in content:
        if isinstance(fragment, dict):
            text = fragment.get("text")
            if isinstance(text, str) and text:
                chunks.append(text)
        elif isinstance(fragment, str) and fragment:
            chunks.append(fragment)
    return "".join(chunks)


def normalize_tool_output(content: Any) -> str:
    """Reduce tool result content to a plain string.

    Strings pass through, ``{"text": ...}`` objects are unwrapped, lists
    yield their first text-like element, and anything else is serialized.
    """
    if isinstance(content, str):
        return content
    if content is None:
        return ""
    if isinstance(content, dict):
        text = content.get("text")
        if isinstance(text, str):
            return text
        return json.dumps(content, ensure_ascii=False)
    if isinstance(content, list):
        for item in content:
            if isinstance(item, str):
                return item
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                return item["text"]
        return json.dumps(content, ensure_ascii=False)
    return str(content)
