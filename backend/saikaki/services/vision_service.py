# saikaki/services/vision_service.py
"""
Image analysis and image generation.
Both are chains of free/cheap providers run through the fallback orchestrator:
- analyze:  Hugging Face BLIP captioning -> Google Vision -> local header analysis
- generate: Pollinations endpoints -> Craiyon -> Unsplash -> local SVG placeholder
"""
from __future__ import annotations

import base64
import binascii
import logging
import random
import time
from dataclasses import dataclass
from functools import partial
from html import escape
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from ..config import settings
from .fallback import FallbackResult, Provider, ProviderError, non_empty_text, try_in_order

logger = logging.getLogger(__name__)

HF_CAPTION_URL = "https://api-inference.huggingface.co/models/Salesforce/blip-image-captioning-base"
GOOGLE_VISION_URL = "https://vision.googleapis.com/v1/images:annotate"
CRAIYON_URL = "https://backend.craiyon.com/generate"

IMAGE_PROBE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; SaiKakiBot/1.0)",
    "Accept": "image/*",
}

ANALYSIS_UNAVAILABLE = (
    "I can see your image! While my vision systems are updating, describe what's in "
    "the image and I'll provide detailed analysis! 📸✨"
)

# keyword -> Unsplash search term
UNSPLASH_TOPICS = [
    (("tomato", "tomatoes"), "fresh red tomato"),
    (("cat", "cats", "kitten"), "cute cat"),
    (("dog", "dogs", "puppy"), "happy dog"),
    (("flower", "flowers", "bloom"), "beautiful flowers"),
    (("landscape", "nature", "mountain"), "nature landscape"),
    (("food", "meal", "cooking"), "delicious food"),
]


@dataclass(frozen=True)
class ImageCandidate:
    url: str
    content_type: str


def is_image(candidate: Any) -> bool:
    return (
        isinstance(candidate, ImageCandidate)
        and bool(candidate.url)
        and candidate.content_type.lower().startswith("image/")
    )


def strip_data_url(image: str) -> str:
    """Base64 payload of a data URL (or the input unchanged if it is bare base64)."""
    return image.split(",", 1)[1] if "," in image else image


def decode_image(image: str) -> bytes:
    try:
        return base64.b64decode(strip_data_url(image), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Image is not valid base64: {e}")


def describe_image_bytes(data: bytes) -> str:
    """Offline description from file signature, size and a rough brightness sample."""
    if not data:
        raise ProviderError("empty image")
    size = len(data)
    parts = [f"I can see an uploaded image ({round(size / 1024)}KB)."]

    header = data[:8].hex()
    if header.startswith("ffd8ff"):
        if size > 2_000_000:
            parts.append("This is a JPEG photograph. High quality image with rich detail.")
        elif size > 500_000:
            parts.append("This is a JPEG photograph. Standard quality photograph.")
        else:
            parts.append("This is a JPEG photograph. Compressed photo, likely optimized for web.")
    elif header.startswith("89504e47"):
        parts.append("This is a PNG image, likely a screenshot or graphic.")
    elif header.startswith("47494638"):
        parts.append("This is a GIF image.")

    sample = data[100:200]
    if sample:
        brightness = sum(sample) / len(sample)
        if brightness > 200:
            parts.append("The image appears to be bright with light colors.")
        elif brightness < 80:
            parts.append("The image appears to be dark or has deep colors.")
        else:
            parts.append("The image has moderate brightness.")

    parts.append("Tell me what you see in the image and I'll provide detailed insights about it!")
    return " ".join(parts)


def unsplash_url(prompt: str, *, sig: Optional[int] = None) -> str:
    words = set(prompt.lower().split())
    term = next((t for keys, t in UNSPLASH_TOPICS if words & set(keys)), "abstract art")
    return f"https://source.unsplash.com/1024x1024/?{quote(term)}&sig={sig or int(time.time() * 1000)}"


def placeholder_svg(prompt: str) -> ImageCandidate:
    caption = escape(prompt.strip()[:60])
    svg = (
        '<svg width="1024" height="1024" xmlns="http://www.w3.org/2000/svg">'
        '<defs><radialGradient id="g" cx="0.3" cy="0.3">'
        '<stop offset="0%" stop-color="#FF6B6B"/><stop offset="100%" stop-color="#B91C1C"/>'
        "</radialGradient></defs>"
        '<rect width="1024" height="1024" fill="#FEF2F2"/>'
        '<circle cx="512" cy="480" r="300" fill="url(#g)"/>'
        f'<text x="512" y="900" font-family="Arial, sans-serif" font-size="40" text-anchor="middle" '
        f'fill="#DC2626" font-weight="bold">{caption}</text>'
        '<text x="512" y="960" font-family="Arial, sans-serif" font-size="24" text-anchor="middle" '
        'fill="#B91C1C">Generated by Sai Kaki AI</text>'
        "</svg>"
    )
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return ImageCandidate(url=f"data:image/svg+xml;base64,{encoded}", content_type="image/svg+xml")


class VisionService:
    def __init__(
        self,
        *,
        timeout_s: Optional[float] = None,
        huggingface_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout_s = timeout_s or settings.IMAGE_HTTP_TIMEOUT_S
        self.huggingface_api_key = settings.HUGGINGFACE_API_KEY if huggingface_api_key is None else huggingface_api_key
        self.google_api_key = settings.GOOGLE_VISION_API_KEY if google_api_key is None else google_api_key
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

    # ---------- Analysis ----------

    async def analyze_image(self, image: str) -> FallbackResult:
        """`image` is bare base64 or a data URL. Always yields some description."""
        b64 = strip_data_url(image)
        providers: List[Provider] = [("huggingface", partial(self._caption_huggingface, b64))]
        if self.google_api_key:
            providers.append(("google_vision", partial(self._annotate_google, b64)))
        providers.append(("local", lambda: describe_image_bytes(decode_image(b64))))
        providers.append(("canned", lambda: ANALYSIS_UNAVAILABLE))
        return await try_in_order(providers, is_valid=non_empty_text)

    async def _caption_huggingface(self, b64: str) -> str:
        headers = {"Content-Type": "application/json"}
        if self.huggingface_api_key:
            headers["Authorization"] = f"Bearer {self.huggingface_api_key}"
        async with self._client() as c:
            r = await c.post(
                HF_CAPTION_URL,
                json={"inputs": b64, "options": {"wait_for_model": True}},
                headers=headers,
            )
        r.raise_for_status()
        result = r.json()
        caption = result[0].get("generated_text") if isinstance(result, list) and result else None
        if not caption:
            raise ProviderError("caption model returned no text")
        return f"I can see: {caption}. This image analysis was powered by advanced AI vision technology!"

    async def _annotate_google(self, b64: str) -> str:
        body = {
            "requests": [{
                "image": {"content": b64},
                "features": [
                    {"type": "LABEL_DETECTION", "maxResults": 10},
                    {"type": "TEXT_DETECTION"},
                ],
            }]
        }
        async with self._client() as c:
            r = await c.post(GOOGLE_VISION_URL, params={"key": self.google_api_key}, json=body)
        r.raise_for_status()
        responses = (r.json().get("responses") or [{}])[0]

        labels = [
            a["description"]
            for a in responses.get("labelAnnotations") or []
            if a.get("score", 0) > 0.7 and a.get("description")
        ][:5]
        texts = responses.get("textAnnotations") or []
        if not labels and not texts:
            raise ProviderError("no labels or text detected")

        description = "I can see " + (", ".join(labels) if labels else "an image")
        if texts and texts[0].get("description"):
            description += f' with text: "{texts[0]["description"].strip()}"'
        return description + ". This detailed analysis shows what's really in your image!"

    # ---------- Generation ----------

    async def generate_image(self, prompt: str) -> FallbackResult:
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Prompt must not be empty")

        quoted = quote(prompt)
        seed = random.randint(0, 999_999)
        pollinations = [
            f"https://pollinations.ai/p/{quoted}?seed={seed}&width=1024&height=1024",
            f"https://image.pollinations.ai/prompt/{quoted}?seed={seed}&width=1024&height=1024",
            f"https://pollinations.ai/p/{quoted}?model=flux&seed={seed}",
            f"https://api.pollinations.ai/prompt/{quoted}",
        ]
        providers: List[Provider] = [
            (f"pollinations_{i + 1}", partial(self._probe_image_url, url))
            for i, url in enumerate(pollinations)
        ]
        providers += [
            ("craiyon", partial(self._generate_craiyon, prompt)),
            ("unsplash", lambda: ImageCandidate(url=unsplash_url(prompt), content_type="image/jpeg")),
            ("placeholder", partial(placeholder_svg, prompt)),
        ]
        return await try_in_order(providers, is_valid=is_image)

    async def _probe_image_url(self, url: str) -> ImageCandidate:
        async with self._client() as c:
            r = await c.head(url, headers=IMAGE_PROBE_HEADERS, follow_redirects=True)
        r.raise_for_status()
        return ImageCandidate(url=url, content_type=r.headers.get("content-type", ""))

    async def _generate_craiyon(self, prompt: str) -> ImageCandidate:
        async with self._client() as c:
            r = await c.post(CRAIYON_URL, json={"prompt": prompt, "version": "v3", "token": None})
        r.raise_for_status()
        images = r.json().get("images") or []
        if not images:
            raise ProviderError("craiyon returned no images")
        return ImageCandidate(url=f"data:image/jpeg;base64,{images[0]}", content_type="image/jpeg")
