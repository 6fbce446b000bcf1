"""
Service classes for the Product Video Ad Generator.
Contains the product scraper, script providers, voice synthesizer and the
Remotion runner used by the render pipeline.
"""

import os
import re
import json
import math
import time
import enum
import shutil
import secrets
import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin

import ffmpeg
import requests
from bs4 import BeautifulSoup
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from config import (
    LLM_PROVIDER,
    LLM_MODEL,
    LLM_API_KEY,
    LLM_BASE_URL,
    LLM_TIMEOUT,
    OLLAMA_API_URL,
    SYSTEM_PROMPT,
    SCRIPT_PROMPT_TEMPLATE,
    TTS_MAX_CHARS,
    TTS_MODEL,
    TTS_VOICE,
    TTS_SPEED,
    TTS_QUALITY_MODELS,
    TTS_WORDS_PER_MINUTE,
    AUDIO_DIR,
    VIDEOS_DIR,
    REMOTION_PROJECT_DIR,
    REMOTION_PUBLIC_DIR,
    RENDER_TIMEOUT,
    ASPECT_RATIOS,
    SCRAPE_TIMEOUT,
    USER_AGENT,
    MAX_IMAGES,
    MAX_FEATURES,
    MIN_TITLE_LENGTH,
    MAX_DESCRIPTION_CHARS,
)
from exceptions import ExtractionError, InputError, ProviderError, RenderError
from schemas import AdScript, ProductData

# Ensure directories exist
os.makedirs(VIDEOS_DIR, exist_ok=True)
os.makedirs(AUDIO_DIR, exist_ok=True)


# --------------------------------------------------------------------------
# --- Product extraction ---
# --------------------------------------------------------------------------

class ProductScraper:
    """Extracts product attributes from a product page with CSS selector cascades."""

    def __init__(self, url: str):
        self.url = (url or "").strip()
        self.soup: Optional[BeautifulSoup] = None

    def _fetch(self) -> str:
        try:
            response = requests.get(self.url, headers={"User-Agent": USER_AGENT}, timeout=SCRAPE_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ExtractionError(f"Could not load product page: {e}")
        return response.text

    def is_amazon(self) -> bool:
        return "amazon." in self.url and ("/dp/" in self.url or "/gp/product/" in self.url)

    @staticmethod
    def is_shopify(html: str) -> bool:
        return "Shopify" in html or "shopify" in html or "cdn.shopify.com" in html

    def _text(self, *selectors: str) -> str:
        for selector in selectors:
            element = self.soup.select_one(selector)
            if element is not None:
                text = element.get_text(" ", strip=True)
                if text:
                    return text
        return ""

    def _meta(self, name: str) -> str:
        tag = self.soup.find("meta", attrs={"name": name})
        return (tag.get("content") or "").strip() if tag else ""

    def _image_urls(self, images) -> List[str]:
        urls: List[str] = []
        for img in images:
            src = img.get("src")
            if not src or src.startswith("data:"):
                continue
            src = urljoin(self.url, src)
            if src not in urls:
                urls.append(src)
        return urls[:MAX_IMAGES]

    def _features(self, selector: str, min_len: int, max_len: int, skip: str = "") -> List[str]:
        features: List[str] = []
        for element in self.soup.select(selector):
            text = element.get_text(" ", strip=True)
            if min_len < len(text) < max_len and not (skip and skip in text):
                features.append(text)
        return features[:MAX_FEATURES]

    @staticmethod
    def _has_product_ancestor(img) -> bool:
        node = img
        while node is not None and getattr(node, "name", None) not in (None, "[document]"):
            if any("product" in cls for cls in node.get("class") or []):
                return True
            node = node.parent
        return False

    def _scrape_amazon(self) -> dict:
        return {
            "title": self._text("#productTitle"),
            "description": self._text("#feature-bullets ul", "#productDescription"),
            "price": self._text(".a-price-whole", ".a-price"),
            "images": self._image_urls(
                self.soup.select("#landingImage, .a-dynamic-image, #imgTagWrapperId img")
            ),
            "features": self._features("#feature-bullets li, .a-unordered-list li", 10, 200, skip="Make sure"),
            "category": "amazon",
        }

    def _scrape_shopify(self) -> dict:
        return {
            "title": self._text("h1", ".product-title", '[data-testid="product-title"]'),
            "description": self._text(
                ".product-description", ".product__description", '[data-testid="product-description"]'
            ),
            "price": self._text(".price", ".product-price", '[data-testid="price"]'),
            "images": self._image_urls(
                self.soup.select(
                    'img[src*="product"], img[alt*="product"], .product-image img, .product__media img'
                )
            ),
            "features": self._features(
                ".product-features li, .features li, .product-details li, ul li", 5, 100
            ),
            "category": "shopify",
        }

    def _scrape_generic(self) -> dict:
        title = self._text("h1", ".product-title", '[data-testid="product-title"]')
        if not title and self.soup.title and self.soup.title.string:
            title = self.soup.title.string.strip()
        candidates = [
            img for img in self.soup.find_all("img")
            if "product" in (img.get("alt") or "").lower()
            or "product" in (img.get("src") or "")
            or self._has_product_ancestor(img)
        ]
        return {
            "title": title,
            "description": self._text(".product-description", ".description") or self._meta("description"),
            "price": self._text(".price", ".product-price", '[class*="price"]'),
            "images": self._image_urls(candidates),
            "features": self._features("ul li, .features li, .specs li", 5, 150),
            "category": "generic",
        }

    def run(self) -> ProductData:
        if not self.url:
            raise InputError("URL is required")

        logging.info(f"🔎 Starting to scrape: {self.url}")
        html = self._fetch()
        self.soup = BeautifulSoup(html, "html.parser")

        if self.is_amazon():
            logging.info("Detected Amazon product")
            fields = self._scrape_amazon()
        elif self.is_shopify(html):
            logging.info("Detected Shopify store")
            fields = self._scrape_shopify()
        else:
            logging.info("Using generic scraper")
            fields = self._scrape_generic()

        if not fields["title"] or len(fields["title"]) < MIN_TITLE_LENGTH:
            raise ExtractionError("Could not extract product title")

        product = ProductData(
            url=self.url,
            title=fields["title"],
            description=fields["description"][:MAX_DESCRIPTION_CHARS],
            price=fields["price"] or None,
            images=fields["images"],
            features=fields["features"],
            category=fields["category"],
        )
        logging.info(f"✅ Successfully scraped product: {product.title}")
        return product


# --------------------------------------------------------------------------
# --- Script generation ---
# --------------------------------------------------------------------------

class ScriptValidator:
    """Validates and cleans the ad script JSON returned by a language model."""

    REQUIRED_FIELDS = ("hook", "problem", "solution", "benefits", "callToAction")

    def __init__(self, raw_content: str):
        self.content = raw_content or ""

    def _strip_markdown(self):
        self.content = re.sub(r"```(?:json)?\n?|```", "", self.content).strip()

    def _parse(self) -> dict:
        try:
            data = json.loads(self.content)
        except json.JSONDecodeError:
            logging.error(f"❌ Failed to parse model response: {self.content}")
            raise ProviderError("Invalid JSON response from language model")
        if not isinstance(data, dict):
            raise ProviderError("Language model response is not a JSON object")
        return data

    def _check_fields(self, data: dict):
        missing = [field for field in self.REQUIRED_FIELDS if field not in data]
        if missing:
            raise ProviderError(f"Ad script is missing fields: {', '.join(missing)}")
        benefits = data["benefits"]
        if isinstance(benefits, str):
            benefits = [benefits]
        if not isinstance(benefits, list):
            raise ProviderError("Ad script benefits must be a list")
        data["benefits"] = [str(b).strip() for b in benefits if str(b).strip()]

    def run(self) -> AdScript:
        if not self.content.strip():
            raise ProviderError("No response from language model")

        self._strip_markdown()
        data = self._parse()
        self._check_fields(data)
        data.pop("voiceover", None)
        try:
            return AdScript.model_validate(data)
        except ValidationError as e:
            raise ProviderError(f"Malformed ad script: {e.errors()[0]['msg']}")


def build_script_prompt(product: ProductData) -> str:
    return SCRIPT_PROMPT_TEMPLATE.format(
        title=product.title,
        description=product.description,
        price=product.price or "Not specified",
        features=", ".join(product.features),
    )


class OpenAIScriptProvider:
    """Generates ad scripts through the OpenAI chat completions API."""

    def __init__(self, model: str, api_key: str, base_url: Optional[str] = None):
        self.model = model
        self.client = OpenAI(api_key=api_key, base_url=base_url)

    def generate(self, product: ProductData) -> AdScript:
        logging.info(f"📝 Requesting ad script from {self.model} for: '{product.title}'")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_script_prompt(product)},
                ],
                temperature=0.7,
                max_tokens=500,
            )
        except OpenAIError as e:
            raise ProviderError(f"Script generation failed: {e}")

        content = response.choices[0].message.content if response.choices else None
        return ScriptValidator(content).run()


class OllamaScriptProvider:
    """Generates ad scripts with a local Ollama model."""

    def __init__(self, model: str, api_url: str = OLLAMA_API_URL):
        self.model = model
        self.api_url = api_url

    def generate(self, product: ProductData) -> AdScript:
        logging.info(f"📝 Sending prompt to {self.model}: '{product.title}'")
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_script_prompt(product)},
            ],
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.7},
        }
        try:
            response = requests.post(self.api_url, json=payload, timeout=LLM_TIMEOUT)
            response.raise_for_status()
            content = response.json().get("message", {}).get("content", "")
        except (requests.RequestException, ValueError) as e:
            raise ProviderError(f"Could not connect to the Ollama model: {e}")
        return ScriptValidator(content).run()


class ScriptProvider(str, enum.Enum):
    OPENAI = "openai"
    OLLAMA = "ollama"


def create_script_provider(name: str = LLM_PROVIDER, model: str = LLM_MODEL,
                           api_key: Optional[str] = LLM_API_KEY, base_url: Optional[str] = LLM_BASE_URL):
    try:
        provider = ScriptProvider(name)
    except ValueError:
        raise ProviderError(f"Unsupported LLM provider: {name}")

    if provider is ScriptProvider.OPENAI:
        if not api_key:
            raise ProviderError("LLM_API_KEY environment variable is required")
        return OpenAIScriptProvider(model, api_key, base_url)
    return OllamaScriptProvider(model, base_url or OLLAMA_API_URL)


_script_provider = None


def get_script_provider():
    global _script_provider
    if _script_provider is None:
        _script_provider = create_script_provider()
    return _script_provider


def switch_script_provider(name: str, model: str = LLM_MODEL, api_key: Optional[str] = LLM_API_KEY,
                           base_url: Optional[str] = LLM_BASE_URL):
    """Replaces the process-wide provider. Configuration-time only; never a per-request fallback."""
    global _script_provider
    _script_provider = create_script_provider(name, model, api_key, base_url)
    logging.info(f"🔁 Script provider switched to {name} ({model})")
    return _script_provider


# --------------------------------------------------------------------------
# --- Voice synthesis ---
# --------------------------------------------------------------------------

TERMINAL_PUNCTUATION = (".", "!", "?")


def build_narration_text(script: AdScript) -> str:
    """Hook, problem, solution, the first two benefits and the call to action as one narration."""
    parts = [script.hook, script.problem, script.solution]
    benefits = [b.strip() for b in script.benefits[:2] if b.strip()]
    parts.append(" and ".join(benefits))
    parts.append(script.call_to_action)

    text = ""
    for part in (p.strip() for p in parts):
        if not part:
            continue
        if text:
            text += " " if text.endswith(TERMINAL_PUNCTUATION) else ". "
        text += part
    return text


def estimate_duration(text: str, speed: float = 1.0) -> int:
    words_per_minute = TTS_WORDS_PER_MINUTE * speed
    word_count = len(text.split())
    return math.ceil(word_count / words_per_minute * 60)


@dataclass
class AudioAsset:
    path: str
    duration: int

    def remove(self):
        try:
            if os.path.exists(self.path):
                os.remove(self.path)
        except OSError as e:
            logging.warning(f"Could not delete audio file {self.path}: {e}")


class VoiceSynthesizer:
    """Turns narration text into an mp3 with OpenAI text-to-speech."""

    def __init__(self, api_key: Optional[str] = LLM_API_KEY, audio_dir: str = AUDIO_DIR,
                 model: Optional[str] = None):
        if not api_key:
            raise ProviderError("OpenAI API key is required for TTS service")
        self.client = OpenAI(api_key=api_key)
        self.audio_dir = audio_dir
        self.model = model or TTS_MODEL

    def _output_path(self) -> str:
        filename = f"tts-{int(time.time() * 1000)}-{secrets.token_hex(5)}.mp3"
        return os.path.join(self.audio_dir, filename)

    def synthesize(self, text: str, voice: str = TTS_VOICE, speed: float = TTS_SPEED,
                   quality: Optional[str] = None) -> AudioAsset:
        """
        Generates speech for `text`. `quality` ("standard" or "hd") picks the
        model explicitly; otherwise the synthesizer's configured model is used.
        """
        if quality is None:
            model = self.model
        elif quality in TTS_QUALITY_MODELS:
            model = TTS_QUALITY_MODELS[quality]
        else:
            raise InputError(f"Unknown TTS quality: {quality}")
        if len(text) > TTS_MAX_CHARS:
            text = text[:TTS_MAX_CHARS] + "..."
            logging.warning("Text truncated to fit TTS limits")

        logging.info(f"🎙️ Generating voiceover ({model}, {voice}, {speed}x, {len(text)} chars)")
        try:
            response = self.client.audio.speech.create(
                model=model,
                voice=voice,
                input=text,
                speed=speed,
                response_format="mp3",
            )
        except OpenAIError as e:
            raise ProviderError(f"Failed to generate TTS audio: {e}")

        os.makedirs(self.audio_dir, exist_ok=True)
        path = self._output_path()
        try:
            with open(path, "wb") as f:
                f.write(response.content)
        except Exception:
            _discard(path)
            raise

        asset = AudioAsset(path=path, duration=estimate_duration(text, speed))
        logging.info(f"TTS audio generated: {path} (~{asset.duration}s)")
        return asset


def _discard(path: str):
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError as e:
        logging.warning(f"Could not delete partial file {path}: {e}")


def staged_audio_path(job_id: str, public_dir: str = REMOTION_PUBLIC_DIR) -> str:
    return os.path.join(public_dir, "audio", f"{job_id}.mp3")


def stage_audio(asset: AudioAsset, job_id: str, public_dir: str = REMOTION_PUBLIC_DIR):
    """Copies the voiceover into the renderer's static folder. Returns (staged path, relative reference)."""
    relative = f"audio/{job_id}.mp3"
    staged_path = staged_audio_path(job_id, public_dir)
    os.makedirs(os.path.dirname(staged_path), exist_ok=True)
    try:
        shutil.copyfile(asset.path, staged_path)
    except OSError:
        _discard(staged_path)
        raise
    return staged_path, relative


# --------------------------------------------------------------------------
# --- Rendering ---
# --------------------------------------------------------------------------

class RemotionRunner:
    """Handles the rendering of the ad composition through the Remotion CLI."""

    def __init__(self, job_id: str, props: dict, aspect_ratio: str,
                 videos_dir: str = VIDEOS_DIR, project_dir: str = REMOTION_PROJECT_DIR):
        if aspect_ratio not in ASPECT_RATIOS:
            raise InputError(f"Unsupported aspect ratio: {aspect_ratio}")
        self.job_id = job_id
        self.props = props
        self.composition = ASPECT_RATIOS[aspect_ratio]["composition"]
        self.project_dir = project_dir
        self.data_path = os.path.join(videos_dir, f"{job_id}-data.json")
        self.output_path = os.path.join(videos_dir, f"{job_id}.mp4")

    def _write_props_to_file(self):
        os.makedirs(os.path.dirname(self.data_path), exist_ok=True)
        with open(self.data_path, "w", encoding="utf-8") as f:
            json.dump(self.props, f, indent=2)

    def _cleanup(self):
        try:
            if os.path.exists(self.data_path):
                os.remove(self.data_path)
        except OSError as e:
            logging.warning(f"Could not delete props file: {e}")

    def run(self) -> str:
        self._write_props_to_file()
        command = [
            "npx", "remotion", "render",
            self.composition, self.output_path, f"--props={self.data_path}",
        ]
        logging.info(f"🎬 Running Remotion command: {' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                cwd=self.project_dir,
                capture_output=True,
                text=True,
                timeout=RENDER_TIMEOUT,
                check=True,
                env=os.environ.copy(),
            )
            if result.stderr:
                logging.warning(f"Remotion stderr: {result.stderr.strip()}")
            logging.info("✅ Remotion rendering completed successfully!")

        except subprocess.CalledProcessError as e:
            stderr = e.stderr.strip() if e.stderr else (e.output or "")
            logging.error(f"❌ Remotion rendering failed. Stderr:\n{stderr}")
            last_line = stderr.splitlines()[-1] if stderr else "Unknown Remotion error"
            raise RenderError(f"Remotion rendering failed: {last_line}")

        except subprocess.TimeoutExpired:
            logging.error("❌ Remotion rendering timed out.")
            raise RenderError(f"Rendering timed out after {RENDER_TIMEOUT // 60} minutes.")

        except OSError as e:
            raise RenderError(f"Could not start Remotion: {e}")

        finally:
            self._cleanup()

        if os.path.exists(self.output_path):
            return self.output_path

        raise RenderError("Video file not found after a successful render.")


def create_placeholder_video(output_path: str, aspect_ratio: str) -> str:
    """Writes one second of black video at the ratio's resolution."""
    size = ASPECT_RATIOS[aspect_ratio]
    source = f"color=c=black:s={size['width']}x{size['height']}:d=1:r=30"
    try:
        (
            ffmpeg.input(source, f="lavfi")
            .output(output_path, vcodec="libx264", pix_fmt="yuv420p")
            .run(overwrite_output=True, capture_stdout=True, capture_stderr=True)
        )
    except ffmpeg.Error as e:
        error_details = e.stderr.decode("utf8") if e.stderr else "Unknown FFmpeg error"
        raise RenderError(f"Failed to create placeholder video: {error_details}")
    return output_path
