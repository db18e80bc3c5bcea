"""Solve the registry's numeric image CAPTCHA by OCR consensus."""
import asyncio
import io
import logging
import re
from collections import Counter
from typing import Callable, Sequence

import pytesseract
from PIL import Image

from portor.config import config

logger = logging.getLogger(__name__)

CAPTCHA_LENGTH = 4

# Tesseract page segmentation modes: uniform block, single line, single word
RECOGNITION_MODES = (6, 7, 8)
OCR_DPI = 70
OCR_LANGUAGE = "digits"

_LINE_BREAKS = re.compile(r"[\n\f]")

Recognizer = Callable[[bytes, int], str]


def tesseract_recognize(image_bytes: bytes, psm: int) -> str:
    """Run Tesseract on one image with the given page segmentation mode."""
    if config.TESSERACT_CMD:
        pytesseract.pytesseract.tesseract_cmd = config.TESSERACT_CMD
    with Image.open(io.BytesIO(image_bytes)) as image:
        text = pytesseract.image_to_string(
            image,
            lang=OCR_LANGUAGE,
            config=f"--psm {psm} --dpi {OCR_DPI}",
        )
    return _LINE_BREAKS.sub("", text)


def pick_consensus(candidates: Sequence[str], length: int = CAPTCHA_LENGTH) -> str:
    """
    Most frequent candidate of exactly ``length`` characters.
    Ties go to the candidate seen first; no qualifying candidate gives "".
    """
    qualifying = [candidate for candidate in candidates if len(candidate) == length]
    if not qualifying:
        return ""
    # Counter keeps insertion order and most_common sorts stably
    best, _ = Counter(qualifying).most_common(1)[0]
    return best


class CaptchaSolver:
    """Fans OCR out over every image and recognition mode, then votes."""

    def __init__(self, recognize: Recognizer = tesseract_recognize, modes: Sequence[int] = RECOGNITION_MODES):
        self.recognize = recognize
        self.modes = tuple(modes)

    async def solve(self, images: Sequence[bytes]) -> str:
        """Return the best-guess CAPTCHA text, or "" when nothing qualifies."""
        if not images:
            raise ValueError("images must be a non-empty sequence of image bytes")

        tasks = [
            asyncio.to_thread(self.recognize, image, psm)
            for image in images
            for psm in self.modes
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        candidates = []
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"OCR invocation failed: {result}")
                continue
            candidates.append(result)

        solution = pick_consensus(candidates)
        logger.debug(f"OCR candidates {candidates} -> {solution!r}")
        return solution
