"""
Verdant Backend: Google Gemini Capability Implementation
========================================================

What:  Vision and language capabilities backed by Google Gemini.
Why:   One multimodal model covers both light classification from a photo
       and journal writing with an identity check.
How:   Sends prompt + inline JPEG to Gemini, requests a JSON reply and
       validates it with pydantic. Every call is bounded by
       `ai_request_timeout` and guarded by a circuit breaker.
Who:   Built once in `create_app`, kept on `app.state`, injected into the
       enrichment pipeline through `verdant.dependencies`.
When:  Only from background enrichment, never on a request path.

Resilience Strategy:
    1. Timeout: asyncio.wait_for plus the SDK's own request timeout
    2. Circuit breaker: after N consecutive failures the capability reports
       itself unavailable, so enrichment skips AI steps instead of
       waiting on a dead upstream
    3. No retries: enrichment is best-effort by contract
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Type, TypeVar

import google.generativeai as genai
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from verdant.config import settings
from verdant.exceptions import AIServiceError, CircuitBreakerOpenError
from verdant.models import CareLog
from verdant.services.ai_base import (
    JournalEntry,
    LanguageCapability,
    LightClassification,
    VisionCapability,
)
from verdant.services.photo_service import STORED_MIME_TYPE, PhotoService, photo_service
from verdant.services.plant_status import PlantWithCare

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker Implementation
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker guarding calls to the AI provider.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN

        OPEN (rejecting all requests)
            → can_execute() raises CircuitBreakerOpenError
            → is_open reports True, so `available` turns False
            → After recovery_timeout seconds: transition to HALF_OPEN

        HALF_OPEN (testing recovery)
            → Allow ONE request through
            → On success: transition to CLOSED (reset failure_count)
            → On failure: transition back to OPEN (reset timer)

    Not thread-safe; all callers share one asyncio loop.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def _recovery_elapsed(self) -> float:
        return time.time() - (self.last_failure_time or 0)

    @property
    def is_open(self) -> bool:
        """True while OPEN and still inside the recovery window. Never raises."""
        return self.state == self.OPEN and self._recovery_elapsed() < self.recovery_timeout

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if circuit is OPEN and recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = self._recovery_elapsed()
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiService(VisionCapability, LanguageCapability):
    """
    Google Gemini implementation of both AI capabilities.

    Error Handling Chain:
        circuit open → CircuitBreakerOpenError (no network call)
        timeout / SDK error → record failure → AIServiceError
        reply not valid JSON for the expected shape → AIServiceError
    """

    LIGHT_PROMPT = """You are a horticulture assistant. Look at this photo of a houseplant
and judge how much light reaches it where it stands.

Reply with JSON only, in exactly this shape:
{"sunlight_level": "low" | "medium" | "high", "confidence": "low" | "medium" | "high"}

Use "low" confidence when the photo is dark, blurry, or does not show the plant's surroundings."""

    JOURNAL_PROMPT = """You are keeping a friendly care journal for a houseplant.

Plant on record:
{plant}

Care action just recorded:
{care_log}

Earlier care actions (newest first):
{history}

Write a short journal entry (2-4 sentences) about this care action. If a photo is
attached, also decide whether it shows the plant on record (a {plant_type}).

Reply with JSON only, in exactly this shape:
{{"narrative": "...", "identity_match": {{"matches": true | false, "detected_plant": "..." | null}}}}
Set "identity_match" to null when no photo is attached or you cannot tell."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[float] = None,
        photos: Optional[PhotoService] = None,
    ):
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.model_name = model_name or settings.gemini_model
        self.timeout = timeout or settings.ai_request_timeout
        self.photos = photos or photo_service
        self.configured = settings.is_usable_api_key(self.api_key)

        # The SDK keeps credentials in module-level state
        if self.configured:
            genai.configure(api_key=self.api_key)

        self.model = genai.GenerativeModel(self.model_name)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiService initialized with model=%s, configured=%s, timeout=%.0fs, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            self.model_name,
            self.configured,
            self.timeout,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    @property
    def available(self) -> bool:
        return self.configured and not self.circuit_breaker.is_open

    @property
    def status(self) -> str:
        """Health label: available, circuit_open, or not_configured."""
        if not self.configured:
            return "not_configured"
        if self.circuit_breaker.is_open:
            return "circuit_open"
        return "available"

    # ── Capabilities ──────────────────────────────────────────────────────

    async def classify_light(self, photo_path: str) -> LightClassification:
        image = await self.photos.read(photo_path)
        parts = [self.LIGHT_PROMPT, {"mime_type": STORED_MIME_TYPE, "data": image}]
        return await self._generate(parts, LightClassification, "classify_light")

    async def generate_journal_entry(
        self,
        care_log: CareLog,
        plant_with_care: PlantWithCare,
        history: List[CareLog],
    ) -> JournalEntry:
        plant = plant_with_care.plant
        prompt = self.JOURNAL_PROMPT.format(
            plant=json.dumps(
                {
                    "name": plant.name,
                    "type": plant.type,
                    "location": plant.location,
                    "sunlight_level": plant.sunlight_level,
                    "status": plant_with_care.status,
                    "next_watering": _iso(plant_with_care.next_watering),
                    "next_fertilizing": _iso(plant_with_care.next_fertilizing),
                }
            ),
            care_log=json.dumps(_describe_log(care_log)),
            history="\n".join(json.dumps(_describe_log(h)) for h in history) or "(none)",
            plant_type=plant.type,
        )

        parts: List[Any] = [prompt]
        if care_log.photo_path:
            image = await self.photos.read(care_log.photo_path)
            parts.append({"mime_type": STORED_MIME_TYPE, "data": image})

        return await self._generate(parts, JournalEntry, "generate_journal_entry")

    # ── Transport ─────────────────────────────────────────────────────────

    async def _generate(self, parts: List[Any], result_type: Type[ResultT], operation: str) -> ResultT:
        """
        One guarded Gemini call returning a validated `result_type`.

        Raises:
            CircuitBreakerOpenError: circuit is open
            AIServiceError: not configured, timeout, SDK failure, bad reply
        """
        call_id = str(uuid.uuid4())[:8]

        if not self.configured:
            raise AIServiceError(
                message="AI service is not configured",
                context={"operation": operation},
            )

        self.circuit_breaker.can_execute()

        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(
                    parts,
                    generation_config={"response_mime_type": "application/json"},
                    request_options={"timeout": self.timeout},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            self.circuit_breaker.record_failure()
            logger.warning("[%s] Gemini %s timed out after %.0fs", call_id, operation, self.timeout)
            raise AIServiceError(
                message="AI service timed out",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"call_id": call_id, "operation": operation, "timeout": self.timeout},
            ) from e
        except Exception as e:
            # The SDK raises assorted google.api_core exceptions
            self.circuit_breaker.record_failure()
            logger.warning(
                "[%s] Gemini %s failed after %.0fms: %s",
                call_id,
                operation,
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise AIServiceError(
                message="AI service request failed",
                context={"call_id": call_id, "operation": operation, "error_type": type(e).__name__},
            ) from e

        self.circuit_breaker.record_success()
        logger.info(
            "[%s] Gemini %s completed in %.0fms",
            call_id,
            operation,
            (time.time() - start_time) * 1000,
        )
        return self._parse(response, result_type, call_id, operation)

    def _parse(self, response: Any, result_type: Type[ResultT], call_id: str, operation: str) -> ResultT:
        try:
            text = (response.text or "").strip()
            payload = json.loads(_strip_code_fence(text))
            return result_type.model_validate(payload)
        except (ValueError, SchemaValidationError) as e:
            # json.JSONDecodeError is a ValueError; so is response.text on a blocked reply
            logger.warning("[%s] Unusable Gemini %s reply: %s", call_id, operation, str(e))
            raise AIServiceError(
                message="AI service returned an unexpected response",
                context={"call_id": call_id, "operation": operation, "error": str(e)},
            ) from e


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _describe_log(log: CareLog) -> Dict[str, Any]:
    return {
        "care_type": log.care_type,
        "timestamp": _iso(log.timestamp),
        "notes": log.notes,
        "has_photo": bool(log.photo_path),
    }


def _strip_code_fence(text: str) -> str:
    """Gemini sometimes wraps JSON in ```json fences despite the mime type."""
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    return text.strip()
