"""
Anti-Captcha client for image-to-coordinates challenges.

Sends a screenshot of a click-captcha and gets back the ordered list of
points a human would click.
"""

import asyncio
import logging
import os
import time
from typing import Optional, Protocol

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

logger = logging.getLogger(__name__)

DEFAULT_COMMENT = "Select objects in the specified order"


class CaptchaSolver(Protocol):
    """Anything that can turn a captcha image into click coordinates."""

    async def solve_coordinates(
        self,
        image_base64: str,
        comment: str = DEFAULT_COMMENT,
    ) -> list[tuple[float, float]]:
        ...


class CaptchaServiceError(Exception):
    """Base exception for captcha service errors."""
    pass


class AuthenticationError(CaptchaServiceError):
    """Invalid or missing API key."""
    pass


class NoSlotAvailableError(CaptchaServiceError):
    """Service has no free workers right now."""
    pass


class CaptchaUnsolvableError(CaptchaServiceError):
    """Workers could not solve the image."""
    pass


_AUTH_ERRORS = {"ERROR_KEY_DOES_NOT_EXIST", "ERROR_IP_NOT_ALLOWED", "ERROR_IP_BLOCKED"}


class AntiCaptchaClient:
    """
    Async client for the Anti-Captcha JSON API.

    Usage:
        async with AntiCaptchaClient(api_key="your_key") as solver:
            points = await solver.solve_coordinates(image_b64)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.anti-captcha.com",
        timeout: int = 30,
        poll_interval: float = 5.0,
        max_wait: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Anti-Captcha client.

        Args:
            api_key: Anti-Captcha client key (falls back to ANTICAPTCHA_KEY)
            base_url: API endpoint root
            timeout: Request timeout in seconds
            poll_interval: Seconds between getTaskResult polls
            max_wait: Seconds to wait for a solution before giving up
            client: Pre-built httpx client (mainly for tests)
        """
        if not api_key:
            api_key = os.environ.get("ANTICAPTCHA_KEY")

        if not api_key:
            raise AuthenticationError(
                "Anti-Captcha key not configured. "
                "Set ANTICAPTCHA_KEY environment variable or pass api_key parameter."
            )

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._client = client or httpx.AsyncClient(timeout=self.timeout)
        logger.debug("Anti-Captcha client initialized (base_url=%s)", self.base_url)

    async def solve_coordinates(
        self,
        image_base64: str,
        comment: str = DEFAULT_COMMENT,
    ) -> list[tuple[float, float]]:
        """
        Solve an image-to-coordinates captcha.

        Args:
            image_base64: PNG screenshot, base64 encoded
            comment: Instruction shown to the solving worker

        Returns:
            Click points relative to the image's top-left corner, in order
        """
        task_id = await self._create_task(image_base64, comment)
        logger.info("Captcha task %s created, waiting for solution", task_id)
        solution = await self._wait_for_result(task_id)

        points = [(float(x), float(y)) for x, y, *_ in solution.get("coordinates", [])]
        logger.info("Captcha task %s solved with %d points", task_id, len(points))
        return points

    async def get_balance(self) -> float:
        """Return the account balance (used by `serpharvest check`)."""
        data = await self._post("getBalance", {"clientKey": self.api_key})
        return float(data.get("balance", 0.0))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=60),
        retry=retry_if_exception_type((NoSlotAvailableError, httpx.TransportError)),
        reraise=True,
    )
    async def _create_task(self, image_base64: str, comment: str) -> int:
        data = await self._post("createTask", {
            "clientKey": self.api_key,
            "task": {
                "type": "ImageToCoordinatesTask",
                "body": image_base64,
                "comment": comment,
                "mode": "points",
            },
        })
        return data["taskId"]

    async def _wait_for_result(self, task_id: int) -> dict:
        deadline = time.monotonic() + self.max_wait

        while True:
            await asyncio.sleep(self.poll_interval)

            data = await self._post("getTaskResult", {
                "clientKey": self.api_key,
                "taskId": task_id,
            })

            if data.get("status") == "ready":
                return data.get("solution") or {}

            if time.monotonic() >= deadline:
                raise CaptchaServiceError(
                    f"Captcha task {task_id} not solved within {self.max_wait:.0f}s"
                )

    async def _post(self, method: str, payload: dict) -> dict:
        response = await self._client.post(f"{self.base_url}/{method}", json=payload)
        self._handle_errors(response)

        data = response.json()
        if data.get("errorId"):
            self._raise_api_error(data)
        return data

    def _handle_errors(self, response: httpx.Response) -> None:
        """Handle HTTP-level error responses."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid Anti-Captcha key")
        elif response.status_code >= 500:
            raise CaptchaServiceError(f"Anti-Captcha server error: {response.status_code}")
        elif response.status_code >= 400:
            raise CaptchaServiceError(f"Anti-Captcha error: {response.text}")

    def _raise_api_error(self, data: dict) -> None:
        code = data.get("errorCode", "")
        description = data.get("errorDescription") or code

        if code in _AUTH_ERRORS:
            raise AuthenticationError(description)
        if code == "ERROR_NO_SLOT_AVAILABLE":
            raise NoSlotAvailableError(description)
        if code == "ERROR_CAPTCHA_UNSOLVABLE":
            raise CaptchaUnsolvableError(description)
        raise CaptchaServiceError(f"{code}: {description}")

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
