"""Authenticated registry sessions obtained by solving the CAPTCHA."""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from portor.auth.captcha import CaptchaSolver
from portor.config import config
from portor.errors import NoSessionError, UpstreamUnavailableError
from portor.fetch.endpoints import BASE_URL, CAPTCHA_PATH

logger = logging.getLogger(__name__)

# Extra challenges fetched when the first image yields no candidate
EXTRA_CHALLENGES = 5

# Only retry when the request never reached the registry
connect_retry = retry(
    stop=stop_after_attempt(config.MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=8),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
    reraise=True,
)


def create_registry_client(transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """HTTP client for one session; redirects are handled by the caller."""
    return httpx.AsyncClient(
        base_url=BASE_URL,
        timeout=config.TIMEOUT,
        follow_redirects=False,  # a 303 means the session was invalidated
        transport=transport,
    )


@dataclass
class CaptchaChallenge:
    """CAPTCHA image and the cookies issued alongside it."""

    image: bytes
    cookies: dict[str, str] = field(default_factory=dict)


class SessionHandle:
    """Cookie-bearing client plus the solved CAPTCHA text for one workflow."""

    def __init__(self, client: httpx.AsyncClient, captcha_text: str):
        self.client = client
        self.captcha_text = captcha_text

    @property
    def cookies(self) -> httpx.Cookies:
        return self.client.cookies

    @property
    def closed(self) -> bool:
        return self.client.is_closed

    async def aclose(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()

    async def __aenter__(self) -> "SessionHandle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


class SessionAcquirer:
    """Obtains a SessionHandle by fetching and solving CAPTCHA challenges."""

    def __init__(
        self,
        solver: CaptchaSolver,
        client_factory: Callable[[], httpx.AsyncClient] = create_registry_client,
    ):
        self.solver = solver
        self.client_factory = client_factory

    async def acquire(self) -> SessionHandle:
        """
        Fetch a challenge and solve it; on failure fetch five more challenges
        one after another and solve them together. The registry only honours
        the latest challenge issued to a session, so fetches stay sequential.
        """
        client = self.client_factory()
        acquired = False
        try:
            challenge = await self._fetch_challenge(client)
            if not challenge.cookies:
                raise UpstreamUnavailableError("captcha endpoint issued no session cookie")

            captcha_text = await self.solver.solve([challenge.image])
            if not captcha_text:
                logger.warning(f"CAPTCHA not solved from one image, fetching {EXTRA_CHALLENGES} more")
                images = []
                for _ in range(EXTRA_CHALLENGES):
                    images.append((await self._fetch_challenge(client)).image)
                captcha_text = await self.solver.solve(images)

            if not captcha_text:
                raise NoSessionError("captcha unsolved")

            logger.info("Registry session acquired")
            acquired = True
            return SessionHandle(client, captcha_text)
        finally:
            if not acquired:
                await client.aclose()

    async def _fetch_challenge(self, client: httpx.AsyncClient) -> CaptchaChallenge:
        try:
            response = await self._get_captcha(client)
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"captcha request failed: {e}") from e

        if response.status_code != 200 or not response.content:
            raise UpstreamUnavailableError(f"captcha endpoint returned {response.status_code}")

        return CaptchaChallenge(image=response.content, cookies=dict(response.cookies))

    @connect_retry
    async def _get_captcha(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.get(CAPTCHA_PATH)
