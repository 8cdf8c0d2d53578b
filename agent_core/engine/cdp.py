"""Engine adapter speaking the Chrome DevTools Protocol through cdp-use.

One websocket to the browser endpoint carries every command. Targets are attached in
flattened mode, so a connection handle is simply the CDP sessionId and commands for a
target are routed by passing it along with the command.
"""

import asyncio
import logging
from typing import Any, Self
from urllib.parse import urlparse, urlunparse

import httpx
from cdp_use import CDPClient

from agent_core.browser.views import MAIN_TARGET_ID, Target
from agent_core.config import CONFIG
from agent_core.engine.base import EngineAdapter
from agent_core.errors.views import BrowserTimeoutError

logger = logging.getLogger(__name__)


class CDPEngine(EngineAdapter):
	def __init__(
		self,
		cdp_url: str | None = None,
		headers: dict[str, str] | None = None,
		command_timeout: float | None = None,
	):
		self.cdp_url = cdp_url or CONFIG.AGENT_CORE_CDP_URL
		self.headers = headers
		self.command_timeout = command_timeout if command_timeout is not None else CONFIG.AGENT_CORE_COMMAND_TIMEOUT
		self._client: CDPClient | None = None

	@staticmethod
	async def resolve_ws_url(cdp_url: str, headers: dict[str, str] | None = None) -> str:
		"""Turn an http(s) debugging endpoint into the browser websocket URL via /json/version."""
		if cdp_url.startswith('ws'):
			return cdp_url

		parsed_url = urlparse(cdp_url)
		path = parsed_url.path.rstrip('/')
		if not path.endswith('/json/version'):
			path = path + '/json/version'

		url = urlunparse((parsed_url.scheme, parsed_url.netloc, path, parsed_url.params, parsed_url.query, parsed_url.fragment))

		async with httpx.AsyncClient() as client:
			version_info = await client.get(url, headers=headers or {})
			version_info.raise_for_status()
			logger.debug(f'Raw version info: {version_info.text}')
			return version_info.json()['webSocketDebuggerUrl']

	@property
	def is_connected(self) -> bool:
		return self._client is not None

	@property
	def client(self) -> CDPClient:
		if self._client is None:
			raise RuntimeError('CDP engine is not started, call start() first')
		return self._client

	async def start(self) -> Self:
		if self._client is not None:
			logger.warning('⚠️ start() called but CDP client already exists, reconnecting')
			await self.stop()

		ws_url = await self.resolve_ws_url(self.cdp_url, self.headers)
		logger.debug(f'🌎 Connecting to chromium-based browser via CDP: {ws_url}')

		client = CDPClient(
			ws_url,
			additional_headers=self.headers,
			max_ws_frame_size=200 * 1024 * 1024,  # pages with very large DOMs
		)
		await client.start()
		self._client = client
		logger.info(f'🔌 Connected to browser at {self.cdp_url}')
		return self

	async def stop(self) -> None:
		client, self._client = self._client, None
		if client is None:
			return
		try:
			await client.stop()
		except Exception as e:
			logger.debug(f'Error stopping CDP client: {type(e).__name__}: {e}')

	async def __aenter__(self) -> Self:
		return await self.start()

	async def __aexit__(self, *args: Any) -> None:
		await self.stop()

	async def _send(self, method: str, params: dict[str, Any] | None = None, session_id: str | None = None) -> dict[str, Any]:
		try:
			return await asyncio.wait_for(
				self.client.send_raw(method=method, params=params, session_id=session_id),
				timeout=self.command_timeout,
			)
		except TimeoutError:
			raise BrowserTimeoutError(
				method,
				self.command_timeout,
				message=f'CDP command {method} timeout after {self.command_timeout}s',
			) from None

	async def resolve_target_id(self, target_id: str) -> str:
		if target_id != MAIN_TARGET_ID:
			return target_id
		pages = [target for target in await self.list_targets() if target.target_type == 'page']
		if not pages:
			raise RuntimeError(f'No page target available for alias {MAIN_TARGET_ID!r}')
		return pages[0].target_id

	async def attach(self, target_id: str) -> str:
		resolved = await self.resolve_target_id(target_id)
		result = await self._send('Target.attachToTarget', {'targetId': resolved, 'flatten': True})
		session_id = result['sessionId']
		logger.debug(f'Attached to target {resolved[-4:]} with CDP session {session_id[-4:]}')
		return session_id

	async def send(self, connection: Any, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
		return await self._send(method, params, session_id=connection)

	async def detach(self, connection: Any) -> None:
		await self._send('Target.detachFromTarget', {'sessionId': connection})

	async def list_targets(self) -> list[Target]:
		result = await self._send('Target.getTargets')
		return [
			Target(
				target_id=info['targetId'],
				target_type=info.get('type', 'page'),
				url=info.get('url', 'about:blank'),
				title=info.get('title', 'Unknown title'),
			)
			for info in result.get('targetInfos', [])
		]

	async def create_target(self, url: str = 'about:blank') -> str:
		result = await self._send('Target.createTarget', {'url': url})
		return result['targetId']

	async def close_target(self, target_id: str) -> None:
		await self._send('Target.closeTarget', {'targetId': await self.resolve_target_id(target_id)})

	async def activate_target(self, target_id: str) -> None:
		await self._send('Target.activateTarget', {'targetId': await self.resolve_target_id(target_id)})
