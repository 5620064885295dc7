"""
Transports.

Each transport delivers one MetricDocument to the collection endpoint over
a single protocol and reports success as a boolean. Transport errors are
logged and turned into ``False``; they never propagate to the caller.
"""

import asyncio
import json
import logging
import socket
from typing import Optional
import aiohttp

from .models import MetricDocument

logger = logging.getLogger(__name__)

USER_AGENT = 'NodePulseAgent/1.0'


class Transport:
    """Common transport capability."""

    name = "base"

    async def send(self, document: MetricDocument, timeout: float) -> bool:
        raise NotImplementedError

    async def close(self):
        """Release any held connections."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


class _SessionMixin:
    """Lazily created aiohttp session shared by HTTP-based transports."""

    _session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={'User-Agent': USER_AGENT})
        return self._session

    async def close(self):
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()


class HttpTransport(_SessionMixin, Transport):
    """POSTs the document; any 2xx status is success."""

    name = "http"

    def __init__(self, host: str, port: int, path: str = "/api/metrics"):
        self.url = f"http://{host}:{port}{path}"

    async def send(self, document: MetricDocument, timeout: float) -> bool:
        try:
            session = await self._get_session()
            async with session.post(
                self.url,
                data=document.to_json(),
                headers={'Content-Type': 'application/json'},
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if 200 <= response.status < 300:
                    logger.debug(f"HTTP: sent to {self.url}")
                    return True

                error_text = await response.text()
                logger.warning(f"HTTP send failed: {response.status} {error_text[:200]}")
                return False

        except asyncio.TimeoutError:
            logger.warning(f"HTTP send to {self.url} timed out")
            return False
        except (aiohttp.ClientError, OSError) as e:
            logger.warning(f"HTTP send failed: {e}")
            return False


class WebSocketTransport(_SessionMixin, Transport):
    """
    Sends a typed ``metrics`` envelope and waits for the matching ``ack``.

    Only an ack carrying the document's own timestamp counts; other frames
    are ignored until the timeout expires.
    """

    name = "websocket"

    def __init__(self, host: str, port: int, path: str = "/"):
        self.url = f"ws://{host}:{port}{path}"

    async def send(self, document: MetricDocument, timeout: float) -> bool:
        try:
            return await asyncio.wait_for(self._exchange(document), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"WebSocket: no ack from {self.url} within {timeout}s")
            return False
        except (aiohttp.ClientError, OSError) as e:
            logger.warning(f"WebSocket send failed: {e}")
            return False

    async def _exchange(self, document: MetricDocument) -> bool:
        session = await self._get_session()
        expected = document.timestamp_iso

        async with session.ws_connect(self.url) as ws:
            await ws.send_str(json.dumps({
                'type': 'metrics',
                'metrics': document.to_dict(),
            }))

            async for msg in ws:
                if msg.type != aiohttp.WSMsgType.TEXT:
                    if msg.type == aiohttp.WSMsgType.ERROR:
                        logger.warning(f"WebSocket error: {ws.exception()}")
                        return False
                    continue

                try:
                    message = json.loads(msg.data)
                except json.JSONDecodeError:
                    continue

                if (
                    isinstance(message, dict)
                    and message.get('type') == 'ack'
                    and message.get('timestamp') == expected
                ):
                    logger.debug(f"WebSocket: ack from {self.url}")
                    return True

        # Closed before an ack arrived
        logger.warning(f"WebSocket: {self.url} closed without ack")
        return False


class UdpTransport(Transport):
    """
    Fire-and-forget datagram. Success only means the local send call
    completed; there is no remote acknowledgment.
    """

    name = "udp"

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    async def send(self, document: MetricDocument, timeout: float) -> bool:
        payload = document.to_json().encode('utf-8')
        loop = asyncio.get_event_loop()

        try:
            await loop.run_in_executor(None, self._sendto, payload, timeout)
        except OSError as e:
            logger.warning(f"UDP send to {self.host}:{self.port} failed: {e}")
            return False

        logger.debug(f"UDP: sent {len(payload)} bytes to {self.host}:{self.port}")
        return True

    def _sendto(self, payload: bytes, timeout: float) -> None:
        family = socket.AF_INET6 if ':' in self.host else socket.AF_INET
        with socket.socket(family, socket.SOCK_DGRAM) as sock:
            sock.settimeout(timeout)
            sock.sendto(payload, (self.host, self.port))
