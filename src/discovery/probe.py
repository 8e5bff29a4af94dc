"""
Lightweight RTSP reachability probe
Sends a single OPTIONS request and classifies the first response line
"""

import asyncio
import logging
import re
import ssl
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .models import ProbeResult

logger = logging.getLogger(__name__)

RTSP_DEFAULT_PORT = 554
RTSPS_DEFAULT_PORT = 322

# Codes showing the endpoint exists and speaks RTSP, even if it wants credentials
SUCCESS_STATUS_CODES = frozenset({200, 401, 405})

_STATUS_LINE_RE = re.compile(r"RTSP/\d+\.\d+\s+(\d{3})\s*(.*)", re.IGNORECASE)

_CLOSE_TIMEOUT = 1.0


def is_rtsp_url(url: str) -> bool:
    return isinstance(url, str) and (url.startswith("rtsp://") or url.startswith("rtsps://"))


def parse_status_line(line: str) -> Tuple[Optional[int], Optional[str]]:
    """Return (status_code, status_text), or (None, None) for non-RTSP lines"""
    match = _STATUS_LINE_RE.search(line)
    if not match:
        return None, None
    return int(match.group(1)), match.group(2).strip()


def create_probe_ssl_context(verify: bool = True) -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class RtspProbe:
    """One-shot RTSP OPTIONS probe, no internal retries"""

    def __init__(self, default_timeout: float = 5.0, verify_tls: bool = True,
                 user_agent: str = "Cloud Camera Bridge Discovery"):
        self.default_timeout = default_timeout
        self.user_agent = user_agent
        self.ssl_context = create_probe_ssl_context(verify_tls)

    def _build_request(self, url: str) -> bytes:
        return (
            f"OPTIONS {url} RTSP/1.0\r\n"
            "CSeq: 1\r\n"
            f"User-Agent: {self.user_agent}\r\n"
            "\r\n"
        ).encode('utf-8')

    async def validate(self, endpoint: str, timeout: Optional[float] = None) -> ProbeResult:
        if not is_rtsp_url(endpoint):
            return ProbeResult(ok=False, error="invalid-scheme")

        timeout = self.default_timeout if timeout is None else timeout

        try:
            parsed = urlsplit(endpoint)
            secure = parsed.scheme == "rtsps"
            port = parsed.port or (RTSPS_DEFAULT_PORT if secure else RTSP_DEFAULT_PORT)
            host = parsed.hostname
        except ValueError as e:
            return ProbeResult(ok=False, error=str(e))

        if not host:
            return ProbeResult(ok=False, error="invalid-host")

        writer: Optional[asyncio.StreamWriter] = None

        async def exchange() -> bytes:
            nonlocal writer
            reader, writer = await asyncio.open_connection(
                host, port, ssl=self.ssl_context if secure else None
            )
            writer.write(self._build_request(endpoint))
            await writer.drain()
            return await reader.readuntil(b"\r\n")

        try:
            raw_line = await asyncio.wait_for(exchange(), timeout)
        except asyncio.TimeoutError:
            return ProbeResult(ok=False, error="timeout")
        except asyncio.IncompleteReadError as e:
            partial = e.partial.decode('utf-8', errors='replace').strip()
            return ProbeResult(ok=False, status_line=partial or None, error="invalid-status")
        except asyncio.LimitOverrunError:
            return ProbeResult(ok=False, error="invalid-status")
        except OSError as e:
            return ProbeResult(ok=False, error=str(e) or e.__class__.__name__)
        finally:
            if writer is not None:
                await self._close(writer)

        status_line = raw_line.decode('utf-8', errors='replace').rstrip("\r\n")
        status_code, _ = parse_status_line(status_line)
        if status_code is None:
            return ProbeResult(ok=False, status_line=status_line, error="invalid-status")

        return ProbeResult(
            ok=status_code in SUCCESS_STATUS_CODES,
            status_code=status_code,
            status_line=status_line,
        )

    async def _close(self, writer: asyncio.StreamWriter) -> None:
        writer.close()
        try:
            await asyncio.wait_for(writer.wait_closed(), _CLOSE_TIMEOUT)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Probe connection close did not complete cleanly: {e}")
