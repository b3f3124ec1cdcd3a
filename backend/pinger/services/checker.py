"""Checker service - performs HTTP, TCP, and ICMP probes.

Every probe returns a ProbeResult and never raises: timeouts, refused
connections, DNS failures and bad status codes all come back as
``ok=False`` with an explanatory message.
"""
import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from ..utils.endpoints import parse_host_port

logger = logging.getLogger(__name__)

# Redirects followed by the HTTP probe before giving up
MAX_REDIRECTS = 5

# Extra seconds allowed for the ping subprocess beyond its own -W timeout
PING_GRACE_SECONDS = 2

_PING_TIME_RE = re.compile(r"time[=<]\s*(\d+(?:\.\d+)?)\s*ms")


@dataclass
class ProbeResult:
    """Uniform outcome of a single probe."""
    ok: bool
    latency_ms: int
    code: int
    message: str

    @property
    def status(self) -> str:
        return "UP" if self.ok else "DOWN"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _error_text(e: BaseException) -> str:
    return str(e) or e.__class__.__name__


class CheckerService:
    """Service for performing monitoring probes.

    ``transport`` is handed to the httpx client and lets callers swap the
    network layer out (e.g. ``httpx.MockTransport``).
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    async def run_probe(self, target) -> ProbeResult:
        """Run the probe matching ``target.type``."""
        try:
            if target.type == "HTTP":
                return await self.http_check(target.endpoint, target.timeout_ms)
            elif target.type == "TCP":
                try:
                    host, port = parse_host_port(target.endpoint)
                except ValueError as e:
                    return ProbeResult(ok=False, latency_ms=0, code=0, message=str(e))
                return await self.tcp_check(host, port, target.timeout_ms)
            elif target.type == "ICMP":
                return await self.icmp_check(target.endpoint, target.timeout_ms)
            else:
                return ProbeResult(ok=False, latency_ms=0, code=0, message="Unknown check type")
        except Exception as e:
            logger.exception(f"Probe for target {target.id} raised unexpectedly")
            return ProbeResult(ok=False, latency_ms=0, code=0, message=_error_text(e))

    async def http_check(self, url: str, timeout_ms: int = 5000) -> ProbeResult:
        """GET ``url``; any HTTP response counts as a completed probe.

        UP when the final status falls in [200, 400).
        """
        started = time.monotonic()
        try:
            # Disable SSL verification to handle self-signed certificates
            async with httpx.AsyncClient(
                timeout=timeout_ms / 1000,
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                verify=False,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            return ProbeResult(
                ok=False,
                latency_ms=_elapsed_ms(started),
                code=0,
                message=f"timeout of {timeout_ms}ms exceeded",
            )
        except httpx.TooManyRedirects:
            return ProbeResult(
                ok=False,
                latency_ms=_elapsed_ms(started),
                code=0,
                message=f"Maximum number of redirects exceeded ({MAX_REDIRECTS})",
            )
        except Exception as e:
            return ProbeResult(ok=False, latency_ms=_elapsed_ms(started), code=0, message=_error_text(e))

        latency = _elapsed_ms(started)
        status_code = response.status_code
        ok = 200 <= status_code < 400
        message = response.reason_phrase or f"HTTP {status_code}"

        return ProbeResult(ok=ok, latency_ms=latency, code=status_code, message=message)

    async def tcp_check(self, host: str, port: int, timeout_ms: int = 5000) -> ProbeResult:
        """Open a TCP connection to ``host:port``; the socket is always closed."""
        started = time.monotonic()
        writer = None
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout_ms / 1000,
            )
            return ProbeResult(ok=True, latency_ms=_elapsed_ms(started), code=1, message="connected")
        except asyncio.TimeoutError:
            return ProbeResult(ok=False, latency_ms=_elapsed_ms(started), code=0, message="timeout")
        except Exception as e:
            return ProbeResult(ok=False, latency_ms=_elapsed_ms(started), code=0, message=_error_text(e))
        finally:
            if writer is not None:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError as e:
                    logger.debug(f"Error closing probe socket to {host}:{port}: {e}")

    async def icmp_check(self, host: str, timeout_ms: int = 5000) -> ProbeResult:
        """Send one ICMP echo request via the system ``ping`` binary.

        Hosts without a usable ping (missing binary, no raw-socket
        permission) get a labelled DOWN result instead of an error.
        """
        timeout_s = max(1, math.ceil(timeout_ms / 1000))
        started = time.monotonic()

        # ping would read a leading dash as an option
        if host.startswith("-"):
            return ProbeResult(ok=False, latency_ms=0, code=0, message=f"Invalid ICMP host '{host}'")

        try:
            proc = await asyncio.create_subprocess_exec(
                "ping", "-c", "1", "-W", str(timeout_s), host,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            return ProbeResult(
                ok=False,
                latency_ms=_elapsed_ms(started),
                code=0,
                message=f"ICMP ping not supported on this platform ({_error_text(e)})",
            )
        except Exception as e:
            return ProbeResult(ok=False, latency_ms=_elapsed_ms(started), code=0, message=_error_text(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=timeout_s + PING_GRACE_SECONDS,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return ProbeResult(ok=False, latency_ms=_elapsed_ms(started), code=0, message="timeout")

        output = stdout.decode(errors="replace").strip()
        errors = stderr.decode(errors="replace").strip()

        if proc.returncode == 0:
            match = _PING_TIME_RE.search(output)
            latency = int(round(float(match.group(1)))) if match else _elapsed_ms(started)
            return ProbeResult(ok=True, latency_ms=latency, code=1, message=_last_line(output) or "alive")

        lowered = errors.lower()
        if "operation not permitted" in lowered or "permission denied" in lowered:
            return ProbeResult(
                ok=False,
                latency_ms=_elapsed_ms(started),
                code=0,
                message=f"ICMP ping not supported on this platform ({_last_line(errors)})",
            )

        return ProbeResult(
            ok=False,
            latency_ms=_elapsed_ms(started),
            code=0,
            message=_last_line(errors) or _last_line(output) or f"ping exited with {proc.returncode}",
        )


def _last_line(text: str) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


# Global instance
checker_service = CheckerService()
