# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Self-ping loop that keeps an idle-suspended host awake.

Some free-tier hosts spin a process down after a period without inbound
traffic. :class:`KeepAlivePinger` requests the service's own health endpoint
on a fixed interval. Ping failures are logged and never propagate.

Example:
    Running the pinger alongside the API::

        pinger = KeepAlivePinger("https://relay.example.com/api/health")
        pinger.start()
        ...
        await pinger.stop()
"""

from __future__ import annotations

import asyncio

import aiohttp

from .logger import get_logger

logger = get_logger("KeepAlive")


class KeepAlivePinger:
    """Background task issuing ``GET`` requests against a health URL.

    Attributes:
        url: Health endpoint to request.
        interval: Seconds between pings.
        initial_delay: Seconds before the first ping.
        request_timeout: Total timeout of a single ping.
        count: Number of pings attempted.
    """

    def __init__(self, url: str, interval: float = 25.0, initial_delay: float = 30.0, request_timeout: float = 10.0):
        self.url = url
        self.interval = interval
        self.initial_delay = initial_delay
        self.request_timeout = request_timeout
        self.count = 0
        self._task: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the ping loop on the running event loop."""
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Keep-alive started (target=%s, interval=%ss, first ping in %ss)",
            self.url,
            self.interval,
            self.initial_delay,
        )

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        if self._task is None:
            return
        self._stop.set()
        await self._task
        self._task = None
        logger.info("Keep-alive stopped after %d ping(s)", self.count)

    async def ping_once(self) -> int | None:
        """Issue one ping.

        Returns:
            The HTTP status code, or None when the request failed.
        """
        self.count += 1
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.url) as response:
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Keep-alive ping #%d failed: %s", self.count, str(exc) or exc.__class__.__name__)
            return None
        if status == 200:
            logger.info("Keep-alive ping #%d successful", self.count)
        else:
            logger.warning("Keep-alive ping #%d returned status %s", self.count, status)
        return status

    async def _run(self) -> None:
        if await self._wait_for_stop(self.initial_delay):
            return
        while True:
            await self.ping_once()
            if await self._wait_for_stop(self.interval):
                return

    async def _wait_for_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True
