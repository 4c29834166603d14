"""
Donation status reconciliation by polling.

The poller reads the donation row until it reaches a terminal status. It
never writes; the gateway notification handler is the only writer.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from donation_checkout.core.config import get_settings
from donation_checkout.schemas.donation import DonationResponse, DonationStatusEnum

logger = structlog.get_logger(__name__)

Fetch = Callable[[str], Awaitable[Optional[DonationResponse]]]


@dataclass(frozen=True)
class StatusView:
    title: str
    subtitle: str


def describe_status(row: Optional[DonationResponse], timed_out: bool = False) -> StatusView:
    """Title and subtitle of the donation result view for a snapshot"""
    status = row.status if row else DonationStatusEnum.PENDING
    if status == DonationStatusEnum.PAID:
        return StatusView("Pembayaran berhasil", "Terima kasih, donasi kamu sudah kami terima 🙏")
    if status == DonationStatusEnum.FAILED:
        return StatusView("Pembayaran gagal", "Maaf, pembayaran tidak berhasil.")
    if timed_out:
        return StatusView(
            "Menunggu konfirmasi pembayaran",
            "Status belum terkonfirmasi. Silakan cek kembali halaman ini nanti.",
        )
    return StatusView(
        "Menunggu konfirmasi pembayaran",
        "Pembayaran sedang diproses. Halaman ini akan diperbarui otomatis.",
    )


class DonationStatusPoller:
    """
    Poll one donation until paid/failed, timeout, or cancel.

    Usage:
        async with DonationStatusPoller(store.get_donation, on_update=render) as poller:
            poller.start(donation_id)
            await poller.wait()
    """

    def __init__(
        self,
        fetch: Fetch,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        on_update: Optional[Callable[[DonationResponse], None]] = None,
    ):
        settings = get_settings()
        self.fetch = fetch
        self.interval = interval if interval is not None else settings.poll_interval_seconds
        # None or <= 0 disables the ceiling
        self.timeout = timeout if timeout is not None else settings.poll_timeout_seconds
        self.on_update = on_update

        self.snapshot: Optional[DonationResponse] = None
        self.fetch_count = 0
        self.timed_out = False
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_terminal(self) -> bool:
        return self.snapshot is not None and self.snapshot.status.is_terminal

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def view(self) -> StatusView:
        return describe_status(self.snapshot, timed_out=self.timed_out)

    def start(self, donation_id: Optional[str]) -> Optional[asyncio.Task]:
        """Begin polling; an empty id is a no-op"""
        if not donation_id:
            return None
        if self._task is not None:
            raise RuntimeError("poller already started")
        self._task = asyncio.create_task(self._run(donation_id))
        return self._task

    async def wait(self) -> Optional[DonationResponse]:
        """Wait for the polling task to end, return the last snapshot"""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                if not self._stopped:
                    raise
        return self.snapshot

    async def cancel(self) -> None:
        """Stop polling; no fetch result is applied after this returns"""
        self._stopped = True
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "DonationStatusPoller":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cancel()

    async def _run(self, donation_id: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout if self.timeout and self.timeout > 0 else None
        logger.info("Polling donation status", donation_id=donation_id, interval=self.interval)

        try:
            while not self._stopped:
                await self._fetch_once(donation_id)
                if self.is_terminal:
                    logger.info("Donation reached terminal status",
                                donation_id=donation_id,
                                status=self.snapshot.status.value,
                                fetches=self.fetch_count)
                    break
                if deadline is not None and loop.time() >= deadline:
                    self.timed_out = True
                    logger.warning("Donation status polling timed out",
                                   donation_id=donation_id,
                                   fetches=self.fetch_count)
                    break
                await asyncio.sleep(self.interval)
        finally:
            self._stopped = True

    async def _fetch_once(self, donation_id: str) -> None:
        self.fetch_count += 1
        try:
            row = await self.fetch(donation_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # A failed poll only means no update this round
            logger.warning("Donation status fetch failed", donation_id=donation_id, error=str(e))
            return

        if self._stopped or row is None:
            return
        self._apply(row)

    def _apply(self, row: DonationResponse) -> None:
        if self.is_terminal and not row.status.is_terminal:
            logger.warning("Ignoring status regression",
                           donation_id=row.id,
                           held=self.snapshot.status.value,
                           fetched=row.status.value)
            return
        self.snapshot = row
        if self.on_update is None:
            return
        try:
            self.on_update(row)
        except Exception as e:
            logger.warning("Donation status callback failed", donation_id=row.id, error=str(e))
