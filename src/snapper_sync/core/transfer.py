"""Send a snapper snapshot to the destination with btrfs send/receive.

The snapshot subvolume is streamed by ``btrfs send`` on the source into
``btrfs receive`` on the destination endpoint. With a base snapshot the
stream is incremental (``-c <base>``), otherwise full. Snapper's info.xml is
copied next to the received subvolume afterwards, so the destination
directory looks like the source's ``.snapshots/<number>``.
"""

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from .. import __util__
from ..snapper.store import SnapshotPaths
from ..transaction import TransactionContext

logger = logging.getLogger(__name__)

SSH_FAILURE = 255


@dataclass(frozen=True)
class TransferRequest:
    """One snapshot to send, the base to send it against and where to."""

    snapshot: SnapshotPaths
    base: Optional[SnapshotPaths]
    destination: PurePosixPath
    label: str = ""

    @property
    def mode(self) -> str:
        return "incremental" if self.base is not None else "full"


class _StderrCollector:
    """Read a process's stderr on a thread so a chatty process can't block."""

    def __init__(self, process) -> None:
        self._chunks: list[bytes] = []
        self._thread = None
        stream = getattr(process, "stderr", None)
        if stream is not None:
            self._thread = threading.Thread(target=self._drain, args=(stream,), daemon=True)
            self._thread.start()

    def _drain(self, stream) -> None:
        try:
            while True:
                chunk = stream.read(4096)
                if not chunk:
                    break
                self._chunks.append(chunk)
        except (OSError, ValueError) as e:
            logger.debug("Stopped reading stderr: %s", e)

    def text(self, timeout: float = 5.0) -> str:
        if self._thread is not None:
            self._thread.join(timeout)
        return __util__.decode_stream(b"".join(self._chunks)).strip()


def _cleanup_processes(*processes) -> None:
    """Stop anything still running and close our ends of the pipes."""
    for process in processes:
        if process is None:
            continue
        if process.poll() is None:
            logger.debug("Killing unfinished process %s", process.args)
            process.kill()
            process.wait()
        for pipe in (process.stdin, process.stdout, process.stderr):
            if pipe:
                try:
                    pipe.close()
                except OSError as e:
                    logger.warning("Error closing pipe: %s", e)


class TransferEngine:
    """Run the send/receive pipeline from the source endpoint."""

    def __init__(self, source_endpoint) -> None:
        self.source_endpoint = source_endpoint

    def transfer(self, request: TransferRequest, destination_endpoint) -> None:
        """Transfer ``request.snapshot`` into ``request.destination``.

        Raises:
            DestinationNotWritable: If the destination directory can't be made.
            TransportUnavailable: If the SSH channel fails.
            TransferFailed: If send or receive fail, or info.xml can't be copied.
        """
        destination = request.destination
        logger.info(
            "Sending %s to %s (%s) ...",
            request.label or request.snapshot.data,
            destination,
            request.mode,
        )
        if request.base is not None:
            logger.info("  Using base: %s", request.base.data)
        else:
            logger.info("  No base snapshot available, sending in full mode.")

        destination_endpoint.mkdir(destination)

        with TransactionContext(
            "transfer",
            source=str(request.snapshot.data),
            destination=f"{destination_endpoint.get_id()}{destination}",
            snapshot=request.label or None,
        ) as tx:
            tx.add_detail("mode", request.mode)
            if request.base is not None:
                tx.set_parent(str(request.base.data))

            start = time.monotonic()
            self._send_receive(request, destination_endpoint)
            logger.info("Transfer completed in %.1fs", time.monotonic() - start)

            logger.debug("Copying %s to %s", request.snapshot.info, destination)
            destination_endpoint.copy_file(request.snapshot.info, destination)

    def _send_receive(self, request: TransferRequest, destination_endpoint) -> None:
        clones = [request.base.data] if request.base is not None else []
        send_process = None
        receive_process = None
        try:
            try:
                send_process = self.source_endpoint.send(
                    request.snapshot.data, clone_sources=clones
                )
            except OSError as e:
                raise __util__.TransferFailed(f"Cannot start btrfs send: {e}") from e
            send_stderr = _StderrCollector(send_process)

            try:
                receive_process = destination_endpoint.receive(
                    send_process.stdout, request.destination
                )
            except OSError as e:
                raise __util__.TransferFailed(f"Cannot start btrfs receive: {e}") from e
            receive_stderr = _StderrCollector(receive_process)

            # receive holds the only reader now, so send sees EPIPE if it dies
            send_process.stdout.close()

            receive_rc = receive_process.wait()
            send_rc = send_process.wait()
            logger.debug("send exited with %d, receive with %d", send_rc, receive_rc)

            send_err = send_stderr.text()
            receive_err = receive_stderr.text()
            if send_rc == 0 and receive_rc == 0:
                if receive_err:
                    logger.debug("receive: %s", receive_err)
                return

            message = (
                f"btrfs send/receive of {request.snapshot.data} failed "
                f"(send: {send_rc}, receive: {receive_rc})"
            )
            if send_err:
                message += f"\n  send: {send_err}"
            if receive_err:
                message += f"\n  receive: {receive_err}"
            logger.error(message)

            if receive_rc == SSH_FAILURE and getattr(
                destination_endpoint, "_is_remote", False
            ):
                raise __util__.TransportUnavailable(message)
            raise __util__.TransferFailed(message)
        except subprocess.SubprocessError as e:
            raise __util__.TransferFailed(f"Error during snapshot transfer: {e}") from e
        finally:
            _cleanup_processes(send_process, receive_process)
