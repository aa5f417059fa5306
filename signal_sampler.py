#!/usr/bin/env python3
# Main application entry point
# Samples the wireless link with iwconfig and prints one graded line per sample

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from config import ConfigError, SamplerConfig, apply_logging_config, load_config
from link_status import LinkSample
from logging_config import LEVEL_ENV, get_logger, setup_logging

logger = get_logger(__name__)

FAILURE_MESSAGE = 'コマンドの実行に失敗しました'
TERMINATION_NOTICE = '測定を終了しました。'


class CommandFailure(Exception):
    """The status command exited with a non-zero status."""

    def __init__(self, result: 'CommandResult'):
        super().__init__(result.stderr.strip() or f'exit status {result.returncode}')
        self.result = result


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0


def run_status_command(interface: str, command: str = 'iwconfig') -> CommandResult:
    """Run `<command> <interface>` and capture its output. Blocks until it exits."""
    try:
        result = subprocess.run(
            [command, interface],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        # Missing or non-executable binary; report it like the shell would
        return CommandResult(stdout='', stderr=str(e), returncode=127)
    return CommandResult(stdout=result.stdout, stderr=result.stderr, returncode=result.returncode)


class CancellationToken:
    """
    Cooperative stop flag checked at every suspension point of the loop.

    cancel() only assigns a flag, so it is safe to call from a signal
    handler. wait() sleeps in short slices and rechecks the flag between them.
    """

    poll_interval = 0.1

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; return True as soon as cancelled."""
        deadline = time.monotonic() + timeout
        while not self._cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(self.poll_interval, remaining))
        return self._cancelled


class SignalSampler:
    def __init__(
        self,
        interface: str = 'wlan0',
        command: str = 'iwconfig',
        runner: Callable[[str, str], CommandResult] = run_status_command,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.interface = interface
        self.command = command
        self.runner = runner
        self.clock = clock

    def sample(self) -> LinkSample:
        """Take one reading. Raises CommandFailure if the command fails."""
        result = self.runner(self.interface, self.command)
        if not result.success:
            raise CommandFailure(result)

        logger.debug('Status command output', extra={'interface': self.interface, 'stdout': result.stdout})
        sample = LinkSample.from_output(result.stdout, timestamp=self.clock())
        logger.debug('Parsed link sample', extra={'sample': sample.to_dict()})
        return sample

    def get_signal_report(self, token: Optional[CancellationToken] = None) -> Optional[str]:
        """
        Return the formatted summary line, or None if the command failed.

        A failure seen after token was cancelled is not logged, since the
        interrupt also terminates the child process.
        """
        try:
            sample = self.sample()
        except CommandFailure as e:
            if token is not None and token.cancelled:
                return None
            logger.error(f'{FAILURE_MESSAGE}: {e.result.stderr}', extra={'interface': self.interface})
            return None
        return sample.format()


class StopReason(Enum):
    COMPLETED = 'completed'
    INTERRUPTED = 'interrupted'


@dataclass
class SamplingOutcome:
    reason: StopReason
    iterations: int = 0
    samples: int = 0
    failures: int = 0

    @property
    def interrupted(self) -> bool:
        return self.reason is StopReason.INTERRUPTED


def run_sampling_loop(
    config: SamplerConfig,
    sampler: Optional[SignalSampler] = None,
    token: Optional[CancellationToken] = None,
    emit: Callable[[str], None] = print,
) -> SamplingOutcome:
    """
    Sample the link config.iterations times, pausing config.interval between samples.

    Cancellation is checked before each sample, after the blocking command
    returns, and during the pause. A cancelled loop prints the termination
    notice and returns an INTERRUPTED outcome without finishing the pause.
    A failed sample still counts as an iteration and is followed by the pause.
    """
    if sampler is None:
        sampler = SignalSampler(config.interface, config.command)
    if token is None:
        token = CancellationToken()

    outcome = SamplingOutcome(reason=StopReason.COMPLETED)

    while outcome.iterations < config.iterations:
        if token.cancelled:
            outcome.reason = StopReason.INTERRUPTED
            break

        report = sampler.get_signal_report(token)
        if token.cancelled:
            # The interrupt also reaches the child, so this reading is unreliable
            outcome.reason = StopReason.INTERRUPTED
            break

        if report is None:
            outcome.failures += 1
        else:
            emit(report)
            outcome.samples += 1

        outcome.iterations += 1
        if token.wait(config.interval):
            outcome.reason = StopReason.INTERRUPTED
            break

    if outcome.interrupted:
        emit(TERMINATION_NOTICE)

    logger.info(
        f'Sampling {outcome.reason.value}: {outcome.samples} samples, '
        f'{outcome.failures} failures in {outcome.iterations} iterations',
        extra={'interface': config.interface},
    )
    return outcome


def install_interrupt_handler(token: CancellationToken):
    """Route SIGINT to the token. Returns the previous handler."""

    def handle_interrupt(signum, frame):
        token.cancel()

    return signal.signal(signal.SIGINT, handle_interrupt)


def main(config_path: Optional[str] = None) -> int:
    setup_logging()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error(f'Invalid configuration: {e}')
        return 2
    if LEVEL_ENV not in os.environ:
        apply_logging_config(config)

    token = CancellationToken()
    previous_handler = install_interrupt_handler(token)
    try:
        run_sampling_loop(config.sampler, token=token)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
