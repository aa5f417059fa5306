"""Integration tests for the sampling loop: iwconfig → parse → grade → print."""

import logging
from unittest.mock import patch

import pytest

import signal_sampler
from config import SamplerConfig, SignalSamplerConfig
from signal_sampler import (
    FAILURE_MESSAGE,
    TERMINATION_NOTICE,
    SignalSampler,
    StopReason,
    run_sampling_loop,
)
from tests.fixtures.mock_data import EXPECTED_FULL_LINE_BODY
from tests.fixtures.mock_helpers import (
    RecordingToken,
    ScriptedRunner,
    failed_result,
    ok_result,
)


@pytest.mark.integration
class TestSamplingLoop:
    """Complete runs of the loop with the subprocess layer mocked out."""

    def test_all_excellent_sample(self, sampler, mock_subprocess, recording_token):
        lines = []
        config = SamplerConfig(iterations=1)

        outcome = run_sampling_loop(config, sampler=sampler, token=recording_token, emit=lines.append)

        assert outcome.reason is StopReason.COMPLETED
        assert lines == [f'2024年05月01日 09:03:07  {EXPECTED_FULL_LINE_BODY}']
        assert '信号強度: -45 dBm（優良）' in lines[0]
        assert 'リンク品質: 60/70（優良）' in lines[0]

    def test_runs_configured_iterations_with_pauses(self, sampler, mock_subprocess, recording_token):
        lines = []
        outcome = run_sampling_loop(SamplerConfig(), sampler=sampler, token=recording_token, emit=lines.append)

        assert outcome.iterations == 30
        assert outcome.samples == 30
        assert outcome.failures == 0
        assert len(lines) == 30
        assert recording_token.waits == [3.0] * 30
        assert mock_subprocess.call_count == 30

    def test_failed_sample_logs_and_continues(self, fixed_clock, recording_token, sampler_logs):
        runner = ScriptedRunner([failed_result('device not found'), ok_result()])
        sampler = SignalSampler(runner=runner, clock=fixed_clock)
        lines = []

        outcome = run_sampling_loop(
            SamplerConfig(iterations=2), sampler=sampler, token=recording_token, emit=lines.append
        )

        assert outcome.reason is StopReason.COMPLETED
        assert outcome.failures == 1
        assert outcome.samples == 1
        # The failed iteration prints nothing but still pauses
        assert len(lines) == 1
        assert recording_token.waits == [3.0, 3.0]
        errors = [r.getMessage() for r in sampler_logs.records if r.levelno == logging.ERROR]
        assert errors == [f'{FAILURE_MESSAGE}: device not found']

    def test_interrupt_during_fifth_sample(self, fixed_clock, recording_token):
        runner = ScriptedRunner(
            [ok_result()],
            on_call=lambda n: recording_token.cancel() if n == 5 else None,
        )
        sampler = SignalSampler(runner=runner, clock=fixed_clock)
        lines = []

        outcome = run_sampling_loop(SamplerConfig(), sampler=sampler, token=recording_token, emit=lines.append)

        assert outcome.reason is StopReason.INTERRUPTED
        assert outcome.interrupted is True
        assert len(runner.calls) == 5
        assert outcome.iterations == 4
        assert lines[-1] == TERMINATION_NOTICE
        assert len(lines) == 5

    def test_interrupt_killing_the_command_prints_only_notice(self, fixed_clock, recording_token, sampler_logs):
        runner = ScriptedRunner(
            [failed_result(stderr='', returncode=-2)],
            on_call=lambda n: recording_token.cancel(),
        )
        sampler = SignalSampler(runner=runner, clock=fixed_clock)
        lines = []

        outcome = run_sampling_loop(SamplerConfig(), sampler=sampler, token=recording_token, emit=lines.append)

        assert outcome.interrupted is True
        assert outcome.failures == 0
        assert lines == [TERMINATION_NOTICE]
        assert not [r for r in sampler_logs.records if r.levelno == logging.ERROR]

    def test_interrupt_during_fifth_pause(self, sampler, mock_subprocess):
        token = RecordingToken(cancel_on_wait=5)
        lines = []

        outcome = run_sampling_loop(SamplerConfig(), sampler=sampler, token=token, emit=lines.append)

        assert outcome.reason is StopReason.INTERRUPTED
        assert outcome.iterations == 5
        assert outcome.samples == 5
        assert mock_subprocess.call_count == 5
        assert lines[-1] == TERMINATION_NOTICE

    def test_cancelled_before_start(self, sampler, mock_subprocess, recording_token):
        recording_token.cancel()
        lines = []

        outcome = run_sampling_loop(SamplerConfig(), sampler=sampler, token=recording_token, emit=lines.append)

        assert outcome.iterations == 0
        assert mock_subprocess.call_count == 0
        assert lines == [TERMINATION_NOTICE]

    def test_completed_run_has_no_notice(self, sampler, mock_subprocess, recording_token):
        lines = []
        run_sampling_loop(SamplerConfig(iterations=3), sampler=sampler, token=recording_token, emit=lines.append)
        assert TERMINATION_NOTICE not in lines

    def test_summary_logged(self, sampler, mock_subprocess, recording_token, sampler_logs):
        run_sampling_loop(SamplerConfig(iterations=2), sampler=sampler, token=recording_token, emit=lambda line: None)
        assert 'Sampling completed: 2 samples, 0 failures in 2 iterations' in sampler_logs.text

    def test_builds_sampler_from_config(self, mock_subprocess, recording_token):
        config = SamplerConfig(interface='wlan0', iterations=1, command='iwconfig')
        run_sampling_loop(config, token=recording_token, emit=lambda line: None)
        assert mock_subprocess.call_args[0][0] == ['iwconfig', 'wlan0']

    def test_prints_to_stdout_by_default(self, sampler, mock_subprocess, recording_token, capsys):
        run_sampling_loop(SamplerConfig(iterations=1), sampler=sampler, token=recording_token)
        assert EXPECTED_FULL_LINE_BODY in capsys.readouterr().out


@pytest.mark.integration
class TestMain:
    def test_main_runs_configured_loop(self, clean_env, tmp_path, mock_subprocess, capsys):
        config_file = tmp_path / 'signal_sampler.yaml'
        config_file.write_text('sampler:\n  iterations: 2\n  interval: 0\n', encoding='utf-8')

        with patch('signal_sampler.setup_logging'), patch('signal.signal') as mock_signal:
            assert signal_sampler.main(str(config_file)) == 0

        out = capsys.readouterr().out
        assert out.count('ネットワーク名: HomeNet') == 2
        # Handler installed, then the previous one restored
        assert mock_signal.call_count == 2

    def test_main_rejects_invalid_config(self, clean_env, tmp_path, mock_subprocess):
        config_file = tmp_path / 'bad.yaml'
        config_file.write_text('sampler:\n  iterations: 0\n', encoding='utf-8')

        with patch('signal_sampler.setup_logging'):
            assert signal_sampler.main(str(config_file)) == 2
        assert mock_subprocess.call_count == 0

    def test_main_rejects_scalar_section(self, clean_env, tmp_path, mock_subprocess):
        config_file = tmp_path / 'scalar.yaml'
        config_file.write_text('sampler: wlan1\n', encoding='utf-8')

        with patch('signal_sampler.setup_logging'):
            assert signal_sampler.main(str(config_file)) == 2
        assert mock_subprocess.call_count == 0

    def test_main_returns_zero_when_interrupted(self, clean_env, mock_subprocess, capsys):
        def cancel_first_wait(self, timeout):
            self.cancel()
            return True

        with (
            patch('signal_sampler.setup_logging'),
            patch('signal_sampler.load_config') as mock_load,
            patch('signal.signal'),
            patch.object(signal_sampler.CancellationToken, 'wait', cancel_first_wait),
        ):
            mock_load.return_value = SignalSamplerConfig()
            assert signal_sampler.main() == 0

        assert capsys.readouterr().out.endswith(f'{TERMINATION_NOTICE}\n')
        assert mock_subprocess.call_count == 1
