"""Unit tests for the engine package."""

import asyncio
import base64
import os
import stat
from pathlib import Path

import pytest

from frameforge.config import EngineConfig

from .base import EngineError, EngineNotReadyError, EngineTimeoutError, GenerationOptions
from .catalog import AVAILABLE_MODELS, list_models
from .mlx import MLXEngine, model_argument, model_cache_path, parse_progress, sanitize_prompt
from .retry import RetryConfig, RetryStrategy, is_retryable_error, retry_with_backoff
from .timeout import OperationTimeoutError, with_timeout

FAKE_PYTHON = """#!/bin/sh
if [ "$1" = "-c" ]; then
  case "$2" in
    *platform*) echo "${FAKE_PY_VERSION:-3.11.4}"; exit 0;;
    *mlx*) [ -n "$FAKE_NO_MLX" ] && exit 1; echo "0.20.0"; exit 0;;
    *) echo "10.0"; exit 0;;
  esac
fi
out=""
while [ $# -gt 0 ]; do
  case "$1" in
    --output) out="$2"; shift 2;;
    --) shift; break;;
    *) shift;;
  esac
done
echo "$@" > "$out.prompt"
case "$FAKE_MODE" in
  fail) echo "kernel panic" >&2; exit 1;;
  hang) exec sleep 5;;
  pidhang) echo $$ > "$FAKE_PID_FILE"; exec sleep 30;;
  noimage) exit 0;;
esac
echo "Step 1/2"
echo "Step 2/2"
printf 'PNGDATA' > "$out"
"""


@pytest.fixture
def fake_python(tmp_path) -> Path:
    script = tmp_path / "fake-python"
    script.write_text(FAKE_PYTHON)
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return script


@pytest.fixture
def model_cache(tmp_path) -> Path:
    cache = tmp_path / "hub"
    model_cache_path(cache, "org/model-xl").mkdir(parents=True)
    return cache


@pytest.fixture
def engine(fake_python, model_cache) -> MLXEngine:
    return MLXEngine(
        EngineConfig(
            python_path=str(fake_python),
            model_name="org/model-xl",
            model_cache_dir=model_cache,
            timeout_ms=2000,
        )
    )


# =============================================================================
# Helpers
# =============================================================================


class TestSanitizePrompt:
    @pytest.mark.unit
    def test_strips_shell_and_control_characters(self):
        assert sanitize_prompt("  a `rm` $HOME \\ fox\x07  ") == "a rm HOME  fox"

    @pytest.mark.unit
    def test_keeps_newlines_and_tabs(self):
        assert sanitize_prompt("a\tb\nc") == "a\tb\nc"

    @pytest.mark.unit
    def test_caps_length(self):
        assert len(sanitize_prompt("x" * 1500)) == 1000

    @pytest.mark.unit
    def test_all_stripped_is_empty(self):
        assert sanitize_prompt("$$``") == ""


class TestModelArgument:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("stabilityai/sdxl-turbo", "sdxl"),
            ("stabilityai/stable-diffusion-xl-base-1.0", "sdxl"),
            ("stabilityai/stable-diffusion-2-1", "sd"),
        ],
    )
    def test_selects_flag(self, name, expected):
        assert model_argument(name) == expected


class TestParseProgress:
    @pytest.mark.unit
    def test_finds_markers(self):
        assert parse_progress("Step 3/20 ... Step 4/20") == [(3, 20), (4, 20)]

    @pytest.mark.unit
    def test_ignores_noise(self):
        assert parse_progress("loading weights") == []


# =============================================================================
# MLX Engine
# =============================================================================


class TestMLXEngineCommand:
    @pytest.mark.unit
    def test_builds_command_with_defaults(self, engine, tmp_path):
        args = engine.build_command(
            GenerationOptions(prompt="a fox", width=512, height=512, seed=7),
            tmp_path / "out.png",
        )
        assert args[1:3] == ["-m", "mlx_examples.stable_diffusion"]
        assert args[args.index("--model") + 1] == "sdxl"
        assert args[args.index("--steps") + 1] == "20"
        assert args[args.index("--cfg") + 1] == "7.5"
        assert args[args.index("--seed") + 1] == "7"
        assert args[-2:] == ["--", "a fox"]

    @pytest.mark.unit
    def test_rejects_empty_prompt(self, engine, tmp_path):
        with pytest.raises(EngineError, match="empty prompt"):
            engine.build_command(
                GenerationOptions(prompt="$`", width=512, height=512),
                tmp_path / "out.png",
            )


class TestMLXEngineStatus:
    @pytest.mark.asyncio
    async def test_ready(self, engine, model_cache):
        status = await engine.check_status()
        assert status.ready
        assert status.error is None
        assert {d.name for d in status.dependencies} == {"mlx", "PIL"}
        assert status.model_path.startswith(str(model_cache))

    @pytest.mark.asyncio
    async def test_missing_interpreter(self, tmp_path):
        engine = MLXEngine(EngineConfig(python_path=str(tmp_path / "nope")))
        status = await engine.check_status()
        assert not status.ready
        assert status.error.startswith("Python not found at")

    @pytest.mark.asyncio
    async def test_old_interpreter(self, engine, monkeypatch):
        monkeypatch.setenv("FAKE_PY_VERSION", "3.8.10")
        status = await engine.check_status()
        assert status.error == "Python 3.9+ required"

    @pytest.mark.asyncio
    async def test_missing_dependency(self, engine, monkeypatch):
        monkeypatch.setenv("FAKE_NO_MLX", "1")
        status = await engine.check_status()
        assert status.error == "Missing dependencies: mlx"

    @pytest.mark.asyncio
    async def test_missing_model(self, fake_python, tmp_path):
        engine = MLXEngine(
            EngineConfig(
                python_path=str(fake_python),
                model_name="org/absent",
                model_cache_dir=tmp_path,
            )
        )
        status = await engine.check_status()
        assert status.error == "Model org/absent not downloaded"

    @pytest.mark.asyncio
    async def test_initialize_raises_when_not_ready(self, tmp_path):
        engine = MLXEngine(EngineConfig(python_path=str(tmp_path / "nope")))
        with pytest.raises(EngineNotReadyError):
            await engine.initialize()


class TestMLXEngineGenerate:
    @pytest.mark.asyncio
    async def test_generates_inline_image_and_reports_progress(self, engine):
        progress = []
        result = await engine.generate(
            GenerationOptions(prompt="a fox", width=256, height=256),
            on_progress=lambda label, c, t: progress.append((label, c, t)),
        )
        assert base64.b64decode(result.image.data) == b"PNGDATA"
        assert result.metadata.engine_name == "mlx"
        assert result.metadata.model_name == "org/model-xl"
        assert result.metadata.width == 256
        assert result.metadata.steps == 20
        assert progress == [
            ("Generating (step 1/2)", 1, 2),
            ("Generating (step 2/2)", 2, 2),
        ]

    @pytest.mark.asyncio
    async def test_non_zero_exit_carries_stderr(self, engine, monkeypatch):
        monkeypatch.setenv("FAKE_MODE", "fail")
        with pytest.raises(EngineError, match="MLX generation failed: kernel panic"):
            await engine.generate(GenerationOptions(prompt="a fox", width=64, height=64))

    @pytest.mark.asyncio
    async def test_missing_output(self, engine, monkeypatch):
        monkeypatch.setenv("FAKE_MODE", "noimage")
        with pytest.raises(EngineError, match="no image"):
            await engine.generate(GenerationOptions(prompt="a fox", width=64, height=64))

    @pytest.mark.asyncio
    async def test_timeout_kills_subprocess(self, fake_python, model_cache, monkeypatch):
        monkeypatch.setenv("FAKE_MODE", "hang")
        engine = MLXEngine(
            EngineConfig(
                python_path=str(fake_python),
                model_name="org/model-xl",
                model_cache_dir=model_cache,
                timeout_ms=200,
            )
        )
        with pytest.raises(EngineTimeoutError, match="timeout after 200ms"):
            await engine.generate(GenerationOptions(prompt="a fox", width=64, height=64))

    @pytest.mark.asyncio
    async def test_outer_deadline_kills_subprocess(
        self, fake_python, model_cache, monkeypatch, tmp_path
    ):
        pid_file = tmp_path / "child.pid"
        monkeypatch.setenv("FAKE_MODE", "pidhang")
        monkeypatch.setenv("FAKE_PID_FILE", str(pid_file))
        engine = MLXEngine(
            EngineConfig(
                python_path=str(fake_python),
                model_name="org/model-xl",
                model_cache_dir=model_cache,
                timeout_ms=20000,
            )
        )

        with pytest.raises(OperationTimeoutError):
            await with_timeout(
                engine.generate(GenerationOptions(prompt="a fox", width=64, height=64)),
                timeout=0.5,
                operation_name="generate",
            )

        pid = int(pid_file.read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


# =============================================================================
# Model Catalog
# =============================================================================


class TestModelCatalog:
    @pytest.mark.unit
    def test_one_recommended_model(self):
        recommended = [m for m in AVAILABLE_MODELS if m.recommended]
        assert [m.huggingface_id for m in recommended] == ["stabilityai/stable-diffusion-2-1"]

    @pytest.mark.asyncio
    async def test_flags_downloaded_and_active(self, tmp_path):
        model_cache_path(tmp_path, "stabilityai/stable-diffusion-2-1-base").mkdir(parents=True)

        entries = {
            e.model.id: e
            for e in await list_models(tmp_path, "stabilityai/stable-diffusion-2-1-base")
        }

        assert entries["sd-2.1-base"].downloaded
        assert entries["sd-2.1-base"].active
        assert not entries["sd-2.1"].downloaded
        assert not entries["sd-2.1"].active
        assert entries["sd-2.1-base"].to_dict()["huggingface_id"] == (
            "stabilityai/stable-diffusion-2-1-base"
        )

    @pytest.mark.asyncio
    async def test_configured_model_outside_catalog_is_listed(self, model_cache):
        entries = await list_models(model_cache, "org/model-xl")

        custom = entries[-1]
        assert len(entries) == len(AVAILABLE_MODELS) + 1
        assert custom.model.id == "model-xl"
        assert custom.active and custom.downloaded

    @pytest.mark.asyncio
    async def test_without_cache_dir_nothing_is_downloaded(self):
        entries = await list_models(None, "stabilityai/stable-diffusion-2-1")
        assert not any(e.downloaded for e in entries)


# =============================================================================
# Retry
# =============================================================================


class _Flaky:
    def __init__(self, errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


async def _no_sleep(_delay):
    return None


class TestRetry:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "message",
        ["Request timeout", "ECONNREFUSED", "Out of memory", "503 Service Unavailable"],
    )
    def test_retryable_messages(self, message):
        assert is_retryable_error(RuntimeError(message))

    @pytest.mark.unit
    def test_validation_errors_not_retryable(self):
        assert not is_retryable_error(ValueError("prompt must not be empty"))

    @pytest.mark.unit
    def test_backoff_without_jitter_doubles_and_caps(self):
        strategy = RetryStrategy(RetryConfig(jitter=False))
        assert [strategy.get_backoff_delay(a) for a in range(5)] == [1, 2, 4, 8, 8]

    @pytest.mark.unit
    def test_jitter_bounds(self):
        low = RetryStrategy(RetryConfig(), rng=lambda: 0.0)
        high = RetryStrategy(RetryConfig(), rng=lambda: 0.999)
        assert low.get_backoff_delay(1) == pytest.approx(1.0)
        assert high.get_backoff_delay(1) < 2.0

    @pytest.mark.asyncio
    async def test_retries_transient_then_succeeds(self):
        fn = _Flaky([RuntimeError("timeout"), RuntimeError("rate limit")])
        retries = []
        strategy = RetryStrategy(RetryConfig(jitter=False), sleep=_no_sleep)
        result = await strategy.run(fn, on_retry=lambda a, e, d: retries.append((a, d)))
        assert result == "ok"
        assert fn.calls == 3
        assert retries == [(1, 1.0), (2, 2.0)]

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self):
        fn = _Flaky([ValueError("bad input")])
        strategy = RetryStrategy(sleep=_no_sleep)
        with pytest.raises(ValueError):
            await strategy.run(fn)
        assert fn.calls == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        fn = _Flaky([RuntimeError("timeout")] * 5)
        strategy = RetryStrategy(RetryConfig(max_attempts=3), sleep=_no_sleep)
        with pytest.raises(RuntimeError, match="timeout"):
            await strategy.run(fn)
        assert fn.calls == 3

    @pytest.mark.asyncio
    async def test_retry_with_backoff_shorthand(self):
        fn = _Flaky([])
        assert await retry_with_backoff(fn) == "ok"


# =============================================================================
# Timeout
# =============================================================================


class TestWithTimeout:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def work():
            return 42

        assert await with_timeout(work(), timeout=1.0) == 42

    @pytest.mark.asyncio
    async def test_raises_with_operation_name(self):
        with pytest.raises(OperationTimeoutError) as excinfo:
            await with_timeout(asyncio.sleep(1), timeout=0.05, operation_name="render")
        assert excinfo.value.operation_name == "render"
        assert "Operation 'render' timed out" in str(excinfo.value)
        assert isinstance(excinfo.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_emits_heartbeats(self):
        beats = []
        await with_timeout(
            asyncio.sleep(0.12),
            timeout=1.0,
            heartbeat_interval=0.03,
            on_heartbeat=lambda elapsed, total: beats.append(total),
        )
        assert beats
        assert all(total == 1.0 for total in beats)

    @pytest.mark.asyncio
    async def test_failing_heartbeat_callback_does_not_break_operation(self, caplog):
        calls = []

        def on_heartbeat(elapsed, total):
            calls.append(elapsed)
            raise RuntimeError("progress sink closed")

        async def work():
            await asyncio.sleep(0.12)
            return "done"

        result = await with_timeout(
            work(),
            timeout=1.0,
            operation_name="render",
            heartbeat_interval=0.03,
            on_heartbeat=on_heartbeat,
        )

        assert result == "done"
        assert len(calls) > 1
        assert "render heartbeat callback failed: progress sink closed" in caplog.text
