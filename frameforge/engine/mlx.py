"""MLX Stable Diffusion engine driven through a Python subprocess."""

import asyncio
import base64
import logging
import re
import shutil
import tempfile
import time
from pathlib import Path

import aiofiles.os

from frameforge.config import EngineConfig, get_engine_config
from frameforge.core.fs import read_bytes
from frameforge.session.models import GenerationMetadata, GenerationResult

from .base import (
    DependencyStatus,
    EngineError,
    EngineNotReadyError,
    EngineStatus,
    EngineTimeoutError,
    GenerationOptions,
    ImageEngine,
    ProgressCallback,
)

logger = logging.getLogger(__name__)

ENGINE_NAME = "mlx"
GENERATION_MODULE = "mlx_examples.stable_diffusion"
REQUIRED_MODULES = ("mlx", "PIL")
MAX_PROMPT_LENGTH = 1000

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]")
_SHELL_CHARS = re.compile(r"[`$\\]")
_STEP_PATTERN = re.compile(r"Step (\d+)/(\d+)")


def sanitize_prompt(prompt: str) -> str:
    """Strip control and shell metacharacters and cap the length."""
    cleaned = _SHELL_CHARS.sub("", _CONTROL_CHARS.sub("", prompt)).strip()
    return cleaned[:MAX_PROMPT_LENGTH]


def model_argument(model_name: str) -> str:
    """Map a model identifier to the generator's ``--model`` flag."""
    lowered = model_name.lower()
    return "sdxl" if "sdxl" in lowered or "xl" in lowered else "sd"


def model_cache_path(cache_dir: Path, model_name: str) -> Path:
    """Hugging Face hub cache directory for a model."""
    return cache_dir / f"models--{model_name.replace('/', '--')}"


def _version_tuple(version: str) -> tuple[int, ...]:
    parts = []
    for piece in version.strip().split("."):
        digits = re.match(r"\d+", piece)
        if digits is None:
            break
        parts.append(int(digits.group()))
    return tuple(parts)


def parse_progress(text: str) -> list[tuple[int, int]]:
    """Extract every ``Step c/t`` marker from a chunk of output."""
    return [(int(c), int(t)) for c, t in _STEP_PATTERN.findall(text)]


class MLXEngine(ImageEngine):
    """Runs MLX Stable Diffusion in a child interpreter.

    One subprocess per generation. The image is written to a temporary
    file, read back and returned inline as base64.

    Example:
        >>> engine = MLXEngine()
        >>> await engine.initialize()
        >>> result = await engine.generate(GenerationOptions("a fox", 512, 512))
    """

    def __init__(self, config: EngineConfig | None = None):
        super().__init__(ENGINE_NAME)
        self._config = config or get_engine_config()
        self._python = self._resolve_python(self._config.python_path)
        self._initialized = False

    @staticmethod
    def _resolve_python(python_path: str) -> str:
        if python_path.startswith("."):
            return str(Path.cwd() / python_path)
        return python_path

    @property
    def config(self) -> EngineConfig:
        return self._config

    # =========================================================================
    # Status
    # =========================================================================

    async def _run_interpreter(self, *args: str) -> tuple[int, str]:
        """Run the configured interpreter with args, return (exit code, stdout)."""
        try:
            process = await asyncio.create_subprocess_exec(
                self._python,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.debug(f"Failed to start {self._python}: {e}")
            return -1, ""
        stdout, _ = await process.communicate()
        return process.returncode, stdout.decode(errors="replace").strip()

    async def _python_version(self) -> str | None:
        code, out = await self._run_interpreter(
            "-c", "import platform; print(platform.python_version())"
        )
        return out if code == 0 and out else None

    async def _check_dependency(self, module: str) -> DependencyStatus:
        code, out = await self._run_interpreter(
            "-c",
            f"import {module}; print(getattr({module}, '__version__', ''))",
        )
        return DependencyStatus(
            name=module, installed=code == 0, version=(out or None) if code == 0 else None
        )

    def _model_path(self) -> Path | None:
        cache_dir = self._config.model_cache_dir
        if cache_dir is None:
            return None
        path = model_cache_path(cache_dir, self._config.model_name)
        return path if path.is_dir() else None

    async def check_status(self) -> EngineStatus:
        """Check interpreter, dependencies and model cache."""
        status = EngineStatus(ready=False, engine_name=self.name)

        version = await self._python_version()
        if version is None:
            status.error = f"Python not found at {self._python}"
            return status
        if _version_tuple(version) < _version_tuple(self._config.python_min_version):
            status.error = f"Python {self._config.python_min_version}+ required"
            return status

        status.dependencies = list(
            await asyncio.gather(*(self._check_dependency(m) for m in REQUIRED_MODULES))
        )
        missing = [d.name for d in status.dependencies if not d.installed]
        if missing:
            status.error = f"Missing dependencies: {', '.join(missing)}"
            return status

        model_path = self._model_path()
        if model_path is None:
            status.error = f"Model {self._config.model_name} not downloaded"
            return status

        status.model_path = str(model_path)
        status.ready = True
        return status

    async def initialize(self) -> None:
        status = await self.check_status()
        if not status.ready:
            raise EngineNotReadyError(status.error or "MLX engine not ready")
        self._initialized = True
        logger.info(
            f"MLX engine ready: model={self._config.model_name}, "
            f"path={status.model_path}"
        )

    # =========================================================================
    # Generation
    # =========================================================================

    def build_command(self, options: GenerationOptions, output_path: Path) -> list[str]:
        """Argument vector for one generation run.

        Raises:
            EngineError: If the prompt is empty after sanitization.
        """
        prompt = sanitize_prompt(options.prompt)
        if not prompt:
            raise EngineError("Invalid or empty prompt after sanitization")

        steps = options.steps or self._config.steps
        guidance = options.guidance_scale or self._config.guidance_scale
        args = [
            self._python,
            "-m",
            GENERATION_MODULE,
            "--model",
            model_argument(self._config.model_name),
            "--steps",
            str(steps),
            "--cfg",
            str(guidance),
            "--output",
            str(output_path),
        ]
        if options.seed is not None:
            args += ["--seed", str(options.seed)]
        args += ["--", prompt]
        return args

    async def _pump_stdout(
        self,
        stream: asyncio.StreamReader,
        on_progress: ProgressCallback | None,
    ) -> None:
        pending = ""
        while chunk := await stream.read(1024):
            pending += chunk.decode(errors="replace")
            # Keep the tail in case a marker is split across chunks.
            *complete, pending = re.split(r"[\r\n]", pending)
            for line in complete:
                self._report_progress(line, on_progress)
        self._report_progress(pending, on_progress)

    @staticmethod
    def _report_progress(text: str, on_progress: ProgressCallback | None) -> None:
        if on_progress is None:
            return
        for current, total in parse_progress(text):
            on_progress(f"Generating (step {current}/{total})", current, total)

    async def _run_generation(
        self,
        args: list[str],
        on_progress: ProgressCallback | None,
    ) -> None:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        logger.debug(f"Started generation subprocess pid={process.pid}")

        async def collect() -> bytes:
            stderr_task = asyncio.create_task(process.stderr.read())
            await self._pump_stdout(process.stdout, on_progress)
            stderr = await stderr_task
            await process.wait()
            return stderr

        try:
            stderr = await asyncio.wait_for(collect(), self._config.timeout_ms / 1000)
        except TimeoutError:
            logger.error(
                f"Generation subprocess pid={process.pid} exceeded "
                f"{self._config.timeout_ms}ms, killing"
            )
            raise EngineTimeoutError(self._config.timeout_ms) from None
        finally:
            # Also reached when the caller cancels, e.g. an outer deadline.
            if process.returncode is None:
                logger.debug(f"Killing generation subprocess pid={process.pid}")
                process.kill()
                await process.wait()

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()
            raise EngineError(f"MLX generation failed: {message}")

    async def generate(
        self,
        options: GenerationOptions,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        start = time.perf_counter()
        workdir = Path(tempfile.mkdtemp(prefix="frameforge-"))
        output_path = workdir / "output.png"

        try:
            args = self.build_command(options, output_path)
            await self._run_generation(args, on_progress)
            if not await aiofiles.os.path.exists(output_path):
                raise EngineError("MLX generation produced no image")
            image = await read_bytes(output_path)
        except EngineError:
            raise
        except OSError as e:
            raise EngineError(f"Failed to generate image: {e}") from e
        finally:
            await asyncio.to_thread(shutil.rmtree, workdir, True)

        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(f"Generated {options.width}x{options.height} image in {latency_ms:.0f}ms")

        metadata = GenerationMetadata(
            prompt=options.prompt,
            width=options.width,
            height=options.height,
            steps=options.steps or self._config.steps,
            guidance_scale=options.guidance_scale or self._config.guidance_scale,
            latency_ms=latency_ms,
            engine_name=self.name,
            model_name=self._config.model_name,
            seed=options.seed,
        )
        return GenerationResult.inline(base64.b64encode(image).decode("ascii"), metadata)

    async def cleanup(self) -> None:
        self._initialized = False


__all__ = [
    "MLXEngine",
    "sanitize_prompt",
    "model_argument",
    "model_cache_path",
    "parse_progress",
]
