"""Discover source images and convert them in parallel.

`BatchConverter` walks the source root, picks the KTX2 or DXT converter,
fans the files out over a fixed-size thread pool, and applies the failure
policy: with ``skip_errors`` every failure is logged and the run goes on;
otherwise the first failure cancels work that has not started yet, lets
in-flight conversions finish, and is raised to the caller.
"""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from tqdm import tqdm

from .config import ContainerType, ConverterConfig, clamp_thread_count
from .converters import DxtConverter, ImageConverter, KtxConverter
from .core import find_images
from .errors import ConversionError
from .native.engine import TextureEngine

logger = logging.getLogger("texture_press.pipeline")

_PROGRESS_STEPS = 20


class BatchCancelledError(RuntimeError):
    """A job was skipped because the batch was cancelled before it started."""


class ProgressCounter:
    """Thread-safe count of finished jobs; used for reporting only."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass(frozen=True)
class BatchJob:
    """Immutable set of discovered images plus the shared progress counter."""

    paths: Tuple[str, ...]
    completed: ProgressCounter = field(default_factory=ProgressCounter, compare=False)

    @property
    def total(self) -> int:
        return len(self.paths)


@dataclass
class BatchResult:
    total: int = 0
    succeeded: List[str] = field(default_factory=list)
    failures: List[ConversionError] = field(default_factory=list)
    cancelled: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled


class BatchConverter:
    """Run one batch conversion described by a validated `ConverterConfig`."""

    def __init__(self, config: ConverterConfig, engine: Optional[TextureEngine] = None,
                 progress_callback: Optional[Callable[[int, int], None]] = None):
        self.config = config
        self._engine = engine
        self._progress_callback = progress_callback
        self._cancel_event = threading.Event()

    def request_cancel(self):
        self._cancel_event.set()

    def discover(self) -> BatchJob:
        rules = self.config.resolve_ignore_list()
        paths = find_images(self.config.from_directory, rules)
        logger.info("Found %d image(s) under %s", len(paths), self.config.from_directory)
        return BatchJob(tuple(paths))

    def build_converter(self) -> ImageConverter:
        container = self.config.container
        if container is ContainerType.DXT:
            return DxtConverter(self.config)
        converter = KtxConverter(self.config, self._engine)
        # Load the native library before any job is dispatched.
        self._engine = converter.engine
        return converter

    def _report_progress(self, job: BatchJob, done: int) -> None:
        total = job.total
        if self.config.verbose and total > _PROGRESS_STEPS and done % (total // _PROGRESS_STEPS) == 0:
            logger.info("Processed %d%% of images", done * 100 // total)
        if self._progress_callback is not None:
            try:
                self._progress_callback(done, total)
            except Exception:
                logger.debug("Progress callback failed.", exc_info=True)

    def _run_one(self, converter: ImageConverter, path: str) -> str:
        if self._cancel_event.is_set():
            raise BatchCancelledError(f"Skipped {path}: batch cancelled")
        try:
            return converter.convert(path)
        except ConversionError:
            raise
        except Exception as exc:
            raise ConversionError(path, exc) from exc

    def run(self, job: Optional[BatchJob] = None) -> BatchResult:
        """Convert every image in `job` (discovered if omitted).

        Raises the first `ConversionError` when ``skip_errors`` is off.
        """
        if job is None:
            job = self.discover()
        result = BatchResult(total=job.total)
        if not job.paths:
            logger.info("No images to convert.")
            return result

        self._cancel_event.clear()
        converter = self.build_converter()
        workers = clamp_thread_count(self.config.number_of_threads)
        logger.info(
            "Converting %d image(s) to %s with %d worker(s)",
            job.total, self.config.container.value, workers,
        )

        first_error: Optional[ConversionError] = None
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="texture_press")
        try:
            futures = {executor.submit(self._run_one, converter, path): path for path in job.paths}
            pending = set(futures)
            with tqdm(total=job.total, desc="Converting", unit="img",
                      disable=not self.config.verbose) as pbar:
                while pending:
                    if self._cancel_event.is_set():
                        for other in pending:
                            other.cancel()
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for future in done:
                        path = futures[future]
                        if future.cancelled():
                            result.cancelled += 1
                            continue
                        try:
                            output_path = future.result()
                        except BatchCancelledError:
                            result.cancelled += 1
                            continue
                        except ConversionError as exc:
                            result.failures.append(exc)
                            if self.config.skip_errors:
                                logger.error("Skipping %s: %s", path, exc.cause)
                            elif first_error is None:
                                first_error = exc
                                logger.error("Aborting batch on %s: %s", path, exc.cause)
                                self._cancel_event.set()
                            else:
                                logger.error("Also failed while aborting: %s: %s", path, exc.cause)
                        else:
                            result.succeeded.append(output_path)
                        pbar.update(1)
                        self._report_progress(job, job.completed.increment())
        except BaseException:
            # Interrupted coordinator: drop queued work before shutdown.
            self._cancel_event.set()
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=self._cancel_event.is_set())

        logger.info(
            "Batch finished: %d converted, %d failed, %d cancelled (of %d)",
            len(result.succeeded), len(result.failures), result.cancelled, result.total,
        )
        if first_error is not None:
            raise first_error
        return result
