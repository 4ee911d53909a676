"""Batch pipeline: fetch, convert and write many LCSC parts concurrently.

Each part runs in its own worker thread, at most ``concurrency`` at a time,
dispatched in input order. Workers never touch the library files directly:
every read and write goes through a single :class:`LibraryWriter` thread, so
the symbol library is never written by two threads at once. A failure is
contained to its own part; without ``continue_on_error`` it stops further
dispatch while parts already running finish normally.
"""
import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .converter import Conversion, ModelData, convert_component
from .easyeda import api
from .easyeda.api import validate_lcsc_id
from .errors import NlbnError
from .kicad.library import (
    OUTPUT_FOOTPRINT,
    OUTPUT_MODEL,
    OUTPUT_SYMBOL,
    LibraryPaths,
    add_symbol_to_lib,
    ensure_lib_structure,
    find_existing,
    save_footprint,
    write_models,
)
from .kicad.pin_types import PinTypeRules
from .kicad.version import DEFAULT_KICAD_VERSION, validate_kicad_version

logger = logging.getLogger(__name__)

OUTPUT_ORDER = (OUTPUT_SYMBOL, OUTPUT_FOOTPRINT, OUTPUT_MODEL)


class ComponentState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    CONVERTING = "converting"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"
    SKIPPED_EXISTING = "skipped_existing"


class ResultStatus(str, Enum):
    CONVERTED = "converted"
    SKIPPED_EXISTING = "skipped_existing"
    FAILED = "failed"


@dataclass
class BatchOptions:
    output_dir: str = "."
    lib_name: str = "nlbn"
    symbol: bool = False
    footprint: bool = False
    model: bool = False
    concurrency: int = 4
    continue_on_error: bool = False
    overwrite: bool = False
    kicad_version: int = DEFAULT_KICAD_VERSION
    strict: bool = False
    project_relative: bool = False
    pin_rules: Optional[PinTypeRules] = None

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        validate_kicad_version(self.kicad_version)

    @property
    def requested_outputs(self) -> List[str]:
        flags = {OUTPUT_SYMBOL: self.symbol, OUTPUT_FOOTPRINT: self.footprint, OUTPUT_MODEL: self.model}
        return [kind for kind in OUTPUT_ORDER if flags[kind]]

    @property
    def paths(self) -> LibraryPaths:
        return LibraryPaths.for_output(self.output_dir, self.lib_name, self.kicad_version)


@dataclass
class OutputResult:
    status: ResultStatus
    error_kind: str = ""
    message: str = ""


@dataclass
class BatchResult:
    lcsc_id: str
    status: ResultStatus
    name: str = ""
    error_kind: str = ""
    message: str = ""
    stage: str = ""
    outputs: Dict[str, OutputResult] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status == ResultStatus.FAILED


@dataclass
class BatchReport:
    results: List[BatchResult] = field(default_factory=list)
    not_dispatched: List[str] = field(default_factory=list)
    halted_by: Optional[str] = None

    @property
    def failures(self) -> List[BatchResult]:
        return [r for r in self.results if r.failed]

    @property
    def ok(self) -> bool:
        return not self.failures and not self.not_dispatched

    def count(self, status: ResultStatus) -> int:
        return sum(1 for r in self.results if r.status == status)


class LibraryWriter:
    """Owns the library files; runs submitted calls one at a time.

    Use as a context manager. :meth:`call` blocks the calling worker until
    its request has run and re-raises whatever the request raised.
    """

    def __init__(self):
        self._queue: "queue.Queue[Optional[Tuple[Callable, tuple, Future]]]" = queue.Queue()
        self._thread = threading.Thread(target=self._run, name="nlbn-library-writer", daemon=True)

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._queue.put(None)
        self._thread.join()

    def submit(self, fn: Callable, *args) -> Future:
        future: Future = Future()
        self._queue.put((fn, args, future))
        return future

    def call(self, fn: Callable, *args):
        return self.submit(fn, *args).result()

    def _run(self):
        while True:
            item = self._queue.get()
            if item is None:
                break
            fn, args, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args))
            except BaseException as e:  # delivered to the waiting worker
                future.set_exception(e)


class BatchPipeline:
    """Run the fetch, convert and write stages for a list of LCSC IDs.

    ``fetch``, ``download_step`` and ``download_obj`` default to the EasyEDA
    client and can be replaced, e.g. by tests. ``log`` receives progress
    lines for the user.
    """

    def __init__(
        self,
        options: BatchOptions,
        fetch: Callable = api.fetch_component,
        download_step: Callable = api.download_step,
        download_obj: Callable = api.download_obj,
        log: Callable[[str], None] = print,
    ):
        self.options = options
        self.paths = options.paths
        self._fetch = fetch
        self._download_step = download_step
        self._download_obj = download_obj
        self._log = log
        self._lock = threading.Lock()
        self.states: Dict[str, ComponentState] = {}
        self.transitions: List[Tuple[str, ComponentState]] = []

    def _set_state(self, lcsc_id: str, state: ComponentState) -> None:
        with self._lock:
            self.states[lcsc_id] = state
            self.transitions.append((lcsc_id, state))
        logger.debug("%s -> %s", lcsc_id, state.value)

    def run(self, lcsc_ids: Sequence[str]) -> BatchReport:
        ids = list(lcsc_ids)
        total = len(ids)
        results: Dict[int, BatchResult] = {}
        report = BatchReport()
        halt = threading.Event()
        slots = threading.BoundedSemaphore(self.options.concurrency)
        workers = []

        for lcsc_id in ids:
            self._set_state(lcsc_id, ComponentState.PENDING)

        def worker(index: int, lcsc_id: str, writer: LibraryWriter) -> None:
            try:
                self._log(f"[{index + 1}/{total}] Processing: {lcsc_id}")
                result = self._process(lcsc_id, writer)
                with self._lock:
                    results[index] = result
                    if result.failed and not self.options.continue_on_error and report.halted_by is None:
                        report.halted_by = lcsc_id
                if result.failed and not self.options.continue_on_error:
                    # Set before the slot is released so the dispatcher sees it
                    halt.set()
            finally:
                slots.release()

        with LibraryWriter() as writer:
            for index, lcsc_id in enumerate(ids):
                slots.acquire()
                if halt.is_set():
                    slots.release()
                    report.not_dispatched = ids[index:]
                    break
                t = threading.Thread(target=worker, args=(index, lcsc_id, writer), name=f"nlbn-{lcsc_id}", daemon=True)
                workers.append(t)
                t.start()
            for t in workers:
                t.join()

        report.results = [results[i] for i in sorted(results)]
        if report.not_dispatched:
            logger.info("Stopped after failure of %s; %d part(s) not processed", report.halted_by, len(report.not_dispatched))
        return report

    def _process(self, lcsc_id: str, writer: LibraryWriter) -> BatchResult:
        """Run one part through all stages. Never raises."""
        stage = ComponentState.PENDING
        try:
            try:
                lcsc_id = validate_lcsc_id(lcsc_id)
            except ValueError as e:
                return self._failed(lcsc_id, "InvalidId", str(e), "pending")

            requested = self.options.requested_outputs
            if not self.options.overwrite:
                existing = writer.call(find_existing, self.paths, lcsc_id)
                if requested and set(requested) <= existing:
                    self._set_state(lcsc_id, ComponentState.SKIPPED_EXISTING)
                    self._log(f"  {lcsc_id}: already in library, skipped")
                    return BatchResult(
                        lcsc_id,
                        ResultStatus.SKIPPED_EXISTING,
                        outputs={k: OutputResult(ResultStatus.SKIPPED_EXISTING) for k in requested},
                    )

            stage = ComponentState.FETCHING
            self._set_state(lcsc_id, stage)
            source = self._fetch(lcsc_id)
            model_data = None
            if self.options.model and source.model is not None:
                model_data = ModelData(
                    step=self._download(self._download_step, lcsc_id, source.model.uuid),
                    obj=self._download(self._download_obj, lcsc_id, source.model.uuid),
                )

            stage = ComponentState.CONVERTING
            self._set_state(lcsc_id, stage)
            conversion = convert_component(
                source,
                self.paths,
                symbol=self.options.symbol,
                footprint=self.options.footprint,
                model=self.options.model,
                model_data=model_data,
                strict=self.options.strict,
                project_relative=self.options.project_relative,
                pin_rules=self.options.pin_rules,
            )

            stage = ComponentState.WRITING
            self._set_state(lcsc_id, stage)
            outputs = self._write(conversion, writer)
        except NlbnError as e:
            logger.debug("%s failed while %s", lcsc_id, stage.value, exc_info=True)
            return self._failed(lcsc_id, e.kind, str(e), stage.value)
        except Exception as e:  # contained to this part
            logger.exception("Unexpected error processing %s", lcsc_id)
            return self._failed(lcsc_id, type(e).__name__, str(e), stage.value)

        return self._finish(lcsc_id, conversion, outputs)

    def _download(self, download: Callable, lcsc_id: str, uuid: str):
        """Run one model download; a failure only costs the model output."""
        try:
            return download(uuid)
        except Exception as e:  # contained to the model output
            logger.warning("%s: 3D model %s download failed: %s", lcsc_id, uuid, e)
            return None

    def _write(self, conversion: Conversion, writer: LibraryWriter) -> Dict[str, OutputResult]:
        opts = self.options
        paths = self.paths
        outputs: Dict[str, OutputResult] = {}
        for kind, error in conversion.errors.items():
            outputs[kind] = OutputResult(ResultStatus.FAILED, error.kind, str(error))

        pending = []
        if conversion.symbol is not None:
            pending.append(
                (
                    OUTPUT_SYMBOL,
                    add_symbol_to_lib,
                    (paths.sym_path, conversion.name, conversion.symbol, opts.overwrite, opts.kicad_version),
                )
            )
        if conversion.footprint is not None:
            pending.append((OUTPUT_FOOTPRINT, save_footprint, (paths.fp_dir, conversion.name, conversion.footprint, opts.overwrite)))
        if conversion.model is not None:
            pending.append((OUTPUT_MODEL, write_models, (paths.models_dir, conversion.model, opts.overwrite)))

        if pending:
            writer.call(ensure_lib_structure, paths)
        for kind, fn, args in pending:
            written = writer.call(fn, *args)
            outputs[kind] = OutputResult(ResultStatus.CONVERTED if written else ResultStatus.SKIPPED_EXISTING)
        return outputs

    def _finish(self, lcsc_id: str, conversion: Conversion, outputs: Dict[str, OutputResult]) -> BatchResult:
        ordered = {kind: outputs[kind] for kind in OUTPUT_ORDER if kind in outputs}
        statuses = [o.status for o in ordered.values()]
        result = BatchResult(lcsc_id, ResultStatus.FAILED, name=conversion.name, outputs=ordered, warnings=conversion.warnings)

        if ResultStatus.CONVERTED in statuses:
            result.status = ResultStatus.CONVERTED
        elif statuses and all(s == ResultStatus.SKIPPED_EXISTING for s in statuses):
            result.status = ResultStatus.SKIPPED_EXISTING
        else:
            first = next((o for o in ordered.values() if o.status == ResultStatus.FAILED), None)
            result.error_kind = first.error_kind if first else "NothingRequested"
            result.message = first.message if first else "no output was requested"
            result.stage = ComponentState.CONVERTING.value

        if result.status == ResultStatus.FAILED:
            self._set_state(lcsc_id, ComponentState.FAILED)
            self._log(f"  {lcsc_id}: failed ({result.error_kind}: {result.message})")
        elif result.status == ResultStatus.SKIPPED_EXISTING:
            self._set_state(lcsc_id, ComponentState.SKIPPED_EXISTING)
            self._log(f"  {lcsc_id}: already in library, skipped")
        else:
            self._set_state(lcsc_id, ComponentState.DONE)
            done = ", ".join(k for k, o in ordered.items() if o.status == ResultStatus.CONVERTED)
            self._log(f"  {lcsc_id}: {conversion.name} ({done})")
        return result

    def _failed(self, lcsc_id: str, kind: str, message: str, stage: str) -> BatchResult:
        self._set_state(lcsc_id, ComponentState.FAILED)
        self._log(f"  {lcsc_id}: failed ({kind}: {message})")
        return BatchResult(lcsc_id, ResultStatus.FAILED, error_kind=kind, message=message, stage=stage)
