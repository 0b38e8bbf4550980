from __future__ import annotations

import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Sequence

from .accumulator import SparseMatrixAccumulator, merge_partials
from .emitter import EmitterStrategy, get_emitter
from .errors import MalformedRecordError
from .matrix import SparseMatrix
from .similarity import DegenerateCallback, SimilarityTransformer
from .symmetry import expand_symmetric


ProgressCallback = Callable[[int], None]
MalformedCallback = Callable[[MalformedRecordError], None]


class RatingLike(Protocol):
    item: int
    rating: float


class RecordLike(Protocol):
    ratings: Sequence[RatingLike]


class PipelineState(str, Enum):
    READY = "ready"
    ACCUMULATING = "accumulating"
    EXPANDING = "expanding"
    COSINE_TRANSFORMING = "cosine_transforming"
    ROW_NORMALIZING = "row_normalizing"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class ItemCFConfig:
    threshold: float = 0.5
    row_norm: bool = False
    emitter: EmitterStrategy = EmitterStrategy.UNIT
    skip_malformed: bool = True
    progress_every: int = 100_000
    workers: int = 1
    chunk_size: int = 10_000

    def __post_init__(self) -> None:
        object.__setattr__(self, "emitter", EmitterStrategy.parse(self.emitter))
        object.__setattr__(self, "threshold", float(self.threshold))
        for name in ("progress_every", "workers", "chunk_size"):
            object.__setattr__(self, name, int(getattr(self, name)))
        if not math.isfinite(self.threshold):
            raise ValueError(f"threshold must be finite, got {self.threshold}")
        if int(self.progress_every) <= 0:
            raise ValueError(f"progress_every must be > 0, got {self.progress_every}")
        if int(self.workers) < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if int(self.chunk_size) <= 0:
            raise ValueError(f"chunk_size must be > 0, got {self.chunk_size}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None, **overrides: Any) -> "ItemCFConfig":
        """Build from a config mapping (e.g. the YAML `item_cf` section).

        Unknown keys are rejected; `None` overrides are ignored.
        """
        raw = dict(raw or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(f"Unknown item_cf config keys: {unknown}")
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls(
            threshold=float(raw.get("threshold", 0.5)),
            row_norm=bool(raw.get("row_norm", False)),
            emitter=EmitterStrategy.parse(raw.get("emitter", EmitterStrategy.UNIT)),
            skip_malformed=bool(raw.get("skip_malformed", True)),
            progress_every=int(raw.get("progress_every", 100_000)),
            workers=int(raw.get("workers", 1)),
            chunk_size=int(raw.get("chunk_size", 10_000)),
        )

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["emitter"] = self.emitter.value
        return d


@dataclass
class RunStats:
    records_seen: int = 0
    records_skipped: int = 0
    users_with_items: int = 0
    merges: int = 0
    accumulated_cells: int = 0
    accumulated_rows: int = 0
    accumulated_columns: int = 0
    items: int = 0
    final_cells: int = 0
    dropped_cells: int = 0
    zero_sum_rows: int = 0


@dataclass(frozen=True)
class ItemCFResult:
    matrix: SparseMatrix
    stats: RunStats
    config: ItemCFConfig


def qualifying_items(ratings: Iterable[RatingLike], threshold: float) -> list[int]:
    """Items whose rating meets the threshold, in input order."""
    return [r.item for r in ratings if r.rating >= threshold]


def _accumulate_chunk(records: list[RecordLike], threshold: float, emitter: str) -> tuple[SparseMatrix, int, int]:
    # Runs in worker processes: module-level so it pickles.
    emit = get_emitter(emitter).emit
    acc = SparseMatrixAccumulator()
    users_with_items = 0
    for record in records:
        fragment = emit(qualifying_items(record.ratings, threshold))
        if len(fragment):
            users_with_items += 1
        acc.merge(fragment)
    return acc.finish(), users_with_items, acc.merges


class ItemCFPipeline:
    """Drives one run: accumulate -> expand -> cosine -> [row normalize].

    The core does no logging. Progress, skipped records and dropped cells are
    reported through the optional callbacks and `stats`.
    """

    def __init__(
        self,
        cfg: ItemCFConfig | None = None,
        *,
        on_progress: Optional[ProgressCallback] = None,
        on_malformed: Optional[MalformedCallback] = None,
        on_degenerate: Optional[DegenerateCallback] = None,
    ) -> None:
        self.cfg = cfg if cfg is not None else ItemCFConfig()
        self.emitter = get_emitter(self.cfg.emitter)
        self.on_progress = on_progress
        self.on_malformed = on_malformed
        self.on_degenerate = on_degenerate
        self.state = PipelineState.READY
        self.stats = RunStats()

    def process_user(self, record: RecordLike) -> SparseMatrix:
        """One user's upper-triangular contribution."""
        return self.emitter.emit(qualifying_items(record.ratings, self.cfg.threshold))

    def _see_record(self) -> None:
        self.stats.records_seen += 1
        if self.on_progress is not None and self.stats.records_seen % self.cfg.progress_every == 0:
            self.on_progress(self.stats.records_seen)

    def _handle_malformed(self, err: MalformedRecordError) -> None:
        if not self.cfg.skip_malformed:
            raise err
        self.stats.records_skipped += 1
        if self.on_malformed is not None:
            self.on_malformed(err)

    def accumulate(self, records: Iterable[RecordLike | MalformedRecordError]) -> SparseMatrix:
        """Fold all records into one upper-triangular co-occurrence matrix."""
        self.state = PipelineState.ACCUMULATING
        if self.cfg.workers > 1:
            upper = self._accumulate_parallel(records)
        else:
            acc = SparseMatrixAccumulator()
            for record in records:
                self._see_record()
                if isinstance(record, MalformedRecordError):
                    self._handle_malformed(record)
                    continue
                fragment = self.process_user(record)
                if len(fragment):
                    self.stats.users_with_items += 1
                acc.merge(fragment)
            self.stats.merges += acc.merges
            upper = acc.finish()

        seen = self.stats.records_seen
        if self.on_progress is not None and (seen == 0 or seen % self.cfg.progress_every != 0):
            self.on_progress(seen)
        self.stats.accumulated_cells = len(upper)
        return upper

    def _accumulate_parallel(self, records: Iterable[RecordLike | MalformedRecordError]) -> SparseMatrix:
        # Chunks are accumulated independently in worker processes, one wave of
        # `workers` chunks at a time, and folded into the running matrix in
        # submission order.
        acc = SparseMatrixAccumulator()
        wave: list[list[RecordLike]] = []
        chunk: list[RecordLike] = []

        with ProcessPoolExecutor(max_workers=self.cfg.workers) as pool:

            def _flush_wave() -> None:
                futures = [
                    pool.submit(_accumulate_chunk, c, self.cfg.threshold, self.cfg.emitter.value) for c in wave
                ]
                partials = []
                for fut in futures:
                    partial, users_with_items, merges = fut.result()
                    partials.append(partial)
                    self.stats.users_with_items += users_with_items
                    self.stats.merges += merges
                acc.merge(merge_partials(partials))
                wave.clear()

            for record in records:
                self._see_record()
                if isinstance(record, MalformedRecordError):
                    self._handle_malformed(record)
                    continue
                chunk.append(record)
                if len(chunk) >= self.cfg.chunk_size:
                    wave.append(chunk)
                    chunk = []
                    if len(wave) >= self.cfg.workers:
                        _flush_wave()
            if chunk:
                wave.append(chunk)
            if wave:
                _flush_wave()

        return acc.finish()

    def finalize(self, upper: SparseMatrix) -> SparseMatrix:
        """Expand to a full symmetric matrix, then apply the similarity transform."""
        self.stats.accumulated_rows = len(upper.row_keys())
        self.stats.accumulated_columns = len(upper.column_keys())

        self.state = PipelineState.EXPANDING
        full = expand_symmetric(upper)
        self.stats.items = len(full.row_keys())

        transformer = SimilarityTransformer(row_norm=self.cfg.row_norm, on_degenerate=self.on_degenerate)
        self.state = PipelineState.COSINE_TRANSFORMING
        result = transformer.cosine(full)
        if self.cfg.row_norm:
            self.state = PipelineState.ROW_NORMALIZING
            result = transformer.normalize_rows(result)

        self.stats.dropped_cells = transformer.stats.dropped_cells
        self.stats.zero_sum_rows = transformer.stats.zero_sum_rows
        self.stats.final_cells = len(result)
        self.state = PipelineState.FINALIZED
        return result

    def run(self, records: Iterable[RecordLike | MalformedRecordError]) -> ItemCFResult:
        self.stats = RunStats()
        self.state = PipelineState.READY
        upper = self.accumulate(records)
        matrix = self.finalize(upper)
        return ItemCFResult(matrix=matrix, stats=self.stats, config=self.cfg)
