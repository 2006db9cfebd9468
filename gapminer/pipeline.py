import copy
import json
import logging
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

from .analyzers.arbiter import PosArbiter
from .analyzers.base import AnalysisResult, Sentence, Word
from .analyzers.gaps import SemanticGapFinder
from .analyzers.reconstructor import Reconstructor
from .analyzers.statistics import StatisticsEngine
from .config import DEFAULT_CONFIG
from .embeddings import DEFAULT_SOURCES, EmbeddingTable, load_embeddings
from .errors import TaggerUnavailable
from .taggers import acquire_segmenter, get_segmenter, load_secondary_tagger
from .taggers.base import SecondaryTagger, SentenceSegmenter
from .utils.cache import EmbeddingCache

logger = logging.getLogger(__name__)


class AnalysisContext:
    """
    Session state shared by analyses: the embedding table.

    The table is loaded lazily, at most once per context. The first caller
    of embeddings() runs the load; callers arriving while it is in flight
    wait on the same future instead of starting another fetch.
    """

    def __init__(
        self,
        embedding_sources: Optional[Iterable[Union[str, Path]]] = None,
        config: Optional[dict] = None,
        loader: Optional[Callable[[List], EmbeddingTable]] = None,
        table: Optional[EmbeddingTable] = None,
    ):
        self.config = config or {}
        section = self.config.get("embeddings", {})
        self.embedding_sources = list(
            embedding_sources
            if embedding_sources is not None
            else section.get("sources", DEFAULT_SOURCES)
        )
        self._loader = loader or self._default_loader
        self._lock = threading.Lock()
        self._loading = False
        self._future: Optional[Future] = None
        if table is not None:
            self._future = Future()
            self._future.set_result(table)

    @classmethod
    def from_table(cls, table) -> "AnalysisContext":
        if not isinstance(table, EmbeddingTable):
            table = EmbeddingTable(table)
        return cls(embedding_sources=[], table=table)

    @property
    def loaded(self) -> bool:
        return self._future is not None and self._future.done()

    def embeddings(self) -> EmbeddingTable:
        owner = False
        with self._lock:
            if self._future is None and not self._loading:
                self._future = Future()
                self._loading = True
                owner = True
            future = self._future

        if owner:
            try:
                table = self._loader(self.embedding_sources)
            except Exception as e:
                logger.error(f"Embedding load failed: {e}")
                table = EmbeddingTable()
            except BaseException as e:
                # waiters get the interruption; the next call loads again
                logger.warning(f"Embedding load interrupted: {e!r}")
                with self._lock:
                    self._future = None
                    self._loading = False
                future.set_exception(e)
                raise
            finally:
                with self._lock:
                    self._loading = False
            future.set_result(table)

        return future.result()

    def _default_loader(self, sources: List) -> EmbeddingTable:
        section = self.config.get("embeddings", {})
        cache = None
        if section.get("cache"):
            cache = EmbeddingCache(
                cache_dir=section.get("cache_dir"),
                ttl_hours=section.get("ttl_hours", 24 * 7),
            )
        return load_embeddings(sources, timeout=section.get("timeout", 30), cache=cache)


class Pipeline:
    """
    gapminer end-to-end pipeline.

    Stages:
      1. Segment     - primary tagger splits text into sentences of raw tokens
      2. Reconstruct - fragments merged into surface words (Reconstructor)
      3. Arbitrate   - primary/secondary tags reconciled (PosArbiter)
      4. Measure     - counts, readability, rhetoric (StatisticsEngine)
      5. Gaps        - absent related words (SemanticGapFinder)

    Usage:
        p = Pipeline.from_config(load_config("gapminer.yaml"))
        result = p.analyze(text)

    Only TaggerUnavailable escapes analyze(); every other failure degrades.
    """

    def __init__(
        self,
        segmenter: SentenceSegmenter,
        secondary: Optional[SecondaryTagger] = None,
        context: Optional[AnalysisContext] = None,
        config: Optional[dict] = None,
        output_dir: Union[str, Path] = "output",
    ):
        self.config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        self.output_dir = Path(output_dir)

        self.segmenter = segmenter
        self.reconstructor = Reconstructor(
            known_compounds=self.config.get("reconstruction", {}).get("known_compounds")
        )
        self.arbiter = PosArbiter(secondary)
        self.statistics = StatisticsEngine()
        self.gap_finder = SemanticGapFinder(self.config.get("gaps", {}))
        self.context = context or AnalysisContext(config=self.config)

    @classmethod
    def from_config(
        cls,
        config: Optional[dict] = None,
        context: Optional[AnalysisContext] = None,
        output_dir: Union[str, Path] = "output",
    ) -> "Pipeline":
        """Build backends from config. Raises TaggerUnavailable without a primary tagger."""
        config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        section = config.get("segmenter", {})
        segmenter = acquire_segmenter(
            lambda: get_segmenter(section.get("backend", "spacy"), section),
            attempts=section.get("attempts", 30),
            interval=section.get("interval", 0.1),
        )
        secondary = load_secondary_tagger(config)
        return cls(segmenter, secondary, context=context, config=config, output_dir=output_dir)

    def analyze(self, text: str, with_gaps: Optional[bool] = None) -> AnalysisResult:
        if with_gaps is None:
            with_gaps = self.config.get("gaps", {}).get("enabled", True)

        sentences, words = self.tag(text)
        stats = self.statistics.compute(words, sentences)
        gaps = self.find_gaps(words) if with_gaps and words else []
        return AnalysisResult(words=words, stats=stats, gaps=gaps)

    def tag(self, text: str) -> Tuple[List[Sentence], List[Word]]:
        """Segment, reconstruct and reconcile; returns sentences and the flat word list."""
        if not text or not text.strip():
            return [], []

        try:
            segmented = self.segmenter.segment(text)
        except TaggerUnavailable:
            raise
        except Exception as e:
            raise TaggerUnavailable(f"Primary tagger failed: {e}") from e

        sentences: List[Sentence] = []
        words: List[Word] = []
        for seg in segmented:
            reconstructed = self.reconstructor.reconstruct(seg.tokens)
            reconciled = self.arbiter.reconcile(reconstructed)
            sentences.append(Sentence(text=seg.text, words=reconciled))
            words.extend(reconciled)
        return sentences, words

    def find_gaps(self, words: Sequence[Word]) -> List[str]:
        return self.gap_finder.find_gaps(words, self.context.embeddings())

    def run(
        self, paths: List[Union[str, Path]], with_gaps: Optional[bool] = None
    ) -> List[Optional[AnalysisResult]]:
        """
        Analyze text files and write one JSON file per input to output_dir.

        Returns a list the same length as the input. Failed documents are
        represented as None and logged.
        """
        from rich.progress import Progress, SpinnerColumn

        self.output_dir.mkdir(parents=True, exist_ok=True)
        results: List[Optional[AnalysisResult]] = []

        with Progress(
            SpinnerColumn(), *Progress.get_default_columns(), transient=True
        ) as progress:
            task = progress.add_task("Analyzing...", total=len(paths))
            for path in paths:
                path = Path(path)
                progress.update(task, description=f"Analyzing {path.name}")
                result = self._process_one(path, with_gaps)
                if result is not None:
                    self._save_json(path, result)
                results.append(result)
                progress.advance(task)

        return results

    def _process_one(self, path: Path, with_gaps: Optional[bool]) -> Optional[AnalysisResult]:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Could not read {path}: {e}")
            return None

        if not text.strip():
            logger.warning(f"Empty document {path}")

        return self.analyze(text, with_gaps=with_gaps)

    def _save_json(self, source: Path, result: AnalysisResult) -> Path:
        """Serialize an AnalysisResult to a JSON file in output_dir."""
        out_path = self.output_dir / f"{source.stem}.json"
        payload = {"source_path": str(source), **result.to_dict()}

        try:
            out_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            logger.info(f"Saved analysis to {out_path}")
        except OSError as e:
            logger.error(f"Failed to save JSON for {source}: {e}")

        return out_path

