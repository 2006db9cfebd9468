import json
import re
import threading
from unittest.mock import patch

import pytest
from gapminer.analyzers.base import RawToken, SegmentedSentence, UniversalTag
from gapminer.taggers.base import SecondaryTagger, SentenceSegmenter


class FakeSegmenter(SentenceSegmenter):
    """Regex sentence/token splitter; tags come from a lowercase word map."""

    name = "fake"

    def __init__(self, tags=None, error=None):
        super().__init__()
        self.tags = tags or {}
        self.error = error

    @classmethod
    def is_available(cls):
        return True

    def segment(self, text):
        if self.error:
            raise self.error
        sentences = []
        for chunk in re.findall(r"[^.!?]+[.!?]*", text):
            chunk = chunk.strip()
            pieces = re.findall(r"\w+|[^\w\s]", chunk)
            if not pieces:
                continue
            tokens = [
                RawToken(p, "PUNCT" if not p[0].isalnum() else self.tags.get(p.lower(), "NOUN"), i)
                for i, p in enumerate(pieces)
            ]
            sentences.append(SegmentedSentence(text=chunk, tokens=tokens))
        return sentences


class BrokenSecondary(SecondaryTagger):
    name = "broken"

    @classmethod
    def is_available(cls):
        return True

    def tag(self, words):
        raise RuntimeError("tagger crashed")


TAGS = {
    "trump": "PROPN",
    "spoke": "VERB",
    "about": "ADP",
    "the": "DET",
    "run": "VERB",
    "s": "PART",
}


def make_pipeline(tmp_path=None, table=None, secondary=None, config=None):
    from gapminer.pipeline import AnalysisContext, Pipeline

    context = AnalysisContext.from_table(table or {})
    output_dir = tmp_path / "output" if tmp_path else "output"
    return Pipeline(
        FakeSegmenter(TAGS), secondary, context=context, config=config, output_dir=output_dir
    )


class TestAnalyze:
    def test_short_text(self):
        result = make_pipeline().analyze("Cats run.")
        assert [w.surface for w in result.words] == ["Cats", "run"]
        assert result.pos_tags == ["NOUN", "VERB"]
        assert result.stats.avg_sentence_length == 2.0
        assert result.stats.total_sentences == 1

    def test_reconstruction_runs_per_sentence(self):
        result = make_pipeline().analyze("Trump's low-budget film. It works.")
        assert [w.surface for w in result.words] == ["Trump's", "low-budget", "film", "It", "works"]
        assert result.stats.total_sentences == 2

    def test_tags_are_universal(self):
        result = make_pipeline().analyze("Trump spoke about the court, again!")
        assert all(isinstance(w.tag, UniversalTag) for w in result.words)
        assert sum(result.stats.pos_counts.values()) == result.stats.total_words

    def test_gaps_never_in_text(self):
        result = make_pipeline().analyze("Trump spoke about the court.")
        assert result.gaps[0] == "president"
        assert "judiciary" in result.gaps
        text = {w.surface.lower() for w in result.words}
        assert not text & set(result.gaps)

    def test_gaps_disabled(self):
        p = make_pipeline()
        assert p.analyze("Trump spoke about the court.", with_gaps=False).gaps == []

        from gapminer.config import load_config

        p = make_pipeline(config=load_config(gaps={"enabled": False}))
        assert p.analyze("Trump spoke about the court.").gaps == []

    def test_empty_text(self):
        result = make_pipeline().analyze("   ")
        assert result.words == []
        assert result.gaps == []
        assert result.stats.total_words == 0
        assert result.stats.readability == 0.0

    def test_deterministic(self):
        p = make_pipeline()
        text = "Trump spoke about the court. The court listened."
        assert json.dumps(p.analyze(text).to_dict()) == json.dumps(p.analyze(text).to_dict())

    def test_to_dict_keys(self):
        data = make_pipeline().analyze("Cats run.").to_dict()
        assert set(data) == {"words", "pos_tags", "stats", "gaps"}
        assert data["stats"]["total_words"] == 2
        json.dumps(data)

    def test_segmenter_failure_is_tagger_unavailable(self):
        from gapminer.errors import TaggerUnavailable
        from gapminer.pipeline import AnalysisContext, Pipeline

        p = Pipeline(FakeSegmenter(error=RuntimeError("model crashed")), context=AnalysisContext.from_table({}))
        with pytest.raises(TaggerUnavailable):
            p.analyze("Cats run.")

    def test_secondary_failure_degrades(self):
        result = make_pipeline(secondary=BrokenSecondary()).analyze("Cats run.")
        assert result.pos_tags == ["NOUN", "VERB"]

    def test_semantic_gaps_from_table(self):
        table = {
            "telescope": [1.0, 0.1, 0.0, 0.0],
            "astronomy": [1.0, 0.0, 0.1, 0.0],
            "galaxies": [1.0, 0.0, 0.0, 0.1],
            "nebulae": [1.0, 0.1, 0.1, 0.0],
            "observatory": [1.0, 0.05, 0.05, 0.05],
        }
        result = make_pipeline(table=table).analyze("The telescope showed astronomy galaxies and nebulae.")
        assert result.gaps == ["observatory"]


class TestRun:
    def test_writes_json(self, tmp_path):
        doc = tmp_path / "speech.txt"
        doc.write_text("Trump spoke about the court.", encoding="utf-8")
        p = make_pipeline(tmp_path)

        results = p.run([doc])

        assert len(results) == 1
        data = json.loads((tmp_path / "output" / "speech.json").read_text(encoding="utf-8"))
        assert data["source_path"] == str(doc)
        assert data["words"] == ["Trump", "spoke", "about", "the", "court"]
        assert len(data["pos_tags"]) == len(data["words"])
        assert "gaps" in data and "stats" in data

    def test_unreadable_file_is_none(self, tmp_path):
        good = tmp_path / "good.txt"
        good.write_text("Cats run.", encoding="utf-8")
        p = make_pipeline(tmp_path)

        results = p.run([tmp_path / "missing.txt", good])

        assert results[0] is None
        assert results[1] is not None
        assert list((tmp_path / "output").glob("*.json")) == [tmp_path / "output" / "good.json"]


class TestAnalysisContext:
    def test_single_flight_load(self):
        from gapminer.embeddings import EmbeddingTable
        from gapminer.pipeline import AnalysisContext

        started = threading.Event()
        release = threading.Event()
        calls = []

        def loader(sources):
            calls.append(sources)
            started.set()
            release.wait(5)
            return EmbeddingTable({"lake": [1.0]})

        context = AnalysisContext(embedding_sources=["a.json"], loader=loader)
        results = []

        def worker():
            results.append(context.embeddings())

        owner = threading.Thread(target=worker)
        owner.start()
        assert started.wait(5)

        waiters = [threading.Thread(target=worker) for _ in range(4)]
        for t in waiters:
            t.start()
        release.set()
        for t in [owner] + waiters:
            t.join(5)

        assert len(calls) == 1
        assert len(results) == 5
        assert all(r is results[0] for r in results)
        assert context.loaded

    def test_loader_failure_gives_empty_table_once(self):
        from gapminer.pipeline import AnalysisContext

        calls = []

        def loader(sources):
            calls.append(1)
            raise RuntimeError("disk on fire")

        context = AnalysisContext(embedding_sources=[], loader=loader)
        assert len(context.embeddings()) == 0
        assert len(context.embeddings()) == 0
        assert calls == [1]

    def test_interrupted_load_releases_waiters(self):
        import time

        from gapminer.embeddings import EmbeddingTable
        from gapminer.pipeline import AnalysisContext

        class Interrupted(BaseException):
            pass

        started = threading.Event()
        release = threading.Event()
        calls = []

        def loader(sources):
            calls.append(1)
            if len(calls) == 1:
                started.set()
                release.wait(5)
                raise Interrupted()
            return EmbeddingTable({"lake": [1.0]})

        context = AnalysisContext(embedding_sources=["a.json"], loader=loader)
        outcomes = {}

        def worker(name):
            try:
                outcomes[name] = context.embeddings()
            except Interrupted as e:
                outcomes[name] = e

        owner = threading.Thread(target=worker, args=("owner",))
        owner.start()
        assert started.wait(5)
        waiter = threading.Thread(target=worker, args=("waiter",))
        waiter.start()
        time.sleep(0.05)
        release.set()
        owner.join(5)
        waiter.join(5)

        assert not owner.is_alive()
        assert not waiter.is_alive()
        assert isinstance(outcomes["owner"], Interrupted)
        # the waiter either saw the interruption or started the retry itself
        assert isinstance(outcomes["waiter"], (Interrupted, EmbeddingTable))

        assert "lake" in context.embeddings()
        assert context.loaded
        assert not context._loading
        assert len(calls) == 2

    def test_from_table(self):
        from gapminer.embeddings import EmbeddingTable
        from gapminer.pipeline import AnalysisContext

        context = AnalysisContext.from_table({"lake": [1.0]})
        assert context.loaded
        assert isinstance(context.embeddings(), EmbeddingTable)
        assert "lake" in context.embeddings()

    def test_default_loader_reads_configured_sources(self, tmp_path):
        from gapminer.config import load_config
        from gapminer.pipeline import AnalysisContext

        path = tmp_path / "vectors.json"
        path.write_text('{"lake": [1.0]}', encoding="utf-8")
        config = load_config(
            embeddings={"sources": [str(path)], "cache": True, "cache_dir": str(tmp_path / "cache")}
        )
        context = AnalysisContext(config=config)
        assert not context.loaded
        assert "lake" in context.embeddings()
        assert list((tmp_path / "cache" / "embeddings").glob("*.pkl"))


class TestTaggerAcquisition:
    def test_acquire_retries_until_ready(self):
        from gapminer.errors import TaggerUnavailable
        from gapminer.taggers import acquire_segmenter

        attempts = []

        def factory():
            attempts.append(1)
            if len(attempts) < 3:
                raise TaggerUnavailable("still loading")
            return FakeSegmenter()

        segmenter = acquire_segmenter(factory, attempts=5, interval=0)
        assert isinstance(segmenter, FakeSegmenter)
        assert len(attempts) == 3

    def test_acquire_gives_up(self):
        from gapminer.errors import TaggerUnavailable
        from gapminer.taggers import acquire_segmenter

        attempts = []

        def factory():
            attempts.append(1)
            raise OSError("model missing")

        with pytest.raises(TaggerUnavailable):
            acquire_segmenter(factory, attempts=4, interval=0)
        assert len(attempts) == 4

    def test_acquire_sleeps_between_attempts(self):
        from gapminer.errors import TaggerUnavailable
        from gapminer.taggers import acquire_segmenter

        def factory():
            raise TaggerUnavailable("nope")

        with patch("gapminer.taggers.time.sleep") as mock_sleep:
            with pytest.raises(TaggerUnavailable):
                acquire_segmenter(factory, attempts=30, interval=0.1)
        assert mock_sleep.call_count == 29
        mock_sleep.assert_called_with(0.1)

    def test_unknown_backends(self):
        from gapminer.taggers import get_secondary_tagger, get_segmenter, load_secondary_tagger

        with pytest.raises(ValueError):
            get_segmenter("bogus")
        with pytest.raises(ValueError):
            get_secondary_tagger("bogus")
        with pytest.raises(ValueError):
            load_secondary_tagger({"secondary": {"backend": "bogus"}})

    def test_secondary_disabled(self):
        from gapminer.taggers import load_secondary_tagger

        assert load_secondary_tagger({"secondary": {"enabled": False}}) is None

    def test_secondary_unavailable_is_optional(self, caplog):
        from gapminer.errors import SecondaryTaggerUnavailable
        from gapminer.taggers import load_secondary_tagger

        with patch(
            "gapminer.taggers.get_secondary_tagger",
            side_effect=SecondaryTaggerUnavailable("no data"),
        ):
            assert load_secondary_tagger({"secondary": {"backend": "nltk"}}) is None
        assert "Secondary tagger unavailable" in caplog.text

    def test_from_config_without_primary_raises(self):
        from gapminer.config import load_config
        from gapminer.errors import TaggerUnavailable
        from gapminer.pipeline import Pipeline

        config = load_config(segmenter={"attempts": 2, "interval": 0}, secondary={"enabled": False})
        with patch("gapminer.pipeline.get_segmenter", side_effect=TaggerUnavailable("x")) as mock_get:
            with pytest.raises(TaggerUnavailable):
                Pipeline.from_config(config)
        assert mock_get.call_count == 2

    def test_from_config_builds_pipeline(self, tmp_path):
        from gapminer.config import load_config
        from gapminer.pipeline import Pipeline

        config = load_config(secondary={"enabled": False})
        with patch("gapminer.pipeline.get_segmenter", return_value=FakeSegmenter(TAGS)):
            p = Pipeline.from_config(config, output_dir=tmp_path)
        assert p.arbiter.secondary is None
        assert isinstance(p.segmenter, FakeSegmenter)


class TestBackends:
    def test_spacy_segmenter(self):
        from gapminer.taggers.spacy_backend import SpacySegmenter

        class Tok:
            def __init__(self, text, pos, space=False):
                self.text, self.pos_, self.tag_, self.is_space = text, pos, "", space

        class Span(list):
            text = ""

        first = Span([Tok("Cats", "NOUN"), Tok(" ", "SPACE", True), Tok("run", "VERB"), Tok(".", "PUNCT")])
        first.text = "Cats  run. "
        doc = type("Doc", (), {"sents": [first]})()

        with patch("spacy.load", side_effect=[OSError("missing"), lambda text: doc]):
            segmenter = SpacySegmenter({"model": "en_core_web_sm"})
        assert segmenter.model_name == "en_core_web_md"

        [sentence] = segmenter.segment("Cats  run. ")
        assert sentence.text == "Cats  run."
        assert [(t.text, t.tag, t.index) for t in sentence.tokens] == [
            ("Cats", "NOUN", 0),
            ("run", "VERB", 1),
            (".", "PUNCT", 2),
        ]

    def test_spacy_without_models(self):
        from gapminer.errors import TaggerUnavailable
        from gapminer.taggers.spacy_backend import SpacySegmenter

        with patch("spacy.load", side_effect=OSError("missing")):
            with pytest.raises(TaggerUnavailable):
                SpacySegmenter()

    def test_nltk_tagger(self):
        from gapminer.taggers.nltk_backend import NltkTagger

        with patch.object(NltkTagger, "_ensure_resources"), patch(
            "nltk.pos_tag", return_value=[("the", "DT"), ("cat", "NN")]
        ):
            tagger = NltkTagger({"download": False})
            assert tagger.tag(["the", "cat"]) == ["DT", "NN"]
        assert tagger.tag([]) == []

    def test_nltk_missing_data(self):
        from gapminer.errors import SecondaryTaggerUnavailable
        from gapminer.taggers.nltk_backend import NltkTagger

        with patch("nltk.data.find", side_effect=LookupError("missing")):
            with pytest.raises(SecondaryTaggerUnavailable):
                NltkTagger({"download": False})
