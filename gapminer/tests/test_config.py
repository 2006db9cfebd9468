import pytest


class TestLoadConfig:
    def test_defaults(self):
        from gapminer.config import DEFAULT_CONFIG, load_config

        config = load_config()
        assert config == DEFAULT_CONFIG
        config["gaps"]["max_results"] = 1
        assert DEFAULT_CONFIG["gaps"]["max_results"] == 20

    def test_yaml_merges_over_defaults(self, tmp_path):
        from gapminer.config import load_config

        path = tmp_path / "gapminer.yaml"
        path.write_text(
            "segmenter:\n  model: en_core_web_lg\nembeddings:\n  sources: [vectors.json]\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config["segmenter"]["model"] == "en_core_web_lg"
        assert config["segmenter"]["attempts"] == 30
        assert config["embeddings"]["sources"] == ["vectors.json"]
        assert config["embeddings"]["timeout"] == 30

    def test_overrides_win(self, tmp_path):
        from gapminer.config import load_config

        path = tmp_path / "gapminer.yaml"
        path.write_text("secondary:\n  enabled: true\n", encoding="utf-8")
        config = load_config(path, secondary={"enabled": False})
        assert config["secondary"] == {"enabled": False, "backend": "nltk", "download": True}

    def test_empty_file(self, tmp_path):
        from gapminer.config import DEFAULT_CONFIG, load_config

        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == DEFAULT_CONFIG

    @pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
    def test_invalid_file(self, tmp_path, content):
        from gapminer.config import load_config

        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        from gapminer.config import load_config

        with pytest.raises(ValueError):
            load_config(tmp_path / "nope.yaml")

    def test_custom_compounds_reach_reconstructor(self):
        from gapminer.analyzers.base import RawToken
        from gapminer.config import load_config
        from gapminer.pipeline import AnalysisContext, Pipeline
        from gapminer.taggers.base import SentenceSegmenter

        class Fixed(SentenceSegmenter):
            @classmethod
            def is_available(cls):
                return True

            def segment(self, text):
                from gapminer.analyzers.base import SegmentedSentence

                return [SegmentedSentence(text, [RawToken("Git", "PROPN"), RawToken("Hub", "PROPN", 1)])]

        config = load_config(reconstruction={"known_compounds": {"git": ["hub"]}})
        p = Pipeline(Fixed(), config=config, context=AnalysisContext.from_table({}))
        assert [w.surface for w in p.analyze("Git Hub", with_gaps=False).words] == ["GitHub"]
