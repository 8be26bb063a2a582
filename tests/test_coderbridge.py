"""
Tests for coderbridge helpers: errors, UI prompts, thread heuristics, package.
"""

import pytest


class TestErrors:
    """Test the exception hierarchy and result-channel rendering."""

    def test_default_messages(self):
        from coderbridge.exceptions import (
            ContextLimitExceededError,
            EngineNotReadyError,
            TokenizationError,
            to_error_output,
        )

        assert to_error_output(EngineNotReadyError()) == "[error] Model is not initialized."
        assert to_error_output(TokenizationError()) == "[error] Failed to tokenize prompt."
        assert (
            to_error_output(ContextLimitExceededError())
            == "[error] Prompt is longer than the context window."
        )

    def test_custom_message_and_repr(self):
        from coderbridge.exceptions import CoderBridgeError, InferenceError

        exc = InferenceError("Failed to prefill prompt.", error_code=-1)
        assert isinstance(exc, CoderBridgeError)
        assert str(exc) == "Failed to prefill prompt."
        assert repr(exc) == "InferenceError(message='Failed to prefill prompt.', error_code=-1)"

    def test_is_error_output(self):
        from coderbridge.exceptions import is_error_output

        assert is_error_output("[error] Prompt is null.")
        assert not is_error_output("<html></html>")
        assert not is_error_output("An [error] in the middle")


class TestUiHelpers:
    """Test UI prompt building and HTML sanitizing."""

    def test_build_prompt(self):
        from coderbridge.ui import build_prompt

        prompt = build_prompt("Your bill of $42 is due Friday.")
        assert prompt.startswith("TASK: Turn the agent output")
        assert "Your bill of $42 is due Friday." in prompt
        assert "{{agent_text}}" not in prompt
        assert "```html" in prompt

    def test_build_minimal_prompt(self):
        from coderbridge.ui import MINIMAL_PROMPT_TEMPLATE, build_prompt

        prompt = build_prompt("hello", minimal=True)
        assert prompt == MINIMAL_PROMPT_TEMPLATE.replace("{{agent_text}}", "hello")

    @pytest.mark.parametrize("text", ["", "   \n"])
    def test_blank_agent_text(self, text):
        from coderbridge.ui import EMPTY_AGENT_TEXT, build_prompt

        assert EMPTY_AGENT_TEXT in build_prompt(text)

    def test_sanitize_passes_html_through(self):
        from coderbridge.ui import sanitize_html

        page = "<!doctype html><HTML><body>hi</body></HTML>"
        assert sanitize_html(page) == page

    def test_sanitize_wraps_plain_text(self):
        from coderbridge.ui import sanitize_html

        page = sanitize_html("a < b & c > d")
        assert page.startswith("<html>")
        assert "<pre>a &lt; b &amp; c &gt; d</pre>" in page


class TestThreadHeuristics:
    """Test recommended thread counts from a fake sysfs tree."""

    def _sysfs(self, tmp_path, freqs):
        for i, freq in enumerate(freqs):
            freq_dir = tmp_path / f"cpu{i}" / "cpufreq"
            freq_dir.mkdir(parents=True)
            if freq is not None:
                (freq_dir / "cpuinfo_max_freq").write_text(f"{freq}\n")
        (tmp_path / "cpufreq").mkdir()
        (tmp_path / "online").write_text("0-7\n")
        return str(tmp_path)

    def test_detect_big_cores(self, tmp_path):
        from coderbridge.threads import detect_high_performance_cores

        root = self._sysfs(tmp_path, [1_800_000, 1_800_000, 2_400_000, 3_000_000, None])
        assert detect_high_performance_cores(8, root) == 2
        assert detect_high_performance_cores(1, root) == 1

    def test_missing_sysfs(self, tmp_path):
        from coderbridge.threads import detect_high_performance_cores

        assert detect_high_performance_cores(8, str(tmp_path / "nope")) == 0

    def test_prefers_big_cores(self, tmp_path, monkeypatch):
        from coderbridge.threads import recommended_thread_config

        monkeypatch.setattr("os.cpu_count", lambda: 8)
        root = self._sysfs(tmp_path, [1_800_000] * 4 + [2_800_000] * 3 + [3_200_000])
        config = recommended_thread_config(root)
        assert config.threads == 4
        assert config.high_performance_cores == 4
        assert config.used_high_performance_only is True

    @pytest.mark.parametrize("cores,expected", [(12, 10), (8, 6), (6, 5), (4, 3), (2, 2), (1, 1)])
    def test_fallback_without_big_cores(self, tmp_path, monkeypatch, cores, expected):
        from coderbridge.threads import recommended_thread_config

        monkeypatch.setattr("os.cpu_count", lambda: cores)
        config = recommended_thread_config(str(tmp_path / "missing"))
        assert config.threads == expected
        assert config.total_cores == cores
        assert config.used_high_performance_only is False

    def test_unknown_cpu_count(self, tmp_path, monkeypatch):
        from coderbridge.threads import recommended_thread_config

        monkeypatch.setattr("os.cpu_count", lambda: None)
        assert recommended_thread_config(str(tmp_path)).threads == 1


class TestPackage:
    """Test package imports."""

    def test_imports(self):
        import coderbridge

        assert hasattr(coderbridge, "Engine")
        assert hasattr(coderbridge, "EngineConfig")
        assert hasattr(coderbridge, "init")
        assert hasattr(coderbridge, "generate")
        assert hasattr(coderbridge, "release")
        assert hasattr(coderbridge, "__version__")

    def test_version(self):
        import coderbridge

        assert coderbridge.get_version() == coderbridge.__version__ == "1.0.0"
