"""Tests for the render adapter and engine error handling."""

import asyncio

import pytest

from pretty_mermaid.errors import EngineError, ParseError, RenderStale
from pretty_mermaid.render import (
    DEFAULT_PARSE_MESSAGE,
    MermaidCliEngine,
    RenderAdapter,
    RenderStatus,
    extract_error_message,
    is_diagram_error,
)

FLOWCHART = "flowchart TD\n    A --> B"


@pytest.fixture
def adapter(engine) -> RenderAdapter:
    return RenderAdapter(engine)


def test_blank_input_short_circuits(adapter, engine) -> None:
    for text in ("", "   ", "\n\t\n"):
        outcome = asyncio.run(adapter.render(text, {}))
        assert outcome.status is RenderStatus.EMPTY
        assert outcome.document is None
    assert engine.parse_calls == []
    assert engine.render_calls == []


def test_render_produces_document(adapter, engine) -> None:
    outcome = asyncio.run(adapter.render(FLOWCHART, {"theme": "dark"}))
    assert outcome.status is RenderStatus.RENDERED
    assert outcome.document.diagram_id == "mermaid-diagram-1"
    assert outcome.document.root.get("id") == "mermaid-diagram-1"
    assert engine.render_calls == [("mermaid-diagram-1", FLOWCHART, {"theme": "dark"})]


def test_text_is_trimmed_before_engine(adapter, engine) -> None:
    asyncio.run(adapter.render(f"\n  {FLOWCHART}  \n", {}))
    assert engine.parse_calls == [FLOWCHART]


def test_every_invocation_gets_a_fresh_id(adapter) -> None:
    ids = [asyncio.run(adapter.render(FLOWCHART, {})).document.diagram_id for _ in range(3)]
    assert len(set(ids)) == 3
    assert adapter.latest == 3


def test_parse_error_carries_engine_message(adapter, engine) -> None:
    with pytest.raises(ParseError) as excinfo:
        asyncio.run(adapter.render("flowchart TD\n    A --", {}))
    assert "Parse error on line 2" in excinfo.value.message
    assert engine.render_calls == []


def test_blank_input_supersedes_pending_render(adapter, engine) -> None:
    engine.delays = [0.05]

    async def scenario():
        slow = asyncio.create_task(adapter.render(FLOWCHART, {}))
        await asyncio.sleep(0)
        empty = await adapter.render("", {})
        with pytest.raises(RenderStale):
            await slow
        return empty

    assert asyncio.run(scenario()).status is RenderStatus.EMPTY


def test_older_render_finishing_last_is_stale(adapter, engine) -> None:
    engine.delays = [0.05, 0.0]

    async def scenario():
        first = asyncio.create_task(adapter.render(FLOWCHART, {}))
        await asyncio.sleep(0)
        second = asyncio.create_task(adapter.render(FLOWCHART + "\n    B --> C", {}))
        newer = await second
        with pytest.raises(RenderStale) as excinfo:
            await first
        return newer, excinfo.value

    newer, stale = asyncio.run(scenario())
    assert newer.generation == 2
    assert stale.generation == 1
    assert stale.latest == 2
    assert adapter.is_current(2)
    assert not adapter.is_current(1)


def test_stale_error_is_not_reported(adapter, engine) -> None:
    engine.delays = [0.05, 0.0]

    async def scenario():
        bad = asyncio.create_task(adapter.render("flowchart TD\n    A --", {}))
        await asyncio.sleep(0)
        await adapter.render(FLOWCHART, {})
        with pytest.raises(RenderStale):
            await bad

    asyncio.run(scenario())


def test_unreadable_engine_output() -> None:
    class Garbage:
        async def parse(self, text):
            return None

        async def render(self, diagram_id, text, config):
            return "<html><body/></html>"

    with pytest.raises(EngineError):
        asyncio.run(RenderAdapter(Garbage()).render(FLOWCHART, {}))


class TestExtractErrorMessage:
    def test_stops_at_stack_trace(self) -> None:
        stderr = (
            "Error: Parse error on line 2:\n"
            "...A --\n"
            "-------^\n"
            "Expecting 'ARROW', got 'EOF'\n"
            "    at Parser.parseError (mermaid.js:1:1)\n"
            "    at Object.parse (mermaid.js:2:2)\n"
        )
        assert extract_error_message(stderr) == (
            "Parse error on line 2:\n...A --\n-------^\nExpecting 'ARROW', got 'EOF'"
        )

    def test_unknown_diagram(self) -> None:
        stderr = "UnknownDiagramError: No diagram type detected matching given configuration for text: hello"
        assert extract_error_message(stderr).startswith("No diagram type detected")

    def test_empty_stderr_falls_back(self) -> None:
        assert extract_error_message("") == DEFAULT_PARSE_MESSAGE
        assert extract_error_message("\n   \n") == DEFAULT_PARSE_MESSAGE


def test_missing_cli_is_engine_error(tmp_path) -> None:
    engine = MermaidCliEngine(command=str(tmp_path / "no-such-mmdc"))
    with pytest.raises(EngineError) as excinfo:
        asyncio.run(engine.render("d1", FLOWCHART, {}))
    assert "not found" in excinfo.value.message


# ===================================================================
# mermaid-cli subprocess
# ===================================================================


def _fake_cli(tmp_path, body: str) -> str:
    script = tmp_path / "mmdc"
    script.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    script.chmod(0o755)
    return str(script)


def test_cli_syntax_error_is_parse_error(tmp_path) -> None:
    command = _fake_cli(tmp_path, (
        "echo \"Error: Parse error on line 2:\" >&2\n"
        "echo \"Expecting 'ARROW', got 'EOF'\" >&2\n"
        "exit 1"
    ))
    with pytest.raises(ParseError) as excinfo:
        asyncio.run(MermaidCliEngine(command).render("d1", "flowchart TD\n    A --", {}))
    assert excinfo.value.message.startswith("Parse error on line 2")


def test_cli_launch_failure_is_engine_error(tmp_path) -> None:
    command = _fake_cli(tmp_path, (
        "echo \"Error: Failed to launch the browser process!\" >&2\n"
        "exit 1"
    ))
    with pytest.raises(EngineError) as excinfo:
        asyncio.run(MermaidCliEngine(command).render("d1", FLOWCHART, {}))
    assert "Failed to launch the browser process" in excinfo.value.message


def test_cli_timeout_is_engine_error(tmp_path) -> None:
    command = _fake_cli(tmp_path, "exec sleep 5")
    with pytest.raises(EngineError, match="timed out"):
        asyncio.run(MermaidCliEngine(command, timeout=0.2).render("d1", FLOWCHART, {}))


@pytest.mark.parametrize("stderr,expected", [
    ("Error: Parse error on line 3:\n...", True),
    ("Error: Lexical error on line 1. Unrecognized text.", True),
    ("UnknownDiagramError: No diagram type detected matching given configuration", True),
    ("Error: Failed to launch the browser process!", False),
    ("", False),
])
def test_is_diagram_error(stderr, expected) -> None:
    assert is_diagram_error(stderr) is expected


def test_adapter_skips_parse_when_render_validates(engine) -> None:
    engine.validates_on_render = True
    outcome = asyncio.run(RenderAdapter(engine).render(FLOWCHART, {}))
    assert outcome.status is RenderStatus.RENDERED
    assert engine.parse_calls == []
    assert len(engine.render_calls) == 1


def test_cli_engine_validates_on_render() -> None:
    assert MermaidCliEngine.validates_on_render is True
