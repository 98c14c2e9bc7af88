import threading
from unittest.mock import MagicMock
import pytest
from rich.text import Text

from mdchunk.config.settings import StyleConfig
from mdchunk.core.chunk.diff import diff_chunks
from mdchunk.core.chunk.segmenter import SegmentationCancelled
from mdchunk.core.pipeline.rendering import RenderPipeline
from mdchunk.core.pipeline.streaming import StreamingSession
from mdchunk.models.chunk import Chunk, ChunkKind
from mdchunk.models.render import RenderResult, RenderStrategy, Size
from mdchunk.models.session import SessionStatus
from mdchunk.storage.cache_manager import render_caches

SCENARIO = "Hello $x^2$ world\n\n```py\nprint(1)\n```\n\n| a | b |\n|---|---|\n| 1 | 2 |"

def fake_formula_renderer():
    renderer = MagicMock()
    renderer.render.return_value = RenderResult(
        artifact=None, size=Size(width=40, height=20), success=True, strategy=RenderStrategy.fast
    )
    return renderer

def text_chunk(text, index=0):
    return Chunk.create(index=index, kind=ChunkKind.text, identity=f"text@{index}", rendered_text=Text(text))

def test_pipeline_run():
    print("--- Testing render pipeline ---")
    pipeline = RenderPipeline(formula_renderer=fake_formula_renderer())
    chunks = pipeline.run(SCENARIO)
    assert [c.kind for c in chunks] == [ChunkKind.text, ChunkKind.code, ChunkKind.table]

def test_pipeline_style_override_changes_layout():
    pipeline = RenderPipeline(formula_renderer=fake_formula_renderer())
    wide = pipeline.run("---")
    narrow = pipeline.run("---", style=StyleConfig(max_container_width=300))
    assert wide[0].measured_size.width == 720
    assert narrow[0].measured_size.width == 300

def test_pipeline_cancelled_before_work():
    pipeline = RenderPipeline(formula_renderer=fake_formula_renderer())
    with pytest.raises(SegmentationCancelled):
        pipeline.run(SCENARIO, cancel_check=lambda: True)

def test_update_style_clears_caches():
    pipeline = RenderPipeline(formula_renderer=fake_formula_renderer())
    render_caches.formula.set("x", "image")
    render_caches.styled_text.set("py\x00x", Text("x"))

    style = StyleConfig(font_size=20)
    pipeline.update_style(style)
    assert pipeline.style is style
    assert pipeline.segmenter.style is style
    assert len(render_caches.formula) == 0
    assert len(render_caches.styled_text) == 0

def test_diff_chunks():
    old = [text_chunk("a", 0), text_chunk("b", 1), text_chunk("c", 2)]
    new = [text_chunk("a", 0), text_chunk("B", 1)]
    diff = diff_chunks(old, new)
    assert diff.unchanged == [0]
    assert diff.changed == [1]
    assert diff.removed == [2]
    assert not diff.is_empty
    assert diff_chunks(old, old).is_empty

def test_session_applies_appends_in_order():
    updates = []
    pipeline = RenderPipeline(formula_renderer=fake_formula_renderer())
    session = StreamingSession(pipeline, on_update=lambda v, chunks, diff: updates.append((v, len(chunks), diff.changed)))

    first = session.append("Hello").result(timeout=10)
    assert first.version == 1
    assert first.diff.changed == [0]

    second = session.append(" world\n\n---").result(timeout=10)
    assert second.version == 2
    assert [c.kind for c in second.chunks] == [ChunkKind.text, ChunkKind.thematic_break]
    assert second.diff.changed == [0, 1]

    assert [u[0] for u in updates] == [1, 2]
    assert session.applied_version == 2
    assert session.text == "Hello world\n\n---"
    session.close()

def blocking_pipeline(gate, started, honour_cancel=True):
    """Pipeline whose pass for the first version blocks until the gate opens."""
    pipeline = MagicMock()

    def run(text, cancel_check=None):
        if text == "a":
            started.set()
            gate.wait(timeout=10)
            if honour_cancel and cancel_check():
                raise SegmentationCancelled()
        return [text_chunk(text)]

    pipeline.run.side_effect = run
    return pipeline

def test_superseded_pass_is_cancelled():
    print("--- Testing latest-wins ---")
    gate, started = threading.Event(), threading.Event()
    applied = []
    session = StreamingSession(blocking_pipeline(gate, started), on_update=lambda v, c, d: applied.append(v), max_workers=2)

    stale = session.append("a")
    assert started.wait(timeout=10)
    fresh = session.append("b")

    update = fresh.result(timeout=10)
    assert update.version == 2
    gate.set()
    assert stale.result(timeout=10) is None

    assert applied == [2]
    assert session.applied_version == 2
    assert session.chunks[0].plain_text == "ab"
    session.close()

def test_stale_result_is_never_applied():
    gate, started = threading.Event(), threading.Event()
    session = StreamingSession(blocking_pipeline(gate, started, honour_cancel=False), max_workers=2)

    stale = session.append("a")
    assert started.wait(timeout=10)
    session.append("b").result(timeout=10)
    gate.set()

    assert stale.result(timeout=10) is None
    assert session.applied_version == 2
    assert session.chunks[0].plain_text == "ab"
    session.close()

def test_callback_can_read_session():
    seen = []
    pipeline = RenderPipeline(formula_renderer=fake_formula_renderer())
    session = StreamingSession(pipeline)
    session.on_update = lambda v, chunks, diff: seen.append((len(session.chunks), session.snapshot().version))

    update = session.append("hello").result(timeout=10)
    assert update.version == 1
    assert seen == [(1, 1)]
    session.close()

def test_schedule_returns_own_version():
    gate, started = threading.Event(), threading.Event()
    session = StreamingSession(blocking_pipeline(gate, started), max_workers=2)

    first_version, first = session.schedule("a")
    assert started.wait(timeout=10)
    second_version, second = session.schedule("b")
    gate.set()

    assert (first_version, second_version) == (1, 2)
    assert second.result(timeout=10).version == 2
    assert first.result(timeout=10) is None
    session.close()

def test_snapshot_and_record():
    session = StreamingSession(RenderPipeline(formula_renderer=fake_formula_renderer()))
    session.append("one").result(timeout=10)
    snapshot = session.snapshot()
    assert snapshot.version == 1
    assert snapshot.diff.unchanged == [0]

    record = session.record()
    assert record.version == 1
    assert record.applied_version == 1
    assert record.text_length == 3
    assert record.status == SessionStatus.open
    session.close()

def test_close_clears_caches_and_rejects_appends():
    session = StreamingSession(RenderPipeline(formula_renderer=fake_formula_renderer()))
    render_caches.formula.set("x", "image")
    session.close()

    assert len(render_caches.formula) == 0
    assert session.status == SessionStatus.closed
    with pytest.raises(RuntimeError):
        session.append("more")

if __name__ == "__main__":
    test_pipeline_run()
    test_superseded_pass_is_cancelled()
    print("Done.")
