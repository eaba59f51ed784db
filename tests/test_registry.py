"""
Tests for the render job registry.
"""

from pathlib import Path

from md2pdf.modules.render import JobRegistry, RenderJob


def test_register_and_get():
    registry = JobRegistry()
    job = registry.register(RenderJob(id="a", temp_document_path=Path("a.html")))

    assert registry.get("a") is job
    assert "a" in registry
    assert len(registry) == 1
    assert registry.jobs() == [job]


def test_release_is_idempotent():
    registry = JobRegistry()
    job = registry.register(RenderJob(id="a"))

    assert registry.release("a", job) is job
    assert registry.release("a", job) is None
    assert registry.release("never") is None
    assert len(registry) == 0


def test_stale_release_keeps_newer_entry():
    """Reusing an id replaces the entry; the old job cannot evict the new one."""
    registry = JobRegistry()
    old = registry.register(RenderJob(id="a"))
    new = registry.register(RenderJob(id="a"))

    assert registry.release("a", old) is None
    assert registry.get("a") is new


def test_mark_aborted():
    registry = JobRegistry()
    job = registry.register(RenderJob(id="a"))

    assert registry.mark_aborted("a") is True
    assert job.aborted
    assert registry.mark_aborted("missing") is False


def test_finished_history_is_bounded():
    registry = JobRegistry(finished_history=2)
    for job_id in ("a", "b", "c"):
        registry.register(RenderJob(id=job_id))
        registry.release(job_id)

    assert not registry.was_finished("a")
    assert registry.was_finished("b")
    assert registry.was_finished("c")


def test_reregistering_clears_finished_flag():
    registry = JobRegistry()
    registry.register(RenderJob(id="a"))
    registry.release("a")
    registry.register(RenderJob(id="a"))

    assert not registry.was_finished("a")


def test_history_disabled():
    registry = JobRegistry(finished_history=0)
    registry.register(RenderJob(id="a"))
    registry.release("a")
    assert not registry.was_finished("a")
