import pytest

from services.orchestrator.saga import SagaOrchestrator


def _recorder(log, name, fail=False):
    async def step(ctx):
        log.append(name)
        if fail:
            raise RuntimeError(f"{name} failed")
    return step


async def test_steps_run_in_order():
    log = []
    saga = (
        SagaOrchestrator("test")
        .add_step("one", _recorder(log, "one"))
        .add_step("two", _recorder(log, "two"))
    )

    ctx = await saga.execute({})

    assert ctx == {}
    assert log == ["one", "two"]


async def test_compensations_run_in_reverse_and_error_propagates():
    log = []
    saga = (
        SagaOrchestrator("test")
        .add_step("one", _recorder(log, "one"), _recorder(log, "undo-one"))
        .add_step("two", _recorder(log, "two"), _recorder(log, "undo-two"))
        .add_step("three", _recorder(log, "three", fail=True), _recorder(log, "undo-three"))
    )

    with pytest.raises(RuntimeError, match="three failed"):
        await saga.execute({})

    # the failed step itself is not compensated
    assert log == ["one", "two", "three", "undo-two", "undo-one"]


async def test_failing_compensation_does_not_block_the_rest():
    log = []
    saga = (
        SagaOrchestrator("test")
        .add_step("one", _recorder(log, "one"), _recorder(log, "undo-one"))
        .add_step("two", _recorder(log, "two"), _recorder(log, "undo-two", fail=True))
        .add_step("three", _recorder(log, "three", fail=True))
    )

    with pytest.raises(RuntimeError, match="three failed"):
        await saga.execute({})

    assert log == ["one", "two", "three", "undo-two", "undo-one"]


async def test_steps_without_compensation_are_skipped():
    log = []
    saga = (
        SagaOrchestrator("test")
        .add_step("one", _recorder(log, "one"), _recorder(log, "undo-one"))
        .add_step("external", _recorder(log, "external"))
        .add_step("two", _recorder(log, "two", fail=True))
    )

    with pytest.raises(RuntimeError):
        await saga.execute({})

    assert log == ["one", "external", "two", "undo-one"]
