"""
Tests for MemoryLineSource, the simulated follower used by registry tests.
"""
import pytest

from vswitch.exceptions import ExternalProcessError
from vswitch.sources import MemoryLineSource


@pytest.mark.asyncio
async def test_push_and_finish():
    source = MemoryLineSource()
    await source.open()

    source.push("one")
    source.push("two")
    source.finish()

    assert [line async for line in source.lines()] == ["one", "two"]
    assert source.lines_read == 2
    assert source.is_running() is False


@pytest.mark.asyncio
async def test_fail():
    source = MemoryLineSource()
    await source.open()
    source.fail("crashed", returncode=2)

    with pytest.raises(ExternalProcessError) as excinfo:
        async for _ in source.lines():
            pass

    assert excinfo.value.returncode == 2


@pytest.mark.asyncio
async def test_fail_on_open():
    source = MemoryLineSource(fail_on_open=True)

    with pytest.raises(ExternalProcessError):
        await source.open()
    assert source.opened is False
