import asyncio
import hashlib

import pytest

from lootvault.services.errors import InvalidSignature
from lootvault.services.randomness import (
    LocalRandomnessProvider,
    ManualRandomnessProvider,
    OracleRandomnessProvider,
    build_randomness_provider,
)


def test_local_values_are_reproducible_from_the_seed():
    provider = LocalRandomnessProvider(server_seed="ab" * 32, delay_sec=0)
    again = LocalRandomnessProvider(server_seed="ab" * 32, delay_sec=0)

    assert provider.server_seed_hash == hashlib.sha256(("ab" * 32).encode()).hexdigest()
    assert provider.derive("req-1") == again.derive("req-1")
    assert provider.derive("req-1") != provider.derive("req-2")
    assert 0 <= provider.derive("req-1") < 2**256
    assert provider.verify("req-1", provider.derive("req-1"))
    assert not provider.verify("req-1", provider.derive("req-1") + 1)


async def test_local_provider_delivers_to_bound_callback():
    provider = LocalRandomnessProvider(server_seed="cd" * 32, delay_sec=0)
    delivered = asyncio.Queue()

    async def on_ready(request_id, value):
        await delivered.put((request_id, value))

    provider.bind(on_ready)
    first = await provider.request_randomness()
    second = await provider.request_randomness()
    assert first != second

    received = dict([await delivered.get(), await delivered.get()])
    assert received == {first: provider.derive(first), second: provider.derive(second)}
    await provider.stop()


async def test_deliver_without_consumer_raises():
    provider = ManualRandomnessProvider(secret="s")
    with pytest.raises(RuntimeError):
        await provider.fulfill("manual-1", 1)


async def test_signed_callbacks():
    provider = ManualRandomnessProvider(secret="s3cret")
    seen = []

    async def on_ready(request_id, value):
        seen.append((request_id, value))

    provider.bind(on_ready)
    signature = provider.sign("req-9", 42)
    await provider.handle_callback("req-9", 42, signature)
    assert seen == [("req-9", 42)]

    with pytest.raises(InvalidSignature):
        await provider.handle_callback("req-9", 43, signature)
    with pytest.raises(InvalidSignature):
        await provider.handle_callback("req-9", 42, "")
    assert seen == [("req-9", 42)]


async def test_callbacks_rejected_without_secret():
    provider = ManualRandomnessProvider(secret="")
    provider.bind(lambda request_id, value: None)
    with pytest.raises(InvalidSignature):
        await provider.handle_callback("req-1", 1, provider.sign("req-1", 1))


async def test_manual_provider_ids():
    provider = ManualRandomnessProvider(secret="s")
    assert await provider.request_randomness() == "manual-1"
    assert await provider.request_randomness() == "manual-2"
    assert list(provider.requested) == ["manual-1", "manual-2"]


def test_build_randomness_provider():
    assert isinstance(build_randomness_provider("manual"), ManualRandomnessProvider)
    assert isinstance(build_randomness_provider("LOCAL"), LocalRandomnessProvider)
    assert isinstance(build_randomness_provider("oracle"), OracleRandomnessProvider)
    with pytest.raises(ValueError):
        build_randomness_provider("dice")


async def test_oracle_requires_url():
    provider = OracleRandomnessProvider(base_url="", api_key="", secret="s")
    with pytest.raises(RuntimeError):
        await provider.request_randomness()


async def test_manual_provider_keeps_only_recent_ids():
    provider = ManualRandomnessProvider(secret="s", max_tracked=3)
    for _ in range(5):
        await provider.request_randomness()
    assert list(provider.requested) == ["manual-3", "manual-4", "manual-5"]
