"""Pytest configuration and shared fixtures."""

import pytest

from warelay.relay.builtin import BuiltinCommands
from warelay.relay.commands import CommandRegistryBuilder
from warelay.relay.correlation import CorrelationMap, LiveLocationTracker
from warelay.relay.dedup import DedupGate
from warelay.relay.forwarder import Forwarder
from warelay.relay.reply import ReplyDispatcher
from warelay.relay.router import Router

from tests.fakes import OPERATOR, FakeClock, FakeSession, RecordingTransformer


CORRELATION_TTL = 3600.0
LIVE_IDLE = 900.0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def transformer():
    return RecordingTransformer()


@pytest.fixture
def correlations(clock):
    return CorrelationMap(ttl=CORRELATION_TTL, clock=clock)


@pytest.fixture
def live_locations(clock):
    return LiveLocationTracker(idle=LIVE_IDLE, clock=clock)


@pytest.fixture
def forwarder(session, correlations, live_locations, transformer):
    return Forwarder(
        session=session,
        operator_chat_id=OPERATOR,
        correlations=correlations,
        live_locations=live_locations,
        transformer=transformer,
    )


@pytest.fixture
def replies(session, correlations):
    return ReplyDispatcher(session=session, correlations=correlations)


@pytest.fixture
def builtins(session, correlations):
    return BuiltinCommands(
        session=session,
        correlations=correlations,
        operator_chat_id=OPERATOR,
        lookup_timeout=0.05,
    )


@pytest.fixture
def registry(builtins):
    registry = builtins.install(CommandRegistryBuilder()).build()
    builtins.bind(registry)
    return registry


@pytest.fixture
def router(session, registry, forwarder, replies, clock):
    return Router(
        session=session,
        registry=registry,
        forwarder=forwarder,
        replies=replies,
        operator_chat_id=OPERATOR,
        dedup=DedupGate(window=60.0, clock=clock),
    )
