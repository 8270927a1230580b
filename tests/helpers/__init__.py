from .cluster import make_state, next_state, node
from .engines import Call, RecordingEngine
from .kafka import BROKER, AIOKafkaConsumerMock, AIOKafkaProducerMock, reset_broker
from .stores import CountingStore, hook_doc
from .util import wait_until

__all__ = [
    "BROKER",
    "AIOKafkaConsumerMock",
    "AIOKafkaProducerMock",
    "Call",
    "CountingStore",
    "RecordingEngine",
    "hook_doc",
    "make_state",
    "next_state",
    "node",
    "reset_broker",
    "wait_until",
]
