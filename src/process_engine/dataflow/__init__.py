"""Dataflow model: channels, process inputs and input tuple scheduling."""

from process_engine.dataflow.channel import (
    STOP,
    BroadcastChannel,
    Channel,
    ChannelKind,
    StreamChannel,
    ValueChannel,
    stream_of,
    value_channel,
)
from process_engine.dataflow.inputs import Deferred, ProcessInput, bind_source
from process_engine.dataflow.scheduler import iter_input_tuples
from process_engine.dataflow.workflow import WorkflowBuilder, WorkflowDef

__all__ = [
    "STOP",
    "BroadcastChannel",
    "Channel",
    "ChannelKind",
    "Deferred",
    "ProcessInput",
    "StreamChannel",
    "ValueChannel",
    "WorkflowBuilder",
    "WorkflowDef",
    "bind_source",
    "iter_input_tuples",
    "stream_of",
    "value_channel",
]
