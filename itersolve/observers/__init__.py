"""Observers — progress subscribers notified after every iteration."""

from itersolve.observers.interface import Observer, ObserverMode
from itersolve.observers.local_observer import JsonLinesObserver
from itersolve.observers.logging_observer import LoggingObserver
from itersolve.observers.progress import ProgressObserver
from itersolve.observers.registry import ObserverRegistry
from itersolve.observers.wandb_observer import WandbObserver

__all__ = [
    "JsonLinesObserver",
    "LoggingObserver",
    "Observer",
    "ObserverMode",
    "ObserverRegistry",
    "ProgressObserver",
    "WandbObserver",
]
