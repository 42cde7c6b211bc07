"""Adapters — host bindings for the formula pipeline.

Public re-exports for convenient access.
"""

from cellar.adapters.base import (
    Adapter,
    FixtureStager,
    ProcessRunner,
    SourceTransport,
    ToolProbe,
)
from cellar.adapters.net.http import UrlTransport
from cellar.adapters.shell.command import SubprocessRunner
from cellar.adapters.shell.filesystem import DirectoryFixtureStager
from cellar.adapters.shell.probe import PathToolProbe

__all__ = [
    "Adapter",
    "DirectoryFixtureStager",
    "FixtureStager",
    "PathToolProbe",
    "ProcessRunner",
    "SourceTransport",
    "SubprocessRunner",
    "ToolProbe",
    "UrlTransport",
]
