"""
Adapter pattern implementations for job sources, storage backends and
code-generation handoff.

This module provides abstract base classes and the concrete local
implementations: a watched input directory, filesystem storage and a
manifest-based code generator.
"""

from .base import CodeGeneratorAdapter, Job, JobSourceAdapter, StorageAdapter
from .codegen_adapter import ManifestCodeGenerator
from .directory_adapter import DirectoryJobSourceAdapter
from .filesystem_adapter import FilesystemStorageAdapter

__all__ = [
    'Job',
    'JobSourceAdapter',
    'StorageAdapter',
    'CodeGeneratorAdapter',
    'DirectoryJobSourceAdapter',
    'FilesystemStorageAdapter',
    'ManifestCodeGenerator',
]
