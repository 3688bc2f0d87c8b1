"""I/O adapters for HTTP fetching, audio storage, and job records."""

from .http import HttpFetcher
from .job_store import InMemoryJobStore, JobRecordStore, JsonFileJobStore
from .storage import FilesystemStorageSink, StorageSink

__all__ = [
    "FilesystemStorageSink",
    "HttpFetcher",
    "InMemoryJobStore",
    "JobRecordStore",
    "JsonFileJobStore",
    "StorageSink",
]
