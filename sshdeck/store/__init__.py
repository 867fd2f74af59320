"""Persistence (document backends and the credential store)"""
from .backends import DirectoryBackend, SftpBackend, open_backend
from .credential_store import CredentialStore, LocalCredentialStore, CloudCredentialStore

__all__ = [
    "DirectoryBackend", "SftpBackend", "open_backend",
    "CredentialStore", "LocalCredentialStore", "CloudCredentialStore",
]
