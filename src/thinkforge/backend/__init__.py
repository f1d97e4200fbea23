"""Clients for the hosted auth/datastore backend."""

from .datastore import Datastore, InMemoryDatastore, RestDatastore, utc_now
from .transport import RestTransport

__all__ = [
    "Datastore",
    "InMemoryDatastore",
    "RestDatastore",
    "RestTransport",
    "utc_now",
]
