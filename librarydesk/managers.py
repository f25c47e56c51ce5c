# managers.py

from django.db import models
from threading import local
import logging

logger = logging.getLogger(__name__)

_thread_locals = local()


def get_current_library():
    """Get the library (tenant) bound to this thread"""
    return getattr(_thread_locals, 'current_library', None)


def set_current_library(library):
    """Bind a library (tenant) to this thread"""
    if library is None:
        return False

    _thread_locals.current_library = library
    logger.debug(f"Set current_library to: {library.pk}")
    return True


def clear_current_library():
    """Clear the current library binding"""
    if hasattr(_thread_locals, 'current_library'):
        delattr(_thread_locals, 'current_library')


class LibraryContext:
    """Context manager for temporarily switching the current library"""

    def __init__(self, library):
        self.library = library
        self.previous_library = None

    def __enter__(self):
        self.previous_library = get_current_library()
        set_current_library(self.library)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.previous_library:
            set_current_library(self.previous_library)
        else:
            clear_current_library()


class LibraryQuerySet(models.QuerySet):
    """QuerySet with explicit tenant scoping"""

    def for_library(self, library):
        if library is None:
            return self.none()
        return self.filter(library=library)


class LibraryManager(models.Manager.from_queryset(LibraryQuerySet)):
    """
    Manager for tenant-owned rows.

    Scoping is explicit: services call ``for_library(library)`` with the
    acting profile's library. Nothing is filtered implicitly so admin and
    management commands can still see every tenant.
    """
    pass
