"""Provides serialization protocols for objects in the package. Serialization here means converting an object to a
built-in Python object (e.g. string or dictionary) that is easy to store with pickle or yaml.

Includes:

- `Serializable` — mixin interface for serializing and deserializing objects
- `PickleSerializable` — mixin class for serializing objects using pickle files
"""
from __future__ import annotations

import pickle
from abc import ABC, abstractmethod
from pathlib import Path

__all__ = ['Serializable', 'PickleSerializable']

_builtin = str | dict | list | int | float | tuple | bool  # Generic type for common built-in Python objects


class Serializable(ABC):
    """Mixin interface for serializing and deserializing objects."""

    @abstractmethod
    def serialize(self) -> _builtin:
        """Serialize to a builtin Python object."""
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def deserialize(cls, serialized_data: _builtin) -> Serializable:
        """Construct a `Serializable` object from serialized data."""
        raise NotImplementedError


class PickleSerializable(Serializable):
    """Mixin class for serializing objects using pickle. Returns the absolute path of the pickle file."""
    def serialize(self, save_path: str | Path = None) -> str:
        if save_path is None:
            raise ValueError('Must provide a save path for Pickle serialization.')
        with open(Path(save_path), 'wb') as fd:
            pickle.dump(self, fd)
        return str(Path(save_path).resolve().as_posix())

    @classmethod
    def deserialize(cls, serialized_data: str | Path) -> PickleSerializable:
        with open(Path(serialized_data), 'rb') as fd:
            obj = pickle.load(fd)
        if not isinstance(obj, cls):
            raise TypeError(f'Pickle file "{serialized_data}" holds a {type(obj).__name__}, not a {cls.__name__}.')
        return obj
