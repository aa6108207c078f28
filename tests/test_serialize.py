"""Test serialization mixin classes."""
import numpy as np
import pytest

from svdcompress.compression import Factorization, factorize
from svdcompress.serialize import PickleSerializable


class ClassTestPickle(PickleSerializable):
    def __init__(self, value):
        self.value = value


def test_pickle_serializable(tmp_path):
    fname = tmp_path / 'test_pickle.pkl'
    obj = ClassTestPickle(42)
    serialized = obj.serialize(fname)
    assert serialized.endswith('test_pickle.pkl')
    deserialized = ClassTestPickle.deserialize(fname)
    assert obj.value == deserialized.value

    with pytest.raises(ValueError):
        obj.serialize()


def test_pickle_wrong_type(tmp_path):
    fname = tmp_path / 'other.pkl'
    ClassTestPickle(1).serialize(fname)
    with pytest.raises(TypeError):
        Factorization.deserialize(fname)


def test_factorization_cache(tmp_path):
    """A factorization saved to disk gives the same approximations when loaded back."""
    matrix = np.random.default_rng(1).uniform(0, 255, size=(12, 9))
    fac = factorize(matrix)
    fac.serialize(tmp_path / 'channel.pkl')
    fac_load = Factorization.deserialize(tmp_path / 'channel.pkl')

    assert fac_load.shape == fac.shape
    for rank in [1, 4, 9]:
        assert np.array_equal(fac_load.reconstruct(rank), fac.reconstruct(rank))
