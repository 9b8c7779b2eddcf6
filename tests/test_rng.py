"""
test_rng.py
-----------

Tests for the seeded random sequence provider.
"""

import pytest

from psystair.utils.rng import RandomSequenceProvider, as_provider, normalize_seed


class TestRandomSequenceProvider:
    """Draws are a pure function of the seed and the call order."""

    def test_same_seed_same_sequence(self):
        a = RandomSequenceProvider(7)
        b = RandomSequenceProvider(7)
        assert [a.randint(10) for _ in range(20)] == [b.randint(10) for _ in range(20)]

    def test_string_seed_is_reproducible(self):
        a = RandomSequenceProvider("participant-01")
        b = RandomSequenceProvider("participant-01")
        assert a.shuffle(list(range(8))) == b.shuffle(list(range(8)))

    def test_no_seed_records_the_seed_used(self):
        rng = RandomSequenceProvider()
        assert isinstance(rng.seed_value, int)
        replay = RandomSequenceProvider(rng.seed_value)
        assert rng.random() == replay.random()

    def test_random_in_unit_interval(self, rng):
        values = [rng.random() for _ in range(50)]
        assert all(0.0 <= v < 1.0 for v in values)

    def test_randint_range(self, rng):
        values = {rng.randint(3) for _ in range(100)}
        assert values <= {0, 1, 2}
        assert len(values) == 3

    def test_randint_rejects_non_positive(self, rng):
        with pytest.raises(ValueError, match="positive"):
            rng.randint(0)

    def test_shuffle_is_in_place_permutation(self, rng):
        items = list(range(10))
        result = rng.shuffle(items)
        assert result is items
        assert sorted(items) == list(range(10))

    def test_shuffle_short_sequences(self, rng):
        assert rng.shuffle([]) == []
        assert rng.shuffle(["only"]) == ["only"]

    def test_choice(self, rng):
        items = ["A", "B", "C"]
        assert all(rng.choice(items) in items for _ in range(20))

    def test_choice_empty(self, rng):
        with pytest.raises(ValueError, match="empty"):
            rng.choice([])


class TestSeedHelpers:
    """Seed normalization and provider resolution."""

    def test_normalize_seed_range(self):
        assert 0 <= normalize_seed(-5) < 2**31
        assert 0 <= normalize_seed(2**40) < 2**31
        assert normalize_seed("abc") == normalize_seed("abc")

    def test_normalize_seed_rejects_bool(self):
        with pytest.raises(ValueError, match="bool"):
            normalize_seed(True)

    def test_as_provider_passthrough(self, rng):
        assert as_provider(rng) is rng

    def test_as_provider_rejects_other_types(self):
        with pytest.raises(TypeError, match="RandomSequenceProvider"):
            as_provider(42)
