import random

import pytest

from des_diffcrypt.analysis.characteristic import CHARACTERISTIC_ONE, CHARACTERISTIC_TWO
from des_diffcrypt.analysis.pair_generator import InvalidPairCountError, generate_pairs, is_right_pair
from des_diffcrypt.cipher.engine import encrypt


KEY = 0x133457799BBCDFF1


class TestGeneratePairs:
    """Test suite for right pair generation"""

    @pytest.mark.parametrize("characteristic", [CHARACTERISTIC_ONE, CHARACTERISTIC_TWO])
    def test_pairs_are_right_pairs(self, characteristic):
        """Test that every retained pair follows the characteristic"""
        pairs = generate_pairs(characteristic, KEY, 3000, seed=1)
        assert pairs
        for pair in pairs[:50]:
            assert pair.input_difference == characteristic.input_difference
            first = encrypt(pair.x1, KEY, 6)
            second = encrypt(pair.x2, KEY, 6)
            assert first.ciphertext == pair.y1
            assert second.ciphertext == pair.y2
            assert is_right_pair(first, second, characteristic)
            assert pair.valid

    def test_roughly_one_in_sixteen_survive(self):
        """Test the filter rate of the 1/16 characteristic"""
        pairs = generate_pairs(CHARACTERISTIC_ONE, KEY, 8000, seed=2)
        assert 300 < len(pairs) < 700

    def test_zero_count(self):
        """Test that no trials give no pairs"""
        assert generate_pairs(CHARACTERISTIC_ONE, KEY, 0, seed=3) == []

    def test_negative_count(self):
        """Test that a negative count is rejected"""
        with pytest.raises(InvalidPairCountError, match="must not be negative"):
            generate_pairs(CHARACTERISTIC_ONE, KEY, -1)

    def test_seed_is_reproducible(self):
        """Test that the same seed yields the same pairs"""
        assert generate_pairs(CHARACTERISTIC_TWO, KEY, 2000, seed=4) == generate_pairs(CHARACTERISTIC_TWO, KEY, 2000, seed=4)

    def test_rng_and_seed_agree(self):
        """Test that passing a generator is the same as passing its seed"""
        assert generate_pairs(CHARACTERISTIC_ONE, KEY, 1000, rng=random.Random(5)) == generate_pairs(CHARACTERISTIC_ONE, KEY, 1000, seed=5)

    def test_workers_do_not_change_result(self):
        """Test that threaded generation merges chunks in order"""
        single = generate_pairs(CHARACTERISTIC_ONE, KEY, 7000, seed=6, workers=1)
        threaded = generate_pairs(CHARACTERISTIC_ONE, KEY, 7000, seed=6, workers=4)
        assert threaded == single


class TestIsRightPair:
    """Test suite for the right pair predicate"""

    def test_wrong_pair_rejected(self):
        """Test that a pair without the characteristic's difference is rejected"""
        first = encrypt(0, KEY, 6)
        second = encrypt(1, KEY, 6)
        assert not is_right_pair(first, second, CHARACTERISTIC_ONE)
