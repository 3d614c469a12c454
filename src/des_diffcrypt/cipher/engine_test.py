import random

import pytest

from des_diffcrypt.cipher.engine import CipherResult, decrypt, encrypt, feistel
from des_diffcrypt.cipher.key_schedule import InvalidRoundCountError, round_keys
from des_diffcrypt.cipher.permutation import E, P
from des_diffcrypt.cipher.sbox import substitute


class TestFeistel:
    """Test suite for the round function"""

    def test_textbook_round_one(self):
        """Test F(R0, K1) from the textbook walk-through"""
        assert feistel(0xF0AAF0AA, 0x1B02EFFC7072) == 0x234AA9BB

    def test_matches_unoptimised_definition(self):
        """Test the SP lookups against P(S(E(R) ^ K))"""
        rng = random.Random(8)
        for _ in range(200):
            r = rng.getrandbits(32)
            k = rng.getrandbits(48)
            assert feistel(r, k) == P.apply(substitute(E.apply(r) ^ k))


class TestEncrypt:
    """Test suite for block encryption and decryption"""

    @pytest.mark.parametrize(
        "key,plaintext,ciphertext",
        [
            (0x133457799BBCDFF1, 0x0123456789ABCDEF, 0x85E813540F0AB405),
            (0x0E329232EA6D0D73, 0x8787878787878787, 0x0000000000000000),
        ],
    )
    def test_standard_known_answer(self, key, plaintext, ciphertext):
        """Test 16-round DES with IP against published vectors"""
        assert encrypt(plaintext, key, 16, standard=True).ciphertext == ciphertext
        assert decrypt(ciphertext, key, 16, standard=True).ciphertext == plaintext

    def test_round_trip_all_round_counts(self):
        """Test that decrypt undoes encrypt for every round count"""
        rng = random.Random(9)
        for rounds in range(1, 17):
            for _ in range(20):
                key = rng.getrandbits(64)
                plaintext = rng.getrandbits(64)
                ciphertext = encrypt(plaintext, key, rounds).ciphertext
                assert decrypt(ciphertext, key, rounds).ciphertext == plaintext

    def test_one_round_has_no_swap(self):
        """Test that a single round only updates the left half"""
        key = 0x133457799BBCDFF1
        plaintext = 0x0123456789ABCDEF
        k1 = round_keys(key, 1)[0]
        expected_left = 0x01234567 ^ feistel(0x89ABCDEF, k1)
        assert encrypt(plaintext, key, 1).ciphertext == (expected_left << 32) | 0x89ABCDEF

    def test_plaintext_masked_to_64_bits(self):
        """Test that oversized inputs are masked"""
        key = 0x133457799BBCDFF1
        assert encrypt(1 << 64 | 5, key, 6).ciphertext == encrypt(5, key, 6).ciphertext

    @pytest.mark.parametrize("rounds", [0, 17])
    def test_invalid_round_count(self, rounds):
        """Test that bad round counts are rejected"""
        with pytest.raises(InvalidRoundCountError):
            encrypt(0, 0, rounds)
        with pytest.raises(InvalidRoundCountError):
            decrypt(0, 0, rounds)


class TestInstrumentation:
    """Test suite for the recorded round F outputs"""

    def test_recorded_rounds_for_six(self):
        """Test which rounds are recorded in 6-round mode"""
        result = encrypt(0x0123456789ABCDEF, 0x133457799BBCDFF1, 6)
        assert isinstance(result, CipherResult)
        assert set(result.f_outputs) == {0, 2, 3, 5}

    @pytest.mark.parametrize("rounds,expected", [(1, {0}), (3, {0, 2}), (16, {0, 2, 3, 15})])
    def test_recorded_rounds_for_other_counts(self, rounds, expected):
        """Test that only existing rounds are recorded"""
        result = encrypt(0, 0x133457799BBCDFF1, rounds)
        assert set(result.f_outputs) == expected

    def test_first_round_output(self):
        """Test that round 0's output is F(R0, K1)"""
        key = 0x133457799BBCDFF1
        plaintext = 0x0123456789ABCDEF
        result = encrypt(plaintext, key, 6)
        assert result.f_output(0) == feistel(0x89ABCDEF, round_keys(key, 6)[0])

    def test_fourth_round_output_is_not_first(self):
        """Test that round 3 is the real fourth round output"""
        key = 0x133457799BBCDFF1
        plaintext = 0x0123456789ABCDEF
        keys = round_keys(key, 6)
        left, right = plaintext >> 32, plaintext & 0xFFFFFFFF
        outputs = []
        for k in keys[:4]:
            f = feistel(right, k)
            outputs.append(f)
            left, right = right, left ^ f
        result = encrypt(plaintext, key, 6)
        assert result.f_output(2) == outputs[2]
        assert result.f_output(3) == outputs[3]

    def test_results_are_independent(self):
        """Test that each call returns its own outputs"""
        key = 0x133457799BBCDFF1
        a = encrypt(1, key, 6)
        b = encrypt(2, key, 6)
        assert a.f_outputs != b.f_outputs
        assert encrypt(1, key, 6) == a
