#!/usr/bin/env python3
import io
import os
import json
import random
import hashlib
import argparse
import tempfile
import unittest
import importlib.util

import util
import paillier
import correctkey

_N_BITS = 2048


class TestUtil(unittest.TestCase):
    def test_int_to_bytes(self):
        self.assertEqual(util.int_to_bytes(0), b'\x00')
        self.assertEqual(util.int_to_bytes(1), b'\x01')
        self.assertEqual(util.int_to_bytes(255), b'\xff')
        self.assertEqual(util.int_to_bytes(256), b'\x01\x00')

    def test_digest(self):
        empty = int.from_bytes(hashlib.sha256(b'').digest(), 'big')
        self.assertEqual(util.H([]), empty)
        # zero is encoded as a null byte
        zeros = int.from_bytes(hashlib.sha256(b'\x00\x00').digest(), 'big')
        self.assertEqual(util.H([0, 0]), zeros)
        self.assertNotEqual(util.H([0]), util.H([]))

        expected = int.from_bytes(hashlib.sha256(b'\x01\x00\x03').digest(), 'big')
        self.assertEqual(util.H([256, 3]), expected)
        self.assertLess(util.H([2**4000]), 2**correctkey.DIGEST_BITS)

    def test_genprime(self):
        for n_bits in [64, 65, 512]:
            p = util.genprime(n_bits)
            self.assertTrue(util.is_prime(p))
            self.assertEqual(p.bit_length(), n_bits)
            # two most significant bits set
            self.assertEqual(p >> (n_bits - 2), 3)

    def test_crt(self):
        self.assertEqual(util.crt([2, 3], [5, 7]), 17)
        self.assertEqual(util.gcd(12, 18), 6)


class TestPaillier(unittest.TestCase):
    def test_keygen(self):
        pk, sk = paillier.generate_paillier_keypair(103)

        # check p and q are actually safe primes
        self.assertGreater(sk.p, 0)
        self.assertGreater(sk.q, 0)
        self.assertTrue(util.is_prime(sk.p))
        self.assertTrue(util.is_prime(sk.q))
        self.assertTrue(util.is_prime((sk.p-1) // 2))
        self.assertTrue(util.is_prime((sk.q-1) // 2))

        # check their sizes
        self.assertEqual(sk.p.bit_length() + sk.q.bit_length(), 103)
        self.assertEqual(pk.n.bit_length(), 103)

        # check consistency of n
        self.assertEqual(pk.n, sk.p * sk.q)
        self.assertIs(sk.public_key, pk)

    def test_keygen_unsafe_primes(self):
        pk, sk = paillier.generate_paillier_keypair(_N_BITS, safe_primes=False)
        self.assertNotEqual(sk.p, sk.q)
        self.assertTrue(util.is_prime(sk.p))
        self.assertTrue(util.is_prime(sk.q))
        self.assertEqual(pk.n.bit_length(), _N_BITS)

    def test_extract_nroot(self):
        pk, sk = paillier.generate_paillier_keypair(512, safe_primes=False)
        for _ in range(10):
            z = random.randrange(pk.n)
            r = sk.extract_nroot(z)
            self.assertGreaterEqual(r, 0)
            self.assertLess(r, pk.n)
            self.assertEqual(util.powmod(r, pk.n, pk.n), z)

        # not coprime with n
        self.assertEqual(util.powmod(sk.extract_nroot(sk.p), pk.n, pk.n), sk.p)
        self.assertEqual(sk.extract_nroot(0), 0)

    def test_invalid_key(self):
        # 3 divides both n = 21 and φ(n) = 12
        self.assertRaises(ValueError, paillier.PaillierSecretKey, 3, 7)


class TestChallenges(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.pk, cls.sk = paillier.generate_paillier_keypair(_N_BITS, safe_primes=False)

    def test_deterministic(self):
        n = self.pk.n
        challenges = correctkey.generate_challenges(n)
        self.assertEqual(challenges, correctkey.generate_challenges(n))
        self.assertEqual(len(challenges), correctkey.CHALLENGE_COUNT)
        for challenge in challenges:
            self.assertGreaterEqual(challenge, 0)
            self.assertLess(challenge, n)
        self.assertEqual(len(set(challenges)), correctkey.CHALLENGE_COUNT)

        # depends on n
        other_pk, _ = paillier.generate_paillier_keypair(_N_BITS, safe_primes=False)
        self.assertNotEqual(challenges, correctkey.generate_challenges(other_pk.n))

    def test_layout(self):
        n = self.pk.n
        n_bytes = n.to_bytes(_N_BITS // 8, 'big')

        def block(i, j):
            data = n_bytes + bytes([i]) + bytes([j]) + b'KZen'
            return hashlib.sha256(data).digest()

        # the block of index j lands at bit offset 256 × j
        block_count = _N_BITS // 256
        expected = [
            int.from_bytes(b''.join(block(i, j) for j in reversed(range(block_count))), 'big') % n
            for i in range(11)
        ]
        self.assertEqual(correctkey.generate_challenges(n), expected)

    def test_block_separation(self):
        n = self.pk.n
        salt = int.from_bytes(correctkey.SALT, 'big')
        for k in range(1, correctkey.CHALLENGE_COUNT):
            self.assertNotEqual(util.H([n, 0, k, salt]), util.H([n, k, 0, salt]))

        # no block is shared between two challenges
        block_count = _N_BITS // correctkey.DIGEST_BITS
        blocks = [
            util.H([n, i, j, salt])
            for i in range(correctkey.CHALLENGE_COUNT)
            for j in range(block_count)
        ]
        self.assertEqual(len(set(blocks)), len(blocks))

    def test_constants(self):
        self.assertEqual(correctkey.CHALLENGE_COUNT, 11)
        self.assertEqual(correctkey.DIGEST_BITS, 256)
        self.assertEqual(correctkey.SALT, b'KZen')

    def test_small_prime_product(self):
        P = correctkey.SMALL_PRIME_PRODUCT
        primes = [x for x in range(2, 6380) if util.is_prime(x)]
        self.assertEqual(P, util.prod(primes))
        self.assertEqual(P % 6379, 0)


class TestCorrectKeyProof(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.pk, cls.sk = paillier.generate_paillier_keypair(_N_BITS, safe_primes=False)
        cls.proof = correctkey.prove(cls.sk)

    def assertRejected(self, proof):
        self.assertRaises(correctkey.ProofRejected, proof.verify)

    def test_completeness(self):
        self.assertEqual(self.proof.n, self.pk.n)
        self.assertEqual(len(self.proof.sigma), correctkey.CHALLENGE_COUNT)
        self.assertIsNone(self.proof.verify())
        self.assertIsNone(correctkey.verify(self.proof))

        # verification does not alter the proof
        sigma = self.proof.sigma
        self.proof.verify()
        self.assertEqual(self.proof.sigma, sigma)

    def test_witnesses(self):
        challenges = correctkey.generate_challenges(self.pk.n)
        for s, challenge in zip(self.proof.sigma, challenges):
            self.assertEqual(util.powmod(s, self.pk.n, self.pk.n), challenge)

        # the factorization does not appear in the proof
        for s in self.proof.sigma:
            self.assertNotIn(s, (self.sk.p, self.sk.q))

    def test_scenario(self):
        pk, sk = paillier.generate_paillier_keypair(_N_BITS, safe_primes=False)
        self.assertGreaterEqual(pk.n.bit_length(), 2048)
        proof = correctkey.prove(sk)
        self.assertEqual(len(proof.sigma), 11)
        proof.verify()

        sigma = list(proof.sigma)
        sigma[3] = (sigma[3] + 1) % proof.n
        self.assertRejected(correctkey.CorrectKeyProof(proof.n, sigma))

    def test_witness_order(self):
        n, sigma = self.proof.n, list(self.proof.sigma)

        swapped = list(sigma)
        swapped[0], swapped[1] = swapped[1], swapped[0]
        self.assertRejected(correctkey.CorrectKeyProof(n, swapped))

        self.assertRejected(correctkey.CorrectKeyProof(n, reversed(sigma)))

        rotated = sigma[1:] + sigma[:1]
        self.assertRejected(correctkey.CorrectKeyProof(n, rotated))

        # identity permutation
        correctkey.CorrectKeyProof(n, list(sigma)).verify()

    def test_tampered_witness(self):
        n, sigma = self.proof.n, self.proof.sigma
        for i in range(correctkey.CHALLENGE_COUNT):
            for bit in [0, 1, 1000, 2046]:
                tampered = list(sigma)
                tampered[i] ^= 1 << bit
                self.assertRejected(correctkey.CorrectKeyProof(n, tampered))

    def test_tampered_modulus(self):
        n, sigma = self.proof.n, self.proof.sigma
        for bit in [0, 1, 100, 1500, 2047]:
            self.assertRejected(correctkey.CorrectKeyProof(n ^ (1 << bit), sigma))

    def test_small_factor(self):
        # n = 5 × q is a valid key as far as root extraction is concerned
        while True:
            q = util.genprime(1100)
            if q % 5 != 1:
                break
        sk = paillier.PaillierSecretKey(5, q)
        proof = correctkey.prove(sk)

        # the witnesses themselves are correct
        challenges = correctkey.generate_challenges(proof.n)
        for s, challenge in zip(proof.sigma, challenges):
            self.assertEqual(util.powmod(s, proof.n, proof.n), challenge)

        self.assertNotEqual(util.gcd(correctkey.SMALL_PRIME_PRODUCT, proof.n), 1)
        self.assertRejected(proof)

    def test_witness_count(self):
        n, sigma = self.proof.n, list(self.proof.sigma)
        self.assertRejected(correctkey.CorrectKeyProof(n, sigma[:-1]))
        self.assertRejected(correctkey.CorrectKeyProof(n, sigma + [sigma[0]]))
        self.assertRejected(correctkey.CorrectKeyProof(n, []))

    def test_malformed(self):
        n, sigma = self.proof.n, list(self.proof.sigma)

        # witness out of range, even though congruent
        out_of_range = list(sigma)
        out_of_range[0] += n
        self.assertRejected(correctkey.CorrectKeyProof(n, out_of_range))
        negative = list(sigma)
        negative[0] -= n
        self.assertRejected(correctkey.CorrectKeyProof(n, negative))

        # wrong types
        self.assertRejected(correctkey.CorrectKeyProof(str(n), sigma))
        self.assertRejected(correctkey.CorrectKeyProof(None, sigma))
        self.assertRejected(correctkey.CorrectKeyProof(float(2**1500), sigma))
        self.assertRejected(correctkey.CorrectKeyProof(-n, sigma))
        self.assertRejected(correctkey.CorrectKeyProof(n, [str(s) for s in sigma]))
        self.assertRejected(correctkey.CorrectKeyProof(n, [None] * 11))

    def test_small_modulus(self):
        pk, sk = paillier.generate_paillier_keypair(512, safe_primes=False)
        self.assertRaises(ValueError, correctkey.prove, sk)

        # a proof that would otherwise be valid is rejected as well
        sigma = [sk.extract_nroot(c) for c in correctkey.generate_challenges(pk.n)]
        self.assertRejected(correctkey.CorrectKeyProof(pk.n, sigma))

        # below DIGEST_BITS, every challenge would be zero
        pk, sk = paillier.generate_paillier_keypair(200, safe_primes=False)
        self.assertEqual(correctkey.generate_challenges(pk.n), [0] * 11)
        self.assertRejected(correctkey.CorrectKeyProof(pk.n, [0] * 11))

    def test_parallel(self):
        proof = correctkey.prove(self.sk, processes=2)
        self.assertEqual(proof.sigma, self.proof.sigma)
        proof.verify()

    def test_json(self):
        data = self.proof.to_json()
        self.assertEqual(data['n'], self.proof.n)
        self.assertEqual(data['sigma'], list(self.proof.sigma))

        f = io.StringIO()
        correctkey.dump(self.proof, f)
        f.seek(0)
        proof = correctkey.load(f)
        self.assertEqual(proof.n, self.proof.n)
        self.assertEqual(proof.sigma, self.proof.sigma)
        proof.verify()

    def test_json_malformed(self):
        self.assertRaises(correctkey.ProofRejected, correctkey.load, io.StringIO('not json'))
        self.assertRaises(correctkey.ProofRejected, correctkey.load, io.StringIO('[]'))
        self.assertRaises(correctkey.ProofRejected, correctkey.load, io.StringIO('{"n": 3}'))
        self.assertRaises(correctkey.ProofRejected, correctkey.CorrectKeyProof.from_json, None)
        self.assertRaises(correctkey.ProofRejected, correctkey.CorrectKeyProof.from_json, {'n': 3, 'sigma': 5})

        # well formed JSON, invalid proof
        data = self.proof.to_json()
        data['sigma'] = data['sigma'][::-1]
        proof = correctkey.CorrectKeyProof.from_json(data)
        self.assertRejected(proof)


class TestKeyCache(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '__main__.py')
        spec = importlib.util.spec_from_file_location('correctkey_cli', path)
        cls.cli = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(cls.cli)
        cls.cli.debug_level = 0

    def load_keypair(self, contents):
        with tempfile.TemporaryDirectory() as directory:
            key = os.path.join(directory, 'key.cache')
            if contents is not None:
                with open(key, 'w') as f:
                    f.write(contents)
            args = argparse.Namespace(key=key, bits=1024, unsafe_primes=True)
            pk, sk = self.cli.load_keypair(args)
            with open(key) as f:
                data = json.load(f)
        return pk, sk, data

    def test_generate(self):
        pk, sk, data = self.load_keypair(None)
        self.assertEqual(pk.n.bit_length(), 1024)
        self.assertEqual(data, {'p': sk.p, 'q': sk.q})

    def test_reload(self):
        _, sk, data = self.load_keypair(None)
        pk, sk2, _ = self.load_keypair(json.dumps(data))
        self.assertEqual((sk2.p, sk2.q), (sk.p, sk.q))
        self.assertEqual(pk.n, sk.p * sk.q)

    def test_invalid_cache(self):
        for contents in ['not json', '{}', '[1, 2]', '{"p": 3, "q": 7}', '{"p": null, "q": 7}']:
            pk, sk, data = self.load_keypair(contents)
            self.assertEqual(pk.n.bit_length(), 1024)
            self.assertEqual(data, {'p': sk.p, 'q': sk.q})


if __name__ == '__main__':
    unittest.main()
