#!/usr/bin/env python3
"""Keys of the Paillier cryptosystem

Only what is needed to prove that a modulus was generated correctly is kept
here: key generation, and the extraction of `n`-th roots modulo `n`, which is
only feasible when the factorization of `n` is known.

The main entry point of this module is `generate_paillier_keypair()`.
"""
import util


def generate_paillier_keypair(n_bits=2048, safe_primes=True):
    """Generate a pair of keys for the Paillier cryptosystem

    Arguments:
        n_bits (int, optional): the number of bits for the parameter n; they
            security corresponds to the difficulty of factoring `n` (as in
            RSA); as of 2018, NIST and ANSSI recommend at least 2048 bits and
            NSA 3072 bits
        safe_primes (bool, optional): safe primes are required for the security
            of the cryptosystems; however, generating safe primes takes much
            more time (generating a 2048 bit keypair takes one minute with safe
            primes, but a fraction of a second without); disabling the use of
            safe primes can be useful when security is not important (e.g.
            benchmarking)
            DO NOT SET TO FALSE IN PRODUCTION

    Returns:
        tuple: pair of two elements, usually named respectively `pk`
            (`PaillierPublicKey`), and `sk` (`PaillierSecretKey`)
    """
    while True:
        p = util.genprime(n_bits // 2, safe_primes)
        q = util.genprime(n_bits - n_bits // 2, safe_primes)
        if p != q:
            break
    sk = PaillierSecretKey(p, q)
    return sk.public_key, sk


class PaillierPublicKey:
    """Public key for the Paillier cryptosystem

    Attributes:
        n (int): parameter `n` from the Paillier cryptosystem, should be the
            product of large safe primes (as large as possible, so ideally two
            primes of the same size)
    """

    def __init__(self, n):
        self.n = n


class PaillierSecretKey:
    """Secret key for the Paillier cryptsystem

    Attributes:
        p (int): first prime in the factorization of `n`
        q (int): second prime in the factorization of `n`
        public_key (PaillierPublicKey): the corresponding public key
        dp (int): cached value used during root extraction
        dq (int): cached value used during root extraction
    """
    def __init__(self, p, q):
        """Constructor

        Arguments:
            p (int): parameter from the Paillier cryptosystem
            q (int): parameter from the Paillier cryptosystem

        Raises:
            ValueError: if `n` is not invertible modulo φ(n), in which case
                `n`-th roots are not unique (and may not exist)
        """
        self.p = p
        self.q = q
        self.public_key = pk = PaillierPublicKey(p*q)

        # pre-computations
        phi = (p-1) * (q-1)
        if util.gcd(pk.n, phi) != 1:
            raise ValueError('n is not invertible modulo φ(n)')
        d = util.invert(pk.n, phi)
        self.dp = d % (p-1)
        self.dq = d % (q-1)

    def extract_nroot(self, z):
        """Compute an `n`-th root of `z` modulo `n`

        Since `n` is invertible modulo φ(n), raising to the power `n` is a
        permutation of Z_n*, and its inverse is raising to the power
        `d = n^-1 mod φ(n)`; this is computed modulo `p` and `q` separately
        and recombined with the CRT.

        Arguments:
            z (int): the element of Z_n whose root is to be extracted

        Returns:
            int: `r` from `[0, n)` such that `r^n = z mod n`
        """
        p, q = self.p, self.q
        rp = util.powmod(z % p, self.dp, p)
        rq = util.powmod(z % q, self.dq, q)
        return util.crt([rp, rq], [p, q])
