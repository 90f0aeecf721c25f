#!/usr/bin/env python3
"""Non-interactive proof that a Paillier modulus was generated correctly

The prover shows that it knows the factorization of `n` by extracting `n`-th
roots modulo `n` of challenges that nobody chooses: they are derived from `n`
itself through a hash function (Fiat-Shamir heuristic). Since raising to the
power `n` is a permutation of Z_n* only when `gcd(n, φ(n)) = 1`, answering
every challenge also shows that `n` is well formed. The verifier additionally
checks that `n` has no prime factor up to 6379.

The protocol follows <https://eprint.iacr.org/2018/057.pdf>, with the
parameters from <https://eprint.iacr.org/2018/987.pdf> (e = n, m2 = 11,
α = 6379).

The main entry points of this module are `prove()` and `verify()`.
"""
import json
import multiprocessing

import util

# changing any of these breaks compatibility with existing proofs
CHALLENGE_COUNT = 11
DIGEST_BITS = 256
SALT = bytes([75, 90, 101, 110])

# below this size, there would be too few blocks to derive challenges (none at
# all under DIGEST_BITS)
MIN_MODULUS_BITS = 1024

# product of all the primes up to 6379
SMALL_PRIME_PRODUCT = int(
    '182418372624539346724764423130224413609353719905710421321355057524364178'
    '274036065049096345981924400194725481480571493132585126716171006743580738'
    '384846392090113771004167388711399064382079897538671429983991413759259065'
    '400995262301498296268495553511123431133556522091738331168911513849676531'
    '062588247343940223310945002198489145030467983375275615987221999108919418'
    '757506838276295223983090139485088721539213288364066948667410227775675326'
    '085564031751023561766094487363105463081603526910051033764325038999783763'
    '464024948003718429046292454015013367831218577722863083494002142768889287'
    '638419689567781905996388258709216630113152917434347445148008965348318060'
    '259175107313973337071230024158163504935092541268309772923209209627649022'
    '996578502004192173630739443807526623496851544371682863339284820394537459'
    '192680046445059982355305246270872721917399017711968456530622250241516003'
    '775332663804568757410653470234143999186374280635146829058772256143503891'
    '286381568813328861951279009591990402657324955702483938359548170418452896'
    '097895772459726332351203074387561429060936853064309408005116622613527138'
    '586618805455668483792193588894564194496106629315952560288545222245895877'
    '284549434679989019671871731790633093650909122135461599167186986203417920'
    '624489420568156678106263341577262884887871580304035883609860965488952139'
    '304649247122754607992421905540861281517319310875318447756225626686029709'
    '622393408850977739375262438075707208242760355607703994570071122668077839'
    '273726770754190435512969591997299550158179406788095982214996379809645261'
    '361985567330743560285020885040230158302511176262238195325188342931760300'
    '562623201272570869440127229550903536765462041264084820417995598072270799'
    '629190981252997436194992688128834951875074761583766754930508329180418717'
    '912345312146664091886262276651166847845222374205891257542733701802281263'
    '138631311024374500021435480631244127088967290330764561165889398652681213'
    '003211254036717373666428899522251668812086611498431858290033163189693170'
    '900516385342942775922432363615257345333360735734816916791502770084600293'
    '274255082493900741433069724956991633996424764640285128185794296551919457'
    '600616906615352416322563147664391403360195761412458320654183435279100393'
    '050613920920466110488270184261750163586488376088523679708199667949675125'
    '426070643858331688561240638654347925556618569779294247870433625420883918'
    '097074862488103994819241592986620431880022029545793255079908859221715059'
    '717650539412090991447557550188145980469938549957632668469553103407528316'
    '580062232849138498719494450446186410598690764670609595608315624047248961'
    '647394663887972652458593651101878074717438784001867467011043052805158606'
    '942216393469789993145604180262417544915727962010412633148949152595541146'
    '507355165284000916378192340102951304869374671312281357872168785810438823'
    '8796796690')

_SALT = int.from_bytes(SALT, 'big')


class ProofRejected(Exception):
    """Raised when the verification of a correct key proof fails

    It carries no detail about which check failed.
    """


def generate_challenges(n):
    """Derive the challenges for modulus `n`

    Each challenge is built by concatenating `n.bit_length() // DIGEST_BITS`
    digests of `(n, i, j, SALT)`, the one of index `j` being placed at bit
    offset `j × DIGEST_BITS` (as in MGF1 from RFC 8017, appendix B.2.1), and
    reducing the result modulo `n`.

    Arguments:
        n (int): the public modulus

    Returns:
        list: the `CHALLENGE_COUNT` challenges (int), elements of Z_n
    """
    block_count = n.bit_length() // DIGEST_BITS
    return [
        _derive_challenge(n, i, block_count)
        for i in range(CHALLENGE_COUNT)
    ]


def _derive_challenge(n, i, block_count):
    value = 0
    for j in range(block_count):
        value += util.H([n, i, j, _SALT]) << (j * DIGEST_BITS)
    return value % n


def _is_integer(x):
    return isinstance(x, int) and not isinstance(x, bool)


class CorrectKeyProof:
    """Proof that a Paillier modulus was generated correctly

    Attributes:
        n (int): the public modulus the proof is about
        sigma (tuple): the `n`-th roots (int) of the challenges derived from
            `n`; `sigma[i]` answers the challenge of index `i`
    """
    def __init__(self, n, sigma):
        """Constructor

        Arguments:
            n (int): the public modulus
            sigma (iterable): the answers to the challenges, in order
        """
        self.n = n
        self.sigma = tuple(sigma)

    @classmethod
    def prove(cls, sk, processes=None):
        """Prove that the modulus of a secret key was generated correctly

        Arguments:
            sk (PaillierSecretKey): the secret key; any object with a
                `public_key.n` attribute and an `extract_nroot()` method works
            processes (int, optional): if set, the root extractions are
                distributed among this many worker processes

        Returns:
            CorrectKeyProof: the proof, which does not contain any secret

        Raises:
            ValueError: if the modulus has less than `MIN_MODULUS_BITS` bits
        """
        n = sk.public_key.n
        if n.bit_length() < MIN_MODULUS_BITS:
            raise ValueError('modulus must have at least {} bits'.format(MIN_MODULUS_BITS))

        challenges = generate_challenges(n)
        if processes:
            with multiprocessing.Pool(processes) as pool:
                sigma = pool.map(sk.extract_nroot, challenges)
        else:
            sigma = [sk.extract_nroot(challenge) for challenge in challenges]
        return cls(n, sigma)

    def verify(self):
        """Check the proof

        Only public values are used: the challenges are derived again from
        `n`, and each answer raised to the power `n` must give back the
        corresponding challenge. Besides, `n` must not have any small factor.

        Raises:
            ProofRejected: if the proof is invalid or malformed
        """
        n, sigma = self.n, self.sigma

        # shape of the proof
        if not _is_integer(n) or n <= 0 or n.bit_length() < MIN_MODULUS_BITS:
            raise ProofRejected
        if len(sigma) != CHALLENGE_COUNT:
            raise ProofRejected
        if not all(_is_integer(s) and 0 <= s < n for s in sigma):
            raise ProofRejected

        challenges = generate_challenges(n)
        coprime = util.gcd(SMALL_PRIME_PRODUCT, n) == 1

        # all the answers are checked, even after a mismatch
        matches = [
            util.powmod(s, n, n) == challenge
            for s, challenge in zip(sigma, challenges)
        ]
        if not (all(matches) and coprime):
            raise ProofRejected

    def to_json(self):
        """Serializable representation of the proof

        Returns:
            dict: with keys `n` (int) and `sigma` (list of int, in order)
        """
        return {'n': self.n, 'sigma': list(self.sigma)}

    @classmethod
    def from_json(cls, data):
        """Inverse of `to_json()`

        Arguments:
            data (dict): as returned by `to_json()`

        Returns:
            CorrectKeyProof: the decoded proof, still to be verified

        Raises:
            ProofRejected: if `data` does not have the expected shape
        """
        try:
            n, sigma = data['n'], data['sigma']
        except (TypeError, KeyError):
            raise ProofRejected
        if not isinstance(sigma, list):
            raise ProofRejected
        return cls(n, sigma)


def prove(sk, processes=None):
    """Shortcut for `CorrectKeyProof.prove()`"""
    return CorrectKeyProof.prove(sk, processes)


def verify(proof):
    """Shortcut for `CorrectKeyProof.verify()`"""
    proof.verify()


def dump(proof, f):
    """Write a proof as JSON to the file object `f`"""
    json.dump(proof.to_json(), f)


def load(f):
    """Read a proof written by `dump()` from the file object `f`

    Raises:
        ProofRejected: if the file does not contain a proof
    """
    try:
        data = json.load(f)
    except json.decoder.JSONDecodeError:
        raise ProofRejected
    return CorrectKeyProof.from_json(data)
