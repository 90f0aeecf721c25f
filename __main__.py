#!/usr/bin/env python3
import sys
import json
import argparse
import datetime

import paillier
import correctkey


def load_keypair(args):
    # load cached keys or generate new ones
    try:
        with open(args.key) as f:
            data = json.load(f)
        sk = paillier.PaillierSecretKey(data['p'], data['q'])
    except (FileNotFoundError, json.decoder.JSONDecodeError, KeyError,
            TypeError, ValueError):
        # generate the keys
        pk, sk = paillier.generate_paillier_keypair(args.bits, not args.unsafe_primes)
        # cache them
        with open(args.key, 'w') as f:
            json.dump({'p': sk.p, 'q': sk.q}, f)
        if debug_level >= 1:
            print('Key generated')
    else:
        pk = sk.public_key
        if debug_level >= 1:
            print('Keys loaded')

    if debug_level >= 2:
        print('n has {} bits'.format(pk.n.bit_length()))
    return pk, sk


def run_prove(args):
    pk, sk = load_keypair(args)

    start = datetime.datetime.now()
    proof = correctkey.prove(sk, args.processes or None)
    elapsed = datetime.datetime.now() - start
    if debug_level >= 1:
        print('Proof generated in {}'.format(elapsed))

    with open(args.proof, 'w') as f:
        correctkey.dump(proof, f)
    if debug_level >= 1:
        print('Proof written to {}'.format(args.proof))
    return 0


def run_verify(args):
    start = datetime.datetime.now()
    try:
        with open(args.proof) as f:
            proof = correctkey.load(f)
        proof.verify()
    except correctkey.ProofRejected:
        if debug_level >= 1:
            print('Proof rejected')
        return 1
    elapsed = datetime.datetime.now() - start
    if debug_level >= 2:
        print('n has {} bits'.format(proof.n.bit_length()))
    if debug_level >= 1:
        print('Proof accepted')
        print('Verified in {}'.format(elapsed))
    return 0


def main():
    parser = argparse.ArgumentParser()
    parser.description = 'Prove that a Paillier modulus was generated correctly'
    parser.add_argument('--debug', '-d', default=1, type=int)
    parser.add_argument('--key', default='key.cache')
    parser.add_argument('--bits', default=2048, type=int)
    parser.add_argument('--unsafe-primes', action='store_true')
    parser.add_argument('--processes', default=0, type=int)
    parser.add_argument('command', choices=['prove', 'verify'])
    parser.add_argument('proof', default='proof.json', nargs='?')
    args = parser.parse_args()

    global debug_level
    debug_level = args.debug

    if args.command == 'prove':
        return run_prove(args)
    else:
        return run_verify(args)


if __name__ == '__main__':
    sys.exit(main())
