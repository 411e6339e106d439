# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Signing of credentials and status list credentials.

The proof is a compact JWS over the canonical json of the credential
without its proof. The issuer is identified by the did:jwk of the public key.
"""

import copy
import json
import os
from functools import cache
from typing import Annotated

from fastapi import Depends
from jwcrypto import jwk, jws, common as jw_common

from common.parsing import object_to_url_safe, remove_padding
from status_issuer.config import get_config
from status_issuer.models import SigningOptions, utc_timestamp

PROOF_TYPE = "JsonWebSignature2020"


def _load_key_file(key_file: str) -> str:
    with open(key_file) as f:
        return f.read()


def _load_key(env_var: str, file: str) -> str:
    key = os.getenv(env_var)
    if not key:
        key = _load_key_file(file)
    return key


def canonical_payload(credential: dict) -> bytes:
    """Deterministic serialization of the credential, the proof is never part of it"""
    unsigned = {k: v for k, v in credential.items() if k != "proof"}
    return json.dumps(unsigned, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode()


class KeyConfiguration:
    """
    Holds the private signing key and signs credentials with it
    """

    @staticmethod
    def load(key_folder: str = "cert") -> "KeyConfiguration":
        private_key = _load_key(env_var="SIGNING_KEY_PRIVATE", file=f"{key_folder}/ec_private.pem")
        signing_algorithm = os.getenv("SIGNING_ALGORITHM", "ES512")
        return KeyConfiguration(private_key, signing_algorithm)

    def __init__(self, private_key: str, signing_algorithm: str = "ES512"):
        """
        Key is the pem bytes utf-8 encoded
        """
        self.signing_algorithm: str = signing_algorithm
        self.private_jwk = jwk.JWK.from_pem(private_key.encode())
        self.public_jwk = jwk.JWK(**self.private_jwk.export_public(as_dict=True))

    @property
    def jwk_did(self) -> str:
        """
        DID JWK with public signing key
        """
        return f'did:jwk:{remove_padding(object_to_url_safe(self.public_jwk.export_public(as_dict=True)))}'

    @property
    def verification_method(self) -> str:
        return f"{self.jwk_did}#0"

    def sign(self, credential: dict, options: SigningOptions | None = None) -> dict:
        """
        Returns a copy of the credential with a proof.
        An existing proof is replaced.
        """
        options = options or SigningOptions()
        header = {"alg": self.signing_algorithm, "kid": options.verificationMethod or self.verification_method}
        signer = jws.JWS(canonical_payload(credential))
        signer.add_signature(key=self.private_jwk, protected=jw_common.json_encode(header))
        encoded_header, _, signature = signer.serialize(compact=True).split(".")

        proof = {
            "type": PROOF_TYPE,
            "created": options.created or utc_timestamp(),
            "verificationMethod": header["kid"],
            "proofPurpose": options.proofPurpose,
            # detached payload
            "jws": f"{encoded_header}..{signature}",
        }
        if options.challenge:
            proof["challenge"] = options.challenge
        if options.domain:
            proof["domain"] = options.domain

        signed = copy.deepcopy(credential)
        signed["proof"] = proof
        return signed

    def verify(self, credential: dict) -> dict:
        """
        Verifies the proof against the public key
        Returns {"verified": bool, "results": [...]} like a verifier service
        """
        proof = credential.get("proof") or {}
        try:
            encoded_header, _, signature = proof["jws"].split(".")
            payload = jw_common.base64url_encode(canonical_payload(credential))
            token = jws.JWS()
            token.deserialize(f"{encoded_header}.{payload}.{signature}", key=self.public_jwk)
        except (KeyError, ValueError, jws.InvalidJWSSignature, jws.InvalidJWSObject) as e:
            return {"verified": False, "results": [{"proof": proof, "verified": False, "error": str(e)}]}
        return {"verified": True, "results": [{"proof": proof, "verified": True}]}


@cache
def get_key_configuration() -> KeyConfiguration:
    """Signing key of the process, loaded once"""
    return KeyConfiguration.load(key_folder=get_config().key_folder)


inject = Annotated[KeyConfiguration, Depends(get_key_configuration)]
