"""Tests for PKCE parameter generation.

Covers URL-safe encoding, lengths, the RFC 7636 challenge vector and
hosts without a secure random source.
"""

import base64
import hashlib
from unittest.mock import patch

import pytest

from genius.auth.models.errors import PKCEError
from genius.auth.primitives.pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_pkce_parameters,
    generate_state,
)


class TestPKCEGeneration:
    """Test PKCE verifier, challenge and state generation."""

    def test_verifier_and_state_are_url_safe_without_padding(self) -> None:
        for _ in range(200):
            # Act
            verifier = generate_code_verifier()
            state = generate_state()

            # Assert
            for value in (verifier, state):
                assert "+" not in value
                assert "/" not in value
                assert "=" not in value

    def test_lengths_follow_random_byte_source(self) -> None:
        # 32 bytes -> 43 base64url chars, 16 bytes -> 22 chars
        assert len(generate_code_verifier()) == 43
        assert len(generate_state()) == 22

    def test_challenge_is_base64url_sha256_of_verifier(self) -> None:
        # Arrange - RFC 7636 Appendix B example
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        challenge = generate_code_challenge(verifier)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("ascii")).digest())
            .decode("ascii")
            .rstrip("=")
        )
        assert challenge == expected

    def test_challenge_is_deterministic_and_distinct(self) -> None:
        v1 = generate_code_verifier()
        v2 = generate_code_verifier()

        assert generate_code_challenge(v1) == generate_code_challenge(v1)
        assert generate_code_challenge(v1) != generate_code_challenge(v2)

    def test_parameters_are_unique_per_generation(self) -> None:
        # Act
        params1 = generate_pkce_parameters()
        params2 = generate_pkce_parameters()

        # Assert
        assert params1.verifier != params2.verifier
        assert params1.state != params2.state
        assert params1.challenge == generate_code_challenge(params1.verifier)
        assert params1.challenge_method == "S256"

    def test_missing_secure_random_source_is_fatal(self) -> None:
        with patch(
            "genius.auth.primitives.pkce.secrets.token_bytes",
            side_effect=NotImplementedError("no urandom"),
        ):
            with pytest.raises(PKCEError):
                generate_pkce_parameters()
