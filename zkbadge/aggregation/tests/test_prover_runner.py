"""Tests for the heavy-prover process boundary"""

import json
import sys
import textwrap
from pathlib import Path

import pytest

from zkbadge.aggregation.errors import (
    ArtifactSchemaError,
    ExternalProcessFailed,
    ExternalProcessUnavailable,
)
from zkbadge.aggregation.messages import decode_artifact
from zkbadge.aggregation.prover import ProverConfig, build_command, ensure_available, run_prover

ECHO_PROVER = textwrap.dedent(
    """
    import json
    import sys

    with open(sys.argv[2]) as fh:
        request = json.load(fh)
    print(json.dumps({
        "proof": "0xproof",
        "public_values": "0xvalues",
        "vk_hash": "0xvk",
        "metadata": {
            "self_nullifier": request["self_nullifier"],
            "generation_id": request["target_generation_id"],
            "social_level": request["min_verified_needed"],
            "claim_hash": request["social_claim_hash"],
        },
        "mode": sys.argv[1],
    }))
    """
)


def _prover(tmp_path, source, **kwargs):
    script = tmp_path / "prover.py"
    script.write_text(source)
    return ProverConfig(command=(sys.executable, str(script)), **kwargs)


def _request_file(tmp_path):
    path = tmp_path / "input.json"
    path.write_text(
        json.dumps(
            {
                "self_nullifier": "1000",
                "target_generation_id": 2,
                "min_verified_needed": 2,
                "social_claim_hash": "55",
            }
        )
    )
    return path


class TestBuildCommand:
    def test_execute_mode(self):
        config = ProverConfig(command=("prover",), mode="execute", network="mainnet")
        assert build_command(config, Path("/tmp/in.json")) == ["prover", "execute", "/tmp/in.json"]

    def test_prove_mode_with_network(self):
        config = ProverConfig(command=("prover", "--quiet"), mode="groth16", network="mainnet")
        assert build_command(config, Path("/tmp/in.json")) == [
            "prover",
            "--quiet",
            "prove",
            "/tmp/in.json",
            "--network",
            "mainnet",
            "--proof",
            "groth16",
        ]

    def test_prove_mode_without_network(self):
        config = ProverConfig(command=("prover",))
        assert build_command(config, Path("in.json"))[-2:] == ["--proof", "compressed"]


class TestEnsureAvailable:
    def test_not_configured(self):
        with pytest.raises(ExternalProcessUnavailable):
            ensure_available(ProverConfig())

    def test_missing_path(self, tmp_path):
        with pytest.raises(ExternalProcessUnavailable):
            ensure_available(ProverConfig(command=(str(tmp_path / "nope"),)))

    def test_missing_on_path(self):
        with pytest.raises(ExternalProcessUnavailable):
            ensure_available(ProverConfig(command=("zkbadge-no-such-prover",)))

    def test_bad_mode(self):
        with pytest.raises(ExternalProcessUnavailable):
            ensure_available(ProverConfig(command=(sys.executable,), mode="plonk"))


class TestRunProver:
    @pytest.mark.trio
    async def test_parses_artifact(self, tmp_path):
        config = _prover(tmp_path, ECHO_PROVER, mode="execute")
        artifact = await run_prover(config, _request_file(tmp_path))

        assert artifact.proof == "0xproof"
        assert artifact.vk_hash == "0xvk"
        assert artifact.metadata.self_nullifier == 1000
        assert artifact.metadata.generation_id == 2
        assert artifact.metadata.claim_hash == 55

    @pytest.mark.trio
    async def test_nonzero_exit(self, tmp_path):
        config = _prover(
            tmp_path, "import sys\nsys.stderr.write('proving failed')\nsys.exit(3)\n"
        )
        with pytest.raises(ExternalProcessFailed) as excinfo:
            await run_prover(config, _request_file(tmp_path))

        assert "code 3" in str(excinfo.value)
        assert "proving failed" in str(excinfo.value)

    @pytest.mark.trio
    async def test_unparsable_output(self, tmp_path):
        config = _prover(tmp_path, "print('not json')\n")
        with pytest.raises(ArtifactSchemaError):
            await run_prover(config, _request_file(tmp_path))

    @pytest.mark.trio
    async def test_timeout(self, tmp_path):
        config = _prover(tmp_path, "import time\ntime.sleep(30)\n", timeout=0.5)
        with pytest.raises(ExternalProcessFailed) as excinfo:
            await run_prover(config, _request_file(tmp_path))

        assert "timed out" in str(excinfo.value)

    @pytest.mark.trio
    async def test_unavailable(self, tmp_path):
        with pytest.raises(ExternalProcessUnavailable):
            await run_prover(ProverConfig(), _request_file(tmp_path))


class TestDecodeArtifact:
    def test_metadata_optional(self):
        artifact = decode_artifact(b'{"proof": "p", "public_values": "v", "vk_hash": "h"}')
        assert artifact.metadata is None
        with pytest.raises(ArtifactSchemaError):
            artifact.attestation()

    def test_missing_field(self):
        with pytest.raises(ArtifactSchemaError):
            decode_artifact('{"proof": "p", "public_values": "v"}')

    def test_non_object(self):
        with pytest.raises(ArtifactSchemaError):
            decode_artifact("[1, 2]")

    def test_bad_metadata(self):
        with pytest.raises(ArtifactSchemaError):
            decode_artifact(
                json.dumps(
                    {
                        "proof": "p",
                        "public_values": "v",
                        "vk_hash": "h",
                        "metadata": {"self_nullifier": "x", "generation_id": 1,
                                     "social_level": 2, "claim_hash": "5"},
                    }
                )
            )

    def test_attestation_fields(self):
        artifact = decode_artifact(
            json.dumps(
                {
                    "proof": "p",
                    "public_values": "v",
                    "vk_hash": "h",
                    "metadata": {"self_nullifier": "7", "generation_id": 1,
                                 "social_level": 2, "claim_hash": "5"},
                }
            )
        )
        attestation = artifact.attestation()

        assert attestation.identity == 7
        assert attestation.public_values == "v"
        assert artifact.to_json()["metadata"]["claim_hash"] == "5"
